"""Markdown assembly for index, module and class pages."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import List, Optional, Sequence

from jinja2 import Environment

from ..models import (
    ClassSymbol,
    Docstring,
    EnumSymbol,
    FunctionSymbol,
    ParamKind,
    Parameter,
    ProtocolSymbol,
    ProvenanceKind,
    Provenance,
    ResolvedModel,
    Signature,
    Symbol,
    TypeAliasSymbol,
    TypedDictSymbol,
    TypeExpr,
    TypeParameter,
    VariableSymbol,
)
from ..naming import anchor_id
from ..parsing.docstrings import first_line
from ..parsing.types import format_type
from .backends import SEMANTIC_COLORS
from .layout import Layout, PageKind, PageTarget

_MAX_SIGNATURE_WIDTH = 88

_PROVENANCE_BADGES = {
    ProvenanceKind.SOURCE: ("source", "success"),
    ProvenanceKind.COMPILED: ("compiled", "info"),
    ProvenanceKind.OVERLAY: ("binding", "binding"),
}


def escape_cell(text: str) -> str:
    """Make ``text`` safe inside a markdown table cell."""
    return " ".join(text.replace("|", "\\|").split())


class PageBuilder:
    """Builds one page at a time; holds no per-page state."""

    def __init__(self, model: ResolvedModel, layout: Layout, env: Environment) -> None:
        self.model = model
        self.layout = layout
        self.backend = layout.settings.backend
        self._page_template = env.get_template("page.md.j2")
        self._badge_template = env.get_template("partials/badge.md.j2")
        self._signature_template = env.get_template("partials/signature.md.j2")
        self._code_template = env.get_template("partials/code_block.md.j2")

    def build(self, page: PageTarget) -> str:
        if page.kind is PageKind.INDEX:
            return self._index_page(page)
        if page.kind is PageKind.MODULE:
            return self._module_page(page)
        return self._class_page(page)

    # -- pages ---------------------------------------------------------------

    def _index_page(self, page: PageTarget) -> str:
        title = self.model.project if not self.model.version else f"{self.model.project} {self.model.version}"
        modules = self.model.documented_modules()
        rows = ["| Module | Provenance | Summary |", "|--------|------------|---------|"]
        for module in modules:
            target = self.layout.page_for(module.qualname)
            link = self.layout.link_page(page.path, target.path) if target is not None else None
            name = f"[{module.qualname}]({link})" if link else module.qualname
            rows.append(
                f"| {name} | {self._provenance_badge(module.provenance)} | "
                f"{escape_cell(first_line(module.docstring))} |"
            )
        sections = ["## Modules\n\n" + "\n".join(rows)] if modules else ["No modules were found."]
        return self._render_page(
            heading=self.backend.heading(1, title, page.anchor),
            badges=[self._badge(f"{len(modules)} modules", "modules", "info")],
            breadcrumbs=[],
            sections=sections,
        )

    def _module_page(self, page: PageTarget) -> str:
        module = self.model.modules[page.qualname]
        badges = [self._provenance_badge(module.provenance)]
        if module.is_package:
            badges.append(self._badge("package", "kind", "info"))

        sections: List[str] = []
        doc = self._docstring(module.docstring)
        if doc:
            sections.append(doc)

        if module.is_package:
            children = [
                child
                for child in self.model.documented_modules()
                if child.qualname.rpartition(".")[0] == module.qualname and child.qualname != module.qualname
            ]
            if children:
                lines = ["## Submodules", ""]
                for child in children:
                    link = self.layout.link(page.path, child.qualname)
                    summary = first_line(child.docstring)
                    lines.append(f"- [{child.name}]({link})" + (f": {summary}" if summary else ""))
                sections.append("\n".join(lines))

        symbols = self.layout.visible(module.symbols)
        classes = [symbol for symbol in symbols if isinstance(symbol, ClassSymbol)]
        functions = [symbol for symbol in symbols if isinstance(symbol, FunctionSymbol)]
        aliases = [symbol for symbol in symbols if isinstance(symbol, TypeAliasSymbol)]
        variables = [
            symbol
            for symbol in symbols
            if not isinstance(symbol, (ClassSymbol, FunctionSymbol, TypeAliasSymbol))
        ]

        if classes:
            rows = ["## Classes", "", "| Name | Kind | Summary |", "|------|------|---------|"]
            for symbol in classes:
                link = self.layout.link(page.path, symbol.qualname)
                rows.append(
                    f"| [{symbol.name}]({link}) | {symbol.kind} | {escape_cell(first_line(symbol.docstring))} |"
                )
            sections.append("\n".join(rows))
        if functions:
            sections.append("## Functions")
            sections.extend(self._function(symbol, page, level=3, owner=module.provenance) for symbol in functions)
        if aliases:
            sections.append("## Type aliases")
            sections.extend(self._alias(symbol, page, level=3, owner=module.provenance) for symbol in aliases)
        if variables:
            sections.append("## Variables")
            sections.extend(self._variable(symbol, page, level=3, owner=module.provenance) for symbol in variables)

        return self._render_page(
            heading=self.backend.heading(1, f"`{module.qualname}`", page.anchor),
            badges=badges,
            breadcrumbs=self._breadcrumbs(page),
            sections=sections,
        )

    def _class_page(self, page: PageTarget) -> str:
        symbol = self.model.symbols[page.qualname]
        if not isinstance(symbol, ClassSymbol):
            raise TypeError(f"{page.qualname} is not a class and has no page of its own")
        return self._render_page(
            heading=self.backend.heading(1, f"`{symbol.name}`", page.anchor),
            badges=self._class_badges(symbol, None),
            breadcrumbs=self._breadcrumbs(page),
            sections=self._class_body(symbol, page, level=2),
        )

    # -- symbols -------------------------------------------------------------

    def _class_body(self, symbol: ClassSymbol, page: PageTarget, *, level: int) -> List[str]:
        sections: List[str] = []
        marks = "#" * level
        if symbol.bases:
            bases = ", ".join(self._type(base, symbol.qualname, page.path) for base in symbol.bases)
            sections.append(f"**Bases:** {bases}")
        if symbol.is_degraded and symbol.raw:
            sections.append(self._code(symbol.raw, caption="Declaration could not be fully parsed"))
        else:
            sections.append(self._code(_class_declaration(symbol)))
        doc = self._docstring(symbol.docstring)
        if doc:
            sections.append(doc)

        members = self.layout.visible(symbol.members)
        attributes = [member for member in members if isinstance(member, VariableSymbol)]
        field_names = {item.name for item in symbol.fields}

        if isinstance(symbol, EnumSymbol):
            rows = [f"{marks} Members", "", "| Name | Value | Description |", "|------|-------|-------------|"]
            for member in attributes:
                rows.append(
                    f"| `{member.name}` | {escape_cell(f'`{member.value}`' if member.value else '')} | "
                    f"{escape_cell(first_line(member.docstring))} |"
                )
            sections.append("\n".join(rows))
            attributes = []
        elif isinstance(symbol, TypedDictSymbol):
            rows = [f"{marks} Fields", "", "| Key | Type | Required | Description |", "|-----|------|----------|-------------|"]
            for key in symbol.keys:
                member = symbol.member(key.name)
                description = first_line(member.docstring) if member is not None else ""
                rows.append(
                    f"| `{key.name}` | {escape_cell(self._type(key.annotation, symbol.qualname, page.path))} | "
                    f"{'yes' if key.required else 'no'} | {escape_cell(description)} |"
                )
            sections.append("\n".join(rows))
            attributes = [member for member in attributes if member.name not in {key.name for key in symbol.keys}]
        elif symbol.fields:
            rows = [f"{marks} Fields", "", "| Name | Type | Default | Description |", "|------|------|---------|-------------|"]
            for item in symbol.fields:
                rows.append(
                    f"| `{item.name}` | {escape_cell(self._type(item.annotation, item.qualname, page.path))} | "
                    f"{escape_cell(f'`{item.value}`' if item.value else '')} | "
                    f"{escape_cell(first_line(item.docstring))} |"
                )
            sections.append("\n".join(rows))
            attributes = [member for member in attributes if member.name not in field_names]

        if isinstance(symbol, ProtocolSymbol) and symbol.capabilities:
            items = []
            for name in symbol.capabilities:
                link = self.layout.link(page.path, f"{symbol.qualname}.{name}")
                items.append(f"- [`{name}`]({link})" if link else f"- `{name}`")
            sections.append(f"{marks} Capabilities\n\n" + "\n".join(items))

        if attributes:
            sections.append(f"{marks} Attributes")
            sections.extend(
                self._variable(member, page, level=level + 1, owner=symbol.provenance) for member in attributes
            )
        properties = [member for member in members if isinstance(member, FunctionSymbol) and member.is_property]
        if properties:
            sections.append(f"{marks} Properties")
            sections.extend(
                self._function(member, page, level=level + 1, owner=symbol.provenance) for member in properties
            )
        methods = [member for member in members if isinstance(member, FunctionSymbol) and not member.is_property]
        if methods:
            sections.append(f"{marks} Methods")
            sections.extend(
                self._function(member, page, level=level + 1, owner=symbol.provenance) for member in methods
            )
        nested = [member for member in members if isinstance(member, ClassSymbol)]
        if nested:
            sections.append(f"{marks} Nested classes")
            for member in nested:
                heading = self.backend.heading(level + 1, f"`{member.name}`", anchor_id(member.qualname))
                sections.append(heading + self._badge_line(self._class_badges(member, symbol.provenance)))
                sections.extend(self._class_body(member, page, level=min(level + 2, 6)))
        return sections

    def _function(self, symbol: FunctionSymbol, page: PageTarget, *, level: int, owner: Provenance) -> str:
        parts = [self.backend.heading(level, f"`{symbol.name}`", anchor_id(symbol.qualname))]
        badges = self._symbol_badges(symbol, owner)
        if symbol.is_async:
            badges.append(self._badge("async", "async", "info"))
        if symbol.is_property:
            badges.append(self._badge("property", "property", "info"))
        for decorator in ("classmethod", "staticmethod"):
            if symbol.has_decorator(decorator):
                badges.append(self._badge(decorator, "decorator", "info"))
        if symbol.has_decorator("abstractmethod"):
            badges.append(self._badge("abstract", "abstract", "warning"))
        if symbol.is_overloaded:
            badges.append(self._badge(f"{len(symbol.overloads)} overloads", "overload", "info"))
        if badges:
            parts.append(" ".join(badges))

        if symbol.is_degraded and symbol.raw:
            parts.append(self._code(symbol.raw, caption="Declaration could not be fully parsed"))
        elif symbol.is_opaque:
            parts.append(_opaque_note(symbol))
        elif symbol.signatures():
            parts.append(self._signatures(symbol))

        signature = symbol.signature if not symbol.is_overloaded and not symbol.is_degraded else None
        table = self._params_table(signature, symbol, page.path) if signature is not None else ""
        if table:
            parts.append(table)
        typed_return = signature is not None and signature.returns is not None and not symbol.is_property
        if typed_return:
            returns = f"**Returns:** {self._type(signature.returns, symbol.qualname, page.path)}"
            if symbol.docstring is not None and symbol.docstring.returns:
                returns += f"\n\n{symbol.docstring.returns}"
            parts.append(returns)
        doc = self._docstring(symbol.docstring, skip_args=bool(table), skip_returns=typed_return)
        if doc:
            parts.append(doc)
        return "\n\n".join(parts)

    def _variable(self, symbol: Symbol, page: PageTarget, *, level: int, owner: Provenance) -> str:
        parts = [self.backend.heading(level, f"`{symbol.name}`", anchor_id(symbol.qualname))]
        badges = self._symbol_badges(symbol, owner)
        if badges:
            parts.append(" ".join(badges))
        if symbol.is_degraded and symbol.raw:
            parts.append(self._code(symbol.raw, caption="Declaration could not be fully parsed"))
        elif symbol.is_opaque:
            parts.append(_opaque_note(symbol))
        elif isinstance(symbol, VariableSymbol):
            declaration = symbol.name
            if symbol.annotation is not None:
                declaration += f": {format_type(symbol.annotation)}"
            if symbol.value is not None:
                declaration += f" = {symbol.value}"
            parts.append(self._code(declaration))
            if symbol.annotation is not None:
                parts.append(f"**Type:** {self._type(symbol.annotation, symbol.qualname, page.path)}")
        doc = self._docstring(symbol.docstring)
        if doc:
            parts.append(doc)
        return "\n\n".join(parts)

    def _alias(self, symbol: TypeAliasSymbol, page: PageTarget, *, level: int, owner: Provenance) -> str:
        parts = [self.backend.heading(level, f"`{symbol.name}`", anchor_id(symbol.qualname))]
        badges = self._symbol_badges(symbol, owner)
        badges.append(self._badge("type alias", "kind", "info"))
        parts.append(" ".join(badges))
        if symbol.is_degraded and symbol.raw:
            parts.append(self._code(symbol.raw, caption="Declaration could not be fully parsed"))
        else:
            params = _type_params(symbol.type_params)
            parts.append(self._code(f"type {symbol.name}{params} = {format_type(symbol.value)}"))
            if symbol.value is not None:
                parts.append(f"**Refers to:** {self._type(symbol.value, symbol.qualname, page.path)}")
            expanded = self.model.aliases.get(symbol.qualname)
            if expanded is not None and expanded != symbol.value:
                parts.append(self._code(format_type(expanded), caption="Expanded"))
        doc = self._docstring(symbol.docstring)
        if doc:
            parts.append(doc)
        return "\n\n".join(parts)

    # -- fragments -----------------------------------------------------------

    def _signatures(self, symbol: FunctionSymbol) -> str:
        lines: List[str] = []
        decorators = [str(decorator) for decorator in symbol.decorators if decorator.short_name != "overload"]
        if symbol.is_overloaded:
            for overload in symbol.overloads:
                lines.append("@overload")
                lines.append(_signature_text(symbol.name, overload))
        else:
            lines.extend(decorators)
            lines.append(_signature_text(symbol.name, symbol.signature or Signature()))
        return self._signature_template.render(signatures=lines)

    def _params_table(self, signature: Signature, symbol: FunctionSymbol, source: PurePosixPath) -> str:
        params = [param for param in signature.params if param.name not in {"self", "cls"}]
        if not params:
            return ""
        rows = ["**Parameters:**", "", "| Name | Type | Default | Description |", "|------|------|---------|-------------|"]
        for param in params:
            description = symbol.docstring.arg(param.name) if symbol.docstring is not None else None
            default = f"`{param.default}`" if param.has_default and param.default is not None else ""
            rows.append(
                f"| `{_param_label(param)}` | "
                f"{escape_cell(self._type(param.annotation, symbol.qualname, source)) if param.annotation else ''} | "
                f"{escape_cell(default)} | {escape_cell(description or '')} |"
            )
        return "\n".join(rows)

    def _docstring(self, doc: Optional[Docstring], *, skip_args: bool = False, skip_returns: bool = False) -> str:
        if doc is None:
            return ""
        sections: List[str] = []
        if doc.summary:
            sections.append(doc.summary)
        if doc.description:
            sections.append(doc.description)
        if doc.args and not skip_args:
            rows = ["**Parameters:**", "", "| Name | Description |", "|------|-------------|"]
            rows.extend(f"| `{name}` | {escape_cell(text)} |" for name, text in doc.args)
            sections.append("\n".join(rows))
        if doc.returns and not skip_returns:
            sections.append(f"**Returns:**\n\n{doc.returns}")
        if doc.raises:
            rows = ["**Raises:**", "", "| Exception | Description |", "|-----------|-------------|"]
            rows.extend(f"| `{kind}` | {escape_cell(text)} |" for kind, text in doc.raises)
            sections.append("\n".join(rows))
        if doc.examples:
            blocks = []
            for example in doc.examples:
                trimmed = example.strip()
                blocks.append(trimmed if trimmed.startswith("```") else self._code(trimmed))
            sections.append("**Examples:**\n\n" + "\n\n".join(blocks))
        return "\n\n".join(sections)

    def _type(self, expr: Optional[TypeExpr], owner: str, source: PurePosixPath) -> str:
        def render_name(name: str) -> str:
            reference = self.model.reference(owner, name)
            if reference is None or not reference.resolved:
                return name
            link = self.layout.link(source, reference.target)  # type: ignore[arg-type]
            return f"[{name}]({link})" if link else name

        return format_type(expr, render_name)

    def _code(self, code: str, *, language: str = "python", caption: str = "") -> str:
        return self._code_template.render(code=code, language=language, caption=caption).strip()

    def _badge(self, text: str, badge_type: str, color: str) -> str:
        style = self.backend.tokens.badge_style(SEMANTIC_COLORS[color])
        return self._badge_template.render(text=text, badge_type=badge_type, style=style).strip()

    def _provenance_badge(self, provenance: Provenance) -> str:
        badge_type, color = _PROVENANCE_BADGES[provenance.kind]
        return self._badge(str(provenance), badge_type, color)

    def _symbol_badges(self, symbol: Symbol, owner: Optional[Provenance]) -> List[str]:
        badges = []
        if owner is None or symbol.provenance != owner:
            badges.append(self._provenance_badge(symbol.provenance))
        if symbol.is_degraded:
            badges.append(self._badge("degraded", "degraded", "warning"))
        if symbol.is_opaque:
            badges.append(self._badge("opaque", "opaque", "error"))
        return badges

    def _class_badges(self, symbol: ClassSymbol, owner: Optional[Provenance]) -> List[str]:
        badges = [self._badge(symbol.kind, "kind", "info")]
        if symbol.is_dataclass:
            badges.append(self._badge("dataclass", "kind", "info"))
        if isinstance(symbol, ProtocolSymbol) and symbol.runtime_checkable:
            badges.append(self._badge("runtime checkable", "kind", "info"))
        badges.extend(self._symbol_badges(symbol, owner))
        return badges

    @staticmethod
    def _badge_line(badges: Sequence[str]) -> str:
        return "\n\n" + " ".join(badges) if badges else ""

    def _breadcrumbs(self, page: PageTarget) -> List[str]:
        index = self.layout.page_for("")
        crumbs = [f"[{self.model.project}]({self.layout.link_page(page.path, index.path)})"] if index else []
        for label, qualname in self.layout.breadcrumbs(page.qualname):
            crumbs.append(f"[{label}]({self.layout.link(page.path, qualname)})")
        crumbs.append(page.qualname.rsplit(".", 1)[-1])
        return crumbs

    def _render_page(self, *, heading: str, badges: List[str], breadcrumbs: List[str], sections: List[str]) -> str:
        return self._page_template.render(
            heading=heading,
            badges=badges,
            breadcrumbs=breadcrumbs,
            sections=[section for section in sections if section],
        )


def _param_label(param: Parameter) -> str:
    if param.kind is ParamKind.VAR_POSITIONAL:
        return f"*{param.name}"
    if param.kind is ParamKind.VAR_KEYWORD:
        return f"**{param.name}"
    return param.name


def _param_text(param: Parameter) -> str:
    text = _param_label(param)
    if param.annotation is not None:
        text += f": {format_type(param.annotation)}"
    if param.has_default:
        default = param.default if param.default is not None else "..."
        text += f" = {default}" if param.annotation is not None else f"={default}"
    return text


def _type_params(type_params: Sequence[TypeParameter]) -> str:
    if not type_params:
        return ""
    rendered = []
    for param in type_params:
        prefix = {"ParamSpec": "**", "TypeVarTuple": "*"}.get(param.kind, "")
        text = f"{prefix}{param.name}"
        if param.bound is not None:
            text += f": {format_type(param.bound)}"
        elif param.constraints:
            text += ": (" + ", ".join(format_type(item) for item in param.constraints) + ")"
        rendered.append(text)
    return "[" + ", ".join(rendered) + "]"


def _signature_params(signature: Signature) -> List[str]:
    params: List[str] = []
    kinds = [param.kind for param in signature.params]
    star_needed = ParamKind.KEYWORD_ONLY in kinds and ParamKind.VAR_POSITIONAL not in kinds
    for index, param in enumerate(signature.params):
        if param.kind is ParamKind.KEYWORD_ONLY and star_needed:
            params.append("*")
            star_needed = False
        params.append(_param_text(param))
        following = signature.params[index + 1].kind if index + 1 < len(signature.params) else None
        if param.kind is ParamKind.POSITIONAL_ONLY and following is not ParamKind.POSITIONAL_ONLY:
            params.append("/")
    return params


def _signature_text(name: str, signature: Signature) -> str:
    prefix = "async def" if signature.is_async else "def"
    returns = f" -> {format_type(signature.returns)}" if signature.returns is not None else ""
    head = f"{prefix} {name}{_type_params(signature.type_params)}"
    params = _signature_params(signature)
    line = f"{head}({', '.join(params)}){returns}: ..."
    if len(line) <= _MAX_SIGNATURE_WIDTH or not params:
        return line
    body = "".join(f"    {param},\n" for param in params)
    return f"{head}(\n{body}){returns}: ..."


def _class_declaration(symbol: ClassSymbol) -> str:
    bases = ", ".join(format_type(base) for base in symbol.bases)
    decorators = "".join(f"{decorator}\n" for decorator in symbol.decorators)
    params = _type_params(symbol.type_params) if not symbol.bases else ""
    return f"{decorators}class {symbol.name}{params}" + (f"({bases})" if bases else "") + ": ..."


def _opaque_note(symbol: Symbol) -> str:
    return (
        f"`{symbol.name}` is provided by a compiled extension module. No interface description "
        "is available, so only the name is documented."
    )


__all__ = ["PageBuilder", "escape_cell"]
