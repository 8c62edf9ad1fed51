"""Tests for static symbol extraction."""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

from docweave.diagnostics import DiagnosticKind, Diagnostics
from docweave.models import (
    ClassSymbol,
    Completeness,
    EnumSymbol,
    ForwardRef,
    FunctionSymbol,
    Generic,
    ModuleNode,
    Name,
    OptionalType,
    ParamKind,
    ProtocolSymbol,
    TypeAliasSymbol,
    TypedDictSymbol,
    VariableSymbol,
)
from docweave.parsing.source import SourceParser, parse_signature_text


def _parse(text: str, diagnostics: Diagnostics | None = None, *, qualname: str = "pkg.mod") -> ModuleNode:
    parser = SourceParser(diagnostics if diagnostics is not None else Diagnostics())
    module = parser.parse_text(ModuleNode(qualname=qualname), textwrap.dedent(text).lstrip("\n"))
    assert module is not None
    return module


def test_parser_collects_module_docstring_imports_and_exports() -> None:
    module = _parse(
        '''
        """Module summary."""

        import os.path
        import numpy as np
        from .sibling import thing as other
        from ..core import *

        __all__ = ["public"]
        __all__ += ["extra"]
        ''',
        qualname="pkg.sub.mod",
    )

    assert module.docstring is not None and module.docstring.summary == "Module summary."
    assert module.imports == (("os", "os"), ("np", "numpy"), ("other", "pkg.sub.sibling.thing"))
    assert module.star_imports == ("pkg.core",)
    assert module.exports == ("public", "extra")
    assert module.symbols == ()


def test_parser_reads_conditional_imports() -> None:
    module = _parse(
        """
        from typing import TYPE_CHECKING

        if TYPE_CHECKING:
            from collections.abc import Iterator
        """
    )

    assert module.binding("Iterator") == "collections.abc.Iterator"


def test_parser_extracts_function_signatures() -> None:
    module = _parse(
        """
        async def fetch(url: str, /, retries: int = 3, *, timeout: float | None = None, **extra: str) -> bytes:
            '''Fetch a URL.'''
        """
    )

    fetch = module.symbol("fetch")
    assert isinstance(fetch, FunctionSymbol)
    assert fetch.qualname == "pkg.mod.fetch"
    assert fetch.is_async
    assert fetch.docstring is not None and fetch.docstring.summary == "Fetch a URL."
    signature = fetch.signature
    assert signature is not None
    assert [(param.name, param.kind) for param in signature.params] == [
        ("url", ParamKind.POSITIONAL_ONLY),
        ("retries", ParamKind.POSITIONAL),
        ("timeout", ParamKind.KEYWORD_ONLY),
        ("extra", ParamKind.VAR_KEYWORD),
    ]
    assert signature.params[1].default == "3"
    assert signature.params[2].annotation == OptionalType(Name("float"))
    assert signature.returns == Name("bytes")


def test_parser_groups_overloads_under_one_symbol() -> None:
    module = _parse(
        """
        from typing import overload

        @overload
        def parse(value: int) -> int: ...
        @overload
        def parse(value: str) -> str: ...
        def parse(value):
            '''Parse a value.'''
            return value
        """
    )

    parses = [symbol for symbol in module.symbols if symbol.name == "parse"]
    assert len(parses) == 1
    parse = parses[0]
    assert isinstance(parse, FunctionSymbol)
    assert [overload.returns for overload in parse.overloads] == [Name("int"), Name("str")]
    assert parse.signature is not None and parse.signature.returns is None
    assert parse.docstring is not None and parse.docstring.summary == "Parse a value."


def test_parser_synthesises_dataclass_init() -> None:
    module = _parse(
        """
        from dataclasses import dataclass, field
        from typing import ClassVar

        @dataclass
        class Point:
            '''A point.'''

            x: int
            y: int = 0
            tags: list[str] = field(default_factory=list)
            registry: ClassVar[dict] = {}
        """
    )

    point = module.symbol("Point")
    assert isinstance(point, ClassSymbol) and point.is_dataclass
    assert [item.name for item in point.fields] == ["x", "y", "tags"]
    init = point.members[0]
    assert isinstance(init, FunctionSymbol) and init.name == "__init__"
    assert init.signature is not None
    params = init.signature.params
    assert [param.name for param in params] == ["self", "x", "y", "tags"]
    assert [param.default for param in params] == [None, None, "0", "list()"]
    assert init.signature.returns == Name("None")


def test_parser_classifies_enum_protocol_and_typeddict() -> None:
    module = _parse(
        """
        from enum import Enum
        from typing import Protocol, Required, TypedDict, runtime_checkable

        class Color(Enum):
            RED = 1
            '''Red.'''
            GREEN = 2

        @runtime_checkable
        class Reader(Protocol):
            def read(self, size: int = -1) -> bytes: ...

        class Movie(TypedDict, total=False):
            title: Required[str]
            year: int
        """
    )

    color = module.symbol("Color")
    assert isinstance(color, EnumSymbol)
    red = color.member("RED")
    assert isinstance(red, VariableSymbol) and red.value == "1"
    assert red.docstring is not None and red.docstring.summary == "Red."

    reader = module.symbol("Reader")
    assert isinstance(reader, ProtocolSymbol)
    assert reader.runtime_checkable is True
    assert reader.capabilities == ("read",)

    movie = module.symbol("Movie")
    assert isinstance(movie, TypedDictSymbol)
    assert movie.total is False
    assert [(key.name, key.required) for key in movie.keys] == [("title", True), ("year", False)]
    assert movie.keys[0].annotation == Name("str")


def test_parser_records_typevars_and_generic_usage() -> None:
    module = _parse(
        """
        from typing import Generic, TypeVar

        T = TypeVar("T", bound="Comparable")
        T_co = TypeVar("T_co", covariant=True)

        def biggest(items: list[T]) -> T: ...

        class Box(Generic[T_co]):
            def get(self) -> T_co: ...
        """
    )

    bound = module.type_param("T")
    assert bound is not None and bound.bound == ForwardRef("Comparable")
    assert module.type_param("T_co").variance.value == "covariant"  # type: ignore[union-attr]
    variable = module.symbol("T")
    assert isinstance(variable, VariableSymbol) and variable.annotation == Name("TypeVar")

    biggest = module.symbol("biggest")
    assert isinstance(biggest, FunctionSymbol) and biggest.signature is not None
    assert [param.name for param in biggest.signature.type_params] == ["T"]
    box = module.symbol("Box")
    assert isinstance(box, ClassSymbol)
    assert [param.name for param in box.type_params] == ["T_co"]


def test_parser_detects_assignment_aliases() -> None:
    module = _parse(
        """
        from typing import Union

        Json = Union[str, int, list["Json"], dict[str, "Json"]]
        PathLike = str | bytes
        MAX_SIZE = 10
        """
    )

    json_alias = module.symbol("Json")
    assert isinstance(json_alias, TypeAliasSymbol)
    assert Generic(Name("list"), (ForwardRef("Json"),)) in json_alias.value.members  # type: ignore[union-attr]
    assert isinstance(module.symbol("PathLike"), TypeAliasSymbol)
    assert isinstance(module.symbol("MAX_SIZE"), VariableSymbol)


@pytest.mark.skipif(sys.version_info < (3, 12), reason="type parameter syntax needs Python 3.12")
def test_parser_reads_type_parameter_syntax() -> None:
    module = _parse(
        """
        type Pair[T] = tuple[T, T]

        class Stack[T]:
            def push(self, item: T) -> None: ...

        def first[T: (int, str)](items: list[T]) -> T: ...
        """
    )

    pair = module.symbol("Pair")
    assert isinstance(pair, TypeAliasSymbol)
    assert [param.name for param in pair.type_params] == ["T"]
    stack = module.symbol("Stack")
    assert isinstance(stack, ClassSymbol) and stack.type_params[0].name == "T"
    first = module.symbol("first")
    assert isinstance(first, FunctionSymbol) and first.signature is not None
    assert first.signature.type_params[0].constraints == (Name("int"), Name("str"))


def test_parser_folds_property_accessors_and_nests_classes() -> None:
    module = _parse(
        """
        class Outer:
            class Inner:
                def ping(self) -> None: ...

            @property
            def size(self) -> int:
                '''Size.'''
                return 1

            @size.setter
            def size(self, value: int) -> None: ...
        """
    )

    outer = module.symbol("Outer")
    assert isinstance(outer, ClassSymbol)
    assert [member.name for member in outer.members] == ["Inner", "size"]
    assert [prop.name for prop in outer.properties()] == ["size"]
    inner = outer.member("Inner")
    assert isinstance(inner, ClassSymbol)
    assert inner.members[0].qualname == "pkg.mod.Outer.Inner.ping"


def test_parser_degrades_only_the_broken_declaration(tmp_path: Path) -> None:
    source = tmp_path / "pkg" / "mod.py"
    source.parent.mkdir()
    source.write_text(
        textwrap.dedent(
            '''
            def good(x: int) -> int:
                return x


            def broken(x: int = , y) -> None:
                """Still documented."""


            class Fine:
                """Fine."""
            '''
        ).lstrip("\n"),
        encoding="utf-8",
    )
    diagnostics = Diagnostics()

    module = SourceParser(diagnostics, root=tmp_path).parse(ModuleNode(qualname="pkg.mod", path=source))

    assert module is not None
    assert [symbol.name for symbol in module.symbols] == ["good", "broken", "Fine"]
    broken = module.symbol("broken")
    assert broken is not None and broken.completeness is Completeness.DEGRADED
    assert broken.raw is not None and broken.raw.startswith("def broken(x: int = , y)")
    assert broken.docstring is not None and broken.docstring.summary == "Still documented."
    assert module.symbol("good").completeness is Completeness.COMPLETE  # type: ignore[union-attr]
    degraded = diagnostics.of_kind(DiagnosticKind.DEGRADED_SYMBOL)
    assert len(degraded) == 1
    assert degraded[0].path == "pkg/mod.py"
    assert degraded[0].line == 5
    assert degraded[0].symbol == "pkg.mod.broken"


def test_parser_keeps_well_formed_members_of_a_class_with_a_broken_method() -> None:
    diagnostics = Diagnostics()

    module = _parse(
        '''
        class Engine:
            """Runs steps."""

            rate: float = 1.0

            def start(self) -> None:
                """Start the engine."""

            @staticmethod
            def broken(self, x: int = , y) -> None:
                """Half written."""

            def stop(self) -> None:
                """Stop the engine."""

            class Part:
                """A replaceable part."""
        ''',
        diagnostics,
    )

    engine = module.symbol("Engine")
    assert isinstance(engine, ClassSymbol)
    assert engine.completeness is Completeness.COMPLETE
    assert engine.docstring is not None and engine.docstring.summary == "Runs steps."
    assert [member.name for member in engine.members] == ["rate", "start", "broken", "stop", "Part"]
    broken = engine.member("broken")
    assert broken is not None and broken.completeness is Completeness.DEGRADED
    assert broken.qualname == "pkg.mod.Engine.broken"
    assert broken.raw is not None and broken.raw.startswith("@staticmethod\ndef broken(self, x: int = , y)")
    assert broken.docstring is not None and broken.docstring.summary == "Half written."
    stop = engine.member("stop")
    assert isinstance(stop, FunctionSymbol) and stop.completeness is Completeness.COMPLETE
    assert stop.lineno == 13
    degraded = diagnostics.of_kind(DiagnosticKind.DEGRADED_SYMBOL)
    assert [(item.symbol, item.line) for item in degraded] == [("pkg.mod.Engine.broken", 9)]


def test_parser_degrades_whole_class_when_its_header_is_broken() -> None:
    diagnostics = Diagnostics()

    module = _parse(
        '''
        class Engine(Base, = 1):
            def start(self) -> None: ...


        def helper() -> None: ...
        ''',
        diagnostics,
    )

    engine = module.symbol("Engine")
    assert engine is not None and engine.completeness is Completeness.DEGRADED
    assert module.symbol("helper") is not None
    assert len(diagnostics.of_kind(DiagnosticKind.DEGRADED_SYMBOL)) == 1


def test_parser_reports_into_the_collector_it_is_given() -> None:
    shared = Diagnostics()
    parser = SourceParser(shared)

    parser.parse_text(ModuleNode(qualname="pkg.mod"), "def broken(x: int = , y) -> None: ...\n")

    assert parser.diagnostics is shared
    assert len(shared.of_kind(DiagnosticKind.DEGRADED_SYMBOL)) == 1


def test_parser_degrades_uninterpretable_annotations() -> None:
    diagnostics = Diagnostics()

    module = _parse("def weird(x: 1 + 2) -> None: ...\n", diagnostics)

    weird = module.symbol("weird")
    assert weird is not None and weird.is_degraded
    assert weird.raw == "def weird(x: 1 + 2) -> None: ..."
    assert len(diagnostics.of_kind(DiagnosticKind.DEGRADED_SYMBOL)) == 1


def test_parser_reports_untokenizable_module() -> None:
    diagnostics = Diagnostics()
    parser = SourceParser(diagnostics)

    result = parser.parse_text(ModuleNode(qualname="pkg.bad"), 'x = """never closed\n')

    assert result is None
    errors = diagnostics.of_kind(DiagnosticKind.PARSE_ERROR)
    assert len(errors) == 1
    assert "pkg.bad" in errors[0].message


def test_parser_leaves_stubless_compiled_module_untouched() -> None:
    module = ModuleNode(qualname="pkg._native")

    assert SourceParser().parse(module) is module


def test_parse_signature_text_accepts_parameter_lists() -> None:
    signature = parse_signature_text("(a: int, *, b: str = '') -> bool")

    assert signature is not None
    assert [param.kind for param in signature.params] == [ParamKind.POSITIONAL, ParamKind.KEYWORD_ONLY]
    assert signature.returns == Name("bool")
    assert parse_signature_text("not a signature") is None
