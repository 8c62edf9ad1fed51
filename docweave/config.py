"""Configuration loading for docweave (.docweave.yml)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docweave.yml"

_BACKENDS = {"mkdocs-material", "mkdocs_material", "material", "mkdocs", "mdbook", "md-book", "md_book"}
_LAYOUTS = {"project-first", "flat"}
_PRECEDENCES = {"compiled", "overlay"}
_PROVENANCES = {"source", "compiled"}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ProjectConfig:
    name: Optional[str] = None
    version: Optional[str] = None


@dataclass
class OutputConfig:
    backend: Optional[str] = None
    path: Optional[Path] = None
    layout: Optional[str] = None


@dataclass
class SourceConfig:
    """Where to look for packages and which provenances to force."""

    paths: List[str] = field(default_factory=list)
    modules: Dict[str, str] = field(default_factory=dict)


@dataclass
class ResolveConfig:
    precedence: str = "compiled"


@dataclass
class RenderConfig:
    templates_dir: Optional[Path] = None
    workers: Optional[int] = None


@dataclass
class QualityConfig:
    require_docstrings: bool = False
    min_coverage: Optional[float] = None
    fail_on_broken_links: bool = False


@dataclass
class InterfaceEntry:
    """Externally supplied description of one compiled symbol."""

    name: str
    kind: str = "function"
    signature: Optional[str] = None
    doc: Optional[str] = None


@dataclass
class DocweaveConfig:
    """Represents the settings defined in .docweave.yml."""

    root: Path
    project: ProjectConfig = field(default_factory=ProjectConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    resolve: ResolveConfig = field(default_factory=ResolveConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    interfaces: Dict[str, List[InterfaceEntry]] = field(default_factory=dict)
    exclude_paths: List[str] = field(default_factory=list)
    strict: bool = False

    def project_name(self) -> str:
        return self.project.name or _pyproject_field(self.root, "name") or self.root.name or "project"

    def project_version(self) -> Optional[str]:
        return self.project.version or _pyproject_field(self.root, "version")


def load_config(config_path: Path) -> DocweaveConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DocweaveConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    project_data = _as_dict(data.get("project"))
    project = ProjectConfig(
        name=_as_str(project_data.get("name")),
        version=_as_str(project_data.get("version")),
    )

    output_data = _as_dict(data.get("output"))
    output_path = _as_str(output_data.get("path"))
    output = OutputConfig(
        backend=_choice(output_data.get("backend"), _BACKENDS, "output.backend"),
        path=root / output_path if output_path else None,
        layout=_choice(output_data.get("layout"), _LAYOUTS, "output.layout"),
    )

    source_data = _as_dict(data.get("source"))
    modules: Dict[str, str] = {}
    for module, provenance in _as_dict(source_data.get("modules")).items():
        modules[str(module)] = _choice(provenance, _PROVENANCES, f"source.modules.{module}") or "source"
    source = SourceConfig(paths=_as_str_list(source_data.get("paths")), modules=modules)

    resolve_data = _as_dict(data.get("resolve"))
    resolve = ResolveConfig(
        precedence=_choice(resolve_data.get("precedence"), _PRECEDENCES, "resolve.precedence") or "compiled"
    )

    render_data = _as_dict(data.get("render"))
    templates_dir = _as_str(render_data.get("templates_dir"))
    render = RenderConfig(
        templates_dir=root / templates_dir if templates_dir else None,
        workers=_as_int(render_data.get("workers")),
    )

    quality_data = _as_dict(data.get("quality"))
    quality = QualityConfig(
        require_docstrings=_as_bool(quality_data.get("require_docstrings")) or False,
        min_coverage=_as_float(quality_data.get("min_coverage")),
        fail_on_broken_links=_as_bool(quality_data.get("fail_on_broken_links")) or False,
    )

    return DocweaveConfig(
        root=root,
        project=project,
        output=output,
        source=source,
        resolve=resolve,
        render=render,
        quality=quality,
        interfaces=_parse_interfaces(data.get("interfaces")),
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        strict=_as_bool(data.get("strict")) or False,
    )


def default_config_text(project_name: str) -> str:
    """Return the starter file written by ``docweave init``."""
    payload = {
        "project": {"name": project_name},
        "output": {"backend": "mkdocs-material", "layout": "project-first"},
        "resolve": {"precedence": "compiled"},
        "exclude_paths": ["tests/*"],
        "strict": False,
    }
    return yaml.safe_dump(payload, sort_keys=False)


def _parse_interfaces(value: Any) -> Dict[str, List[InterfaceEntry]]:
    interfaces: Dict[str, List[InterfaceEntry]] = {}
    for module, symbols in _as_dict(value).items():
        entries: List[InterfaceEntry] = []
        for name, spec in _as_dict(symbols).items():
            spec_data = _as_dict(spec)
            if not spec_data and isinstance(spec, str):
                spec_data = {"doc": spec}
            entries.append(
                InterfaceEntry(
                    name=str(name),
                    kind=_as_str(spec_data.get("kind")) or ("function" if spec_data.get("signature") else "class"),
                    signature=_as_str(spec_data.get("signature")),
                    doc=_as_str(spec_data.get("doc")),
                )
            )
        interfaces[str(module)] = entries
    return interfaces


def _pyproject_field(root: Path, key: str) -> Optional[str]:
    pyproject = root / "pyproject.toml"
    if not pyproject.exists():
        return None
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return None
    project = data.get("project")
    if not isinstance(project, dict):
        return None
    return _as_str(project.get(key))


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _choice(value: Any, allowed: set[str], key: str) -> Optional[str]:
    text = _as_str(value)
    if text is None:
        return None
    normalized = text.strip().lower()
    if normalized not in allowed:
        options = ", ".join(sorted(allowed))
        raise ConfigError(f"Invalid value for {key}: {text!r} (expected one of: {options})")
    return normalized


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "DocweaveConfig",
    "InterfaceEntry",
    "OutputConfig",
    "ProjectConfig",
    "QualityConfig",
    "RenderConfig",
    "ResolveConfig",
    "SourceConfig",
    "default_config_text",
    "load_config",
]
