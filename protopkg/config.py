"""Configuration for protopkg runs (CLI values, environment, optional YAML file)."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .compiler import CompilerSettings
from .emit.manifest import parse_author
from .errors import ConfigError
from .models import PackageDescriptor
from .namespace_tree import to_identifier

DEFAULT_VERSION = "0.1.0"

_PROJECT_NAME = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?$")


@dataclass
class FileConfig:
    """Settings read from the optional YAML configuration file."""

    authors: List[str] = field(default_factory=list)
    manifest_template: Optional[Path] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    compiler_command: List[str] = field(default_factory=list)
    compiler_include: Optional[Path] = None
    compiler_grpc_plugin: Optional[Path] = None
    templates_dir: Optional[Path] = None


@dataclass
class BuildConfig:
    """Everything one pipeline run needs, resolved from all configuration sources."""

    output_dir: Path
    pkg_name: str
    roots: List[Path]
    pkg_version: str = DEFAULT_VERSION
    authors: List[str] = field(default_factory=list)
    manifest_template: Optional[Path] = None
    templates_dir: Optional[Path] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    compiler: CompilerSettings = field(default_factory=CompilerSettings)

    @property
    def import_name(self) -> str:
        return import_name_for(self.pkg_name)

    def descriptor(self) -> PackageDescriptor:
        return PackageDescriptor(
            name=self.pkg_name,
            version=self.pkg_version,
            import_name=self.import_name,
            authors=[parse_author(author) for author in self.authors],
        )


def import_name_for(pkg_name: str) -> str:
    """Normalise a distribution name into the top-level import package name."""
    if not _PROJECT_NAME.match(pkg_name):
        raise ConfigError(f"Invalid package name: {pkg_name!r}")
    return to_identifier(re.sub(r"[-_.]+", "_", pkg_name).lower())


def load_config(config_path: Path | None) -> FileConfig:
    """Load the YAML configuration file. ``None`` yields the defaults."""
    if config_path is None:
        return FileConfig()

    config_file = Path(config_path).expanduser().resolve()
    if not config_file.is_file():
        raise ConfigError(f"Config file not found: {config_path}")
    base_dir = config_file.parent

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    config = FileConfig()

    package_data = _as_dict(data.get("package"))
    if package_data:
        config.authors = _as_str_list(package_data.get("authors"))
        template = _as_str(package_data.get("manifest_template"))
        config.manifest_template = base_dir / template if template else None
        templates_dir = _as_str(package_data.get("templates_dir"))
        config.templates_dir = base_dir / templates_dir if templates_dir else None

    dependency_data = _as_dict(data.get("dependencies"))
    for name, specifier in dependency_data.items():
        value = _as_str(specifier)
        if value is None:
            raise ConfigError(f"Dependency specifier for {name!r} must be a string")
        config.dependencies[str(name)] = value

    compiler_data = _as_dict(data.get("compiler"))
    if compiler_data:
        command = compiler_data.get("command")
        if isinstance(command, str):
            config.compiler_command = shlex.split(command)
        else:
            config.compiler_command = _as_str_list(command)
        include = _as_str(compiler_data.get("include"))
        config.compiler_include = base_dir / include if include else None
        plugin = _as_str(compiler_data.get("grpc_plugin"))
        config.compiler_grpc_plugin = base_dir / plugin if plugin else None

    return config


def build_config(
    *,
    output_dir: Path | str,
    pkg_name: str,
    roots: Sequence[Path | str],
    pkg_version: str | None = None,
    authors: Sequence[str] = (),
    manifest_template: Path | str | None = None,
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> BuildConfig:
    """Combine CLI values, environment and config file. CLI values win."""
    # A bad --pkg-name fails before any file is read.
    import_name_for(pkg_name)
    file_config = load_config(Path(config_path) if config_path is not None else None)
    compiler = CompilerSettings.from_env(
        environ,
        fallback_command=file_config.compiler_command,
        fallback_include=file_config.compiler_include,
        fallback_plugin=file_config.compiler_grpc_plugin,
    )
    template = Path(manifest_template) if manifest_template is not None else file_config.manifest_template
    return BuildConfig(
        output_dir=Path(output_dir).expanduser(),
        pkg_name=pkg_name,
        roots=[Path(root) for root in roots],
        pkg_version=pkg_version or DEFAULT_VERSION,
        authors=list(authors) or list(file_config.authors),
        manifest_template=template,
        templates_dir=file_config.templates_dir,
        dependencies=dict(file_config.dependencies),
        compiler=compiler,
    )


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "BuildConfig",
    "DEFAULT_VERSION",
    "FileConfig",
    "build_config",
    "import_name_for",
    "load_config",
]
