"""Writes the ``pyproject.toml`` describing the assembled package."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from jinja2 import TemplateError

from ..errors import EmissionError
from ..logging import get_logger
from ..models import Author, Dependency, GeneratedFragment, PackageDescriptor
from .rendering import GENERATED_HEADER, create_environment, write_text

MANIFEST_NAME = "pyproject.toml"

# Lower bounds used when the generated code doesn't state the version it was built for.
RUNTIME_DEPENDENCIES: Dict[str, str] = {
    "protobuf": ">=5.26.1",
    "grpcio": ">=1.62.0",
}

MESSAGE_DEPENDENCIES = ("protobuf",)
SERVICE_DEPENDENCIES = ("protobuf", "grpcio")

_GENERATED_VERSIONS: Dict[str, re.Pattern[str]] = {
    "protobuf": re.compile(r"^# Protobuf Python Version: (\d+(?:\.\d+)*)", re.MULTILINE),
    "grpcio": re.compile(r"^GRPC_GENERATED_VERSION = ['\"](\d+(?:\.\d+)*)['\"]", re.MULTILINE),
}

_AUTHOR = re.compile(r"^\s*(?P<name>[^<]*?)\s*(?:<(?P<email>[^>]+)>)?\s*$")


def parse_author(value: str) -> Author:
    """Split ``"Name <email>"`` into its parts; either part may be missing."""
    match = _AUTHOR.match(value)
    if match is None:
        return Author(name=value.strip())
    return Author(name=match["name"], email=match["email"])


def _version_key(version: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


def generated_versions(fragments: Iterable[GeneratedFragment]) -> Dict[str, str]:
    """Highest runtime version any generated module declares it was built against."""
    found: Dict[str, str] = {}
    for fragment in fragments:
        for module in fragment.modules:
            for name, pattern in _GENERATED_VERSIONS.items():
                match = pattern.search(module.source)
                if match is None:
                    continue
                version = match.group(1)
                if name not in found or _version_key(version) > _version_key(found[name]):
                    found[name] = version
    return found


def required_dependencies(
    fragments: Mapping[str, GeneratedFragment],
    overrides: Mapping[str, str] | None = None,
) -> List[Dependency]:
    """Runtime libraries the generated code imports, with their version specifiers."""
    overrides = overrides or {}
    has_services = any(fragment.has_services for fragment in fragments.values())
    names = SERVICE_DEPENDENCIES if has_services else MESSAGE_DEPENDENCIES
    detected = generated_versions(fragments.values())

    dependencies: List[Dependency] = []
    for name in names:
        if name in overrides:
            specifier = overrides[name]
        elif name in detected:
            specifier = f">={detected[name]}"
        else:
            specifier = RUNTIME_DEPENDENCIES[name]
        dependencies.append(Dependency(name=name, specifier=specifier))
    return dependencies


class ManifestEmitter:
    """Renders the package manifest from a Jinja2 template."""

    DEFAULT_TEMPLATE = "pyproject.toml.j2"

    def __init__(
        self,
        template_path: Optional[Path] = None,
        dependency_overrides: Mapping[str, str] | None = None,
    ) -> None:
        if template_path is not None:
            template_path = Path(template_path)
            self._env = create_environment([template_path.parent])
            self._template_name = template_path.name
        else:
            self._env = create_environment()
            self._template_name = self.DEFAULT_TEMPLATE
        self._template_path = template_path
        self._overrides = dict(dependency_overrides or {})
        self.logger = get_logger("emit.manifest")

    def render(
        self,
        descriptor: PackageDescriptor,
        fragments: Mapping[str, GeneratedFragment],
    ) -> str:
        dependencies = required_dependencies(fragments, self._overrides)
        try:
            template = self._env.get_template(self._template_name)
            return template.render(
                header=GENERATED_HEADER,
                name=descriptor.name,
                version=descriptor.version,
                import_name=descriptor.import_name,
                authors=descriptor.authors,
                dependencies=dependencies,
            )
        except TemplateError as exc:
            source = self._template_path or self._template_name
            raise EmissionError(f"Cannot render manifest template {source}: {exc}") from exc

    def emit(
        self,
        descriptor: PackageDescriptor,
        fragments: Mapping[str, GeneratedFragment],
        output_dir: Path,
    ) -> Path:
        """Render and write the manifest, replacing any existing one."""
        return self.write(self.render(descriptor, fragments), output_dir)

    def write(self, content: str, output_dir: Path) -> Path:
        manifest_path = Path(output_dir) / MANIFEST_NAME
        try:
            manifest_path.parent.mkdir(parents=True, exist_ok=True)
            write_text(manifest_path, content)
        except OSError as exc:
            raise EmissionError(f"Cannot write manifest {manifest_path}: {exc}") from exc
        self.logger.info("Wrote manifest %s", manifest_path)
        return manifest_path


__all__ = [
    "MANIFEST_NAME",
    "ManifestEmitter",
    "RUNTIME_DEPENDENCIES",
    "generated_versions",
    "parse_author",
    "required_dependencies",
]
