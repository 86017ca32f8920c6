"""Core data models shared across protopkg components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

SCHEMA_SUFFIX = ".proto"
MESSAGES_SUFFIX = "_pb2"
SERVICES_SUFFIX = "_pb2_grpc"


@dataclass(frozen=True)
class SchemaFile:
    """A discovered schema file and the namespace it declares."""

    path: Path
    namespace: str
    root_index: int
    root: Path

    @property
    def virtual_path(self) -> str:
        """Path relative to the originating root, as the compiler sees it."""
        return self.path.relative_to(self.root).as_posix()

    @property
    def segments(self) -> Tuple[str, ...]:
        if not self.namespace:
            return ()
        return tuple(self.namespace.split("."))

    @property
    def module_stem(self) -> str:
        name = self.path.name
        if name.endswith(SCHEMA_SUFFIX):
            name = name[: -len(SCHEMA_SUFFIX)]
        return name.replace("-", "_").replace(".", "_")

    @property
    def message_module(self) -> str:
        return self.module_stem + MESSAGES_SUFFIX

    @property
    def service_module(self) -> str:
        return self.module_stem + SERVICES_SUFFIX


@dataclass(frozen=True)
class GeneratedModule:
    """One compiler output file, attributed to the schema it came from."""

    name: str
    origin: str
    source: str
    schema: SchemaFile
    has_services: bool = False


@dataclass
class GeneratedFragment:
    """Everything the compiler produced for a single namespace."""

    namespace: str
    modules: List[GeneratedModule] = field(default_factory=list)

    @property
    def has_services(self) -> bool:
        return any(module.has_services for module in self.modules)

    @property
    def source(self) -> str:
        return "\n".join(module.source for module in self.modules)


@dataclass(frozen=True)
class Dependency:
    """Runtime requirement of the generated package."""

    name: str
    specifier: str = ""

    @property
    def requirement(self) -> str:
        return f"{self.name}{self.specifier}"


@dataclass(frozen=True)
class Author:
    name: str
    email: str | None = None


@dataclass
class PackageDescriptor:
    """Identity of the package being assembled."""

    name: str
    version: str
    import_name: str
    authors: List[Author] = field(default_factory=list)
