"""Wrapper around the external protobuf compiler."""

from __future__ import annotations

import os
import re
import shlex
import shutil
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .collector import declares_services
from .errors import CompilationError
from .logging import get_logger
from .models import (
    MESSAGES_SUFFIX,
    SCHEMA_SUFFIX,
    SERVICES_SUFFIX,
    GeneratedFragment,
    GeneratedModule,
    SchemaFile,
)

PROTOC_ENV = "PROTOC"
PROTOC_INCLUDE_ENV = "PROTOC_INCLUDE"
GRPC_PLUGIN_ENV = "PROTOC_GEN_GRPC_PYTHON"
GRPC_PLUGIN_NAME = "protoc-gen-grpc_python"
GRPC_TOOLS_MODULE = "grpc_tools.protoc"

_SERVICE_REGISTRATION = re.compile(r"^def add_\w+Servicer_to_server\(", re.MULTILINE)

Runner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


def default_command() -> List[str]:
    return [sys.executable, "-m", GRPC_TOOLS_MODULE]


@dataclass
class CompilerSettings:
    """Which compiler to run and what it needs to emit gRPC service modules.

    ``grpc_tools.protoc`` ships the gRPC Python generator built in. Any other
    compiler needs the ``protoc-gen-grpc_python`` plugin; without one only
    message modules can be produced.
    """

    command: List[str] = field(default_factory=default_command)
    extra_include: Optional[Path] = None
    grpc_plugin: Optional[Path] = None

    @property
    def bundles_grpc(self) -> bool:
        return GRPC_TOOLS_MODULE in self.command

    @property
    def emits_services(self) -> bool:
        return self.bundles_grpc or self.grpc_plugin is not None

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        fallback_command: Sequence[str] | None = None,
        fallback_include: Path | None = None,
        fallback_plugin: Path | None = None,
    ) -> "CompilerSettings":
        """Read the compiler environment once, falling back to config values.

        ``PROTOC`` names the executable, ``PROTOC_INCLUDE`` an extra include
        directory and ``PROTOC_GEN_GRPC_PYTHON`` the gRPC plugin. A compiler
        other than ``grpc_tools`` with no configured plugin gets the first
        ``protoc-gen-grpc_python`` found on ``PATH``.
        """
        environ = os.environ if environ is None else environ
        protoc = environ.get(PROTOC_ENV)
        include = environ.get(PROTOC_INCLUDE_ENV)
        plugin = environ.get(GRPC_PLUGIN_ENV)
        if protoc:
            command = [protoc]
        elif fallback_command:
            command = list(fallback_command)
        else:
            command = default_command()
        extra_include = Path(include) if include else fallback_include

        settings = cls(command=command, extra_include=extra_include)
        if plugin:
            settings.grpc_plugin = Path(plugin)
        elif fallback_plugin is not None:
            settings.grpc_plugin = fallback_plugin
        elif not settings.bundles_grpc:
            found = shutil.which(GRPC_PLUGIN_NAME, path=environ.get("PATH"))
            settings.grpc_plugin = Path(found) if found else None
        return settings


def origin_module(schema: SchemaFile, suffix: str = MESSAGES_SUFFIX) -> str:
    """Dotted module name protoc derives from a schema's virtual path."""
    stem = schema.virtual_path[: -len(SCHEMA_SUFFIX)]
    return stem.replace("-", "_").replace("/", ".") + suffix


def _output_path(out_dir: Path, module: str) -> Path:
    return out_dir.joinpath(*module.split(".")).with_suffix(".py")


class CompilerInvoker:
    """Runs the compiler once over the whole schema set and groups its output."""

    def __init__(
        self,
        settings: CompilerSettings | None = None,
        runner: Runner | None = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self._runner = runner or self._default_runner
        self.logger = get_logger("compiler")

    def compile(
        self, files: Sequence[SchemaFile], include_paths: Sequence[Path]
    ) -> Dict[str, GeneratedFragment]:
        """Return one fragment per namespace, keyed by dotted namespace."""
        if not files:
            self.logger.info("No schema files to compile")
            return {}
        if not self.settings.emits_services:
            self._require_no_services(files)

        with tempfile.TemporaryDirectory(prefix="protopkg-") as tmp:
            out_dir = Path(tmp)
            args = self._build_args(files, include_paths, out_dir)
            self.logger.debug("Running compiler: %s", shlex.join(args))
            try:
                completed = self._runner(args)
            except OSError as exc:
                raise CompilationError(
                    f"Cannot start schema compiler '{args[0]}': {exc}", returncode=127
                ) from exc

            diagnostics = "\n".join(
                part.rstrip() for part in (completed.stderr, completed.stdout) if part and part.strip()
            )
            if completed.returncode != 0:
                raise CompilationError(
                    f"Schema compiler rejected {len(files)} schema files",
                    returncode=completed.returncode,
                    diagnostics=diagnostics,
                )
            if diagnostics:
                self.logger.warning("Schema compiler reported:\n%s", diagnostics)

            fragments = self._read_outputs(files, out_dir)

        self.logger.info(
            "Compiled %d schema files into %d namespaces", len(files), len(fragments)
        )
        return fragments

    def _build_args(
        self, files: Sequence[SchemaFile], include_paths: Sequence[Path], out_dir: Path
    ) -> List[str]:
        args = list(self.settings.command)
        # Every root is an include path so cross-root imports resolve.
        args.extend(f"-I{path}" for path in include_paths)
        if self.settings.extra_include is not None:
            args.append(f"-I{self.settings.extra_include}")
        if self.settings.grpc_plugin is not None and not self.settings.bundles_grpc:
            args.append(f"--plugin={GRPC_PLUGIN_NAME}={self.settings.grpc_plugin}")
        args.append(f"--python_out={out_dir}")
        if self.settings.emits_services:
            args.append(f"--grpc_python_out={out_dir}")
        args.extend(str(schema.path) for schema in files)
        return args

    def _require_no_services(self, files: Sequence[SchemaFile]) -> None:
        try:
            with_services = [schema for schema in files if declares_services(schema.path)]
        except OSError as exc:
            raise CompilationError(f"Cannot read schema file: {exc}") from exc
        if with_services:
            listed = "\n".join(f"  {schema.path}" for schema in with_services)
            raise CompilationError(
                f"No {GRPC_PLUGIN_NAME} plugin for '{self.settings.command[0]}'; set "
                f"{GRPC_PLUGIN_ENV} or compiler.grpc_plugin to generate the services in:\n{listed}"
            )
        self.logger.debug("No gRPC plugin configured; generating message modules only")

    def _read_outputs(self, files: Sequence[SchemaFile], out_dir: Path) -> Dict[str, GeneratedFragment]:
        fragments: Dict[str, GeneratedFragment] = {}
        for schema in files:
            fragment = fragments.setdefault(schema.namespace, GeneratedFragment(schema.namespace))

            messages = origin_module(schema, MESSAGES_SUFFIX)
            messages_path = _output_path(out_dir, messages)
            try:
                source = messages_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise CompilationError(
                    f"Schema compiler produced no output for {schema.path} "
                    f"(expected {messages_path.relative_to(out_dir).as_posix()})"
                ) from exc
            fragment.modules.append(
                GeneratedModule(
                    name=schema.message_module, origin=messages, source=source, schema=schema
                )
            )

            services = origin_module(schema, SERVICES_SUFFIX)
            services_path = _output_path(out_dir, services)
            if not services_path.exists():
                continue
            source = services_path.read_text(encoding="utf-8")
            if not _SERVICE_REGISTRATION.search(source):
                self.logger.debug("Dropping %s: %s defines no services", services, schema.virtual_path)
                continue
            fragment.modules.append(
                GeneratedModule(
                    name=schema.service_module,
                    origin=services,
                    source=source,
                    schema=schema,
                    has_services=True,
                )
            )
        return fragments

    @staticmethod
    def _default_runner(args: Sequence[str]) -> "subprocess.CompletedProcess[str]":
        return subprocess.run(
            list(args),
            check=False,
            text=True,
            capture_output=True,
        )


__all__ = [
    "CompilerInvoker",
    "CompilerSettings",
    "GRPC_PLUGIN_ENV",
    "PROTOC_ENV",
    "PROTOC_INCLUDE_ENV",
    "default_command",
    "origin_module",
]
