"""Error taxonomy for protopkg runs."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence


class ProtoPkgError(RuntimeError):
    """Base class for errors that terminate a protopkg run."""

    category = "error"


class ConfigError(ProtoPkgError):
    """Raised when the configuration file or CLI values are invalid."""

    category = "config error"


class DiscoveryError(ProtoPkgError):
    """Raised when an input root cannot be walked."""

    category = "discovery error"


class NamespaceConflictError(ProtoPkgError):
    """Raised when namespaces collide after identifier normalisation."""

    category = "namespace conflict"

    def __init__(self, paths: Sequence[str], files: Iterable[Path], *, reason: str) -> None:
        self.paths = tuple(paths)
        self.files = tuple(sorted(set(files), key=lambda path: path.as_posix()))
        quoted = " and ".join(f"'{path or '<default>'}'" for path in self.paths)
        lines = [f"{quoted} {reason}"]
        if self.files:
            lines.append("contributing schema files:")
            lines.extend(f"  {path}" for path in self.files)
        super().__init__("\n".join(lines))


class CompilationError(ProtoPkgError):
    """Raised when the external schema compiler rejects the schema set."""

    category = "compilation error"

    def __init__(self, message: str, *, returncode: int | None = None, diagnostics: str = "") -> None:
        self.returncode = returncode
        self.diagnostics = diagnostics
        text = message
        if returncode is not None:
            text = f"{text} (exit status {returncode})"
        if diagnostics.strip():
            text = f"{text}\n{diagnostics.rstrip()}"
        super().__init__(text)


class EmissionError(ProtoPkgError):
    """Raised when the output package cannot be written."""

    category = "emission error"


__all__ = [
    "CompilationError",
    "ConfigError",
    "DiscoveryError",
    "EmissionError",
    "NamespaceConflictError",
    "ProtoPkgError",
]
