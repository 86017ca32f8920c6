"""Schema discovery across one or more input roots."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from .errors import DiscoveryError
from .logging import get_logger
from .models import SCHEMA_SUFFIX, SchemaFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
}

_PACKAGE_STATEMENT = re.compile(r"package\s+([A-Za-z_]\w*(?:\s*\.\s*[A-Za-z_]\w*)*)")
_SERVICE_BLOCK = re.compile(r"service\s+[A-Za-z_]\w*")


class _StatementScanner:
    """Splits schema text into top-level statements without parsing it.

    Comments are dropped, string literals are reduced to an empty placeholder
    and anything nested inside braces is skipped. Top-level statements are
    yielded without their trailing ``;``. The header of a top-level block
    (``service Greeter``) is yielded when its opening brace is reached.
    """

    def __init__(self) -> None:
        self._depth = 0
        self._block_comment = False
        self._buffer: List[str] = []

    def feed(self, line: str) -> Iterator[str]:
        index = 0
        quote: str | None = None
        escape = False
        while index < len(line):
            char = line[index]
            following = line[index + 1] if index + 1 < len(line) else ""
            if self._block_comment:
                if char == "*" and following == "/":
                    self._block_comment = False
                    index += 2
                    continue
                index += 1
                continue
            if quote is not None:
                if escape:
                    escape = False
                elif char == "\\":
                    escape = True
                elif char == quote:
                    quote = None
                index += 1
                continue
            if char == "/" and following == "/":
                break
            if char == "/" and following == "*":
                self._block_comment = True
                index += 2
                continue
            if char in {'"', "'"}:
                quote = char
                if self._depth == 0:
                    self._buffer.append('""')
            elif char == "{":
                if self._depth == 0:
                    yield "".join(self._buffer)
                self._depth += 1
                self._buffer.clear()
            elif char == "}":
                self._depth = max(0, self._depth - 1)
                self._buffer.clear()
            elif char == ";":
                if self._depth == 0:
                    yield "".join(self._buffer)
                self._buffer.clear()
            elif self._depth == 0:
                self._buffer.append(char)
            index += 1
        # Strings can't span lines; a newline still separates tokens.
        if self._depth == 0:
            self._buffer.append(" ")


def read_namespace(path: Path) -> str:
    """Return the first top-level ``package`` declared by a schema file.

    Reading stops as soon as the declaration is seen. Files without one belong
    to the default namespace, returned as an empty string.
    """
    scanner = _StatementScanner()
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            for statement in scanner.feed(line):
                match = _PACKAGE_STATEMENT.fullmatch(statement.strip())
                if match:
                    return "".join(match.group(1).split())
    return ""


def declares_services(path: Path) -> bool:
    """Whether a schema file defines at least one top-level ``service``."""
    scanner = _StatementScanner()
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line in handle:
            for statement in scanner.feed(line):
                if _SERVICE_BLOCK.fullmatch(statement.strip()):
                    return True
    return False


def _raise_walk_error(error: OSError) -> None:
    raise DiscoveryError(f"Cannot read directory {error.filename}: {error.strerror}") from error


def _iter_schema_paths(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            if filename.endswith(SCHEMA_SUFFIX):
                yield current_dir / filename


def _resolve_root(root: Path | str) -> Path:
    root_path = Path(root).expanduser()
    if not root_path.exists():
        raise DiscoveryError(f"Input root not found: {root}")
    if not root_path.is_dir():
        raise DiscoveryError(f"Input root is not a directory: {root}")
    if not os.access(root_path, os.R_OK | os.X_OK):
        raise DiscoveryError(f"Input root is not readable: {root}")
    return root_path.resolve()


class SchemaCollector:
    """Walks input roots and pairs every schema file with its namespace."""

    def __init__(self) -> None:
        self.logger = get_logger("collector")

    def collect(self, roots: Sequence[Path | str]) -> List[SchemaFile]:
        """Return schema files ordered by root, then by path within the root."""
        resolved = [_resolve_root(root) for root in roots]

        seen: Dict[Path, SchemaFile] = {}
        collected: List[SchemaFile] = []
        for index, root_path in enumerate(resolved):
            found: List[SchemaFile] = []
            for path in _iter_schema_paths(root_path):
                key = path.resolve()
                if key in seen:
                    self.logger.debug(
                        "Skipping %s: already collected from %s", path, seen[key].root
                    )
                    continue
                try:
                    namespace = read_namespace(path)
                except OSError as exc:
                    raise DiscoveryError(f"Cannot read schema file {path}: {exc}") from exc
                schema = SchemaFile(path=path, namespace=namespace, root_index=index, root=root_path)
                seen[key] = schema
                found.append(schema)
            found.sort(key=lambda schema: schema.virtual_path)
            self.logger.debug("Found %d schema files under %s", len(found), root_path)
            collected.extend(found)

        self.logger.info("Collected %d schema files from %d roots", len(collected), len(resolved))
        return collected


__all__ = ["SchemaCollector", "declares_services", "read_namespace"]
