"""Jinja2 environment shared by the package emitters."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from jinja2 import Environment, FileSystemLoader

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

GENERATED_HEADER = "# Code generated by protopkg. DO NOT EDIT."


def create_environment(templates_dirs: Iterable[Path] = ()) -> Environment:
    """Return an environment that searches ``templates_dirs`` before the bundled templates."""
    directories: List[str] = [str(path) for path in templates_dirs]
    directories.append(str(DEFAULT_TEMPLATES_DIR))
    # ensure uniqueness preserving order
    seen: set[str] = set()
    ordered: List[str] = []
    for directory in directories:
        if directory not in seen:
            ordered.append(directory)
            seen.add(directory)
    return Environment(
        loader=FileSystemLoader(ordered),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def write_text(path: Path, content: str) -> None:
    """Write ``content`` with ``\\n`` line endings on every platform."""
    with path.open("w", encoding="utf-8", newline="\n") as handle:
        handle.write(content)


__all__ = ["DEFAULT_TEMPLATES_DIR", "GENERATED_HEADER", "create_environment", "write_text"]
