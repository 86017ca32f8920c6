"""Emitters that write the assembled package to disk."""

from .imports import ImportRewriter
from .manifest import MANIFEST_NAME, ManifestEmitter, parse_author, required_dependencies
from .modules import SOURCE_DIR, EmittedPackage, ModuleEmitter

__all__ = [
    "EmittedPackage",
    "ImportRewriter",
    "MANIFEST_NAME",
    "ManifestEmitter",
    "ModuleEmitter",
    "SOURCE_DIR",
    "parse_author",
    "required_dependencies",
]
