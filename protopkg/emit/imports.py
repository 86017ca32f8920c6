"""Rebinds compiler-generated imports to the assembled package layout.

protoc names every generated module after the schema's path relative to its
include root (``common/types.proto`` becomes ``common.types_pb2``) and imports
dependencies by that name. Once modules are moved under namespace packages
those imports no longer resolve, so each one is pointed at the module's new
dotted location. Modules outside the package (``google.protobuf`` well-known
types, anything from an extra include directory) are left alone.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Mapping, Tuple

from ..models import GeneratedFragment
from ..namespace_tree import NamespaceTree

_PLAIN_IMPORT = re.compile(r"(?P<indent>[ \t]*)import (?P<module>[\w.]+) as (?P<alias>\w+)[ \t]*")
_FROM_IMPORT = re.compile(
    r"(?P<indent>[ \t]*)from (?P<package>[\w.]+) import (?P<name>\w+) as (?P<alias>\w+)[ \t]*"
)
_PUBLIC_IMPORT = re.compile(r"(?P<indent>[ \t]*)from (?P<module>[\w.]+) import \*[ \t]*")
_DYNAMIC_IMPORT = re.compile(r"importlib\.import_module\((?P<quote>['\"])(?P<module>[\w.]+)(?P=quote)\)")
_MODULE_LITERAL = re.compile(
    r"(?P<prefix>BuildTopDescriptorsAndMessages\(DESCRIPTOR,\s*|'__module__'\s*:\s*)"
    r"(?P<quote>['\"])(?P<module>[\w.]+)(?P=quote)"
)


def _split(module: str) -> Tuple[str, str]:
    package, _, leaf = module.rpartition(".")
    return package, leaf


class ImportRewriter:
    """Rewrites references to generated modules using an origin -> target map.

    Each line is rewritten at most once, so a target that happens to spell
    another module's origin is never rewritten a second time.
    """

    def __init__(self, locations: Mapping[str, str]) -> None:
        self.locations: Dict[str, str] = dict(locations)
        self._statements: List[Tuple[re.Pattern[str], Callable[[re.Match[str]], str | None]]] = [
            (_PLAIN_IMPORT, self._plain_import),
            (_FROM_IMPORT, self._from_import),
            (_PUBLIC_IMPORT, self._public_import),
        ]

    @classmethod
    def for_tree(
        cls,
        tree: NamespaceTree,
        fragments: Mapping[str, GeneratedFragment],
        import_name: str,
    ) -> "ImportRewriter":
        locations: Dict[str, str] = {}
        for node in tree.walk():
            fragment = fragments.get(tree.namespace_of(node.id))
            if fragment is None:
                continue
            package = ".".join((import_name, *tree.identifiers_of(node.id)))
            for module in fragment.modules:
                locations[module.origin] = f"{package}.{module.name}"
        return cls(locations)

    def target(self, origin: str) -> str | None:
        return self.locations.get(origin)

    def rewrite(self, source: str) -> str:
        return "".join(self._rewrite_line(line) for line in source.splitlines(keepends=True))

    def _rewrite_line(self, line: str) -> str:
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        for pattern, handler in self._statements:
            match = pattern.fullmatch(body)
            if match is None:
                continue
            replacement = handler(match)
            return line if replacement is None else replacement + ending
        body = _DYNAMIC_IMPORT.sub(self._dynamic_import, body)
        body = _MODULE_LITERAL.sub(self._module_literal, body)
        return body + ending

    def _plain_import(self, match: re.Match[str]) -> str | None:
        target = self.target(match["module"])
        if target is None:
            return None
        package, leaf = _split(target)
        return f"{match['indent']}from {package} import {leaf} as {match['alias']}"

    def _from_import(self, match: re.Match[str]) -> str | None:
        target = self.target(f"{match['package']}.{match['name']}")
        if target is None:
            return None
        package, leaf = _split(target)
        return f"{match['indent']}from {package} import {leaf} as {match['alias']}"

    def _public_import(self, match: re.Match[str]) -> str | None:
        target = self.target(match["module"])
        if target is None:
            return None
        return f"{match['indent']}from {target} import *"

    def _dynamic_import(self, match: re.Match[str]) -> str:
        target = self.target(match["module"])
        if target is None:
            return match.group(0)
        quote = match["quote"]
        return f"importlib.import_module({quote}{target}{quote})"

    def _module_literal(self, match: re.Match[str]) -> str:
        target = self.target(match["module"])
        if target is None:
            return match.group(0)
        quote = match["quote"]
        return f"{match['prefix']}{quote}{target}{quote}"


__all__ = ["ImportRewriter"]
