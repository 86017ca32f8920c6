"""Unified namespace hierarchy built from every collected schema file."""

from __future__ import annotations

import keyword
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import NamespaceConflictError
from .logging import get_logger
from .models import SchemaFile

ROOT_ID = 0

_INVALID_IDENTIFIER_CHARS = re.compile(r"[^0-9A-Za-z_]")


def to_identifier(segment: str) -> str:
    """Map a namespace segment onto the Python identifier used for its module."""
    identifier = _INVALID_IDENTIFIER_CHARS.sub("_", segment) or "_"
    if identifier[0].isdigit():
        identifier = f"_{identifier}"
    if keyword.iskeyword(identifier):
        identifier = f"{identifier}_"
    return identifier


def collision_key(identifier: str) -> str:
    # Generated packages have to import on case-insensitive filesystems too.
    return identifier.casefold()


@dataclass
class NamespaceNode:
    """A single namespace segment. Children are referenced by node id."""

    id: int
    segment: str
    parent: Optional[int]
    children: Dict[str, int] = field(default_factory=dict)
    files: List[SchemaFile] = field(default_factory=list)

    @property
    def identifier(self) -> str:
        return to_identifier(self.segment)


class NamespaceTree:
    """Arena of namespace nodes rooted at the default namespace (node 0)."""

    def __init__(self) -> None:
        self.nodes: List[NamespaceNode] = [NamespaceNode(id=ROOT_ID, segment="", parent=None)]

    @property
    def root(self) -> NamespaceNode:
        return self.nodes[ROOT_ID]

    def add(self, schema: SchemaFile) -> NamespaceNode:
        """Attach a schema file to the node for its namespace, creating the path."""
        node = self.root
        for segment in schema.segments:
            child_id = node.children.get(segment)
            if child_id is None:
                child_id = len(self.nodes)
                self.nodes.append(NamespaceNode(id=child_id, segment=segment, parent=node.id))
                node.children[segment] = child_id
            node = self.nodes[child_id]
        node.files.append(schema)
        return node

    def sorted_children(self, node_id: int) -> List[NamespaceNode]:
        node = self.nodes[node_id]
        return [self.nodes[node.children[segment]] for segment in sorted(node.children)]

    def walk(self, node_id: int = ROOT_ID) -> Iterator[NamespaceNode]:
        """Pre-order traversal with children visited in segment-name order."""
        stack = [node_id]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(child.id for child in reversed(self.sorted_children(node.id)))

    def path_of(self, node_id: int) -> Tuple[str, ...]:
        segments: List[str] = []
        node = self.nodes[node_id]
        while node.parent is not None:
            segments.append(node.segment)
            node = self.nodes[node.parent]
        return tuple(reversed(segments))

    def namespace_of(self, node_id: int) -> str:
        return ".".join(self.path_of(node_id))

    def identifiers_of(self, node_id: int) -> Tuple[str, ...]:
        return tuple(to_identifier(segment) for segment in self.path_of(node_id))

    def find(self, namespace: str) -> Optional[NamespaceNode]:
        node = self.root
        for segment in namespace.split(".") if namespace else ():
            child_id = node.children.get(segment)
            if child_id is None:
                return None
            node = self.nodes[child_id]
        return node

    def subtree_files(self, node_id: int) -> List[SchemaFile]:
        return [schema for node in self.walk(node_id) for schema in node.files]

    def namespaces(self) -> List[str]:
        """Namespaces that own at least one schema file, in traversal order."""
        return [self.namespace_of(node.id) for node in self.walk() if node.files]

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class _Claim:
    label: str
    files: Tuple[Path, ...]
    kind: str


class NamespaceTreeBuilder:
    """Merges (file, namespace) pairs from all roots into one validated tree."""

    def __init__(self) -> None:
        self.logger = get_logger("namespace_tree")

    def build(self, files: Sequence[SchemaFile]) -> NamespaceTree:
        tree = NamespaceTree()
        for schema in files:
            node = tree.add(schema)
            self.logger.debug(
                "Placed %s under namespace '%s'", schema.virtual_path, tree.namespace_of(node.id)
            )
        self._validate(tree)
        self.logger.info(
            "Built namespace tree with %d nodes and %d namespaces",
            len(tree),
            len(tree.namespaces()),
        )
        return tree

    def _validate(self, tree: NamespaceTree) -> None:
        for node in tree.walk():
            claims = self._claims_for(tree, node)
            for key in sorted(claims):
                entries = claims[key]
                if len(entries) > 1:
                    raise self._conflict(key, entries)

    @staticmethod
    def _claims_for(tree: NamespaceTree, node: NamespaceNode) -> Dict[str, List[_Claim]]:
        """Group every name a node's package directory would hold by collision key."""
        prefix = tree.namespace_of(node.id)
        claims: Dict[str, List[_Claim]] = defaultdict(list)
        for child in tree.sorted_children(node.id):
            claims[collision_key(child.identifier)].append(
                _Claim(
                    label=tree.namespace_of(child.id),
                    files=tuple(schema.path for schema in tree.subtree_files(child.id)),
                    kind="namespace",
                )
            )
        for schema in node.files:
            for module_name in (schema.message_module, schema.service_module):
                claims[collision_key(module_name)].append(
                    _Claim(
                        label=f"{prefix}.{module_name}" if prefix else module_name,
                        files=(schema.path,),
                        kind="module",
                    )
                )
        return claims

    @staticmethod
    def _conflict(key: str, entries: Iterable[_Claim]) -> NamespaceConflictError:
        entries = list(entries)
        files = [path for entry in entries for path in entry.files]
        if all(entry.kind == "module" for entry in entries):
            reason = f"generate the same module '{key}' in one namespace"
        else:
            reason = f"normalise to the same module identifier '{key}'"
        return NamespaceConflictError([entry.label for entry in entries], files, reason=reason)


__all__ = [
    "NamespaceNode",
    "NamespaceTree",
    "NamespaceTreeBuilder",
    "ROOT_ID",
    "collision_key",
    "to_identifier",
]
