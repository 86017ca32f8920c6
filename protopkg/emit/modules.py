"""Writes the namespace hierarchy as a tree of Python packages."""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from jinja2 import TemplateError

from ..errors import EmissionError
from ..logging import get_logger
from ..models import GeneratedFragment, GeneratedModule, PackageDescriptor
from ..namespace_tree import NamespaceNode, NamespaceTree
from .imports import ImportRewriter
from .rendering import GENERATED_HEADER, create_environment, write_text

SOURCE_DIR = "src"
INIT_MODULE = "__init__.py"


@dataclass
class EmittedPackage:
    """Locations of everything the module emitter wrote."""

    source_root: Path
    package_root: Path
    files: List[Path] = field(default_factory=list)


class ModuleEmitter:
    """Emits one package per namespace node under ``<output>/src/<import_name>``.

    A node's ``__init__`` star-imports the node's own generated modules first
    and then binds each child package by name, children in sorted order. The
    tree is written into a staging directory and swapped in only once every
    file is on disk, so a failed run never leaves a half-written ``src``.
    """

    TEMPLATE = "package_init.py.j2"

    def __init__(self, templates_dirs: Sequence[Path] = ()) -> None:
        self._env = create_environment(templates_dirs)
        self.logger = get_logger("emit.modules")

    def emit(
        self,
        tree: NamespaceTree,
        fragments: Mapping[str, GeneratedFragment],
        output_dir: Path,
        descriptor: PackageDescriptor,
    ) -> EmittedPackage:
        output_dir = Path(output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".protopkg-", dir=output_dir))
        except OSError as exc:
            raise EmissionError(f"Cannot create output directory {output_dir}: {exc}") from exc

        source_root = output_dir / SOURCE_DIR
        try:
            staged_root = staging / SOURCE_DIR
            staged_files = self._write_tree(tree, fragments, staged_root, descriptor)
            if source_root.exists():
                shutil.rmtree(source_root)
            staged_root.rename(source_root)
        except OSError as exc:
            raise EmissionError(f"Cannot write package modules under {output_dir}: {exc}") from exc
        except TemplateError as exc:
            raise EmissionError(f"Cannot render {self.TEMPLATE}: {exc}") from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        files = [source_root / path.relative_to(staged_root) for path in staged_files]
        self.logger.info("Wrote %d module files under %s", len(files), source_root)
        return EmittedPackage(
            source_root=source_root,
            package_root=source_root / descriptor.import_name,
            files=files,
        )

    def _write_tree(
        self,
        tree: NamespaceTree,
        fragments: Mapping[str, GeneratedFragment],
        source_root: Path,
        descriptor: PackageDescriptor,
    ) -> List[Path]:
        package_root = source_root / descriptor.import_name
        rewriter = ImportRewriter.for_tree(tree, fragments, descriptor.import_name)
        written: List[Path] = []
        for node in tree.walk():
            directory = package_root.joinpath(*tree.identifiers_of(node.id))
            directory.mkdir(parents=True, exist_ok=True)
            modules = self._modules_for(tree, node, fragments)

            for module in modules:
                path = directory / f"{module.name}.py"
                write_text(path, rewriter.rewrite(module.source))
                written.append(path)
                self.logger.debug("Wrote %s", path)

            init_path = directory / INIT_MODULE
            write_text(init_path, self._render_init(tree, node, modules, descriptor))
            written.append(init_path)
            self.logger.debug("Wrote %s", init_path)
        return written

    def _modules_for(
        self,
        tree: NamespaceTree,
        node: NamespaceNode,
        fragments: Mapping[str, GeneratedFragment],
    ) -> List[GeneratedModule]:
        if not node.files:
            return []
        namespace = tree.namespace_of(node.id)
        fragment = fragments.get(namespace)
        if fragment is None:
            self.logger.warning("No generated code for namespace '%s'", namespace)
            return []
        by_name: Dict[str, GeneratedModule] = {module.name: module for module in fragment.modules}
        return [by_name[name] for name in sorted(by_name)]

    def _render_init(
        self,
        tree: NamespaceTree,
        node: NamespaceNode,
        modules: Sequence[GeneratedModule],
        descriptor: PackageDescriptor,
    ) -> str:
        namespace = tree.namespace_of(node.id)
        if node.parent is None:
            title = f"Entry point of the ``{descriptor.name}`` package."
        else:
            title = f"Namespace ``{namespace}``."
        sources = sorted({schema.virtual_path for schema in node.files})
        template = self._env.get_template(self.TEMPLATE)
        return template.render(
            header=GENERATED_HEADER,
            title=title,
            sources=sources,
            modules=[module.name for module in modules],
            children=[child.identifier for child in tree.sorted_children(node.id)],
        )


__all__ = ["EmittedPackage", "ModuleEmitter", "SOURCE_DIR"]
