"""Pipeline orchestration: collect, build the tree, compile, emit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .collector import SchemaCollector
from .compiler import CompilerInvoker
from .config import BuildConfig
from .emit.manifest import ManifestEmitter
from .emit.modules import EmittedPackage, ModuleEmitter
from .logging import get_logger
from .namespace_tree import NamespaceTreeBuilder


@dataclass
class BuildResult:
    """Outcome of a successful full rebuild."""

    output_dir: Path
    manifest_path: Path
    package: EmittedPackage
    namespaces: List[str] = field(default_factory=list)
    has_services: bool = False


class Orchestrator:
    """Coordinates one full rebuild of the output package.

    Steps run strictly in order and the first error ends the run. The compiler
    runs before anything in the output directory is touched, so a schema error
    leaves the previous successful build in place.
    """

    def __init__(
        self,
        collector: SchemaCollector | None = None,
        tree_builder: NamespaceTreeBuilder | None = None,
        compiler: CompilerInvoker | None = None,
        module_emitter: ModuleEmitter | None = None,
        manifest_emitter: ManifestEmitter | None = None,
    ) -> None:
        self.collector = collector or SchemaCollector()
        self.tree_builder = tree_builder or NamespaceTreeBuilder()
        self._compiler = compiler
        self._module_emitter = module_emitter
        self._manifest_emitter = manifest_emitter
        self.logger = get_logger("orchestrator")

    def run(self, config: BuildConfig) -> BuildResult:
        output_dir = Path(config.output_dir)
        self.logger.info("Building package %s %s into %s", config.pkg_name, config.pkg_version, output_dir)

        files = self.collector.collect(config.roots)
        tree = self.tree_builder.build(files)

        include_paths = self._include_paths(config)
        compiler = self._compiler or CompilerInvoker(config.compiler)
        fragments = compiler.compile(files, include_paths)

        descriptor = config.descriptor()
        manifest_emitter = self._manifest_emitter or ManifestEmitter(
            config.manifest_template, config.dependencies
        )
        manifest = manifest_emitter.render(descriptor, fragments)

        module_emitter = self._module_emitter or ModuleEmitter(
            [config.templates_dir] if config.templates_dir is not None else ()
        )
        package = module_emitter.emit(tree, fragments, output_dir, descriptor)
        manifest_path = manifest_emitter.write(manifest, output_dir)

        has_services = any(fragment.has_services for fragment in fragments.values())
        self.logger.info(
            "Package %s ready: %d namespaces%s",
            descriptor.import_name,
            len(tree.namespaces()),
            " with gRPC services" if has_services else "",
        )
        return BuildResult(
            output_dir=output_dir,
            manifest_path=manifest_path,
            package=package,
            namespaces=tree.namespaces(),
            has_services=has_services,
        )

    @staticmethod
    def _include_paths(config: BuildConfig) -> List[Path]:
        paths: List[Path] = []
        for root in config.roots:
            resolved = Path(root).expanduser().resolve()
            if resolved not in paths:
                paths.append(resolved)
        return paths


__all__ = ["BuildResult", "Orchestrator"]
