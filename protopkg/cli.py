"""CLI entrypoint for protopkg."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .config import DEFAULT_VERSION, build_config
from .errors import ProtoPkgError
from .logging import configure_logging
from .orchestrator import Orchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="protopkg",
        description=(
            "Compile one or more protobuf schema trees into a single installable "
            "Python package."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write the build log (overwritten on each run) to this file.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-o",
        "--output-dir",
        required=True,
        type=Path,
        help="Directory the package is generated into (rebuilt from scratch).",
    )
    parser.add_argument(
        "-p",
        "--pkg-name",
        required=True,
        help="Distribution name of the generated package.",
    )
    parser.add_argument(
        "--pkg-version",
        default=DEFAULT_VERSION,
        help=f"Version of the generated package (defaults to {DEFAULT_VERSION}).",
    )
    parser.add_argument(
        "--pkg-author",
        action="append",
        default=[],
        metavar="'NAME <EMAIL>'",
        help="Package author; may be repeated.",
    )
    parser.add_argument(
        "-t",
        "--manifest-template",
        type=Path,
        default=None,
        help="Jinja2 template used instead of the bundled pyproject.toml template.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="YAML file with package, dependency and compiler settings.",
    )
    parser.add_argument(
        "roots",
        nargs="+",
        metavar="ROOT",
        help="Root directory of a protobuf tree (can be repeated).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for protopkg."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(verbose=bool(args.verbose), log_file=args.log_file)
        config = build_config(
            output_dir=args.output_dir,
            pkg_name=args.pkg_name,
            roots=args.roots,
            pkg_version=args.pkg_version,
            authors=args.pkg_author,
            manifest_template=args.manifest_template,
            config_path=args.config,
        )
        result = Orchestrator().run(config)
    except ProtoPkgError as exc:
        parser.exit(1, f"{exc.category}: {exc}\n")

    print(f"Package {config.pkg_name} generated at {_relativize(result.output_dir)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
