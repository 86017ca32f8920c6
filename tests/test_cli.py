"""CLI behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from protopkg.cli import _build_parser, main
from protopkg.logging import configure_logging


def test_cli_parses_required_options_and_roots() -> None:
    parser = _build_parser()
    args = parser.parse_args(["-o", "out", "-p", "demo", "protos/a", "protos/b"])

    assert args.output_dir == Path("out")
    assert args.pkg_name == "demo"
    assert args.roots == ["protos/a", "protos/b"]
    assert args.pkg_version == "0.1.0"
    assert args.pkg_author == []
    assert args.verbose is False
    assert args.log_file is None


def test_cli_accepts_repeated_authors() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        [
            "--output-dir",
            "out",
            "--pkg-name",
            "demo",
            "--pkg-author",
            "Jane <jane@example.com>",
            "--pkg-author",
            "Bot",
            "--verbose",
            "protos",
        ]
    )

    assert args.pkg_author == ["Jane <jane@example.com>", "Bot"]
    assert args.verbose is True


def test_cli_requires_at_least_one_root() -> None:
    parser = _build_parser()

    with pytest.raises(SystemExit) as excinfo:
        parser.parse_args(["-o", "out", "-p", "demo"])

    assert excinfo.value.code == 2


def test_main_builds_package_from_empty_root(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = tmp_path / "protos"
    root.mkdir()
    output = tmp_path / "out"

    main(["-o", str(output), "-p", "demo-api", "--pkg-version", "2.0.0", str(root)])

    assert (output / "src" / "demo_api" / "__init__.py").is_file()
    assert 'version = "2.0.0"' in (output / "pyproject.toml").read_text(encoding="utf-8")
    assert "Package demo-api generated at" in capsys.readouterr().out


def test_main_reports_missing_root(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-o", str(tmp_path / "out"), "-p", "demo", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "discovery error:" in err
    assert "missing" in err
    assert not (tmp_path / "out").exists()


def test_main_reports_invalid_package_name(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-o", str(tmp_path / "out"), "-p", "bad name!", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "config error: Invalid package name" in capsys.readouterr().err


def test_main_writes_log_file(tmp_path: Path) -> None:
    root = tmp_path / "protos"
    root.mkdir()
    log_file = tmp_path / "logs" / "build.log"

    main(["-o", str(tmp_path / "out"), "-p", "demo", "--log-file", str(log_file), str(root)])
    configure_logging()

    text = log_file.read_text(encoding="utf-8")
    assert "protopkg.collector: Collected 0 schema files from 1 roots" in text
    assert "protopkg.emit.manifest: Wrote manifest" in text


def test_main_reports_unreadable_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "protopkg.yml"
    config_file.write_bytes(b"package:\n  authors: [\xff\xfe]\n")

    with pytest.raises(SystemExit) as excinfo:
        main(["-o", str(tmp_path / "out"), "-p", "demo", "-c", str(config_file), str(tmp_path)])

    assert excinfo.value.code == 1
    assert "config error: Cannot read" in capsys.readouterr().err
