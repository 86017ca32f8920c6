"""Tests for protopkg.emit.manifest."""

from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from protopkg.emit.manifest import (
    ManifestEmitter,
    generated_versions,
    parse_author,
    required_dependencies,
)
from protopkg.errors import EmissionError
from protopkg.models import Author, GeneratedFragment, GeneratedModule, PackageDescriptor, SchemaFile

_SCHEMA = SchemaFile(path=Path("/r/x.proto"), namespace="x", root_index=0, root=Path("/r"))


def _fragment(*, services: bool = False, messages_source: str = "", grpc_source: str = "") -> GeneratedFragment:
    modules = [GeneratedModule(name="x_pb2", origin="x_pb2", source=messages_source, schema=_SCHEMA)]
    if services:
        modules.append(
            GeneratedModule(
                name="x_pb2_grpc",
                origin="x_pb2_grpc",
                source=grpc_source,
                schema=_SCHEMA,
                has_services=True,
            )
        )
    return GeneratedFragment("x", modules)


def _descriptor(**overrides: object) -> PackageDescriptor:
    values = {"name": "demo-api", "version": "1.2.3", "import_name": "demo_api", "authors": []}
    values.update(overrides)
    return PackageDescriptor(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Jane Doe <jane@example.com>", Author(name="Jane Doe", email="jane@example.com")),
        ("Jane Doe", Author(name="Jane Doe", email=None)),
        ("  Spaced  <s@example.com>  ", Author(name="Spaced", email="s@example.com")),
    ],
)
def test_parse_author(value: str, expected: Author) -> None:
    assert parse_author(value) == expected


def test_message_only_packages_depend_on_protobuf() -> None:
    dependencies = required_dependencies({"x": _fragment()})

    assert [dependency.requirement for dependency in dependencies] == ["protobuf>=5.26.1"]


def test_service_packages_also_depend_on_grpcio() -> None:
    dependencies = required_dependencies({"x": _fragment(services=True)})

    assert [dependency.name for dependency in dependencies] == ["protobuf", "grpcio"]


def test_dependencies_follow_generated_versions() -> None:
    fragment = _fragment(
        services=True,
        messages_source="# Protobuf Python Version: 5.28.0\n",
        grpc_source="GRPC_GENERATED_VERSION = '1.66.1'\n",
    )

    dependencies = required_dependencies({"x": fragment})

    assert [dependency.requirement for dependency in dependencies] == [
        "protobuf>=5.28.0",
        "grpcio>=1.66.1",
    ]


def test_generated_versions_picks_highest() -> None:
    older = _fragment(messages_source="# Protobuf Python Version: 5.9.0\n")
    newer = _fragment(messages_source="# Protobuf Python Version: 5.10.1\n")

    assert generated_versions([older, newer]) == {"protobuf": "5.10.1"}


def test_overrides_win_over_defaults() -> None:
    dependencies = required_dependencies(
        {"x": _fragment(messages_source="# Protobuf Python Version: 5.28.0\n")},
        {"protobuf": "==4.25.3"},
    )

    assert [dependency.requirement for dependency in dependencies] == ["protobuf==4.25.3"]


def test_emit_writes_valid_pyproject(tmp_path: Path) -> None:
    descriptor = _descriptor(
        authors=[Author(name='Quote "Q" Person', email="q@example.com"), Author(name="Solo")]
    )

    path = ManifestEmitter().emit(descriptor, {"x": _fragment(services=True)}, tmp_path)

    assert path == tmp_path / "pyproject.toml"
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# Code generated by protopkg. DO NOT EDIT.\n")
    data = tomllib.loads(text)
    assert data["project"]["name"] == "demo-api"
    assert data["project"]["version"] == "1.2.3"
    assert data["project"]["authors"] == [
        {"name": 'Quote "Q" Person', "email": "q@example.com"},
        {"name": "Solo"},
    ]
    assert data["project"]["dependencies"] == ["protobuf>=5.26.1", "grpcio>=1.62.0"]
    assert data["tool"]["setuptools"]["packages"]["find"]["where"] == ["src"]


def test_emit_without_authors_omits_the_key(tmp_path: Path) -> None:
    path = ManifestEmitter().emit(_descriptor(), {}, tmp_path)

    data = tomllib.loads(path.read_text(encoding="utf-8"))
    assert "authors" not in data["project"]
    assert data["project"]["dependencies"] == ["protobuf>=5.26.1"]


def test_emit_overwrites_existing_manifest(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("stale = true\n", encoding="utf-8")

    ManifestEmitter().emit(_descriptor(), {}, tmp_path)

    assert "stale" not in (tmp_path / "pyproject.toml").read_text(encoding="utf-8")


def test_custom_template(tmp_path: Path) -> None:
    template = tmp_path / "templates" / "manifest.toml.j2"
    template.parent.mkdir()
    template.write_text(
        "name = {{ name|tojson }}\n"
        "import = {{ import_name|tojson }}\n"
        "deps = [{% for d in dependencies %}{{ d.requirement|tojson }}{% endfor %}]\n",
        encoding="utf-8",
    )
    output = tmp_path / "out"

    path = ManifestEmitter(template_path=template).emit(_descriptor(), {}, output)

    assert tomllib.loads(path.read_text(encoding="utf-8")) == {
        "name": "demo-api",
        "import": "demo_api",
        "deps": ["protobuf>=5.26.1"],
    }


def test_missing_template_is_an_emission_error(tmp_path: Path) -> None:
    emitter = ManifestEmitter(template_path=tmp_path / "missing.j2")

    with pytest.raises(EmissionError, match="missing.j2"):
        emitter.render(_descriptor(), {})
