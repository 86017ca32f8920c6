"""End-to-end build with a stock ``protoc`` named through ``PROTOC``."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from protopkg.config import build_config
from protopkg.errors import CompilationError
from protopkg.orchestrator import Orchestrator
from tests._fixtures.schema_builder import SchemaTreeBuilder

PROTOC = shutil.which("protoc")

pytestmark = pytest.mark.skipif(PROTOC is None, reason="protoc is not installed")

TYPES = """
syntax = "proto3";
package acme.common;
message Name { string value = 1; }
"""

GREETER = """
syntax = "proto3";
package acme.greet;
service Greeter {
  rpc SayHello (Ping) returns (Ping);
}
message Ping {}
"""


def _environ(tmp_path: Path) -> dict[str, str]:
    # An empty PATH keeps any installed protoc-gen-grpc_python out of the build.
    no_plugins = tmp_path / "no-plugins"
    no_plugins.mkdir()
    return {"PROTOC": str(PROTOC), "PATH": str(no_plugins)}


def test_messages_build_without_grpc_plugin(schemas: SchemaTreeBuilder, tmp_path: Path) -> None:
    root = schemas.write("shared", {"common/types.proto": TYPES})
    output = tmp_path / "out"
    config = build_config(output_dir=output, pkg_name="demo-api", roots=[root], environ=_environ(tmp_path))

    result = Orchestrator().run(config)

    package = output / "src" / "demo_api" / "acme" / "common"
    assert result.has_services is False
    assert (package / "types_pb2.py").is_file()
    assert not (package / "types_pb2_grpc.py").exists()
    assert "from .types_pb2 import *" in (package / "__init__.py").read_text(encoding="utf-8")


def test_services_need_grpc_plugin(schemas: SchemaTreeBuilder, tmp_path: Path) -> None:
    root = schemas.write("api", {"greet/greeter.proto": GREETER})
    output = tmp_path / "out"
    config = build_config(output_dir=output, pkg_name="demo-api", roots=[root], environ=_environ(tmp_path))

    with pytest.raises(CompilationError, match="PROTOC_GEN_GRPC_PYTHON"):
        Orchestrator().run(config)

    assert not (output / "src").exists()
