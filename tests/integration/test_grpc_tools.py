"""End-to-end build with the real grpc_tools compiler."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

from protopkg.config import build_config
from protopkg.orchestrator import Orchestrator
from tests._fixtures.schema_builder import SchemaTreeBuilder

pytest.importorskip("grpc_tools")

GREETER = """
syntax = "proto3";
package acme.greet;
import "common/types.proto";
service Greeter {
  rpc SayHello (acme.common.Name) returns (acme.common.Name);
}
"""

TYPES = """
syntax = "proto3";
package acme.common;
message Name { string value = 1; }
"""

IMPORT_NAME = "protopkg_itest"


@pytest.fixture
def forget_generated_package():
    yield
    for name in [name for name in sys.modules if name.split(".")[0] == IMPORT_NAME]:
        del sys.modules[name]


def test_generated_package_imports(
    schemas: SchemaTreeBuilder,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    forget_generated_package: None,
) -> None:
    api = schemas.write("api", {"greet/greeter.proto": GREETER})
    shared = schemas.write("shared", {"common/types.proto": TYPES})
    output = tmp_path / "out"
    config = build_config(
        output_dir=output,
        pkg_name="protopkg-itest",
        roots=[api, shared],
        environ={},
    )

    result = Orchestrator().run(config)

    assert result.has_services is True
    assert not (output / "src" / IMPORT_NAME / "acme" / "common" / "types_pb2_grpc.py").exists()

    monkeypatch.syspath_prepend(str(output / "src"))
    package = importlib.import_module(IMPORT_NAME)

    name = package.acme.common.Name(value="hello")
    assert name.value == "hello"
    assert callable(package.acme.greet.add_GreeterServicer_to_server)
    assert package.acme.greet.GreeterStub.__module__ == f"{IMPORT_NAME}.acme.greet.greeter_pb2_grpc"
