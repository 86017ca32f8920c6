from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.schema_builder import SchemaTreeBuilder, StubProtoc


@pytest.fixture
def schemas(tmp_path: Path) -> SchemaTreeBuilder:
    """Provide a builder for schema roots under the pytest tmp_path."""
    return SchemaTreeBuilder(tmp_path)


@pytest.fixture
def stub_protoc() -> StubProtoc:
    return StubProtoc()
