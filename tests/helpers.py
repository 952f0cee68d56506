"""Sample-spec builders shared by the test modules."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from typegen.loader import load_spec

FIXTURES = Path(__file__).parent / "fixtures"
PETSTORE_PATH = FIXTURES / "petstore.yaml"

_PETSTORE = load_spec(PETSTORE_PATH)


def petstore_spec() -> dict[str, Any]:
    """A fresh deep copy of the sample spec, safe to mutate."""
    return copy.deepcopy(_PETSTORE)


def make_spec(
    paths: dict[str, Any],
    schemas: dict[str, Any] | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Build a minimal OpenAPI document around the given paths."""
    spec: dict[str, Any] = {
        "openapi": "3.0.1",
        "info": {"title": "t", "version": "1"},
        "paths": paths,
        "components": {"schemas": schemas or {}},
    }
    if tags is not None:
        spec["tags"] = [{"name": t} for t in tags]
    return spec
