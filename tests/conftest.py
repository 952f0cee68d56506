"""Shared fixtures for the generator tests."""

from __future__ import annotations

from typing import Any

import pytest

from helpers import PETSTORE_PATH, petstore_spec


@pytest.fixture
def spec() -> dict[str, Any]:
    return petstore_spec()


@pytest.fixture
def spec_path():
    return PETSTORE_PATH
