"""Smoke tests for module imports and the public API.

These tests verify that:
1. All public modules can be imported without errors
2. Every name in ``persevere.__all__`` resolves
3. The top-level API works end to end with default collaborators
"""

from __future__ import annotations

import importlib

import pytest

import persevere

IMPORTABLE_MODULES = [
    "persevere",
    "persevere.core",
    "persevere.core.config",
    "persevere.core.constants",
    "persevere.core.errors",
    "persevere.core.errors.classifier",
    "persevere.core.errors.codes",
    "persevere.core.errors.exceptions",
    "persevere.core.logging",
    "persevere.execution",
    "persevere.execution.audit",
    "persevere.execution.backoff",
    "persevere.execution.executor",
    "persevere.execution.fallback",
    "persevere.execution.recovery",
]


@pytest.mark.parametrize("module_name", IMPORTABLE_MODULES)
def test_module_imports(module_name: str) -> None:
    """Each module should import without errors."""
    importlib.import_module(module_name)


def test_public_names_resolve() -> None:
    for name in persevere.__all__:
        assert hasattr(persevere, name), name


@pytest.mark.asyncio
async def test_execute_with_defaults() -> None:
    async def fetch_status() -> str:
        raise RuntimeError("Invalid request")

    result = await persevere.execute_with_resilience(
        fetch_status,
        persevere.OperationContext(component="status", operation_name="get_status"),
        persevere.RetryPolicy(fallback_value="unknown"),
    )

    assert result == "unknown"
