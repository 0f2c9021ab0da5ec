"""
Pytest configuration and fixtures for auikit tests.

This module provides shared fixtures used across unit and integration
tests.
"""

from typing import Any

import pytest

from auikit.context import InvocationContext, create_context
from auikit.registry import CapabilityRegistry


class Recorder:
    """Records handler and middleware activity in call order."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.calls: list[tuple[str, Any]] = []

    def record(self, event: str, payload: Any = None) -> None:
        self.events.append(event)
        self.calls.append((event, payload))

    def count(self, event: str) -> int:
        return self.events.count(event)


@pytest.fixture(autouse=True)
def clear_origin_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the host's AUIKIT_ORIGIN from leaking into tests."""
    monkeypatch.delenv("AUIKIT_ORIGIN", raising=False)


@pytest.fixture
def recorder() -> Recorder:
    """A fresh activity recorder."""
    return Recorder()


@pytest.fixture
def registry() -> CapabilityRegistry:
    """An empty, isolated registry."""
    return CapabilityRegistry()


@pytest.fixture
def trusted_ctx() -> InvocationContext:
    """A context for a trusted origin."""
    return create_context(is_trusted_origin=True)


@pytest.fixture
def untrusted_ctx() -> InvocationContext:
    """A context for an untrusted origin."""
    return create_context(is_trusted_origin=False)
