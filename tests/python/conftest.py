"""Pytest configuration and shared fakes for the lifecycle manager tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from logstore_lifecycle.exceptions import NotFoundError

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


class FakeLogStore:
    """
    In-memory stand-in for the store's REST API.

    Every call is recorded as ``(operation, name)`` in ``calls``. Errors can
    be injected per operation and name through ``failures``.
    """

    def __init__(self) -> None:
        self.policies: dict[str, dict[str, Any]] = {}
        self.roles: dict[str, dict[str, Any]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self.timeouts: list[float | None] = []

    def _record(self, operation: str, name: str, timeout: float | None) -> None:
        self.calls.append((operation, name))
        self.timeouts.append(timeout)
        error = self.failures.get((operation, name))
        if error is not None:
            raise error

    def writes(self, operation: str = "put_lifecycle_policy") -> list[str]:
        return [name for op, name in self.calls if op == operation]

    def get_lifecycle_policy(self, name: str, timeout: float | None = None) -> dict[str, Any]:
        self._record("get_lifecycle_policy", name, timeout)
        if name not in self.policies:
            raise NotFoundError.resource(f"/_ilm/policy/{name}")
        return self.policies[name]["policy"]

    def put_lifecycle_policy(
        self, name: str, body: dict[str, Any], timeout: float | None = None
    ) -> None:
        self._record("put_lifecycle_policy", name, timeout)
        self.policies[name] = body

    def put_role(self, name: str, definition: dict[str, Any], timeout: float | None = None) -> None:
        self._record("put_role", name, timeout)
        self.roles[name] = definition

    def put_user(self, name: str, body: dict[str, Any], timeout: float | None = None) -> None:
        self._record("put_user", name, timeout)
        self.users[name] = body

    def get_users(self, timeout: float | None = None) -> dict[str, Any]:
        self._record("get_users", "", timeout)
        return {name: {"username": name, "roles": body.get("roles")} for name, body in self.users.items()}

    def delete_role(self, name: str, timeout: float | None = None) -> None:
        self._record("delete_role", name, timeout)
        if self.roles.pop(name, None) is None:
            raise NotFoundError.resource(f"/_security/role/{name}")

    def delete_user(self, name: str, timeout: float | None = None) -> None:
        self._record("delete_user", name, timeout)
        if self.users.pop(name, None) is None:
            raise NotFoundError.resource(f"/_security/user/{name}")


@pytest.fixture
def fake_store() -> FakeLogStore:
    return FakeLogStore()


@pytest.fixture
def ca_pem() -> bytes:
    return (FIXTURES_DIR / "ca.crt").read_bytes()


@pytest.fixture
def client_cert_pem() -> bytes:
    return (FIXTURES_DIR / "client.crt").read_bytes()


@pytest.fixture
def client_key_pem() -> bytes:
    return (FIXTURES_DIR / "client.key").read_bytes()
