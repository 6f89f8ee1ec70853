"""
Access to the secrets the bootstrapper needs.

Secrets are produced by another component (an operator, a certificate
manager) and are only read here. A secret is a flat mapping of key to
bytes; ``None`` means the secret does not exist yet.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

# Well-known keys
TLS_CERT_KEY = "tls.crt"
CLIENT_CERT_KEY = "client.crt"
CLIENT_KEY_KEY = "client.key"


class SecretSource(Protocol):
    """Protocol for secret lookups."""

    def get(self, name: str) -> dict[str, bytes] | None:
        """Return the secret's data, or None if it does not exist."""
        ...


class StaticSecretSource:
    """Secrets held in memory, typically handed over by the caller."""

    def __init__(self, secrets: Mapping[str, Mapping[str, bytes | str]] | None = None) -> None:
        self._secrets: dict[str, dict[str, bytes]] = {}
        for name, data in (secrets or {}).items():
            self.put(name, data)

    def put(self, name: str, data: Mapping[str, bytes | str]) -> None:
        self._secrets[name] = {
            key: value.encode("utf-8") if isinstance(value, str) else bytes(value)
            for key, value in data.items()
        }

    def get(self, name: str) -> dict[str, bytes] | None:
        data = self._secrets.get(name)
        return dict(data) if data is not None else None


class DirectorySecretSource:
    """
    Secrets mounted as volumes: ``<root>/<secret name>/<key>``.

    Hidden entries are skipped, which also skips the ``..data`` and
    timestamped directories Kubernetes uses for atomic secret updates.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def get(self, name: str) -> dict[str, bytes] | None:
        directory = self._root / name
        if not directory.is_dir():
            logger.debug("secret_not_mounted", secret=name, path=str(directory))
            return None

        data: dict[str, bytes] = {}
        for entry in sorted(directory.iterdir()):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            data[entry.name] = entry.read_bytes()
        return data
