"""
Connection bootstrap for the log store.

To talk to the store we need:
- the admin username and password, from a single-entry credentials secret;
- the root CA that signed the store's certificate, either supplied by the
  operator or read from the internal/external CA secret;
- in external mode, a client certificate for mutual TLS.

A new client is built for every reconciliation pass. Building it is retried
a fixed number of times with a fixed pause; failures of individual requests
made later through the client are not retried here.
"""

from __future__ import annotations

import ssl
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from logstore_lifecycle.client import ElasticsearchClient
from logstore_lifecycle.config import ConnectionConfig, SecretsConfig
from logstore_lifecycle.exceptions import (
    ConfigError,
    ConnectivityError,
    ResourceNotReadyError,
)
from logstore_lifecycle.secrets import (
    CLIENT_CERT_KEY,
    CLIENT_KEY_KEY,
    TLS_CERT_KEY,
    SecretSource,
)

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_RETRY_INTERVAL_SECONDS = 0.5


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and how far apart, client construction is attempted."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    interval_seconds: float = DEFAULT_RETRY_INTERVAL_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError.validation_failed(
                "max_attempts", self.max_attempts, "must be at least 1"
            )
        if self.interval_seconds < 0:
            raise ConfigError.validation_failed(
                "interval_seconds", self.interval_seconds, "must not be negative"
            )

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            interval_seconds=config.retry_interval_seconds,
        )


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class TLSMaterial:
    """PEM-encoded trust roots and optional client certificate."""

    ca_pem: bytes
    client_cert_pem: bytes | None = field(default=None, repr=False)
    client_key_pem: bytes | None = field(default=None, repr=False)

    @property
    def has_client_certificate(self) -> bool:
        return self.client_cert_pem is not None and self.client_key_pem is not None


ClientFactory = Callable[..., Any]


def _read_secret(secrets: SecretSource, name: str) -> dict[str, bytes]:
    data = secrets.get(name)
    if data is None:
        raise ResourceNotReadyError.secret_missing(name)
    return data


def decode_password(secret_name: str, raw: bytes) -> str:
    """Decode a password read from a secret, which must be UTF-8."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConfigError.invalid_credentials(
            secret_name, "password is not valid UTF-8", cause=e
        ) from e


def resolve_credentials(secrets: SecretSource, secret_name: str) -> Credentials:
    """
    Read the admin credentials.

    The secret must hold exactly one entry whose key is the username and
    whose value is the password.

    Raises:
        ResourceNotReadyError: If the secret does not exist yet.
        ConfigError: If the secret is malformed.
    """
    data = _read_secret(secrets, secret_name)
    if len(data) != 1:
        raise ConfigError.invalid_credentials(
            secret_name, f"expected exactly 1 entry, found {len(data)}"
        )

    ((username, raw_password),) = data.items()
    password = decode_password(secret_name, raw_password)
    if not username or not password:
        raise ConfigError.invalid_credentials(secret_name, "username or password is empty")
    return Credentials(username=username, password=password)


def resolve_root_ca(
    secrets: SecretSource, secret_name: str, override_pem: bytes | None = None
) -> bytes:
    """
    Determine the CA used to validate the store's certificate.

    An operator-supplied CA takes precedence over the CA secret.
    """
    if override_pem:
        return override_pem

    data = _read_secret(secrets, secret_name)
    ca_pem = data.get(TLS_CERT_KEY)
    if not ca_pem:
        raise ConfigError.invalid_certificate(secret_name, f"no {TLS_CERT_KEY} in secret")
    return ca_pem


def resolve_client_certificate(secrets: SecretSource, secret_name: str) -> tuple[bytes, bytes]:
    """
    Read the mTLS client certificate and key.

    External stores require client authentication, so a missing secret is
    a configuration error rather than something to wait for.
    """
    data = secrets.get(secret_name)
    if data is None:
        raise ConfigError.invalid_certificate(
            secret_name, "mTLS is enabled but no client certificate was provided"
        )
    cert = data.get(CLIENT_CERT_KEY)
    key = data.get(CLIENT_KEY_KEY)
    if not cert or not key:
        raise ConfigError.invalid_certificate(
            secret_name, f"secret must contain {CLIENT_CERT_KEY} and {CLIENT_KEY_KEY}"
        )
    return cert, key


def build_ssl_context(material: TLSMaterial) -> ssl.SSLContext:
    """
    Build a client TLS context trusting only the resolved roots.

    Raises:
        ConfigError: If the CA or the client key pair cannot be loaded.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.load_verify_locations(cadata=material.ca_pem.decode("ascii"))
    except (ssl.SSLError, ValueError) as e:
        raise ConfigError.invalid_certificate(
            "root CA", "failed to parse root certificate", cause=e
        ) from e

    if material.has_client_certificate:
        # load_cert_chain only accepts paths
        with tempfile.TemporaryDirectory(prefix="logstore-mtls-") as tmp:
            cert_path = Path(tmp) / CLIENT_CERT_KEY
            key_path = Path(tmp) / CLIENT_KEY_KEY
            cert_path.write_bytes(material.client_cert_pem or b"")
            key_path.write_bytes(material.client_key_pem or b"")
            key_path.chmod(0o600)
            try:
                context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
            except (ssl.SSLError, ValueError) as e:
                raise ConfigError.invalid_certificate(
                    "client certificate", "failed to load client key pair", cause=e
                ) from e

    return context


class ConnectionBootstrapper:
    """
    Resolves credentials and TLS material and constructs a store client.

    ``client_factory`` and ``sleep`` are injectable so the retry loop can be
    exercised without a store or real delays.
    """

    def __init__(
        self,
        secrets: SecretSource,
        secrets_config: SecretsConfig | None = None,
        connection_config: ConnectionConfig | None = None,
        ca_override_pem: bytes | None = None,
        client_factory: ClientFactory = ElasticsearchClient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._secrets = secrets
        self._secrets_config = secrets_config or SecretsConfig()
        self._connection_config = connection_config or ConnectionConfig()
        self._retry = RetryPolicy.from_config(self._connection_config)
        self._ca_override_pem = ca_override_pem
        self._client_factory = client_factory
        self._sleep = sleep

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def resolve_tls(self, external: bool) -> TLSMaterial:
        """Collect the CA, and the client certificate in external mode."""
        names = self._secrets_config
        ca_secret = names.external_ca if external else names.internal_ca
        ca_pem = resolve_root_ca(self._secrets, ca_secret, self._ca_override_pem)

        if not external:
            return TLSMaterial(ca_pem=ca_pem)

        cert, key = resolve_client_certificate(self._secrets, names.client_certificate)
        return TLSMaterial(ca_pem=ca_pem, client_cert_pem=cert, client_key_pem=key)

    def connect(self, endpoint: str, external: bool) -> Any:
        """
        Build an authenticated client for the store.

        Raises:
            ResourceNotReadyError: If a prerequisite secret is missing.
            ConfigError: If credential or certificate material is invalid.
            ConnectivityError: If every construction attempt failed.
        """
        credentials = resolve_credentials(self._secrets, self._secrets_config.credentials)
        ssl_context = build_ssl_context(self.resolve_tls(external))

        retry = self._retry
        last_error: Exception | None = None
        for attempt in range(1, retry.max_attempts + 1):
            try:
                client = self._client_factory(
                    endpoint,
                    credentials.username,
                    credentials.password,
                    ssl_context=ssl_context,
                    timeout_seconds=self._connection_config.timeout_seconds,
                    healthcheck=self._connection_config.healthcheck,
                )
            except Exception as e:
                last_error = e
                logger.warning(
                    "client_connect_failed",
                    endpoint=endpoint,
                    attempt=attempt,
                    max_attempts=retry.max_attempts,
                    error=str(e),
                )
                if attempt < retry.max_attempts:
                    self._sleep(retry.interval_seconds)
                continue

            logger.info(
                "client_connected",
                endpoint=endpoint,
                external=external,
                attempts=attempt,
            )
            return client

        logger.error(
            "client_connect_exhausted",
            endpoint=endpoint,
            attempts=retry.max_attempts,
            error=str(last_error),
        )
        raise ConnectivityError.attempts_exhausted(endpoint, retry.max_attempts, last_error)
