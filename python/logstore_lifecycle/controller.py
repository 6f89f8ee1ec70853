"""
One reconciliation pass over the log store.

The pass connects to the store, brings every lifecycle policy in line with
the configured disk size and retention, then provisions and retracts
principals. Its outcome is reported as a status the caller acts on:

- SUCCEEDED: everything is in the desired state
- WAITING: a prerequisite secret does not exist yet; try again later
- FAILED: anything else; the error is attached

Errors are never retried here. The caller re-runs the pass on its own
schedule and converges from whatever state the previous pass left behind.
"""

from __future__ import annotations

import sys
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from logstore_lifecycle.bootstrap import ConnectionBootstrapper, decode_password
from logstore_lifecycle.client import ElasticsearchClient
from logstore_lifecycle.config import Config, get_config
from logstore_lifecycle.exceptions import (
    ConfigError,
    LogStoreError,
    ResourceNotReadyError,
)
from logstore_lifecycle.logging import ensure_logging, get_logger, with_context
from logstore_lifecycle.principals import (
    Principal,
    PrincipalSynchronizer,
    dashboard_installer_principal,
    linseed_principal,
)
from logstore_lifecycle.secrets import DirectorySecretSource, SecretSource
from logstore_lifecycle.storage.budget import plan_policies, total_storage_bytes
from logstore_lifecycle.storage.reconciler import PolicyReconciler, PolicyReconcileResult

logger = get_logger(__name__)


class ReconcileStatus(str, Enum):
    SUCCEEDED = "succeeded"
    WAITING = "waiting"
    FAILED = "failed"


@dataclass
class ReconcileOutcome:
    """What a reconciliation pass achieved."""

    status: ReconcileStatus
    message: str = ""
    policies: PolicyReconcileResult | None = None
    principals_created: list[str] = field(default_factory=list)
    principals_deleted: list[str] = field(default_factory=list)
    error: LogStoreError | None = None

    @property
    def success(self) -> bool:
        return self.status is ReconcileStatus.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "status": self.status.value,
            "message": self.message,
            "policies": self.policies.to_dict() if self.policies else None,
            "principals_created": self.principals_created,
            "principals_deleted": self.principals_deleted,
            "error": self.error.to_dict() if self.error else None,
        }


class LogStorageController:
    """Runs reconciliation passes against one log store."""

    def __init__(
        self,
        config: Config | None = None,
        secrets: SecretSource | None = None,
        client_factory: Callable[..., Any] = ElasticsearchClient,
        sleep: Callable[[float], None] = time.sleep,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize the controller.

        Args:
            config: Configuration; the global configuration when omitted.
            secrets: Secret lookups; mounted secrets under
                ``config.secrets.directory`` when omitted.
            client_factory: Constructor for the store client.
            sleep: Pause used between client construction attempts.
            dry_run: Report policy changes without writing them.
        """
        self._config = config or get_config()
        self._secrets = secrets or DirectorySecretSource(self._config.secrets.directory)
        self._client_factory = client_factory
        self._sleep = sleep
        self._dry_run = dry_run

    def _ca_override(self) -> bytes | None:
        path = self._config.connection.ca_override_file
        if not path:
            return None
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise ConfigError.invalid_certificate(path, "cannot read CA override", cause=e) from e

    def builtin_principals(self) -> list[Principal]:
        """
        The store's own service principals for this cluster and tenant.

        Passwords come from the principal passwords secret, keyed by the
        formatted username.

        Raises:
            ResourceNotReadyError: If the secret does not exist yet.
            ConfigError: If a password is missing or not valid UTF-8.
        """
        store = self._config.store
        secret_name = self._config.secrets.principal_passwords
        passwords = self._secrets.get(secret_name)
        if passwords is None:
            raise ResourceNotReadyError.secret_missing(secret_name)

        principals = [
            linseed_principal(store.cluster_id, store.tenant_id),
            dashboard_installer_principal(store.cluster_id, store.tenant_id),
        ]
        for principal in principals:
            raw = passwords.get(principal.username)
            if not raw:
                raise ConfigError.invalid_credentials(
                    secret_name, f"no password for {principal.username}"
                )
            principal.password = decode_password(secret_name, raw)
        return principals

    def reconcile(
        self,
        principals: Sequence[Principal] = (),
        retired: Sequence[Principal] = (),
        builtin: bool = False,
    ) -> ReconcileOutcome:
        """
        Run one pass.

        Args:
            principals: Principals that must exist, with their roles.
            retired: Principals to remove together with their roles.
            builtin: Also provision the built-in service principals.
        """
        store = self._config.store
        timeout = self._config.connection.timeout_seconds
        outcome = ReconcileOutcome(status=ReconcileStatus.SUCCEEDED)

        with with_context(reconcile_id=uuid.uuid4().hex[:12], endpoint=store.endpoint):
            try:
                if builtin:
                    principals = [*self.builtin_principals(), *principals]

                bootstrapper = ConnectionBootstrapper(
                    self._secrets,
                    secrets_config=self._config.secrets,
                    connection_config=self._config.connection,
                    ca_override_pem=self._ca_override(),
                    client_factory=self._client_factory,
                    sleep=self._sleep,
                )
                client = bootstrapper.connect(store.endpoint, store.external)

                total = total_storage_bytes(store.storage_request)
                plan = plan_policies(total, self._config.retention)
                reconciler = PolicyReconciler(client, dry_run=self._dry_run)
                outcome.policies = reconciler.reconcile(plan, timeout=timeout)

                if not self._dry_run:
                    synchronizer = PrincipalSynchronizer(client)
                    for principal in principals:
                        synchronizer.create_principal(principal, timeout=timeout)
                        outcome.principals_created.append(principal.username)
                    for principal in retired:
                        synchronizer.delete_principal(principal, timeout=timeout)
                        outcome.principals_deleted.append(principal.username)

            except ResourceNotReadyError as e:
                outcome.status = ReconcileStatus.WAITING
                outcome.message = e.message
                outcome.error = e
                logger.info("reconcile_waiting", reason=e.message)
                return outcome
            except LogStoreError as e:
                outcome.status = ReconcileStatus.FAILED
                outcome.message = e.message
                outcome.error = e
                logger.error("reconcile_failed", error=e.to_dict())
                return outcome

            outcome.message = "log store is up to date"
            logger.info("reconcile_completed", outcome=outcome.to_dict())
            return outcome


def main() -> None:
    """Entry point: run a single reconciliation pass from configuration."""
    config = get_config()
    ensure_logging()
    outcome = LogStorageController(config).reconcile(builtin=True)
    if outcome.status is ReconcileStatus.FAILED:
        sys.exit(1)
    if outcome.status is ReconcileStatus.WAITING:
        sys.exit(3)


if __name__ == "__main__":
    main()
