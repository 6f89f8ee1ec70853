"""
Lifecycle policy reconciliation.

For every category the stored policy is fetched and compared with the
desired one on four fields: rollover max size, rollover max age, delete
min age and whether rolled-over indices become read-only. A missing policy
is created; any difference replaces the whole document; an identical
policy is left untouched so repeated passes issue no writes.

Reconciliation is not transactional. An error stops the pass at the
failing category and policies written before it stay in place; the next
pass picks up from the remote state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from logstore_lifecycle.exceptions import NotFoundError
from logstore_lifecycle.logging import get_logger
from logstore_lifecycle.storage.policy import LifecyclePolicy, synthesize

if TYPE_CHECKING:
    from collections.abc import Mapping

    from logstore_lifecycle.client import LogStoreClient
    from logstore_lifecycle.storage.budget import LogCategory, PolicyDetail

logger = get_logger(__name__)


class PolicyAction(str, Enum):
    """What a reconciliation pass did with one policy."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class PolicyChange:
    """Outcome for a single category."""

    category: LogCategory
    action: PolicyAction
    desired: PolicyDetail
    observed: PolicyDetail | None = None

    @property
    def policy_name(self) -> str:
        return self.category.policy_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy": self.policy_name,
            "action": self.action.value,
            "desired": self.desired.to_dict(),
            "observed": self.observed.to_dict() if self.observed else None,
        }


@dataclass
class PolicyReconcileResult:
    """Result of reconciling all lifecycle policies."""

    changes: list[PolicyChange] = field(default_factory=list)
    dry_run: bool = False
    duration_seconds: float = 0.0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None

    def _names(self, action: PolicyAction) -> list[str]:
        return [c.policy_name for c in self.changes if c.action is action]

    @property
    def created(self) -> list[str]:
        return self._names(PolicyAction.CREATED)

    @property
    def updated(self) -> list[str]:
        return self._names(PolicyAction.UPDATED)

    @property
    def unchanged(self) -> list[str]:
        return self._names(PolicyAction.UNCHANGED)

    @property
    def writes(self) -> int:
        """Number of policies that were (or in dry-run would be) written."""
        return len(self.created) + len(self.updated)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "writes": self.writes,
            "dry_run": self.dry_run,
            "duration_seconds": round(self.duration_seconds, 3),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }


class PolicyReconciler:
    """Brings the store's lifecycle policies in line with the planned thresholds."""

    def __init__(self, client: LogStoreClient, dry_run: bool = False) -> None:
        """
        Initialize the reconciler.

        Args:
            client: Store client used for fetches and writes.
            dry_run: Classify every policy without writing anything.
        """
        self._client = client
        self._dry_run = dry_run

    def reconcile_category(
        self,
        category: LogCategory,
        desired: PolicyDetail,
        timeout: float | None = None,
    ) -> PolicyChange:
        """
        Reconcile the policy of one category.

        Raises:
            RemoteAPIError: If fetching or writing the policy fails.
        """
        name = category.policy_name
        try:
            stored = self._client.get_lifecycle_policy(name, timeout=timeout)
        except NotFoundError:
            self._apply(name, desired, timeout)
            return PolicyChange(category=category, action=PolicyAction.CREATED, desired=desired)

        observed = LifecyclePolicy.from_observed(stored).detail()
        if observed == desired:
            logger.debug("policy_unchanged", policy=name)
            return PolicyChange(
                category=category,
                action=PolicyAction.UNCHANGED,
                desired=desired,
                observed=observed,
            )

        logger.info(
            "policy_drift_detected",
            policy=name,
            desired=desired.to_dict(),
            observed=observed.to_dict(),
        )
        self._apply(name, desired, timeout)
        return PolicyChange(
            category=category,
            action=PolicyAction.UPDATED,
            desired=desired,
            observed=observed,
        )

    def reconcile(
        self,
        details: Mapping[LogCategory, PolicyDetail],
        timeout: float | None = None,
    ) -> PolicyReconcileResult:
        """
        Reconcile every category in ``details``, in order.

        Raises:
            RemoteAPIError: On the first category whose fetch or write fails.
        """
        start = time.perf_counter()
        result = PolicyReconcileResult(dry_run=self._dry_run)

        for category, desired in details.items():
            try:
                change = self.reconcile_category(category, desired, timeout=timeout)
            except Exception as e:
                logger.error(
                    "policy_reconcile_failed",
                    policy=category.policy_name,
                    completed=len(result.changes),
                    error=str(e),
                )
                raise
            result.changes.append(change)

        result.end_time = datetime.now(timezone.utc)
        result.duration_seconds = time.perf_counter() - start

        logger.info("policies_reconciled", result=result.to_dict())
        return result

    def _apply(self, name: str, desired: PolicyDetail, timeout: float | None) -> None:
        if self._dry_run:
            logger.info("policy_apply_skipped", policy=name, dry_run=True)
            return

        self._client.put_lifecycle_policy(name, synthesize(desired).to_body(), timeout=timeout)
        logger.info("policy_applied", policy=name, detail=desired.to_dict())
