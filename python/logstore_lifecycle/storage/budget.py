"""
Storage budget planner.

Splits the store's disk between the time-series log categories and derives
rollover and delete thresholds for each of them:

- 70% of the disk goes to the major categories (flows, dns, bgp, l7),
  split 85/5/5/5 between them.
- 10% of the disk is shared evenly by the six minor categories.
- The remaining 20% is headroom and is never allocated.

A category rolls over ``retention_factor`` times within its retention
window so older indices turn read-only well before they are deleted.
Everything here is pure computation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from logstore_lifecycle.quantity import GIB, parse_quantity

if TYPE_CHECKING:
    from logstore_lifecycle.config import RetentionConfig

RETENTION_FACTOR = 4
DEFAULT_MAX_INDEX_SIZE_BYTES = 30 * GIB
DEFAULT_STORAGE_BYTES = 10 * GIB

MAJOR_SHARE = 0.7
MINOR_SHARE = 0.1
MINOR_CATEGORY_COUNT = 6

# Retention for categories the user cannot configure
L7_RETENTION_DAYS = 1
BENCHMARK_RETENTION_DAYS = 91
EVENTS_RETENTION_DAYS = 91

# Fallbacks for configurable categories left unset
DEFAULT_RETENTION_DAYS = {
    "flows": 8,
    "dns_logs": 8,
    "bgp_logs": 8,
    "audit_reports": 91,
    "snapshots": 91,
    "compliance_reports": 91,
}


class LogCategory(str, Enum):
    """Time-series index families managed by a lifecycle policy."""

    FLOWS = "tigera_secure_ee_flows"
    DNS = "tigera_secure_ee_dns"
    BGP = "tigera_secure_ee_bgp"
    L7 = "tigera_secure_ee_l7"
    AUDIT_EE = "tigera_secure_ee_audit_ee"
    AUDIT_KUBE = "tigera_secure_ee_audit_kube"
    SNAPSHOTS = "tigera_secure_ee_snapshots"
    COMPLIANCE_REPORTS = "tigera_secure_ee_compliance_reports"
    BENCHMARK_RESULTS = "tigera_secure_ee_benchmark_results"
    EVENTS = "tigera_secure_ee_events"

    @property
    def policy_name(self) -> str:
        """Name of the lifecycle policy attached to this category."""
        return f"{self.value}_policy"

    @property
    def is_major(self) -> bool:
        return self in _MAJOR_CATEGORY_SHARES


_MAJOR_CATEGORY_SHARES: dict[LogCategory, float] = {
    LogCategory.FLOWS: 0.85,
    LogCategory.DNS: 0.05,
    LogCategory.BGP: 0.05,
    LogCategory.L7: 0.05,
}


def category_share(category: LogCategory) -> tuple[float, float]:
    """
    Return the (group share, share within group) pair for a category.

    Shares are fixed constants and do not depend on which categories are
    actually in use.
    """
    if category.is_major:
        return MAJOR_SHARE, _MAJOR_CATEGORY_SHARES[category]
    return MINOR_SHARE, 1 / MINOR_CATEGORY_COUNT


@dataclass(frozen=True)
class PolicyDetail:
    """The four thresholds that define a category's lifecycle policy."""

    rollover_max_size: str
    rollover_max_age: str
    delete_min_age: str
    read_only_after_rollover: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "rollover_max_size": self.rollover_max_size,
            "rollover_max_age": self.rollover_max_age,
            "delete_min_age": self.delete_min_age,
            "read_only_after_rollover": self.read_only_after_rollover,
        }


def rollover_size(
    total: int,
    major_or_minor_share: float,
    share: float,
    retention_factor: int = RETENTION_FACTOR,
    cap_bytes: int = DEFAULT_MAX_INDEX_SIZE_BYTES,
) -> int:
    """
    Size in bytes at which an index of a category rolls over.

    This is the category's slice of the disk divided by the retention
    factor, capped at the largest shard size the store handles well.
    """
    size = int(total * major_or_minor_share * share / retention_factor)
    return min(size, cap_bytes)


def format_bytes(size: int) -> str:
    """Render a byte count the way the store expects it ("1234b")."""
    return f"{size}b"


def rollover_age(retention_days: int, factor: int = RETENTION_FACTOR) -> str:
    """
    Maximum age of an index before it rolls over.

    A zero or negative retention rolls over hourly instead of continuously.
    Retention shorter than the factor rolls over daily. Otherwise the
    retention is divided by the factor, dropping any remainder.
    """
    if retention_days <= 0:
        return "1h"
    if retention_days < factor:
        return "1d"
    return f"{retention_days // factor}d"


def delete_age(retention_days: int) -> str:
    """
    Minimum age before an index is deleted.

    Zero and negative retention are passed through unchanged ("0d").
    """
    return f"{retention_days}d"


def total_storage_bytes(storage_request: str | None) -> int:
    """Total bytes available to the store, falling back to the default disk size."""
    if not storage_request:
        return DEFAULT_STORAGE_BYTES
    return parse_quantity(storage_request)


def build_policy_detail(
    total: int,
    major_or_minor_share: float,
    share: float,
    retention_days: int,
    read_only_after_rollover: bool = True,
) -> PolicyDetail:
    """Compute the thresholds of one category."""
    return PolicyDetail(
        rollover_max_size=format_bytes(rollover_size(total, major_or_minor_share, share)),
        rollover_max_age=rollover_age(retention_days),
        delete_min_age=delete_age(retention_days),
        read_only_after_rollover=read_only_after_rollover,
    )


def _retention_days(retention: RetentionConfig | None, field_name: str) -> int:
    value = getattr(retention, field_name, None) if retention is not None else None
    if value is None:
        return DEFAULT_RETENTION_DAYS[field_name]
    return int(value)


def category_retention(category: LogCategory, retention: RetentionConfig | None) -> int:
    """Retention in days that applies to a category."""
    if category is LogCategory.FLOWS:
        return _retention_days(retention, "flows")
    if category is LogCategory.DNS:
        return _retention_days(retention, "dns_logs")
    if category is LogCategory.BGP:
        return _retention_days(retention, "bgp_logs")
    if category in (LogCategory.AUDIT_EE, LogCategory.AUDIT_KUBE):
        return _retention_days(retention, "audit_reports")
    if category is LogCategory.SNAPSHOTS:
        return _retention_days(retention, "snapshots")
    if category is LogCategory.COMPLIANCE_REPORTS:
        return _retention_days(retention, "compliance_reports")
    if category is LogCategory.L7:
        return L7_RETENTION_DAYS
    if category is LogCategory.BENCHMARK_RESULTS:
        return BENCHMARK_RETENTION_DAYS
    return EVENTS_RETENTION_DAYS


def plan_policies(
    total: int, retention: RetentionConfig | None = None
) -> dict[LogCategory, PolicyDetail]:
    """
    Compute the policy thresholds of every category.

    Events are the only category left writable after rollover.
    """
    plan: dict[LogCategory, PolicyDetail] = {}
    for category in LogCategory:
        group_share, share = category_share(category)
        plan[category] = build_policy_detail(
            total,
            group_share,
            share,
            category_retention(category, retention),
            read_only_after_rollover=category is not LogCategory.EVENTS,
        )
    return plan
