"""
Index lifecycle management for the log store.

- budget: disk allocation and rollover/delete thresholds per log category
- policy: typed lifecycle policy documents
- reconciler: fetch, compare and apply policies against the store
"""

from logstore_lifecycle.storage.budget import (
    DEFAULT_MAX_INDEX_SIZE_BYTES,
    DEFAULT_STORAGE_BYTES,
    RETENTION_FACTOR,
    LogCategory,
    PolicyDetail,
    build_policy_detail,
    category_share,
    delete_age,
    format_bytes,
    plan_policies,
    rollover_age,
    rollover_size,
    total_storage_bytes,
)
from logstore_lifecycle.storage.policy import LifecyclePolicy, synthesize
from logstore_lifecycle.storage.reconciler import (
    PolicyAction,
    PolicyChange,
    PolicyReconciler,
    PolicyReconcileResult,
)

__all__ = [
    "DEFAULT_MAX_INDEX_SIZE_BYTES",
    "DEFAULT_STORAGE_BYTES",
    "RETENTION_FACTOR",
    "LifecyclePolicy",
    "LogCategory",
    "PolicyAction",
    "PolicyChange",
    "PolicyDetail",
    "PolicyReconcileResult",
    "PolicyReconciler",
    "build_policy_detail",
    "category_share",
    "delete_age",
    "format_bytes",
    "plan_policies",
    "rollover_age",
    "rollover_size",
    "synthesize",
    "total_storage_bytes",
]
