"""
Log store lifecycle manager.

This package keeps a multi-category time-series log store in shape:
- Disk budgeting and rollover/delete thresholds per log category
- Lifecycle policy synthesis and idempotent reconciliation
- Authenticated client bootstrap from mounted secrets
- Provisioning and retraction of principals and their roles
"""

__version__ = "0.1.0"
__all__ = [
    "bootstrap",
    "client",
    "config",
    "controller",
    "exceptions",
    "logging",
    "principals",
    "quantity",
    "secrets",
    "storage",
]
