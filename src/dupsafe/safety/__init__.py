"""
Quarantine and recovery: reversible deletion with durable state and an append-only log.
"""

from .quarantine import QuarantineConfig, QuarantineManager, read_recovery_log
from .storage import RecoveryLog, StateCorruptedError

__all__ = [
    "QuarantineConfig",
    "QuarantineManager",
    "read_recovery_log",
    "RecoveryLog",
    "StateCorruptedError",
]
