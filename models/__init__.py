"""
AgriTrace Models Package
"""

from .records import (
    # Enums
    UserRole,
    BatchStatus,

    # Records
    UserRecord,
    BatchHistoryEntry,
    BatchRecord,
)

__all__ = [
    'UserRole',
    'BatchStatus',
    'UserRecord',
    'BatchHistoryEntry',
    'BatchRecord',
]
