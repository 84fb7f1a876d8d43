"""
Department queue package.
"""

from .store import QueueStore, InMemoryQueueStore
from .locks import LaneLockRegistry
from .manager import DepartmentQueueManager, create_entry_id, renumber

__all__ = [
    "QueueStore",
    "InMemoryQueueStore",
    "LaneLockRegistry",
    "DepartmentQueueManager",
    "create_entry_id",
    "renumber"
]
