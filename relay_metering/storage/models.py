"""
Data models for storage layer.

Defines the on-disk entities of the catalog store.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass(frozen=True)
class StoredBackup:
    """A catalog backup file kept alongside the live catalog.

    Backups are only ever removed by an explicit operator action.
    """
    name: str
    path: Path
    created_at: datetime
