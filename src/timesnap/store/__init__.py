"""
Storage module for TimeSnap.

This module provides SQLite-based key-value persistence. The capsule
collection is stored as a single blob in one named slot.

Tables:
    - slots: key, blob and last write time
    - schema_version: table layout version for migrations
"""

from timesnap.store.db import SlotStore

__all__ = [
    "SlotStore",
]
