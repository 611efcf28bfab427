"""
Media storage for TimeSnap.

Attachment files live in a single media directory under generated unique
names. MediaStore saves and deletes them independently of any capsule.
"""

from timesnap.media.store import MediaStore, normalize_extension

__all__ = [
    "MediaStore",
    "normalize_extension",
]
