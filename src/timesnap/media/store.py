"""
Media file storage for TimeSnap.

MediaStore owns the on-disk lifecycle of attachment files:
- save: write bytes under a fresh unique name in the media directory
- delete: make sure a file is gone (missing files count as success)
- discard: best-effort delete for cascades, logs instead of raising

Every file gets a UUID-based name, so concurrent saves never touch the same
path and no locking is needed.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Iterable

from timesnap.errors import MediaDeleteError, MediaSaveError

logger = logging.getLogger(__name__)


def normalize_extension(suggested_extension: str | None) -> str:
    """Turn '.JPG', 'jpg' or '' into 'jpg' / ''."""
    if not suggested_extension:
        return ""
    return suggested_extension.strip().lstrip(".").lower()


class MediaStore:
    """
    Saves and deletes media files inside one asset directory.

    Usage:
        store = MediaStore(settings.media_path)
        ref = store.save(data, "jpg")
        ...
        store.delete(ref)

    Attributes:
        root: The asset directory
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _new_path(self, extension: str) -> Path:
        name = uuid.uuid4().hex.upper()
        if extension:
            name = f"{name}.{extension}"
        return self.root / name

    def save(self, data: bytes, suggested_extension: str | None = None) -> Path:
        """
        Write data to a new uniquely named file.

        Args:
            data: File contents
            suggested_extension: Extension to keep (e.g. "jpg", ".mov")

        Returns:
            Path of the written file

        Raises:
            MediaSaveError: If the directory can't be created or the write fails
        """
        path = self._new_path(normalize_extension(suggested_extension))

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # "xb" so an existing file is never overwritten
            with path.open("xb") as f:
                f.write(data)
        except OSError as e:
            self._remove_partial(path)
            raise MediaSaveError(ref=str(path), underlying_error=str(e)) from e
        except BaseException:
            # Bad payloads fail after the file was created
            self._remove_partial(path)
            raise

        logger.debug("Saved media file %s (%d bytes)", path.name, len(data))
        return path

    def _remove_partial(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove partial media file %s", path)

    def contains(self, ref: str | Path) -> bool:
        """Whether ref points inside the asset directory."""
        try:
            Path(ref).resolve().relative_to(self.root.resolve())
        except ValueError:
            return False
        return True

    def delete(self, ref: str | Path) -> None:
        """
        Ensure the file behind ref is absent.

        Deleting a file that doesn't exist is not an error.

        Raises:
            MediaDeleteError: If ref is outside the asset directory or the
                              file exists but can't be removed
        """
        path = Path(ref)
        if not self.contains(path):
            raise MediaDeleteError(
                ref=str(path),
                underlying_error="path is outside the media directory",
            )

        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise MediaDeleteError(ref=str(path), underlying_error=str(e)) from e

        logger.debug("Deleted media file %s", path.name)

    def discard(self, ref: str | Path) -> bool:
        """
        Best-effort delete used when a capsule or draft is cleaned up.

        Returns:
            True if the file is gone, False if the delete failed (logged)
        """
        try:
            self.delete(ref)
        except MediaDeleteError as e:
            logger.warning(
                "Media cleanup failed for %s: %s",
                e.ref,
                e.underlying_error,
                extra={"ref": e.ref, "error_code": e.code},
            )
            return False
        return True

    def exists(self, ref: str | Path) -> bool:
        return Path(ref).is_file()

    def list_assets(self) -> list[Path]:
        """All files currently in the asset directory, sorted by name."""
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.iterdir() if p.is_file())

    def find_orphans(self, referenced: Iterable[str | Path]) -> list[Path]:
        """
        Files in the asset directory that no capsule refers to.

        Args:
            referenced: Paths still owned by media items
        """
        keep = {os.path.normcase(Path(p).resolve()) for p in referenced}
        return [
            p for p in self.list_assets()
            if os.path.normcase(p.resolve()) not in keep
        ]

    def sweep_orphans(self, referenced: Iterable[str | Path]) -> list[Path]:
        """
        Delete unreferenced files.

        Returns:
            The files that were removed
        """
        removed = []
        for path in self.find_orphans(referenced):
            if self.discard(path):
                removed.append(path)
        if removed:
            logger.info("Removed %d orphaned media file(s)", len(removed))
        return removed
