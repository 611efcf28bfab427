"""
Capsule creation workflow for TimeSnap.

A capsule is never stored half-built. Media is saved to the MediaStore first,
collected on a CapsuleDraft, and only then turned into a Capsule and added to
the repository.

Two ways in:
    - CapsuleDraft: interactive editing (attach, detach, discard, commit)
    - create_capsule: one call that creates a capsule from in-memory media,
      all-or-nothing
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable

from timesnap.errors import CapsuleValidationError, MediaSaveError
from timesnap.media import MediaStore
from timesnap.repository import CapsuleRepository
from timesnap.schema import (
    Capsule,
    Color,
    MediaItem,
    MediaType,
    default_color,
    ensure_aware,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_UNLOCK_YEARS = 5


def default_unlock_at(years: int = DEFAULT_UNLOCK_YEARS, now: datetime | None = None) -> datetime:
    """Default unlock time for new capsules: `years` x 365 days from now."""
    start = ensure_aware(now) if now is not None else utc_now()
    return start + timedelta(days=365 * years)


def require_title(title: str) -> None:
    if not title.strip():
        raise CapsuleValidationError(
            field_name="title",
            message="Title cannot be empty",
            suggestion="Give the capsule a title",
        )


@dataclass
class MediaInput:
    """Raw media handed over by a capture or pick flow."""

    data: bytes
    media_type: MediaType
    extension: str | None = None


@dataclass
class CapsuleDraft:
    """
    An in-progress capsule and the media files saved for it so far.

    The draft owns its media files until commit(). Cancelling with discard()
    deletes them.

    Attributes:
        media_store: Where attachment files are saved
        title: Capsule title
        description: Capsule description
        unlock_at: Unlock time (defaults to five years ahead)
        include_time: Whether the unlock time of day is meaningful
        color: Card color
        media_items: Attachments saved so far, in display order
    """

    media_store: MediaStore
    title: str = ""
    description: str = ""
    unlock_at: datetime = field(default_factory=default_unlock_at)
    include_time: bool = False
    color: Color = field(default_factory=default_color)
    media_items: list[MediaItem] = field(default_factory=list)
    committed: bool = False

    def attach(
        self,
        data: bytes,
        media_type: MediaType,
        suggested_extension: str | None = None,
    ) -> MediaItem:
        """
        Save media and add it to the draft.

        Raises:
            MediaSaveError: If the file can't be written (nothing is attached)
        """
        self._ensure_open()
        extension = suggested_extension or media_type.default_extension
        ref = self.media_store.save(data, extension)
        item = MediaItem(type=media_type, url=ref)
        self.media_items.append(item)
        return item

    def attach_file(self, path: str | Path, media_type: MediaType) -> MediaItem:
        """
        Copy an existing file into the media store and attach it.

        Raises:
            MediaSaveError: If the source can't be read or the copy can't be written
        """
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as e:
            raise MediaSaveError(
                ref=str(source),
                underlying_error=str(e),
                message=f"Cannot read media file {source}: {e}",
            ) from e
        return self.attach(data, media_type, source.suffix or None)

    def detach(self, media_id: str) -> bool:
        """
        Remove an attachment and delete its file.

        Returns:
            True if the item was on the draft
        """
        self._ensure_open()
        for index, item in enumerate(self.media_items):
            if item.id == media_id:
                del self.media_items[index]
                self.media_store.discard(item.url)
                return True
        return False

    def discard(self) -> None:
        """Cancel the draft and delete every attached file."""
        self._ensure_open()
        for item in self.media_items:
            self.media_store.discard(item.url)
        self.media_items.clear()

    def build(self) -> Capsule:
        """
        Turn the draft into a Capsule without storing it.

        Raises:
            CapsuleValidationError: If the title is blank
        """
        require_title(self.title)
        return Capsule(
            title=self.title,
            description=self.description,
            unlock_at=self.unlock_at,
            include_time=self.include_time,
            media_items=list(self.media_items),
            color=self.color,
        )

    def commit(self, repository: CapsuleRepository) -> Capsule:
        """
        Build the capsule and add it to the repository.

        After commit the media files belong to the capsule.
        """
        self._ensure_open()
        capsule = self.build()
        repository.add(capsule)
        self.committed = True
        return capsule

    def _ensure_open(self) -> None:
        if self.committed:
            raise CapsuleValidationError(
                message="Draft was already committed",
                field_name="draft",
            )


def create_capsule(
    repository: CapsuleRepository,
    media_store: MediaStore,
    title: str,
    unlock_at: datetime,
    description: str = "",
    media: Iterable[MediaInput] = (),
    include_time: bool = False,
    color: Color | None = None,
) -> Capsule:
    """
    Create and store a capsule in one step.

    Every media input is saved first. If any save fails (for any reason), the
    files saved so far are deleted, nothing is added to the repository, and the
    error is re-raised.

    Raises:
        CapsuleValidationError: If the title is blank (checked before any file is written)
        MediaSaveError: If a media file can't be saved
    """
    draft = CapsuleDraft(
        media_store=media_store,
        title=title,
        description=description,
        unlock_at=ensure_aware(unlock_at),
        include_time=include_time,
        color=color or default_color(),
    )
    require_title(title)

    try:
        for item in media:
            draft.attach(item.data, item.media_type, item.extension)
    except BaseException:
        logger.warning(
            "Capsule %r not created: media save failed, removing %d saved file(s)",
            title,
            len(draft.media_items),
        )
        draft.discard()
        raise

    return draft.commit(repository)
