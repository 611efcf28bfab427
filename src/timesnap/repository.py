"""
Capsule repository for TimeSnap.

The CapsuleRepository is the single owner of the capsule collection for a
session. It coordinates between:
- SlotStore: Durable home of the encoded collection
- Codec: Turns the collection into one blob and back
- MediaStore: Deletes attachment files when their capsule goes away

Mutation Flow:
    1. Apply the change to the in-memory list
    2. Encode the entire collection and write it to the slot
    3. Notify subscribers

A failed write never undoes step 1. It is reported on the MutationResult,
logged, and kept as last_persistence_error.

Load Policy:
    - Missing slot: start empty
    - Undecodable slot: copy the blob to a recovery slot, log, start empty
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from timesnap.codec import decode_capsules, encode_capsules
from timesnap.errors import (
    DecodeError,
    EncodeError,
    InvalidEmailError,
    StorageError,
    TimeSnapError,
)
from timesnap.media import MediaStore
from timesnap.schema import Capsule, MediaItem, is_valid_email
from timesnap.store import SlotStore

logger = logging.getLogger(__name__)

DEFAULT_SLOT_KEY = "timeCapsules"


# =============================================================================
# Results and events
# =============================================================================


class MutationStatus(str, Enum):
    """What a mutating call did to the collection."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"


@dataclass
class MutationResult:
    """
    Outcome of a mutating repository call.

    Attributes:
        status: Whether the change was applied, was a no-op, or missed its target
        capsule_id: The capsule the call was about
        persisted: Whether the collection on disk reflects the change
        error: The save error, when the change is in memory only
    """

    status: MutationStatus
    capsule_id: str
    persisted: bool = True
    error: TimeSnapError | None = None

    @property
    def applied(self) -> bool:
        return self.status == MutationStatus.APPLIED

    @property
    def found(self) -> bool:
        return self.status != MutationStatus.NOT_FOUND


class EventKind(str, Enum):
    """Kind of change announced to subscribers."""

    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"


@dataclass(frozen=True)
class RepositoryEvent:
    """A change to the collection."""

    kind: EventKind
    capsule_id: str
    persisted: bool = True


Listener = Callable[[RepositoryEvent], None]


# =============================================================================
# Repository
# =============================================================================


class CapsuleRepository:
    """
    The collection of capsules, persisted to one slot after every change.

    Usage:
        repo = CapsuleRepository(SlotStore(settings.db_path), MediaStore(settings.media_path))
        repo.add(capsule)
        for capsule in repo.list():
            ...
        repo.add_share(capsule.id, "friend@example.com")
        repo.remove(capsule.id)

    Attributes:
        slots: Durable key-value store
        media: Store used to delete attachment files
        key: Name of the slot holding the collection
        load_error: Decode failure hit while loading, if any
        recovery_key: Slot the corrupt blob was copied to, if any
        last_persistence_error: Most recent save failure, cleared by the next successful save
    """

    def __init__(
        self,
        slots: SlotStore,
        media: MediaStore,
        key: str = DEFAULT_SLOT_KEY,
    ) -> None:
        self.slots = slots
        self.media = media
        self.key = key
        self.load_error: DecodeError | None = None
        self.recovery_key: str | None = None
        self.last_persistence_error: TimeSnapError | None = None
        self._capsules: list[Capsule] = []
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()
        self._load()

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self) -> list[Capsule]:
        """All capsules in the order they were added."""
        with self._lock:
            return [c.model_copy(deep=True) for c in self._capsules]

    def get(self, capsule_id: str) -> Capsule | None:
        """Look up a capsule by ID."""
        with self._lock:
            index = self._index_of(capsule_id)
            if index is None:
                return None
            return self._capsules[index].model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._capsules)

    def __contains__(self, capsule_id: object) -> bool:
        if not isinstance(capsule_id, str):
            return False
        with self._lock:
            return self._index_of(capsule_id) is not None

    def referenced_media(self) -> set[Path]:
        """Paths of every file still owned by a capsule."""
        with self._lock:
            return {item.url for c in self._capsules for item in c.media_items}

    def missing_media(self) -> list[tuple[str, MediaItem]]:
        """
        Media items whose backing file is gone.

        Returns:
            (capsule_id, media_item) pairs in collection order
        """
        with self._lock:
            return [
                (c.id, item)
                for c in self._capsules
                for item in c.media_items
                if not self.media.exists(item.url)
            ]

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, capsule: Capsule) -> MutationResult:
        """Append a capsule and persist."""
        with self._lock:
            # Stored copy, so the caller's lists can't change the collection
            self._capsules.append(capsule.model_copy(deep=True))
            return self._commit(EventKind.ADDED, capsule.id)

    def remove(self, capsule_id: str) -> MutationResult:
        """
        Delete a capsule and every media file it owns.

        Removing an unknown ID is a no-op with status NOT_FOUND.
        """
        with self._lock:
            index = self._index_of(capsule_id)
            if index is None:
                logger.debug("remove: capsule %s not found", capsule_id)
                return MutationResult(MutationStatus.NOT_FOUND, capsule_id)

            removed = self._capsules.pop(index)
            for item in removed.media_items:
                self.media.discard(item.url)
            return self._commit(EventKind.REMOVED, capsule_id)

    def add_share(self, capsule_id: str, email: str) -> MutationResult:
        """
        Share a capsule with an email address.

        Adding an address that is already present changes nothing.

        Raises:
            InvalidEmailError: If email is not a valid address
        """
        email = email.strip()
        if not is_valid_email(email):
            raise InvalidEmailError(email=email, capsule_id=capsule_id)

        with self._lock:
            index = self._index_of(capsule_id)
            if index is None:
                return MutationResult(MutationStatus.NOT_FOUND, capsule_id)

            capsule = self._capsules[index]
            if email in capsule.shared_with:
                return MutationResult(MutationStatus.UNCHANGED, capsule_id)

            self._capsules[index] = capsule.with_shares([*capsule.shared_with, email])
            return self._commit(EventKind.UPDATED, capsule_id)

    def remove_share(self, capsule_id: str, email: str) -> MutationResult:
        """Stop sharing a capsule with an email address."""
        email = email.strip()
        with self._lock:
            index = self._index_of(capsule_id)
            if index is None:
                return MutationResult(MutationStatus.NOT_FOUND, capsule_id)

            capsule = self._capsules[index]
            if email not in capsule.shared_with:
                return MutationResult(MutationStatus.UNCHANGED, capsule_id)

            remaining = [e for e in capsule.shared_with if e != email]
            self._capsules[index] = capsule.with_shares(remaining)
            return self._commit(EventKind.UPDATED, capsule_id)

    def remove_media(self, capsule_id: str, media_id: str) -> MutationResult:
        """Detach one media item from a capsule and delete its file."""
        with self._lock:
            index = self._index_of(capsule_id)
            if index is None:
                return MutationResult(MutationStatus.NOT_FOUND, capsule_id)

            capsule = self._capsules[index]
            item = capsule.find_media(media_id)
            if item is None:
                return MutationResult(MutationStatus.UNCHANGED, capsule_id)

            self._capsules[index] = capsule.without_media(media_id)
            self.media.discard(item.url)
            return self._commit(EventKind.UPDATED, capsule_id)

    # =========================================================================
    # Change notification
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback for applied changes.

        Returns:
            A function that unsubscribes the callback
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: RepositoryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Repository listener failed for %s", event)

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self) -> None:
        """
        Write the entire collection to the slot.

        Raises:
            EncodeError: If the collection can't be encoded
            StorageError: If the slot write fails
        """
        with self._lock:
            blob = encode_capsules(self._capsules)
            self.slots.put(self.key, blob)

    def _commit(self, kind: EventKind, capsule_id: str) -> MutationResult:
        """Persist after an applied change and tell subscribers."""
        result = MutationResult(MutationStatus.APPLIED, capsule_id)
        try:
            self.save()
        except (EncodeError, StorageError) as e:
            logger.warning(
                "Change to capsule %s kept in memory but not saved: %s",
                capsule_id,
                e.message,
                extra={"capsule_id": capsule_id, "error_code": e.code},
            )
            self.last_persistence_error = e
            result.persisted = False
            result.error = e
        else:
            self.last_persistence_error = None

        self._notify(RepositoryEvent(kind, capsule_id, persisted=result.persisted))
        return result

    def _load(self) -> None:
        blob = self.slots.get(self.key)
        if blob is None:
            logger.debug("No capsules stored under %r yet", self.key)
            return

        try:
            self._capsules = decode_capsules(blob)
        except DecodeError as e:
            self._capsules = []
            self.load_error = e
            self.recovery_key = self._preserve_corrupt(blob)
            logger.warning(
                "Stored capsules could not be decoded (%s); starting empty, original kept in %r",
                e.message,
                self.recovery_key,
                extra={"error_code": e.code, "recovery_key": self.recovery_key},
            )
            return

        logger.debug("Loaded %d capsule(s) from %r", len(self._capsules), self.key)

    def _preserve_corrupt(self, blob: bytes) -> str:
        """
        Copy an unreadable blob aside so it is never silently lost.

        The recovery slot is named after the blob's content hash, so opening
        the same corrupt collection again reuses the existing copy.
        """
        digest = hashlib.sha256(blob).hexdigest()[:16]
        recovery_key = f"{self.key}.corrupt.{digest}"
        if self.slots.get(recovery_key) == blob:
            logger.debug("Corrupt blob already preserved in %r", recovery_key)
        else:
            self.slots.put(recovery_key, blob)
        return recovery_key

    def recovery_slots(self) -> list[str]:
        """Slots holding blobs that failed to decode in earlier sessions."""
        return self.slots.keys(prefix=f"{self.key}.corrupt.")

    def _index_of(self, capsule_id: str) -> int | None:
        for index, capsule in enumerate(self._capsules):
            if capsule.id == capsule_id:
                return index
        return None
