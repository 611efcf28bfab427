"""
Pytest configuration and fixtures for TimeSnap tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest

from timesnap.media import MediaStore
from timesnap.policy import UnlockPolicy
from timesnap.repository import CapsuleRepository
from timesnap.schema import Capsule, MediaItem, MediaType
from timesnap.store import SlotStore

FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


class FakeClock:
    """A clock tests can move forward by hand."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real TIMESNAP_HOME."""
    monkeypatch.delenv("TIMESNAP_HOME", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def slot_store() -> Generator[SlotStore, None, None]:
    """In-memory slot store."""
    store = SlotStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def media_store(temp_dir: Path) -> MediaStore:
    """Media store rooted in a temporary directory."""
    return MediaStore(temp_dir / "media")


@pytest.fixture
def repository(slot_store: SlotStore, media_store: MediaStore) -> CapsuleRepository:
    """Empty repository over in-memory slots."""
    return CapsuleRepository(slot_store, media_store)


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def policy(clock: FakeClock) -> UnlockPolicy:
    """Unlock policy driven by the fake clock."""
    return UnlockPolicy(clock=clock)


@pytest.fixture
def locked_capsule() -> Capsule:
    """Capsule that unlocks one day after FIXED_NOW."""
    return Capsule(
        title="Letter to future me",
        description="Open on your birthday",
        unlock_at=FIXED_NOW + timedelta(days=1),
        created_at=FIXED_NOW - timedelta(days=30),
    )


@pytest.fixture
def unlocked_capsule() -> Capsule:
    """Capsule that unlocked one day before FIXED_NOW."""
    return Capsule(
        title="Summer 2025",
        description="Beach photos",
        unlock_at=FIXED_NOW - timedelta(days=1),
        created_at=FIXED_NOW - timedelta(days=400),
        shared_with=["friend@example.com"],
    )


@pytest.fixture
def capsule_with_media(media_store: MediaStore) -> Capsule:
    """Capsule owning two real files in the media store."""
    photo = media_store.save(b"\xff\xd8photo", "jpg")
    voice = media_store.save(b"voice", "m4a")
    return Capsule(
        title="With media",
        unlock_at=FIXED_NOW + timedelta(days=365),
        media_items=[
            MediaItem(type=MediaType.PHOTO, url=photo),
            MediaItem(type=MediaType.MESSAGE, url=voice),
        ],
    )
