"""
Schema definitions for TimeSnap.

This module defines the Pydantic models used throughout TimeSnap:
- MediaType: Tag for photo, video and voice message attachments
- Color: RGB value type used to style a capsule card
- MediaItem: One attached asset backed by a file in the media directory
- Capsule: Title, description, media and the date it unlocks

Design Decisions:
    - Models are immutable (frozen=True); changes go through model_copy
    - Timestamps are always timezone-aware (naive values are taken as UTC)
    - is_shared is stored alongside shared_with and must agree with it
"""

import re
import uuid
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from timesnap.errors import UnknownColorError


# Same pattern the share sheet has always used to accept an address
EMAIL_PATTERN = re.compile(r"[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}")

HEX_COLOR_PATTERN = re.compile(r"#?([0-9a-fA-F]{6})")


def generate_id() -> str:
    """Generate a unique ID for capsules and media items."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_valid_email(email: str) -> bool:
    """Check an address against the share sheet's email pattern."""
    return EMAIL_PATTERN.fullmatch(email) is not None


# =============================================================================
# Enums
# =============================================================================


class MediaType(str, Enum):
    """
    Kind of attachment.

    The value is the tag written to storage, so it must never change.
    """

    PHOTO = "photo"
    VIDEO = "video"
    MESSAGE = "message"

    @property
    def default_extension(self) -> str:
        """Extension used when the capture flow doesn't provide one."""
        return _DEFAULT_EXTENSIONS[self]

    @property
    def label(self) -> str:
        """Human-readable name."""
        return _LABELS[self]


_DEFAULT_EXTENSIONS = {
    MediaType.PHOTO: "jpg",
    MediaType.VIDEO: "mov",
    MediaType.MESSAGE: "m4a",
}

_LABELS = {
    MediaType.PHOTO: "Photo",
    MediaType.VIDEO: "Video",
    MediaType.MESSAGE: "Voice message",
}


# =============================================================================
# Color
# =============================================================================


class Color(BaseModel):
    """
    RGB color with components in [0, 1].

    Attributes:
        red: Red component
        green: Green component
        blue: Blue component
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    red: float = Field(..., ge=0.0, le=1.0, description="Red component")
    green: float = Field(..., ge=0.0, le=1.0, description="Green component")
    blue: float = Field(..., ge=0.0, le=1.0, description="Blue component")

    def to_hex(self) -> str:
        """Render as #rrggbb."""
        return "#{:02x}{:02x}{:02x}".format(
            round(self.red * 255),
            round(self.green * 255),
            round(self.blue * 255),
        )

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        """Parse a #rrggbb (or rrggbb) string."""
        match = HEX_COLOR_PATTERN.fullmatch(value.strip())
        if match is None:
            raise UnknownColorError(color=value, choices=sorted(COLOR_PRESETS))
        digits = match.group(1)
        return cls(
            red=int(digits[0:2], 16) / 255,
            green=int(digits[2:4], 16) / 255,
            blue=int(digits[4:6], 16) / 255,
        )

    @classmethod
    def preset(cls, name: str) -> "Color":
        """Look up one of the named card colors."""
        try:
            return COLOR_PRESETS[name.strip().lower()]
        except KeyError:
            raise UnknownColorError(color=name, choices=sorted(COLOR_PRESETS)) from None

    @classmethod
    def parse(cls, value: str) -> "Color":
        """Accept either a preset name or a hex string."""
        if value.strip().lower() in COLOR_PRESETS:
            return cls.preset(value)
        return cls.from_hex(value)


COLOR_PRESETS: dict[str, Color] = {
    "bronze": Color(red=0.8, green=0.6, blue=0.4),
    "silver": Color(red=0.7, green=0.7, blue=0.7),
    "gold": Color(red=0.9, green=0.8, blue=0.5),
    "mint": Color(red=0.6, green=0.8, blue=0.7),
    "purple": Color(red=0.7, green=0.6, blue=0.8),
    "rose": Color(red=0.8, green=0.7, blue=0.6),
    "blue": Color(red=0.6, green=0.7, blue=0.8),
    "yellow": Color(red=0.8, green=0.8, blue=0.6),
}

DEFAULT_COLOR_NAME = "bronze"


def default_color() -> Color:
    return COLOR_PRESETS[DEFAULT_COLOR_NAME]


# =============================================================================
# Capsule Models
# =============================================================================


class MediaItem(BaseModel):
    """
    One attachment of a capsule.

    The file at `url` belongs to this item while it is attached. Once the item
    is removed (or its capsule deleted) the file is an orphan and gets deleted.

    Attributes:
        id: Unique identifier
        type: Photo, video or voice message
        url: Path of the backing file in the media directory
        thumbnail_url: Optional cached thumbnail
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_id, description="Unique identifier")
    type: MediaType = Field(..., description="Attachment kind")
    url: Path = Field(..., description="Path of the backing file")
    thumbnail_url: Path | None = Field(
        default=None,
        description="Optional cached thumbnail",
    )


class Capsule(BaseModel):
    """
    A time capsule.

    Description and media stay hidden until unlock_at has passed; the title is
    always visible.

    Attributes:
        id: Unique identifier, assigned at creation
        title: Display title (never blank)
        description: Free-form text, may be empty
        unlock_at: When the content becomes visible
        include_time: Whether the time of day of unlock_at is meaningful for display
        media_items: Attachments in display order
        created_at: When the capsule was created
        color: Card color
        shared_with: Email addresses the capsule is shared with
        is_shared: True exactly when shared_with is non-empty
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_id, description="Unique identifier")
    title: str = Field(..., description="Display title")
    description: str = Field(default="", description="Free-form description")
    unlock_at: datetime = Field(..., description="When the content unlocks")
    include_time: bool = Field(
        default=False,
        description="Whether the unlock time of day is shown",
    )
    media_items: list[MediaItem] = Field(
        default_factory=list,
        description="Attachments in display order",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the capsule was created",
    )
    color: Color = Field(default_factory=default_color, description="Card color")
    shared_with: list[str] = Field(
        default_factory=list,
        description="Email addresses the capsule is shared with",
    )
    is_shared: bool = Field(default=False, description="Whether shared_with is non-empty")

    @model_validator(mode="before")
    @classmethod
    def derive_is_shared(cls, data: Any) -> Any:
        """Fill is_shared from shared_with when the caller leaves it out."""
        if isinstance(data, dict) and "is_shared" not in data:
            data = dict(data)
            data["is_shared"] = bool(data.get("shared_with"))
        return data

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Reject blank titles."""
        if not v.strip():
            msg = "Title cannot be empty"
            raise ValueError(msg)
        return v

    @field_validator("unlock_at", "created_at")
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        """Make timestamps timezone-aware."""
        return ensure_aware(v)

    @model_validator(mode="after")
    def validate_sharing(self) -> "Capsule":
        """Keep shared_with unique and is_shared consistent with it."""
        if len(set(self.shared_with)) != len(self.shared_with):
            msg = "shared_with contains duplicate addresses"
            raise ValueError(msg)
        if self.is_shared != bool(self.shared_with):
            msg = f"is_shared={self.is_shared} but shared_with has {len(self.shared_with)} entries"
            raise ValueError(msg)
        media_ids = [item.id for item in self.media_items]
        if len(set(media_ids)) != len(media_ids):
            msg = "media_items contains duplicate ids"
            raise ValueError(msg)
        return self

    # =========================================================================
    # Copy helpers
    # =========================================================================

    def with_shares(self, emails: list[str]) -> "Capsule":
        """Return a copy with a new share list and matching is_shared flag."""
        return self.model_copy(
            update={"shared_with": list(emails), "is_shared": bool(emails)}
        )

    def without_media(self, media_id: str) -> "Capsule":
        """Return a copy with one media item removed."""
        return self.model_copy(
            update={
                "media_items": [m for m in self.media_items if m.id != media_id],
            }
        )

    def find_media(self, media_id: str) -> MediaItem | None:
        """Look up an attachment by ID."""
        for item in self.media_items:
            if item.id == media_id:
                return item
        return None
