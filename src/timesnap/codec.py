"""
Codec for the capsule collection.

The whole collection is stored as one blob: a UTF-8 JSON envelope

    {"format": "timesnap.capsules", "version": 1, "capsules": [...]}

Each capsule record uses the field names the app has always written
(unlockDate, includeTime, mediaItems, ...). The color is kept as three
separate numeric fields (colorRed, colorGreen, colorBlue).

Blobs written before the envelope existed are a bare JSON array of capsule
records. They decode as version 0.

Decoding is all-or-nothing: one bad record fails the whole collection.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from timesnap.errors import DecodeError, EncodeError, UnsupportedVersionError
from timesnap.schema import Capsule, Color, MediaItem, MediaType, ensure_aware

FORMAT_NAME = "timesnap.capsules"
FORMAT_VERSION = 1
LEGACY_VERSION = 0

_CAPSULE_FIELDS = (
    "id",
    "title",
    "description",
    "unlockDate",
    "includeTime",
    "mediaItems",
    "createdAt",
    "colorRed",
    "colorGreen",
    "colorBlue",
    "sharedWith",
    "isShared",
)


# =============================================================================
# Field codecs
# =============================================================================


def encode_timestamp(value: datetime) -> str:
    """ISO 8601 with offset and microseconds, so values round-trip exactly."""
    return ensure_aware(value).isoformat(timespec="microseconds")


def decode_timestamp(value: Any) -> datetime:
    if not isinstance(value, str):
        msg = f"expected ISO timestamp string, got {type(value).__name__}"
        raise ValueError(msg)
    return ensure_aware(datetime.fromisoformat(value))


def encode_color(color: Color) -> dict[str, float]:
    """Split a color into its three stored fields."""
    return {
        "colorRed": color.red,
        "colorGreen": color.green,
        "colorBlue": color.blue,
    }


def decode_color(record: dict[str, Any]) -> Color:
    """Rebuild a color from its three stored fields."""
    return Color(
        red=record["colorRed"],
        green=record["colorGreen"],
        blue=record["colorBlue"],
    )


def encode_media_item(item: MediaItem) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": item.id,
        "type": item.type.value,
        "url": str(item.url),
    }
    if item.thumbnail_url is not None:
        record["thumbnailURL"] = str(item.thumbnail_url)
    return record


def decode_media_item(record: Any) -> MediaItem:
    if not isinstance(record, dict):
        msg = "media item must be an object"
        raise ValueError(msg)
    thumbnail = record.get("thumbnailURL")
    return MediaItem(
        id=record["id"],
        type=MediaType(record["type"]),
        url=Path(record["url"]),
        thumbnail_url=Path(thumbnail) if thumbnail else None,
    )


def encode_capsule(capsule: Capsule) -> dict[str, Any]:
    """Convert a capsule into its stored record."""
    return {
        "id": capsule.id,
        "title": capsule.title,
        "description": capsule.description,
        "unlockDate": encode_timestamp(capsule.unlock_at),
        "includeTime": capsule.include_time,
        "mediaItems": [encode_media_item(m) for m in capsule.media_items],
        "createdAt": encode_timestamp(capsule.created_at),
        **encode_color(capsule.color),
        "sharedWith": list(capsule.shared_with),
        "isShared": capsule.is_shared,
    }


def decode_capsule(record: Any) -> Capsule:
    """
    Convert a stored record back into a capsule.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a field has the wrong shape (includes ValidationError)
    """
    if not isinstance(record, dict):
        msg = "capsule record must be an object"
        raise ValueError(msg)

    missing = [name for name in _CAPSULE_FIELDS if name not in record]
    if missing:
        raise KeyError(", ".join(missing))

    media = record["mediaItems"]
    shared = record["sharedWith"]
    if not isinstance(media, list) or not isinstance(shared, list):
        msg = "mediaItems and sharedWith must be arrays"
        raise ValueError(msg)

    return Capsule(
        id=record["id"],
        title=record["title"],
        description=record["description"],
        unlock_at=decode_timestamp(record["unlockDate"]),
        include_time=record["includeTime"],
        media_items=[decode_media_item(m) for m in media],
        created_at=decode_timestamp(record["createdAt"]),
        color=decode_color(record),
        shared_with=shared,
        is_shared=record["isShared"],
    )


# =============================================================================
# Collection codec
# =============================================================================


def encode_capsules(capsules: Iterable[Capsule]) -> bytes:
    """
    Serialize the entire capsule collection to one blob.

    Raises:
        EncodeError: If the collection cannot be serialized
    """
    try:
        envelope = {
            "format": FORMAT_NAME,
            "version": FORMAT_VERSION,
            "capsules": [encode_capsule(c) for c in capsules],
        }
        return json.dumps(envelope, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodeError(underlying_error=str(e)) from e


def decode_capsules(blob: bytes | str) -> list[Capsule]:
    """
    Deserialize a blob written by encode_capsules (or the legacy bare array).

    Returns:
        Capsules in stored order

    Raises:
        DecodeError: If the blob or any record is malformed
        UnsupportedVersionError: If the blob is from a newer format version
    """
    try:
        text = blob.decode("utf-8") if isinstance(blob, bytes) else blob
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(reason=f"not valid JSON: {e}") from e

    records = _unwrap(data)

    capsules = []
    for index, record in enumerate(records):
        try:
            capsules.append(decode_capsule(record))
        except KeyError as e:
            raise DecodeError(
                record_index=index,
                reason=f"missing field(s): {e.args[0] if e.args else e}",
            ) from e
        except (ValidationError, ValueError, TypeError) as e:
            raise DecodeError(record_index=index, reason=str(e)) from e
    return capsules


def detect_version(blob: bytes | str) -> int | None:
    """Return the format version of a blob, or None if it isn't readable."""
    try:
        text = blob.decode("utf-8") if isinstance(blob, bytes) else blob
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if isinstance(data, list):
        return LEGACY_VERSION
    if isinstance(data, dict) and isinstance(data.get("version"), int):
        return data["version"]
    return None


def _unwrap(data: Any) -> list[Any]:
    """Pull the list of capsule records out of a decoded envelope."""
    if isinstance(data, list):
        return data

    if not isinstance(data, dict) or data.get("format") != FORMAT_NAME:
        raise DecodeError(reason="unrecognized envelope")

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise DecodeError(reason="envelope version must be an integer")
    if version > FORMAT_VERSION:
        raise UnsupportedVersionError(version=version, max_supported=FORMAT_VERSION)

    records = data.get("capsules")
    if not isinstance(records, list):
        raise DecodeError(reason="envelope has no capsule list")
    return records
