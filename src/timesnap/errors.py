"""
Exception hierarchy for TimeSnap.

All TimeSnap exceptions inherit from TimeSnapError, allowing callers to catch
all TimeSnap-specific exceptions with a single except clause.

Exception Categories:
    - MediaError: Saving or deleting a media file failed
    - CodecError: The capsule collection could not be encoded or decoded
    - CapsuleValidationError: A capsule field is invalid
    - ConfigError: Settings could not be loaded
    - StorageError: Slot database operation failed

Every error carries a numeric code, a message, an optional suggestion and a
context dict, so it can be printed for humans or serialized for tooling.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Media errors: 1xxx
ERROR_MEDIA_SAVE = 1001
ERROR_MEDIA_DELETE = 1002

# Codec errors: 2xxx
ERROR_DECODE = 2001
ERROR_UNSUPPORTED_VERSION = 2002
ERROR_ENCODE = 2003

# Capsule errors: 3xxx
ERROR_CAPSULE_INVALID = 3001
ERROR_INVALID_EMAIL = 3002
ERROR_UNKNOWN_COLOR = 3003
ERROR_CAPSULE_NOT_FOUND = 3004

# Config errors: 4xxx
ERROR_CONFIG = 4001

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TimeSnapError(Exception):
    """
    Base exception for all TimeSnap errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Media Errors
# =============================================================================


@dataclass
class MediaError(TimeSnapError):
    """
    Base class for media file errors.

    Attributes:
        ref: Path of the media file involved
        underlying_error: Text of the OS error that caused the failure
    """

    ref: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "ref": self.ref,
            "underlying_error": self.underlying_error,
        })


@dataclass
class MediaSaveError(MediaError):
    """Raised when a media file cannot be written to the asset directory."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to save media file {self.ref}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MEDIA_SAVE
        if not self.suggestion:
            self.suggestion = "Check free disk space and permissions of the media directory"
        super().__post_init__()


@dataclass
class MediaDeleteError(MediaError):
    """Raised when a media file exists but cannot be removed."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to delete media file {self.ref}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MEDIA_DELETE
        super().__post_init__()


# =============================================================================
# Codec Errors
# =============================================================================


@dataclass
class CodecError(TimeSnapError):
    """Base class for capsule collection encode/decode errors."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_DECODE


@dataclass
class DecodeError(CodecError):
    """
    Raised when persisted capsule data is corrupt or does not match the schema.

    Attributes:
        record_index: Index of the failing capsule record (if known)
        reason: What was wrong with the data
    """

    record_index: int | None = None
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.record_index is not None:
                self.message = f"Cannot decode capsule #{self.record_index}: {self.reason}"
            else:
                self.message = f"Cannot decode capsule collection: {self.reason}"
        if self.code == 0:
            self.code = ERROR_DECODE
        super().__post_init__()
        self.context.update({
            "record_index": self.record_index,
            "reason": self.reason,
        })


@dataclass
class UnsupportedVersionError(DecodeError):
    """Raised when the stored collection was written by a newer format version."""

    version: int = 0
    max_supported: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.reason:
            self.reason = f"format version {self.version} > supported {self.max_supported}"
        if self.code == 0:
            self.code = ERROR_UNSUPPORTED_VERSION
        if not self.suggestion:
            self.suggestion = "Upgrade TimeSnap to read this data"
        super().__post_init__()
        self.context.update({
            "version": self.version,
            "max_supported": self.max_supported,
        })


@dataclass
class EncodeError(CodecError):
    """Raised when the capsule collection cannot be serialized."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot encode capsule collection: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_ENCODE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Capsule Errors
# =============================================================================


@dataclass
class CapsuleValidationError(TimeSnapError):
    """
    Raised when a capsule or one of its fields is invalid.

    Attributes:
        capsule_id: ID of the capsule (if known)
        field_name: Name of the offending field
    """

    capsule_id: str | None = None
    field_name: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid capsule field: {self.field_name}"
        if self.code == 0:
            self.code = ERROR_CAPSULE_INVALID
        self.context.update({
            "capsule_id": self.capsule_id,
            "field_name": self.field_name,
        })


@dataclass
class InvalidEmailError(CapsuleValidationError):
    """Raised when a share target is not a valid email address."""

    email: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid email address: {self.email!r}"
        if self.code == 0:
            self.code = ERROR_INVALID_EMAIL
        if not self.field_name:
            self.field_name = "shared_with"
        if not self.suggestion:
            self.suggestion = "Please enter a valid email address, e.g. name@example.com"
        super().__post_init__()
        self.context["email"] = self.email


@dataclass
class UnknownColorError(CapsuleValidationError):
    """Raised when a color preset name or hex string is not recognized."""

    color: str = ""
    choices: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown color: {self.color!r}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_COLOR
        if not self.field_name:
            self.field_name = "color"
        if not self.suggestion and self.choices:
            self.suggestion = f"Use one of: {', '.join(self.choices)} or a #rrggbb value"
        super().__post_init__()
        self.context["color"] = self.color


@dataclass
class CapsuleNotFoundError(TimeSnapError):
    """Raised by callers that require a capsule to exist."""

    capsule_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Capsule not found: {self.capsule_id}"
        if self.code == 0:
            self.code = ERROR_CAPSULE_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Run 'timesnap list' to see capsule IDs"
        self.context["capsule_id"] = self.capsule_id


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(TimeSnapError):
    """Raised when the settings file cannot be read or validated."""

    path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration {self.path}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_CONFIG
        self.context.update({
            "path": self.path,
            "reason": self.reason,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(TimeSnapError):
    """
    Base class for slot database errors.

    Attributes:
        operation: The operation that failed (e.g., "put", "get")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when the database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
