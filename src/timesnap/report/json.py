"""
JSON report generator for TimeSnap.

Produces structured output for programmatic consumption. Reports carry the
same gating as the console: locked capsules have no description and no media.

Design Principles:
    - Consistent schema: same keys for locked and unlocked capsules
    - Human-readable keys: descriptive snake_case names
    - ISO timestamps: standard datetime format
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterable

from timesnap.policy import UnlockPolicy
from timesnap.schema import Capsule

REPORT_VERSION = "1.0"


def build_capsule_dict(
    capsule: Capsule,
    policy: UnlockPolicy,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the gated dictionary for one capsule.

    Args:
        capsule: The capsule to describe
        policy: Unlock policy deciding what is visible
        now: Time to evaluate at (defaults to the policy clock)

    Returns:
        Dictionary with always-visible fields plus content when unlocked
    """
    view = policy.view(capsule, now)
    return {
        "id": view.id,
        "title": view.title,
        "unlock_at": view.unlock_at.isoformat(),
        "include_time": view.include_time,
        "created_at": capsule.created_at.isoformat(),
        "color": {
            "red": view.color.red,
            "green": view.color.green,
            "blue": view.color.blue,
            "hex": view.color.to_hex(),
        },
        "is_shared": view.is_shared,
        "shared_with": view.shared_with,
        "unlocked": view.unlocked,
        "seconds_remaining": int(view.remaining.total_seconds()),
        "description": view.description,
        "media_count": view.media_count,
        "media": [
            {
                "id": item.id,
                "type": item.type.value,
                "url": str(item.url),
                "thumbnail_url": str(item.thumbnail_url) if item.thumbnail_url else None,
            }
            for item in view.media_items
        ],
    }


def build_report_dict(
    capsules: Iterable[Capsule],
    policy: UnlockPolicy,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build a report for a collection of capsules."""
    now = now or policy.now()
    items = [build_capsule_dict(c, policy, now) for c in capsules]
    return {
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "evaluated_at": now.isoformat(),
        "counts": {
            "total": len(items),
            "unlocked": sum(1 for i in items if i["unlocked"]),
            "locked": sum(1 for i in items if not i["unlocked"]),
            "shared": sum(1 for i in items if i["is_shared"]),
        },
        "capsules": items,
    }


def generate_json_report(
    capsules: Iterable[Capsule],
    policy: UnlockPolicy,
    now: datetime | None = None,
    indent: int = 2,
) -> str:
    """
    Generate a JSON report for a collection of capsules.

    Returns:
        JSON string with the gated capsule list
    """
    report = build_report_dict(capsules, policy, now)
    return json.dumps(report, indent=indent, default=_json_serializer, ensure_ascii=False)


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for non-standard types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
