"""
Unit tests for the report module.

Tests cover:
- Date and countdown formatting
- JSON report gating of locked capsules
- Console output gating of locked capsules
"""

import json
from datetime import UTC, datetime, timedelta
from io import StringIO

from rich.console import Console

from timesnap.policy import UnlockPolicy
from timesnap.report import (
    build_capsule_dict,
    build_report_dict,
    format_remaining,
    format_unlock_date,
    generate_json_report,
    print_capsule_detail,
    print_capsule_table,
    print_doctor_report,
)
from timesnap.schema import Capsule


def capture() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, force_terminal=False, width=200), buffer


# =============================================================================
# Formatting
# =============================================================================


class TestFormatting:
    """Tests for date and countdown formatting."""

    def test_format_unlock_date_without_time(self) -> None:
        local = datetime(2031, 10, 7, 15, 5).astimezone()
        assert format_unlock_date(local, include_time=False) == "Oct 7, 2031"

    def test_format_unlock_date_with_time(self) -> None:
        local = datetime(2031, 10, 7, 15, 5).astimezone()
        assert format_unlock_date(local, include_time=True) == "Oct 7, 2031 at 3:05 PM"

    def test_format_unlock_date_long(self) -> None:
        local = datetime(2031, 10, 7, 0, 5).astimezone()
        assert format_unlock_date(local, include_time=True, long=True) == "October 7, 2031 at 12:05 AM"

    def test_format_remaining(self) -> None:
        assert format_remaining(timedelta(0)) == "now"
        assert format_remaining(timedelta(seconds=20)) == "1m"
        assert format_remaining(timedelta(minutes=12)) == "12m"
        assert format_remaining(timedelta(hours=2, minutes=5)) == "2h 5m"
        assert format_remaining(timedelta(days=3, hours=4)) == "3d 4h"
        assert format_remaining(timedelta(days=365 * 2 + 10)) == "2y 10d"


# =============================================================================
# JSON
# =============================================================================


class TestJsonReport:
    """Tests for JSON report generation."""

    def test_locked_capsule_hides_content(self, policy: UnlockPolicy, locked_capsule: Capsule) -> None:
        data = build_capsule_dict(locked_capsule, policy)
        assert data["title"] == locked_capsule.title
        assert data["unlocked"] is False
        assert data["description"] is None
        assert data["media"] == []
        assert data["media_count"] is None
        assert data["seconds_remaining"] == 86400

    def test_unlocked_capsule_shows_content(self, policy: UnlockPolicy, unlocked_capsule: Capsule) -> None:
        data = build_capsule_dict(unlocked_capsule, policy)
        assert data["unlocked"] is True
        assert data["description"] == "Beach photos"
        assert data["media_count"] == 0
        assert data["shared_with"] == ["friend@example.com"]
        assert data["color"]["hex"] == "#cc9966"

    def test_report_counts(
        self, policy: UnlockPolicy, locked_capsule: Capsule, unlocked_capsule: Capsule
    ) -> None:
        report = build_report_dict([locked_capsule, unlocked_capsule], policy)
        assert report["counts"] == {"total": 2, "unlocked": 1, "locked": 1, "shared": 1}
        assert report["evaluated_at"] == datetime(2026, 10, 17, 12, 0, tzinfo=UTC).isoformat()

    def test_generate_json_is_valid(self, policy: UnlockPolicy, capsule_with_media: Capsule) -> None:
        data = json.loads(generate_json_report([capsule_with_media], policy))
        assert data["report_version"] == "1.0"
        assert data["capsules"][0]["id"] == capsule_with_media.id


# =============================================================================
# Console
# =============================================================================


class TestConsoleReport:
    """Tests for Rich console output."""

    def test_table_lists_titles(
        self, policy: UnlockPolicy, locked_capsule: Capsule, unlocked_capsule: Capsule
    ) -> None:
        console, buffer = capture()
        print_capsule_table([locked_capsule, unlocked_capsule], policy, console)
        output = buffer.getvalue()
        assert locked_capsule.title in output
        assert unlocked_capsule.title in output
        assert locked_capsule.id[:8] in output

    def test_locked_detail_hides_description(self, policy: UnlockPolicy, locked_capsule: Capsule) -> None:
        console, buffer = capture()
        print_capsule_detail(locked_capsule, policy, console)
        output = buffer.getvalue()
        assert "LOCKED" in output
        assert "Open on your birthday" not in output
        assert "locked for another 1d 0h" in output

    def test_unlocked_detail_shows_description(
        self, clock, policy: UnlockPolicy, locked_capsule: Capsule
    ) -> None:
        clock.advance(timedelta(days=2))
        console, buffer = capture()
        print_capsule_detail(locked_capsule, policy, console)
        output = buffer.getvalue()
        assert "UNLOCKED" in output
        assert "Open on your birthday" in output
        assert "No media attached." in output

    def test_unlocked_detail_lists_media(
        self, clock, policy: UnlockPolicy, capsule_with_media: Capsule
    ) -> None:
        clock.advance(timedelta(days=366))
        console, buffer = capture()
        print_capsule_detail(capsule_with_media, policy, console)
        output = buffer.getvalue()
        assert "Photo" in output
        assert "Voice message" in output

    def test_doctor_report(self) -> None:
        console, buffer = capture()
        print_doctor_report(
            [
                {"name": "Capsule store", "ok": True, "value": "db", "message": "2 capsule(s)"},
                {"name": "Orphaned media", "ok": False, "value": "media", "message": "1 found",
                 "details": ["/media/X.jpg"]},
            ],
            console,
        )
        output = buffer.getvalue()
        assert "Capsule store" in output
        assert "/media/X.jpg" in output
