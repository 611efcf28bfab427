"""
Integration tests for the CLI.

Tests cover:
- create / list / show / delete
- share / unshare / remove-media
- doctor checks and sweeping
- Error reporting and exit codes
"""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from timesnap import __version__
from timesnap.cli import app, parse_unlock
from timesnap.config import load_settings
from timesnap.errors import StorageWriteError
from timesnap.media import MediaStore
from timesnap.repository import CapsuleRepository
from timesnap.schema import COLOR_PRESETS, Capsule
from timesnap.store import SlotStore

runner = CliRunner()


@pytest.fixture
def home(temp_dir: Path) -> Path:
    """Data directory for one CLI session."""
    return temp_dir / "home"


def stored_capsules(home: Path) -> list[Capsule]:
    """Read the collection straight from the database."""
    settings = load_settings(home=home)
    with SlotStore(settings.db_path) as slots:
        return CapsuleRepository(slots, MediaStore(settings.media_path)).list()


def create(home: Path, *args: str) -> Capsule:
    result = runner.invoke(app, ["create", *args, "--home", str(home), "--json"])
    assert result.exit_code == 0, result.output
    capsule_id = json.loads(result.stdout)["id"]
    return next(c for c in stored_capsules(home) if c.id == capsule_id)


# =============================================================================
# Basics
# =============================================================================


class TestBasics:
    """Tests for top-level behavior."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "create" in result.output

    def test_parse_unlock_relative(self) -> None:
        now = datetime(2026, 10, 17, tzinfo=UTC)
        assert parse_unlock("+30d", now=now) == now + timedelta(days=30)
        assert parse_unlock("+2y", now=now) == now + timedelta(days=730)

    def test_parse_unlock_iso_is_aware(self) -> None:
        assert parse_unlock("2030-01-01").tzinfo is not None
        assert parse_unlock("2030-01-01T09:30:00+02:00").utcoffset().total_seconds() == 7200


# =============================================================================
# Create / List / Show / Delete
# =============================================================================


class TestCreate:
    """Tests for the create command."""

    def test_create_basic(self, home: Path) -> None:
        capsule = create(home, "Letter", "--unlock", "2030-01-01", "--description", "Hi")
        assert capsule.title == "Letter"
        assert capsule.description == "Hi"
        assert capsule.unlock_at.year == 2030

    def test_create_default_unlock(self, home: Path) -> None:
        capsule = create(home, "Later")
        assert capsule.unlock_at.year >= capsule.created_at.year + 4

    def test_create_with_media(self, home: Path, temp_dir: Path) -> None:
        photo = temp_dir / "me.jpg"
        photo.write_bytes(b"jpeg")
        voice = temp_dir / "hello.m4a"
        voice.write_bytes(b"audio")

        capsule = create(
            home, "Media", "--unlock", "+1d", "--photo", str(photo), "--voice", str(voice)
        )

        assert [m.type.value for m in capsule.media_items] == ["photo", "message"]
        assert all(m.url.parent == (home / "media").resolve() for m in capsule.media_items)
        assert capsule.media_items[0].url.read_bytes() == b"jpeg"

    def test_create_with_color(self, home: Path) -> None:
        capsule = create(home, "Gold", "--unlock", "+1d", "--color", "#ffcc00")
        assert capsule.color.to_hex() == "#ffcc00"

    def test_create_unknown_color(self, home: Path) -> None:
        result = runner.invoke(app, ["create", "x", "--color", "plaid", "--home", str(home)])
        assert result.exit_code == 1
        assert "E3003" in result.output

    def test_create_blank_title(self, home: Path) -> None:
        result = runner.invoke(app, ["create", "  ", "--home", str(home)])
        assert result.exit_code == 1
        assert stored_capsules(home) == []

    def test_create_bad_date(self, home: Path) -> None:
        result = runner.invoke(app, ["create", "x", "--unlock", "next tuesday", "--home", str(home)])
        assert result.exit_code == 2

    def test_create_json_reports_save_failure(
        self, home: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def failing_save(self: CapsuleRepository) -> None:
            raise StorageWriteError(operation="put", underlying_error="database is locked")

        monkeypatch.setattr(CapsuleRepository, "save", failing_save)

        result = runner.invoke(app, ["create", "Unsaved", "--unlock", "+1d", "--home", str(home), "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["title"] == "Unsaved"
        assert data["persistence_error"]["error_type"] == "StorageWriteError"
        assert stored_capsules(home) == []

    def test_create_uses_config_defaults(self, home: Path) -> None:
        home.mkdir(parents=True)
        (home / "config.yaml").write_text("default_color: mint\n")
        capsule = create(home, "Minty", "--unlock", "+1d")
        assert capsule.color == COLOR_PRESETS["mint"]


class TestListShow:
    """Tests for list and show."""

    def test_list_empty(self, home: Path) -> None:
        result = runner.invoke(app, ["list", "--home", str(home)])
        assert result.exit_code == 0
        assert "No capsules found" in result.output

    def test_list_json_gates_locked(self, home: Path) -> None:
        create(home, "Future", "--unlock", "2099-01-01", "--description", "secret")
        create(home, "Past", "--unlock", "2000-01-01", "--description", "visible")

        result = runner.invoke(app, ["list", "--home", str(home), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        by_title = {c["title"]: c for c in data["capsules"]}
        assert by_title["Future"]["description"] is None
        assert by_title["Past"]["description"] == "visible"
        assert data["counts"]["locked"] == 1

    def test_list_filters(self, home: Path) -> None:
        create(home, "Future", "--unlock", "2099-01-01")
        create(home, "Past", "--unlock", "2000-01-01")

        result = runner.invoke(app, ["list", "--locked", "--home", str(home), "--json"])
        assert [c["title"] for c in json.loads(result.stdout)["capsules"]] == ["Future"]

    def test_show_by_prefix(self, home: Path) -> None:
        capsule = create(home, "Future", "--unlock", "2099-01-01", "--description", "secret")

        result = runner.invoke(app, ["show", capsule.id[:8], "--home", str(home)])

        assert result.exit_code == 0
        assert "Future" in result.output
        assert "secret" not in result.output
        assert "locked for another" in result.output

    def test_show_unknown(self, home: Path) -> None:
        result = runner.invoke(app, ["show", "nope", "--home", str(home)])
        assert result.exit_code == 1
        assert "E3004" in result.output


class TestDelete:
    """Tests for delete."""

    def test_delete_removes_capsule_and_media(self, home: Path, temp_dir: Path) -> None:
        photo = temp_dir / "me.jpg"
        photo.write_bytes(b"jpeg")
        capsule = create(home, "Doomed", "--unlock", "+1d", "--photo", str(photo))
        media_path = capsule.media_items[0].url

        result = runner.invoke(app, ["delete", capsule.id, "--yes", "--home", str(home)])

        assert result.exit_code == 0
        assert stored_capsules(home) == []
        assert not media_path.exists()
        assert photo.exists()

    def test_delete_unknown_is_not_an_error(self, home: Path) -> None:
        result = runner.invoke(app, ["delete", "nope", "--yes", "--home", str(home)])
        assert result.exit_code == 0
        assert "nothing to delete" in result.output

    def test_delete_ambiguous_prefix_is_an_error(self, home: Path) -> None:
        settings = load_settings(home=home)
        with SlotStore(settings.db_path) as slots:
            repo = CapsuleRepository(slots, MediaStore(settings.media_path))
            for capsule_id in ("abc-1", "abc-2"):
                repo.add(Capsule(id=capsule_id, title=capsule_id, unlock_at=datetime(2030, 1, 1, tzinfo=UTC)))

        result = runner.invoke(app, ["delete", "abc", "--yes", "--home", str(home)])

        assert result.exit_code == 1
        assert "ambiguous" in result.output
        assert len(stored_capsules(home)) == 2

    def test_delete_declined(self, home: Path) -> None:
        capsule = create(home, "Keep", "--unlock", "+1d")
        result = runner.invoke(app, ["delete", capsule.id, "--home", str(home)], input="n\n")
        assert result.exit_code == 1
        assert len(stored_capsules(home)) == 1


# =============================================================================
# Sharing and media
# =============================================================================


class TestShare:
    """Tests for share and unshare."""

    def test_share_and_unshare(self, home: Path) -> None:
        capsule = create(home, "Shared", "--unlock", "+1d")

        result = runner.invoke(app, ["share", capsule.id, "friend@example.com", "--home", str(home)])
        assert result.exit_code == 0
        [stored] = stored_capsules(home)
        assert stored.shared_with == ["friend@example.com"]
        assert stored.is_shared

        result = runner.invoke(app, ["share", capsule.id, "friend@example.com", "--home", str(home)])
        assert result.exit_code == 0
        assert "Already shared" in result.output

        result = runner.invoke(app, ["unshare", capsule.id, "friend@example.com", "--home", str(home)])
        assert result.exit_code == 0
        [stored] = stored_capsules(home)
        assert stored.shared_with == []
        assert not stored.is_shared

    def test_share_invalid_email(self, home: Path) -> None:
        capsule = create(home, "Shared", "--unlock", "+1d")
        result = runner.invoke(app, ["share", capsule.id, "not-an-email", "--home", str(home)])
        assert result.exit_code == 1
        assert "E3002" in result.output
        assert stored_capsules(home)[0].shared_with == []


class TestRemoveMedia:
    """Tests for remove-media."""

    def test_remove_media(self, home: Path, temp_dir: Path) -> None:
        photo = temp_dir / "me.jpg"
        photo.write_bytes(b"jpeg")
        video = temp_dir / "clip.mov"
        video.write_bytes(b"video")
        capsule = create(
            home, "Two", "--unlock", "+1d", "--photo", str(photo), "--video", str(video)
        )
        first, second = capsule.media_items

        result = runner.invoke(
            app, ["remove-media", capsule.id, first.id[:8], "--home", str(home)]
        )

        assert result.exit_code == 0
        [stored] = stored_capsules(home)
        assert [m.id for m in stored.media_items] == [second.id]
        assert not first.url.exists()
        assert second.url.exists()


# =============================================================================
# Doctor
# =============================================================================


class TestDoctor:
    """Tests for the doctor command."""

    def test_healthy(self, home: Path) -> None:
        create(home, "Fine", "--unlock", "+1d")
        result = runner.invoke(app, ["doctor", "--home", str(home)])
        assert result.exit_code == 0
        assert "All checks passed" in result.output

    def test_orphans_found_and_swept(self, home: Path) -> None:
        create(home, "Fine", "--unlock", "+1d")
        orphan = home / "media" / "LEFTOVER.jpg"
        orphan.parent.mkdir(parents=True, exist_ok=True)
        orphan.write_bytes(b"orphan")

        result = runner.invoke(app, ["doctor", "--home", str(home), "--json"])
        assert result.exit_code == 1
        checks = {c["name"]: c for c in json.loads(result.stdout)["checks"]}
        assert checks["Orphaned media"]["ok"] is False

        result = runner.invoke(app, ["doctor", "--sweep", "--home", str(home)])
        assert result.exit_code == 0
        assert not orphan.exists()

    def test_missing_media_reported(self, home: Path, temp_dir: Path) -> None:
        photo = temp_dir / "me.jpg"
        photo.write_bytes(b"jpeg")
        capsule = create(home, "Lost", "--unlock", "+1d", "--photo", str(photo))
        capsule.media_items[0].url.unlink()

        result = runner.invoke(app, ["doctor", "--home", str(home), "--json"])

        assert result.exit_code == 1
        checks = {c["name"]: c for c in json.loads(result.stdout)["checks"]}
        assert checks["Media files"]["ok"] is False
        assert checks["Capsule store"]["ok"] is True

    def test_corrupt_store_reported(self, home: Path) -> None:
        settings = load_settings(home=home)
        with SlotStore(settings.db_path) as slots:
            slots.put(settings.slot_key, b"not json at all")

        result = runner.invoke(app, ["doctor", "--home", str(home), "--json"])

        assert result.exit_code == 1
        checks = {c["name"]: c for c in json.loads(result.stdout)["checks"]}
        assert checks["Capsule store"]["ok"] is False
