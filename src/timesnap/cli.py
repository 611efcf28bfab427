"""
CLI entry point for TimeSnap.

This module provides the Typer-based command-line interface for TimeSnap.

Commands:
    create        Create a capsule, optionally with photos, videos and voice messages
    list          List all capsules (locked ones show only title and unlock date)
    show          Show one capsule, with content if it has unlocked
    delete        Delete a capsule and its media files
    share         Add an email address to a capsule's share list
    unshare       Remove an email address from a capsule's share list
    remove-media  Remove one media item from a capsule
    doctor        Check the store for load errors, missing and orphaned media

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    repository, draft and report modules.
"""

import json
import logging
import re
import traceback
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated, Generator, Optional

import typer
from rich.console import Console
from rich.markup import escape

from timesnap import __version__
from timesnap.config import Settings, load_settings
from timesnap.draft import CapsuleDraft, default_unlock_at, require_title
from timesnap.errors import CapsuleNotFoundError, TimeSnapError
from timesnap.media import MediaStore
from timesnap.policy import UnlockPolicy
from timesnap.report import (
    build_capsule_dict,
    generate_json_report,
    print_capsule_detail,
    print_capsule_table,
    print_doctor_report,
)
from timesnap.repository import CapsuleRepository, MutationResult, MutationStatus
from timesnap.schema import Capsule, Color, MediaType
from timesnap.store import SlotStore

# Initialize Typer app with metadata
app = typer.Typer(
    name="timesnap",
    help="Time capsules that open on a future date.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

RELATIVE_PATTERN = re.compile(r"\+(\d+)([mhdwy])")
RELATIVE_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "y": timedelta(days=365),
}

HomeOption = Annotated[
    Optional[Path],
    typer.Option(
        "--home",
        help="Data directory (defaults to $TIMESNAP_HOME or ~/.timesnap).",
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a config.yaml file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]timesnap[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
) -> None:
    """
    TimeSnap - time capsules that open on a future date.

    Bundle a title, a description, photos, videos and voice messages, and
    choose when they become visible.
    """
    _setup_logging(verbose)


def _setup_logging(verbose: bool) -> None:
    """Send library logs to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# =============================================================================
# Helpers
# =============================================================================


@contextmanager
def _open_repository(
    home: Path | None,
    config: Path | None,
    warn: bool = True,
) -> Generator[tuple[Settings, CapsuleRepository], None, None]:
    """Load settings and open the repository for one command."""
    settings = load_settings(config, home=home)
    with SlotStore(settings.db_path) as slots:
        repo = CapsuleRepository(
            slots,
            MediaStore(settings.media_path),
            key=settings.slot_key,
        )
        if warn and repo.load_error is not None:
            console.print(
                f"[yellow]Warning: stored capsules could not be read ({escape(repo.load_error.message)}). "
                f"The original data was kept in slot {repo.recovery_key!r}.[/yellow]"
            )
        yield settings, repo


def _fail(error: Exception, json_output: bool = False, debug: bool = False) -> None:
    """Report an error and exit with code 1."""
    if json_output:
        if isinstance(error, TimeSnapError):
            payload = {"error": True, **error.to_dict()}
        else:
            payload = {"error": True, "error_type": type(error).__name__, "message": str(error)}
        if debug:
            payload["traceback"] = traceback.format_exc()
        print(json.dumps(payload, indent=2))
    else:
        console.print(f"[red]Error: {escape(str(error))}[/red]")
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=1)


def _resolve_capsule(repo: CapsuleRepository, capsule_id: str) -> Capsule:
    """
    Find a capsule by full ID or unique prefix.

    Raises:
        CapsuleNotFoundError: If nothing (or more than one capsule) matches
    """
    capsule = repo.get(capsule_id)
    if capsule is not None:
        return capsule
    matches = [c for c in repo.list() if c.id.startswith(capsule_id)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise CapsuleNotFoundError(
            capsule_id=capsule_id,
            message=f"Capsule ID prefix is ambiguous: {capsule_id}",
            suggestion="Use more characters of the ID",
            context={"ambiguous": True, "matches": len(matches)},
        )
    raise CapsuleNotFoundError(capsule_id=capsule_id)


def parse_unlock(value: str, now: datetime | None = None) -> datetime:
    """
    Parse an unlock date.

    Accepts ISO dates ("2030-01-01", "2030-01-01T09:30") and relative offsets
    ("+30d", "+5y", "+2h"). Times without an offset are local time.

    Raises:
        typer.BadParameter: If the value can't be parsed
    """
    value = value.strip()
    match = RELATIVE_PATTERN.fullmatch(value)
    if match:
        base = now or datetime.now().astimezone()
        return base + int(match.group(1)) * RELATIVE_UNITS[match.group(2)]
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(
            f"{value!r} is not an ISO date (2030-01-01, 2030-01-01T09:30) or offset (+30d)"
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _report_mutation(result: MutationResult, done: str, unchanged: str) -> None:
    """Print the outcome of a repository mutation."""
    if result.status == MutationStatus.NOT_FOUND:
        console.print(f"[yellow]No capsule with ID {escape(result.capsule_id)}[/yellow]")
        return
    if result.status == MutationStatus.UNCHANGED:
        console.print(f"[dim]{escape(unchanged)}[/dim]")
        return
    console.print(f"[green]{escape(done)}[/green]")
    if not result.persisted:
        console.print(
            f"[yellow]Warning: the change was not saved to disk: {escape(str(result.error))}[/yellow]"
        )


# =============================================================================
# Commands
# =============================================================================


@app.command()
def create(
    title: Annotated[str, typer.Argument(help="Capsule title.")],
    unlock: Annotated[
        Optional[str],
        typer.Option(
            "--unlock",
            "-u",
            help="Unlock date: ISO date/time or offset like +30d, +5y. Defaults to the configured years ahead.",
        ),
    ] = None,
    description: Annotated[
        str,
        typer.Option("--description", "-d", help="Capsule description."),
    ] = "",
    include_time: Annotated[
        bool,
        typer.Option("--include-time", help="The time of day of the unlock date matters."),
    ] = False,
    photos: Annotated[
        Optional[list[Path]],
        typer.Option("--photo", help="Photo file to attach (repeatable).", exists=True, dir_okay=False),
    ] = None,
    videos: Annotated[
        Optional[list[Path]],
        typer.Option("--video", help="Video file to attach (repeatable).", exists=True, dir_okay=False),
    ] = None,
    voices: Annotated[
        Optional[list[Path]],
        typer.Option("--voice", help="Voice recording to attach (repeatable).", exists=True, dir_okay=False),
    ] = None,
    color: Annotated[
        Optional[str],
        typer.Option("--color", help="Preset name (bronze, silver, gold, ...) or #rrggbb."),
    ] = None,
    home: HomeOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Create a new time capsule.

    Media files are copied into the TimeSnap media directory first. If any
    copy fails, nothing is created and no copied files are left behind.

    Example:
        $ timesnap create "Letter to 2030" --unlock 2030-01-01 --photo me.jpg
    """
    try:
        with _open_repository(home, config, warn=not json_output) as (settings, repo):
            require_title(title)
            draft = CapsuleDraft(
                media_store=repo.media,
                title=title,
                description=description,
                unlock_at=(
                    parse_unlock(unlock)
                    if unlock
                    else default_unlock_at(settings.default_unlock_years)
                ),
                include_time=include_time,
                color=Color.parse(color or settings.default_color),
            )

            attachments = [
                *((p, MediaType.PHOTO) for p in photos or []),
                *((p, MediaType.VIDEO) for p in videos or []),
                *((p, MediaType.MESSAGE) for p in voices or []),
            ]
            try:
                for path, media_type in attachments:
                    draft.attach_file(path, media_type)
            except TimeSnapError:
                draft.discard()
                raise

            capsule = draft.commit(repo)
            policy = UnlockPolicy()

            save_error = repo.last_persistence_error
            if json_output:
                payload = build_capsule_dict(capsule, policy)
                if save_error is not None:
                    payload["persistence_error"] = save_error.to_dict()
                print(json.dumps(payload, indent=2))
            else:
                console.print(f"[green]Created capsule {capsule.id}[/green]")
                print_capsule_detail(capsule, policy, console)
                if save_error is not None:
                    console.print(
                        f"[yellow]Warning: the capsule was not saved to disk: "
                        f"{escape(str(save_error))}[/yellow]"
                    )
            if save_error is not None:
                raise typer.Exit(code=1)
    except TimeSnapError as e:
        _fail(e, json_output)


@app.command("list")
def list_capsules(
    locked_only: Annotated[
        bool,
        typer.Option("--locked", help="Only show locked capsules."),
    ] = False,
    unlocked_only: Annotated[
        bool,
        typer.Option("--unlocked", help="Only show unlocked capsules."),
    ] = False,
    home: HomeOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List all capsules.

    Locked capsules show their title, unlock date and a countdown only.

    Example:
        $ timesnap list --locked
    """
    try:
        with _open_repository(home, config, warn=not json_output) as (_, repo):
            policy = UnlockPolicy()
            capsules = repo.list()
            if locked_only or unlocked_only:
                locked, unlocked = policy.partition(capsules)
                capsules = locked if locked_only else unlocked

            if json_output:
                print(generate_json_report(capsules, policy))
                return

            if not capsules:
                console.print("[dim]No capsules found.[/dim]")
                return
            print_capsule_table(capsules, policy, console)
    except TimeSnapError as e:
        _fail(e, json_output)


@app.command()
def show(
    capsule_id: Annotated[str, typer.Argument(help="Capsule ID (or unique prefix).")],
    home: HomeOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show one capsule.

    The description and media are only shown once the capsule has unlocked.
    """
    try:
        with _open_repository(home, config, warn=not json_output) as (_, repo):
            capsule = _resolve_capsule(repo, capsule_id)
            policy = UnlockPolicy()
            if json_output:
                print(json.dumps(build_capsule_dict(capsule, policy), indent=2))
            else:
                print_capsule_detail(capsule, policy, console)
    except TimeSnapError as e:
        _fail(e, json_output)


@app.command()
def delete(
    capsule_id: Annotated[str, typer.Argument(help="Capsule ID (or unique prefix).")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Don't ask for confirmation."),
    ] = False,
    home: HomeOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Delete a capsule and all of its media files.
    """
    try:
        with _open_repository(home, config) as (_, repo):
            try:
                capsule = _resolve_capsule(repo, capsule_id)
            except CapsuleNotFoundError as e:
                if e.context.get("ambiguous"):
                    raise
                # Deleting something that isn't there is not an error
                console.print(f"[dim]No capsule with ID {escape(capsule_id)}; nothing to delete.[/dim]")
                return

            if not yes and not typer.confirm(f"Delete '{capsule.title}' and its media?"):
                raise typer.Exit(code=1)

            result = repo.remove(capsule.id)
            _report_mutation(result, f"Deleted capsule {capsule.id}", "Nothing to delete.")
    except TimeSnapError as e:
        _fail(e)


@app.command()
def share(
    capsule_id: Annotated[str, typer.Argument(help="Capsule ID (or unique prefix).")],
    email: Annotated[str, typer.Argument(help="Email address to share with.")],
    home: HomeOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Share a capsule with an email address.

    This only records the address on the capsule; nothing is sent.
    """
    try:
        with _open_repository(home, config) as (_, repo):
            capsule = _resolve_capsule(repo, capsule_id)
            result = repo.add_share(capsule.id, email)
            _report_mutation(
                result,
                f"Shared '{capsule.title}' with {email.strip()}",
                f"Already shared with {email.strip()}",
            )
    except TimeSnapError as e:
        _fail(e)


@app.command()
def unshare(
    capsule_id: Annotated[str, typer.Argument(help="Capsule ID (or unique prefix).")],
    email: Annotated[str, typer.Argument(help="Email address to remove.")],
    home: HomeOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Stop sharing a capsule with an email address.
    """
    try:
        with _open_repository(home, config) as (_, repo):
            capsule = _resolve_capsule(repo, capsule_id)
            result = repo.remove_share(capsule.id, email)
            _report_mutation(
                result,
                f"Stopped sharing '{capsule.title}' with {email.strip()}",
                f"'{capsule.title}' was not shared with {email.strip()}",
            )
    except TimeSnapError as e:
        _fail(e)


@app.command("remove-media")
def remove_media(
    capsule_id: Annotated[str, typer.Argument(help="Capsule ID (or unique prefix).")],
    media_id: Annotated[str, typer.Argument(help="Media item ID (or unique prefix).")],
    home: HomeOption = None,
    config: ConfigOption = None,
) -> None:
    """
    Remove one media item from a capsule and delete its file.
    """
    try:
        with _open_repository(home, config) as (_, repo):
            capsule = _resolve_capsule(repo, capsule_id)
            matches = [m for m in capsule.media_items if m.id.startswith(media_id)]
            target = matches[0].id if len(matches) == 1 else media_id
            result = repo.remove_media(capsule.id, target)
            _report_mutation(
                result,
                f"Removed media {target} from '{capsule.title}'",
                f"No media item {media_id} on '{capsule.title}'",
            )
    except TimeSnapError as e:
        _fail(e)


@app.command()
def doctor(
    sweep: Annotated[
        bool,
        typer.Option("--sweep", help="Delete media files no capsule refers to."),
    ] = False,
    home: HomeOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check the capsule store.

    Verifies that:
    - The stored collection decodes
    - Every media item still has its file
    - No media files are left over from deleted capsules

    Example:
        $ timesnap doctor --sweep
    """
    checks = []

    try:
        with _open_repository(home, config, warn=False) as (settings, repo):
            # Check 1: Stored collection
            if repo.load_error is None:
                load_check = {
                    "name": "Capsule store",
                    "ok": True,
                    "value": str(settings.db_path),
                    "message": f"{len(repo)} capsule(s)",
                }
            else:
                load_check = {
                    "name": "Capsule store",
                    "ok": False,
                    "value": str(settings.db_path),
                    "message": f"{repo.load_error.message}; original kept in {repo.recovery_key}",
                }
            recovery = repo.recovery_slots()
            if recovery:
                load_check["details"] = [f"recovery slot: {key}" for key in recovery]
            checks.append(load_check)

            # Check 2: Media files referenced by capsules
            missing = repo.missing_media()
            checks.append({
                "name": "Media files",
                "ok": not missing,
                "value": str(settings.media_path),
                "message": "All present" if not missing else f"{len(missing)} missing",
                "details": [f"{cid[:8]}: {item.type.value} {item.url}" for cid, item in missing],
            })

            # Check 3: Orphaned files
            referenced = repo.referenced_media()
            if sweep:
                removed = repo.media.sweep_orphans(referenced)
                orphans = repo.media.find_orphans(referenced)
                message = f"Removed {len(removed)}" + (f", {len(orphans)} left" if orphans else "")
            else:
                orphans = repo.media.find_orphans(referenced)
                message = "None" if not orphans else f"{len(orphans)} found (use --sweep)"
            checks.append({
                "name": "Orphaned media",
                "ok": not orphans,
                "value": str(settings.media_path),
                "message": message,
                "details": [str(p) for p in orphans],
            })
    except TimeSnapError as e:
        _fail(e, json_output)

    all_ok = all(check["ok"] for check in checks)

    if json_output:
        print(json.dumps({"ok": all_ok, "version": __version__, "checks": checks}, indent=2))
    else:
        console.print(f"[bold]TimeSnap Doctor[/bold] v{__version__}")
        console.print()
        print_doctor_report(checks, console)
        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
