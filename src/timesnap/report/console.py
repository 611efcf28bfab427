"""
Console report generator for TimeSnap.

Renders capsules in the terminal using the Rich library:
- A table of all capsules with lock status, unlock date and sharing
- A detail panel for one capsule, showing content only once it is unlocked
- A health report for the doctor command

Locked capsules never reveal their description or media, only the title,
the unlock date and a countdown.
"""

from datetime import datetime, timedelta
from typing import Any, Iterable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from timesnap.policy import CapsuleView, UnlockPolicy
from timesnap.schema import Capsule, MediaType


# Status icons
ICON_UNLOCKED = "[green]🔓[/green]"
ICON_LOCKED = "[blue]🔒[/blue]"
ICON_SHARED = "[green]👥[/green]"
ICON_OK = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"

MEDIA_ICONS = {
    MediaType.PHOTO: "🖼",
    MediaType.VIDEO: "🎬",
    MediaType.MESSAGE: "🎙",
}


def format_unlock_date(unlock_at: datetime, include_time: bool, long: bool = False) -> str:
    """
    Format an unlock date the way the app shows it.

    The time of day is only shown when include_time is set.
    """
    local = unlock_at.astimezone()
    month = local.strftime("%B" if long else "%b")
    date_part = f"{month} {local.day}, {local.year}"
    if include_time:
        hour = local.hour % 12 or 12
        return f"{date_part} at {hour}:{local.strftime('%M %p')}"
    return date_part


def format_remaining(remaining: timedelta) -> str:
    """Compact countdown, e.g. '4y 120d', '3d 4h', '12m'."""
    seconds = int(remaining.total_seconds())
    if seconds <= 0:
        return "now"
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days >= 365:
        years, days = divmod(days, 365)
        return f"{years}y {days}d"
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{max(minutes, 1)}m"


def print_capsule_table(
    capsules: Iterable[Capsule],
    policy: UnlockPolicy,
    console: Console | None = None,
    now: datetime | None = None,
) -> None:
    """Print all capsules in one table."""
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("", width=2, justify="center")
    table.add_column("Title")
    table.add_column("Unlocks")
    table.add_column("Media", justify="right")
    table.add_column("Shared", justify="right")

    for capsule in capsules:
        view = policy.view(capsule, now)
        if view.unlocked:
            icon = ICON_UNLOCKED
            unlocks = f"[dim]{format_unlock_date(view.unlock_at, view.include_time)}[/dim]"
            media = str(view.media_count)
        else:
            icon = ICON_LOCKED
            unlocks = (
                f"[blue]{format_unlock_date(view.unlock_at, view.include_time)}[/blue]"
                f" [dim]({format_remaining(view.remaining)})[/dim]"
            )
            media = "[dim]-[/dim]"

        shared = str(len(view.shared_with)) if view.is_shared else "[dim]0[/dim]"
        table.add_row(view.id[:8], icon, escape(view.title), unlocks, media, shared)

    console.print(table)


def print_capsule_detail(
    capsule: Capsule,
    policy: UnlockPolicy,
    console: Console | None = None,
    now: datetime | None = None,
) -> None:
    """Print a single capsule, revealing content only if unlocked."""
    if console is None:
        console = Console()

    view = policy.view(capsule, now)
    _print_header(console, view)
    console.print()

    console.print(
        f"  [dim]Unlocks:[/dim]  {format_unlock_date(view.unlock_at, view.include_time, long=True)}"
    )
    console.print(f"  [dim]Created:[/dim]  {capsule.created_at.astimezone().strftime('%Y-%m-%d %H:%M')}")
    console.print(f"  [dim]Color:[/dim]    {view.color.to_hex()}")
    console.print(f"  [dim]ID:[/dim]       {view.id}")
    if view.shared_with:
        console.print(f"  [dim]Shared with:[/dim] {escape(', '.join(view.shared_with))}")
    console.print()

    if not view.unlocked:
        console.print(
            f"[blue]This capsule is locked for another {format_remaining(view.remaining)}.[/blue]"
        )
        return

    if view.description:
        console.print(Panel(Text(view.description), title="Description", expand=False))
    _print_media(console, view)


def _print_header(console: Console, view: CapsuleView) -> None:
    header = Text()
    header.append(f" {view.title} ", style=f"bold {view.color.to_hex()}")
    header.append(" │ ", style="dim")
    if view.unlocked:
        header.append("UNLOCKED", style="bold green")
    else:
        header.append("LOCKED", style="bold blue")
    if view.is_shared:
        header.append(" │ ", style="dim")
        header.append("SHARED", style="bold green")
    console.print(Panel(header, expand=False))


def _print_media(console: Console, view: CapsuleView) -> None:
    if not view.media_items:
        console.print("[dim]No media attached.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", title="Media")
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Type")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File", overflow="fold")

    for index, item in enumerate(view.media_items, start=1):
        table.add_row(
            str(index),
            f"{MEDIA_ICONS[item.type]} {item.type.label}",
            item.id[:8],
            escape(str(item.url)),
        )
    console.print(table)


def print_doctor_report(
    checks: list[dict[str, Any]],
    console: Console | None = None,
) -> None:
    """Print the results of the doctor checks."""
    if console is None:
        console = Console()

    for check in checks:
        icon = ICON_OK if check["ok"] else ICON_ERROR
        console.print(f"{icon} {check['name']}: [dim]{escape(check.get('value', ''))}[/dim] - {escape(check['message'])}")
        for detail in check.get("details", [])[:10]:
            console.print(f"    [dim]• {escape(detail)}[/dim]")
        if len(check.get("details", [])) > 10:
            console.print(f"    [dim]... and {len(check['details']) - 10} more[/dim]")
