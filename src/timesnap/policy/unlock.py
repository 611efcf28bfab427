"""
Unlock policy for TimeSnap.

A capsule's description and media are visible only once its unlock date has
passed. The title, color and unlock date are always visible.

Design Principles:
    - Pure: the decision depends only on the capsule and the time given
    - Re-evaluated on every read: nothing records that a capsule "was" unlocked
    - Boundary inclusive: at exactly unlock_at the capsule is open

How it works:
    1. Callers pass a capsule and the current time (or let the policy's clock supply it)
    2. The policy compares full timestamps, ignoring include_time
    3. It returns an UnlockDecision or a gated CapsuleView
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field

from timesnap.schema import Capsule, Color, MediaItem, ensure_aware, utc_now

Clock = Callable[[], datetime]


def is_unlocked(capsule: Capsule, now: datetime) -> bool:
    """True when now is at or after the capsule's unlock time."""
    return ensure_aware(now) >= capsule.unlock_at


def time_remaining(capsule: Capsule, now: datetime) -> timedelta:
    """Time left until unlock; zero once unlocked."""
    remaining = capsule.unlock_at - ensure_aware(now)
    return max(remaining, timedelta(0))


class UnlockDecision(BaseModel):
    """
    Result of checking a capsule against the clock.

    Attributes:
        unlocked: Whether content may be shown
        reason: Human-readable explanation
        remaining: Time until unlock (zero when unlocked)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    unlocked: bool = Field(..., description="Whether content may be shown")
    reason: str = Field(..., description="Human-readable explanation")
    remaining: timedelta = Field(
        default=timedelta(0),
        description="Time until unlock",
    )


class CapsuleView(BaseModel):
    """
    What presentation is allowed to show of a capsule right now.

    description and media_items are None / empty while the capsule is locked.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    title: str
    unlock_at: datetime
    include_time: bool
    color: Color
    is_shared: bool
    shared_with: list[str] = Field(default_factory=list)
    unlocked: bool
    remaining: timedelta = timedelta(0)
    description: str | None = None
    media_items: list[MediaItem] = Field(default_factory=list)
    media_count: int | None = None


class UnlockPolicy:
    """
    Applies the unlock rule using a replaceable clock.

    Usage:
        policy = UnlockPolicy()
        if policy.evaluate(capsule).unlocked:
            show(capsule.description)

        # Tests can drive time explicitly
        policy = UnlockPolicy(clock=lambda: fixed_time)

    Attributes:
        clock: Callable returning the current time
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or utc_now

    def now(self) -> datetime:
        return ensure_aware(self.clock())

    def evaluate(self, capsule: Capsule, now: datetime | None = None) -> UnlockDecision:
        """
        Decide whether a capsule's content may be shown.

        Args:
            capsule: The capsule to check
            now: Time to check against (defaults to the policy clock)
        """
        now = ensure_aware(now) if now is not None else self.now()
        if is_unlocked(capsule, now):
            return UnlockDecision(unlocked=True, reason="Unlock date has passed")
        return UnlockDecision(
            unlocked=False,
            reason=f"Locked until {capsule.unlock_at.isoformat()}",
            remaining=time_remaining(capsule, now),
        )

    def view(self, capsule: Capsule, now: datetime | None = None) -> CapsuleView:
        """Build the gated view of a capsule."""
        decision = self.evaluate(capsule, now)
        view = CapsuleView(
            id=capsule.id,
            title=capsule.title,
            unlock_at=capsule.unlock_at,
            include_time=capsule.include_time,
            color=capsule.color,
            is_shared=capsule.is_shared,
            shared_with=list(capsule.shared_with),
            unlocked=decision.unlocked,
            remaining=decision.remaining,
        )
        if not decision.unlocked:
            return view
        return view.model_copy(
            update={
                "description": capsule.description,
                "media_items": list(capsule.media_items),
                "media_count": len(capsule.media_items),
            }
        )

    def partition(
        self,
        capsules: Iterable[Capsule],
        now: datetime | None = None,
    ) -> tuple[list[Capsule], list[Capsule]]:
        """
        Split capsules into (locked, unlocked), keeping their order.
        """
        now = ensure_aware(now) if now is not None else self.now()
        locked: list[Capsule] = []
        unlocked: list[Capsule] = []
        for capsule in capsules:
            (unlocked if is_unlocked(capsule, now) else locked).append(capsule)
        return locked, unlocked
