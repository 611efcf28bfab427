"""
Unlock policy for TimeSnap.

Decides, at read time, whether a capsule's content may be shown.
"""

from timesnap.policy.unlock import (
    CapsuleView,
    UnlockDecision,
    UnlockPolicy,
    is_unlocked,
    time_remaining,
)

__all__ = [
    "CapsuleView",
    "UnlockDecision",
    "UnlockPolicy",
    "is_unlocked",
    "time_remaining",
]
