"""
vybes.engine.quests — Quest Progress Arithmetic
================================================

Pure helpers for the quest tracker.  No database I/O.
"""

from __future__ import annotations

from dataclasses import dataclass

from vybes.constants import PROFILE_FIELDS


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    """The profile fields the ``profile_complete`` quest looks at.

    Owned by the identity/profile collaborator; the tracker only reads it.
    """

    name: str | None = None
    bio: str | None = None
    image: str | None = None

    def filled_fields(self) -> int:
        return sum(1 for f in PROFILE_FIELDS if (getattr(self, f) or "").strip())


def clamp_progress(value: int, target: int) -> int:
    """Clamp *value* into ``[0, target]``."""
    return max(0, min(value, target))
