"""
vybes.errors — Domain Error Taxonomy
=====================================

Every failure a caller of the progression core can observe.

``benign`` errors are idempotent outcomes (the reward was already granted,
the day's claim already exists).  Callers should show them to the user but
never alarm on them.  None of these errors imply a partial write: every
reward path runs in a single session that is rolled back on raise.
"""

from __future__ import annotations

from datetime import datetime


class ProgressionError(Exception):
    """Base class for all progression-core errors."""

    benign: bool = False


class NotFound(ProgressionError):
    """Unknown user, quest, or item."""


class AlreadyCompleted(ProgressionError):
    """The quest was already completed for this user."""

    benign = True


class AlreadyClaimed(ProgressionError):
    """The daily reward was already claimed for this calendar day."""

    benign = True


class AlreadySpun(ProgressionError):
    """The wheel was already spun for this calendar day."""

    benign = True

    def __init__(self, next_available_at: datetime) -> None:
        super().__init__(f"Wheel already spun; next spin at {next_available_at.isoformat()}")
        self.next_available_at = next_available_at


class AlreadyOwned(ProgressionError):
    """The user already purchased this item."""

    benign = True


class InsufficientBalance(ProgressionError):
    """A debit would take the coin balance below zero."""

    def __init__(self, required: int, balance: int) -> None:
        super().__init__(f"Insufficient balance: required {required}, available {balance}")
        self.required = required
        self.balance = balance


class ConcurrencyConflict(ProgressionError):
    """Lost a conditional-write race.

    The caller should re-read state; the winning request already applied
    the credit, so retrying the credit would be wrong.
    """


class CatalogError(ValueError):
    """Reward catalog configuration is invalid."""
