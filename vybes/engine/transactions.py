"""
vybes.engine.transactions — Ledger Entry Metadata Variants
===========================================================

Each ledger entry type carries its own typed metadata.  Services build one
of these dataclasses; it is turned into a JSON dict (tagged with ``kind``)
only when the entry is written, and parsed back with
:func:`parse_metadata` when read.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields

from vybes.database.models import LedgerEntryType

__all__ = [
    "ManualAdjustment",
    "Purchase",
    "QuestReward",
    "StreakClaim",
    "TransactionMetadata",
    "WheelSpinReward",
    "parse_metadata",
    "to_metadata",
]


@dataclass(frozen=True, slots=True)
class QuestReward:
    quest_id: int
    quest_type: str

    kind = LedgerEntryType.QUEST_REWARD


@dataclass(frozen=True, slots=True)
class StreakClaim:
    day: str  # ISO calendar day
    cycle_day: int
    streak_length: int

    kind = LedgerEntryType.STREAK_CLAIM


@dataclass(frozen=True, slots=True)
class WheelSpinReward:
    segment_id: int
    label: str

    kind = LedgerEntryType.WHEEL_SPIN


@dataclass(frozen=True, slots=True)
class Purchase:
    item_id: str
    item_name: str

    kind = LedgerEntryType.PURCHASE


@dataclass(frozen=True, slots=True)
class ManualAdjustment:
    reason: str
    actor_id: str

    kind = LedgerEntryType.MANUAL_ADJUSTMENT


TransactionMetadata = QuestReward | StreakClaim | WheelSpinReward | Purchase | ManualAdjustment

_BY_KIND: dict[str, type] = {
    cls.kind.value: cls
    for cls in (QuestReward, StreakClaim, WheelSpinReward, Purchase, ManualAdjustment)
}


def to_metadata(variant: TransactionMetadata) -> dict:
    """Serialize *variant* for the ``ledger_entries.metadata`` column."""
    return {"kind": variant.kind.value, **asdict(variant)}


def parse_metadata(raw: dict | None) -> TransactionMetadata | None:
    """Rebuild the typed variant from a stored dict.

    Returns ``None`` for missing metadata or an unknown ``kind``; unknown
    extra keys are ignored so older rows stay readable.
    """
    if not raw:
        return None
    cls = _BY_KIND.get(raw.get("kind", ""))
    if cls is None:
        return None
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in names})
