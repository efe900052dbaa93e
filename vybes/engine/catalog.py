"""
vybes.engine.catalog — Reward Catalog
======================================

Static, deployment-owned reward configuration:

* quest definitions (type, target, XP / reputation / coin rewards, roles),
* the 7-day streak reward table,
* the lottery wheel's segment/probability table.

The catalog is read-only at runtime.  A deployment may replace the
defaults with a YAML file (``catalog_path`` in ``config.yaml``); the file
is validated once at load time and rejected with :class:`CatalogError`
rather than half-applied.

This module is pure — no database I/O.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from vybes.constants import PROBABILITY_EPSILON, STREAK_CYCLE_DAYS
from vybes.errors import CatalogError

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_CATALOG",
    "QuestSpec",
    "RewardCatalog",
    "StreakReward",
    "WheelSegment",
    "catalog_from_dict",
    "load_catalog",
]


@dataclass(frozen=True, slots=True)
class QuestSpec:
    """One quest definition as configured by the deployment."""

    quest_type: str
    title: str
    target_progress: int = 1
    xp_reward: int = 0
    reputation_reward: int = 0
    coin_reward: int = 0
    description: str | None = None
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class StreakReward:
    """Reward for one day of the 7-day streak cycle."""

    day: int
    xp: int
    coins: int


@dataclass(frozen=True, slots=True)
class WheelSegment:
    """One reward tier of the lottery wheel."""

    id: int
    coins: int
    probability: float
    label: str = ""
    color: str = "#9e9e9e"


@dataclass(frozen=True, slots=True)
class RewardCatalog:
    """Immutable bundle of every reward table the core reads."""

    quests: tuple[QuestSpec, ...]
    streak_rewards: tuple[StreakReward, ...]
    wheel_segments: tuple[WheelSegment, ...]
    _streak_by_day: dict[int, StreakReward] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        _validate(self)
        object.__setattr__(
            self, "_streak_by_day", {r.day: r for r in self.streak_rewards}
        )

    def streak_reward(self, cycle_day: int) -> StreakReward:
        """Reward for *cycle_day* (1..7)."""
        try:
            return self._streak_by_day[cycle_day]
        except KeyError:
            raise CatalogError(f"No streak reward for cycle day {cycle_day}") from None

    def quest(self, quest_type: str) -> QuestSpec | None:
        for spec in self.quests:
            if spec.quest_type == quest_type:
                return spec
        return None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _validate(catalog: RewardCatalog) -> None:
    seen_types: set[str] = set()
    for q in catalog.quests:
        if not q.quest_type:
            raise CatalogError("Quest with empty quest_type")
        if q.quest_type in seen_types:
            raise CatalogError(f"Duplicate quest_type {q.quest_type!r}")
        seen_types.add(q.quest_type)
        if q.target_progress < 1:
            raise CatalogError(f"Quest {q.quest_type!r}: target_progress must be >= 1")
        if min(q.xp_reward, q.reputation_reward, q.coin_reward) < 0:
            raise CatalogError(f"Quest {q.quest_type!r}: rewards must be non-negative")

    days = sorted(r.day for r in catalog.streak_rewards)
    if days != list(range(1, STREAK_CYCLE_DAYS + 1)):
        raise CatalogError(
            f"Streak table must define days 1..{STREAK_CYCLE_DAYS} exactly once, got {days}"
        )
    for r in catalog.streak_rewards:
        if r.xp < 0 or r.coins < 0:
            raise CatalogError(f"Streak day {r.day}: rewards must be non-negative")

    if not catalog.wheel_segments:
        raise CatalogError("Wheel must have at least one segment")
    ids = [s.id for s in catalog.wheel_segments]
    if len(set(ids)) != len(ids):
        raise CatalogError(f"Duplicate wheel segment ids: {ids}")
    for s in catalog.wheel_segments:
        if not (0.0 <= s.probability <= 1.0) or math.isnan(s.probability):
            raise CatalogError(f"Segment {s.id}: probability must be within [0, 1]")
        if s.coins < 0:
            raise CatalogError(f"Segment {s.id}: coins must be non-negative")
    total = math.fsum(s.probability for s in catalog.wheel_segments)
    if abs(total - 1.0) > PROBABILITY_EPSILON:
        raise CatalogError(f"Wheel probabilities sum to {total!r}, expected 1.0")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
_ALL_ROLES = ("DEFAULT", "ARTIST", "RECRUITER")

DEFAULT_CATALOG = RewardCatalog(
    quests=(
        QuestSpec(
            quest_type="profile_complete",
            title="Complete Profile",
            description="Complete your profile by adding a name, bio and image",
            target_progress=3,
            xp_reward=50,
            reputation_reward=5,
            coin_reward=15,
            roles=_ALL_ROLES,
        ),
        QuestSpec(
            quest_type="first_post",
            title="First Post",
            description="Create your first post on the platform",
            xp_reward=100,
            reputation_reward=10,
            coin_reward=10,
            roles=_ALL_ROLES,
        ),
        QuestSpec(
            quest_type="first_portfolio",
            title="First Portfolio",
            description="Add your first work to your portfolio",
            xp_reward=150,
            reputation_reward=15,
            coin_reward=25,
            roles=("ARTIST",),
        ),
        QuestSpec(
            quest_type="first_event",
            title="First Event",
            description="Create your first event",
            xp_reward=150,
            reputation_reward=15,
            coin_reward=20,
            roles=("RECRUITER",),
        ),
        QuestSpec(
            quest_type="collaboration",
            title="Artistic Collaboration",
            description="Take part in a collaboration with another artist",
            xp_reward=200,
            reputation_reward=20,
            coin_reward=50,
            roles=("ARTIST",),
        ),
        QuestSpec(
            quest_type="join_event",
            title="Join an Event",
            description="Take part in your first event as an artist",
            xp_reward=150,
            reputation_reward=15,
            coin_reward=5,
            roles=("ARTIST",),
        ),
    ),
    streak_rewards=(
        StreakReward(day=1, xp=10, coins=5),
        StreakReward(day=2, xp=15, coins=10),
        StreakReward(day=3, xp=20, coins=15),
        StreakReward(day=4, xp=25, coins=20),
        StreakReward(day=5, xp=35, coins=30),
        StreakReward(day=6, xp=50, coins=40),
        StreakReward(day=7, xp=100, coins=75),
    ),
    wheel_segments=(
        WheelSegment(id=1, coins=5, probability=0.35, label="5 Coins", color="#3b82f6"),
        WheelSegment(id=2, coins=10, probability=0.25, label="10 Coins", color="#8b5cf6"),
        WheelSegment(id=3, coins=15, probability=0.20, label="15 Coins", color="#ec4899"),
        WheelSegment(id=4, coins=20, probability=0.12, label="20 Coins", color="#f59e0b"),
        WheelSegment(id=5, coins=50, probability=0.05, label="50 Coins", color="#ef4444"),
        WheelSegment(id=6, coins=100, probability=0.03, label="100 Coins", color="#10b981"),
    ),
)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------
def catalog_from_dict(raw: dict) -> RewardCatalog:
    """Build a :class:`RewardCatalog` from parsed YAML/JSON.

    Sections missing from *raw* fall back to :data:`DEFAULT_CATALOG`.
    """
    try:
        quests = tuple(
            QuestSpec(
                quest_type=str(q["quest_type"]),
                title=str(q.get("title") or q["quest_type"]),
                target_progress=int(q.get("target_progress", 1)),
                xp_reward=int(q.get("xp_reward", 0)),
                reputation_reward=int(q.get("reputation_reward", 0)),
                coin_reward=int(q.get("coin_reward", 0)),
                description=q.get("description"),
                roles=tuple(q.get("roles") or ()),
            )
            for q in raw["quests"]
        ) if "quests" in raw else DEFAULT_CATALOG.quests

        streak = tuple(
            StreakReward(day=int(r["day"]), xp=int(r["xp"]), coins=int(r["coins"]))
            for r in raw["streak_rewards"]
        ) if "streak_rewards" in raw else DEFAULT_CATALOG.streak_rewards

        segments = tuple(
            WheelSegment(
                id=int(s["id"]),
                coins=int(s["coins"]),
                probability=float(s["probability"]),
                label=str(s.get("label") or f"{s['coins']} Coins"),
                color=str(s.get("color") or "#9e9e9e"),
            )
            for s in raw["wheel_segments"]
        ) if "wheel_segments" in raw else DEFAULT_CATALOG.wheel_segments
    except (KeyError, TypeError, ValueError) as exc:
        raise CatalogError(f"Malformed reward catalog: {exc!r}") from exc

    return RewardCatalog(quests=quests, streak_rewards=streak, wheel_segments=segments)


def load_catalog(path: str | Path | None = None) -> RewardCatalog:
    """Load the reward catalog from *path*, or the defaults when ``None``.

    Raises
    ------
    FileNotFoundError
        If *path* is given but doesn't exist.
    CatalogError
        If the file's contents fail validation.
    """
    if path is None:
        return DEFAULT_CATALOG

    catalog_path = Path(path)
    if not catalog_path.exists():
        raise FileNotFoundError(f"Reward catalog not found: {catalog_path.resolve()}")

    with open(catalog_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise CatalogError("Reward catalog must be a mapping at the top level")

    catalog = catalog_from_dict(raw)
    logger.info(
        "Reward catalog loaded from %s: %d quests, %d wheel segments",
        catalog_path, len(catalog.quests), len(catalog.wheel_segments),
    )
    return catalog
