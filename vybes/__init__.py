"""
Vybes — Progression & Rewards Engine
=====================================
Quest tracking and leveling, the daily login-streak reward cycle, the
weighted lottery wheel, and the coin/XP ledger that backs all three.
The rest of the platform (feed, events, messaging) only reports domain
events into this package and reads summaries back out.

Package layout::

    vybes/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Leveling formula + shared constants
    ├── errors.py          # Domain error taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Quest definition seeder
    ├── engine/
    │   ├── catalog.py     # RewardCatalog (quests, streak table, wheel)
    │   ├── quests.py      # Progress clamping / profile completion
    │   ├── streaks.py     # Calendar-day + streak arithmetic
    │   ├── transactions.py # Tagged ledger metadata variants
    │   └── wheel.py       # Weighted segment selection
    ├── services/
    │   ├── ledger_service.py         # The only balance mutation path
    │   ├── quest_service.py          # QuestTracker
    │   ├── streak_service.py         # StreakTracker
    │   ├── lottery_service.py        # LotteryEngine
    │   ├── progression_service.py    # Read-only summaries
    │   ├── shop_service.py           # Coin spending
    │   ├── admin_service.py          # Audited manual mutations
    │   └── reconciliation_service.py # Ledger ↔ cache drift repair
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency providers + JWT identity
        └── routes/        # Thin HTTP adapters over the services
"""

__version__ = "0.1.0"
