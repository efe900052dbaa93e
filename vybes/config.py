"""
vybes.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for **infrastructure-only** settings (API port,
reward timezone, where the reward catalog lives).  Secrets and the
database URL come from the environment (``.env``), never from this file.
The reward values themselves live in :mod:`vybes.engine.catalog`.

Usage::

    from vybes.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.reward_timezone)   # "Europe/Rome"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure only
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VybesConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    app_name: str
    api_port: int

    # Calendar days for streak claims and wheel spins roll over at local
    # midnight in this zone.
    reward_timezone: str = "UTC"

    # Optional YAML override for the reward catalog
    catalog_path: str | None = None

    cors_origins: tuple[str, ...] = field(default_factory=tuple)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.reward_timezone)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> VybesConfig:
    """Read *path* and return a :class:`VybesConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``reward_timezone`` is not a known IANA zone.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    tz_name = raw.get("reward_timezone") or "UTC"
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown reward_timezone: {tz_name!r}") from exc

    origins = raw.get("cors_origins") or []
    if isinstance(origins, str):
        origins = origins.split(",")

    return VybesConfig(
        app_name=raw["app_name"],
        api_port=int(raw["api_port"]),
        reward_timezone=tz_name,
        catalog_path=raw.get("catalog_path") or None,
        cors_origins=tuple(o.strip().rstrip("/") for o in origins if o.strip()),
    )
