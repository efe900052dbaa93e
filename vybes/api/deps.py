"""
vybes.api.deps — FastAPI dependency injection
==============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated
from zoneinfo import ZoneInfo

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from vybes.config import VybesConfig, load_config
from vybes.database.engine import create_db_engine
from vybes.engine.catalog import RewardCatalog, load_catalog
from vybes.errors import (
    AlreadySpun,
    ConcurrencyConflict,
    InsufficientBalance,
    NotFound,
    ProgressionError,
)

_WEAK_SECRETS = frozenset({
    "vybes-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> VybesConfig:
    return load_config()


@lru_cache(maxsize=4)
def _catalog_for(path: str | None) -> RewardCatalog:
    return load_catalog(path)


def get_catalog(cfg: Annotated[VybesConfig, Depends(get_config)]) -> RewardCatalog:
    return _catalog_for(cfg.catalog_path)


def get_reward_tz(cfg: Annotated[VybesConfig, Depends(get_config)]) -> ZoneInfo:
    return cfg.tz


# ---------------------------------------------------------------------------
# Auth — identity only; the token's ``sub`` is the user id
# ---------------------------------------------------------------------------
def _decode_bearer(authorization: str | None) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return payload


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """Validate JWT and return the caller's user id. Raises 401 if invalid."""
    return str(_decode_bearer(authorization)["sub"])


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate JWT and return admin user payload. Raises 401/403."""
    payload = _decode_bearer(authorization)
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload


def get_trusted_caller(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Backend-to-backend calls (``is_service``) or admins.

    Used where the request carries values the end user must not choose,
    such as an item's price.
    """
    payload = _decode_bearer(authorization)
    if not (payload.get("is_service") or payload.get("is_admin")):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not a trusted caller")
    return payload


# ---------------------------------------------------------------------------
# Domain error → HTTP status
# ---------------------------------------------------------------------------
def http_status_for(exc: ProgressionError) -> int:
    if isinstance(exc, NotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InsufficientBalance):
        return status.HTTP_402_PAYMENT_REQUIRED
    if exc.benign or isinstance(exc, ConcurrencyConflict):
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


def error_body(exc: ProgressionError) -> dict:
    body: dict = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, AlreadySpun):
        body["next_available_at"] = exc.next_available_at.isoformat()
    if isinstance(exc, InsufficientBalance):
        body["required"] = exc.required
        body["balance"] = exc.balance
    return body
