"""Slug normalization, validation and per-kind settings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app

from studiohub.models import GamePage, SlugEntityKind, Studio

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')


@dataclass(frozen=True)
class SlugKind:
    """Everything that differs between the slug-holding tables."""

    kind: SlugEntityKind
    model: type
    label: str
    temp_prefix: str
    max_length: int
    # Game pages stamp last_slug_change on promotion as well as demotion
    stamp_on_promote: bool


STUDIO = SlugKind(
    kind=SlugEntityKind.STUDIO,
    model=Studio,
    label='studio',
    temp_prefix='pending-studio-',
    max_length=50,
    stamp_on_promote=False,
)

GAME_PAGE = SlugKind(
    kind=SlugEntityKind.GAME_PAGE,
    model=GamePage,
    label='game page',
    temp_prefix='pending-game-',
    max_length=150,
    stamp_on_promote=True,
)

_KINDS = {STUDIO.kind: STUDIO, GAME_PAGE.kind: GAME_PAGE}


def kind_for(entity_kind: SlugEntityKind | str) -> SlugKind:
    """Return the settings for an entity kind (enum or its string value)."""
    if not isinstance(entity_kind, SlugEntityKind):
        entity_kind = SlugEntityKind(entity_kind)
    return _KINDS[entity_kind]


def normalize_slug(value: str) -> str:
    return value.strip().lower()


def is_temporary_slug(slug_kind: SlugKind, slug: str | None) -> bool:
    return bool(slug) and slug.startswith(slug_kind.temp_prefix)


def validate_slug(slug_kind: SlugKind, slug: str) -> str | None:
    """
    Validate a user-chosen slug.

    Returns:
        Error message or None
    """
    if not slug:
        return "Slug cannot be empty"

    if len(slug) < 3:
        return "Slug must be at least 3 characters long"

    if len(slug) > slug_kind.max_length:
        return f"Slug must be {slug_kind.max_length} characters or less"

    if not SLUG_PATTERN.match(slug):
        return "Slug must be lowercase letters, numbers, and hyphens only"

    if slug.startswith(STUDIO.temp_prefix) or slug.startswith(GAME_PAGE.temp_prefix):
        return "Slugs starting with 'pending-studio-' or 'pending-game-' are reserved for internal use"

    return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def cooldown_hours_left(last_change: datetime | None, now: datetime | None = None) -> int:
    """Hours (rounded up) until a self-service edit is allowed again; 0 if allowed now."""
    last_change = as_utc(last_change)
    if last_change is None:
        return 0

    cooldown = timedelta(hours=current_app.config.get('SLUG_CHANGE_COOLDOWN_HOURS', 24))
    elapsed = (now or utcnow()) - last_change
    if elapsed >= cooldown:
        return 0

    remaining = cooldown - elapsed
    hours, rest = divmod(remaining.total_seconds(), 3600)
    return int(hours) + (1 if rest else 0)


__all__ = [
    'SlugKind',
    'STUDIO',
    'GAME_PAGE',
    'kind_for',
    'normalize_slug',
    'is_temporary_slug',
    'validate_slug',
    'utcnow',
    'as_utc',
    'cooldown_hours_left',
]
