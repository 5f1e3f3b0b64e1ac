"""Collision-free placeholder slugs ("pending-<kind>-<random>")."""

from __future__ import annotations

import secrets
import string

from flask import current_app

from studiohub.services.errors import Result, exhausted_retries
from studiohub.services.slug_store import SlugStore

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class TemporarySlugAllocator:
    """Generates a temporary slug that is not live in the store's table."""

    def __init__(self, store: SlugStore, max_attempts: int | None = None, suffix_length: int | None = None):
        self.store = store
        self.max_attempts = max_attempts or current_app.config.get('TEMP_SLUG_MAX_ATTEMPTS', 10)
        self.suffix_length = suffix_length or current_app.config.get('TEMP_SLUG_SUFFIX_LENGTH', 10)

    def _candidate(self) -> str:
        suffix = ''.join(secrets.choice(SUFFIX_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.store.slug_kind.temp_prefix}{suffix}"

    def allocate(self) -> Result[str]:
        for _ in range(self.max_attempts):
            candidate = self._candidate()
            if not self.store.slug_exists(candidate):
                return candidate, None

        label = self.store.slug_kind.label
        current_app.logger.error(f"Exhausted {self.max_attempts} attempts generating a temporary {label} slug")
        return None, exhausted_retries(f"Failed to generate unique temporary {label} slug")


__all__ = ['TemporarySlugAllocator', 'SUFFIX_ALPHABET']
