"""Slug lifecycle, verification and moderation services."""
