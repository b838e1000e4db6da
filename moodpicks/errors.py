# moodpicks/errors.py
from __future__ import annotations


class MoodPicksError(Exception):
    """Base class for errors raised by the recommendation service."""


class ConfigError(MoodPicksError):
    """Required configuration is missing or malformed."""


class ProviderError(MoodPicksError):
    """An external provider (LLM, embeddings, catalog, Spotify) failed."""
