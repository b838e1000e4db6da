# moodpicks/config.py
# ---------------------------------------------------------------------------
# Process-wide settings. Built once at startup from the environment (and an
# optional .env file) and passed explicitly into every provider client.
# ---------------------------------------------------------------------------

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict

from moodpicks.errors import ConfigError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.5
    embedding_model: str = "text-embedding-3-small"

    tmdb_api_key: str
    google_books_api_key: str = ""

    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_market: str = "US"

    cors_origin: str = "*"
    provider_timeout: float = 12.0
    pool_per_type: int = 10
    log_level: str = "INFO"

    @property
    def has_llm(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def has_spotify(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Read settings from ``environ`` (defaults to ``os.environ`` after
        loading a .env file). ``TMDB_API_KEY`` is required; there is no
        built-in fallback key.
        """
        if environ is None:
            load_dotenv(find_dotenv(), override=False)
            environ = os.environ

        def get(*names: str, default: str = "") -> str:
            for name in names:
                value = (environ.get(name) or "").strip()
                if value:
                    return value
            return default

        tmdb_key = get("TMDB_API_KEY")
        if not tmdb_key:
            raise ConfigError("Missing TMDB_API_KEY in environment variables.")

        try:
            timeout = float(get("PROVIDER_TIMEOUT_SECS", default="12.0"))
            temperature = float(get("OPENAI_TEMPERATURE", default="0.5"))
            per_type = int(get("POOL_PER_TYPE", default="10"))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        if timeout <= 0 or per_type <= 0:
            raise ConfigError("PROVIDER_TIMEOUT_SECS and POOL_PER_TYPE must be positive.")

        return cls(
            openai_api_key=get("OPENAI_API_KEY"),
            openai_model=get("OPENAI_MODEL", default="gpt-4o-mini"),
            openai_temperature=temperature,
            embedding_model=get("OPENAI_EMBEDDING_MODEL", default="text-embedding-3-small"),
            tmdb_api_key=tmdb_key,
            google_books_api_key=get("GOOGLE_BOOKS_API_KEY"),
            spotify_client_id=get("SPOTIFY_CLIENT_ID", "SPOTIPY_CLIENT_ID"),
            spotify_client_secret=get("SPOTIFY_CLIENT_SECRET", "SPOTIPY_CLIENT_SECRET"),
            spotify_market=get("SPOTIFY_MARKET", default="US").upper(),
            cors_origin=get("CORS_ORIGIN", default="*"),
            provider_timeout=timeout,
            pool_per_type=per_type,
            log_level=get("LOG_LEVEL", default="INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
