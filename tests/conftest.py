"""Shared fixtures and provider fakes for the moodpicks tests."""

from __future__ import annotations

import asyncio
import random
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from moodpicks.config import Settings
from moodpicks.errors import ProviderError
from moodpicks.schemas import CandidateItem, ScoredItem

# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------

VOCAB = ("happy", "joy", "funny", "sad", "dark", "love", "space", "war")


def text_vector(text: str) -> List[float]:
    """Bag-of-words vector over VOCAB plus a small constant component."""
    low = text.lower()
    return [float(low.count(w)) for w in VOCAB] + [0.1]


class FakeEmbedder:
    def __init__(self, fail: bool = False, truncate_batches_of: Optional[int] = None) -> None:
        self.fail = fail
        self.truncate_batches_of = truncate_batches_of
        self.calls: List[List[str]] = []

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise ProviderError("embeddings unavailable")
        vectors = [text_vector(t) for t in texts]
        if self.truncate_batches_of is not None and len(texts) == self.truncate_batches_of:
            return vectors[:-1]
        return vectors


# ---------------------------------------------------------------------------
# Candidate sources and catalogs
# ---------------------------------------------------------------------------


class FakeSource:
    def __init__(self, items: Optional[List[CandidateItem]] = None, error: Optional[Exception] = None,
                 delay: float = 0.0) -> None:
        self.items = items or []
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[str, str]] = []

    async def fetch(self, mood: str, criteria: str = "") -> List[CandidateItem]:
        self.calls.append((mood, criteria))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.items)


class FakeTMDb:
    def __init__(self, results: Optional[Dict[Tuple[str, str], list]] = None,
                 details_by_id: Optional[Dict[Tuple[str, str], dict]] = None,
                 trending_results: Optional[Dict[str, list]] = None,
                 fail: bool = False, delays: Optional[Dict[str, float]] = None) -> None:
        self.results = results or {}
        self.details_by_id = details_by_id or {}
        self.trending_results = trending_results or {}
        self.fail = fail
        self.delays = delays or {}
        self.queries: List[Tuple[str, str]] = []

    async def search(self, media_type: str, query: str) -> list:
        self.queries.append((media_type, query))
        if query in self.delays:
            await asyncio.sleep(self.delays[query])
        if self.fail:
            raise ProviderError("TMDB down")
        return list(self.results.get((media_type, query), []))

    async def details(self, media_type: str, tmdb_id: str) -> dict:
        if self.fail or (media_type, tmdb_id) not in self.details_by_id:
            raise ProviderError("TMDB returned HTTP 404")
        return self.details_by_id[(media_type, tmdb_id)]

    async def trending(self, media_type: str, window: str = "week") -> list:
        if self.fail:
            raise ProviderError("TMDB down")
        return list(self.trending_results.get(media_type, []))


class FakeBooks:
    def __init__(self, results: Optional[Dict[str, list]] = None,
                 volumes: Optional[Dict[str, dict]] = None, fail: bool = False) -> None:
        self.results = results or {}
        self.volumes = volumes or {}
        self.fail = fail
        self.queries: List[str] = []

    async def search(self, title: str, limit: int = 5) -> list:
        self.queries.append(title)
        if self.fail:
            raise ProviderError("Google Books down")
        return list(self.results.get(title, []))[:limit]

    async def volume(self, volume_id: str) -> dict:
        if self.fail or volume_id not in self.volumes:
            raise ProviderError("Google Books returned HTTP 404")
        return self.volumes[volume_id]


class FakePlaylists:
    def __init__(self, url: Optional[str] = None) -> None:
        self.url = url
        self.queries: List[str] = []

    async def find_playlist(self, query: str) -> Optional[str]:
        self.queries.append(query)
        return self.url


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(tmdb_api_key="tmdb-test", openai_api_key="sk-test")


@pytest.fixture
def rng() -> random.Random:
    return random.Random(7)


@pytest.fixture
def happy_pool() -> List[CandidateItem]:
    """Two movies and one book, as the LLM would propose them."""
    return [
        CandidateItem(title="Paddington 2", type="movie",
                      description="A joyful, funny bear adventure.", tags=["Comedy", "Family"]),
        CandidateItem(title="The Grand Budapest Hotel (2014)", type="movie",
                      description="A funny caper full of joy.", tags=["comedy", "caper"]),
        CandidateItem(title="The Hitchhiker's Guide to the Galaxy", type="book",
                      description="Funny space adventure.", tags=["Science Fiction", "humor"]),
    ]


def make_scored(title: str, score: float, media_type: str = "movie") -> ScoredItem:
    return ScoredItem(title=title, type=media_type, score=score, reason="test")
