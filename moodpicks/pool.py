from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from moodpicks.catalog import TMDbClient
from moodpicks.errors import ProviderError
from moodpicks.ranking import dedupe_candidates
from moodpicks.schemas import CandidateItem

log = logging.getLogger(__name__)


class TrendingCandidateSource:
    """Fallback pool: this week's trending movies and TV from TMDB."""

    def __init__(self, tmdb: TMDbClient) -> None:
        self._tmdb = tmdb

    async def fetch(self, mood: str = "", criteria: str = "") -> List[CandidateItem]:
        media_types = ("movie", "tv")
        feeds = await asyncio.gather(
            *(self._tmdb.trending(t) for t in media_types), return_exceptions=True
        )
        failures = [f for f in feeds if isinstance(f, BaseException)]
        for f in failures:
            if not isinstance(f, ProviderError):
                raise f
        if len(failures) == len(feeds):
            raise failures[0]

        items: List[CandidateItem] = []
        for media_type, results in zip(media_types, feeds):
            if isinstance(results, BaseException):
                log.warning("Trending %s feed unavailable: %s", media_type, results)
                continue
            for rec in results:
                item = TMDbClient.to_candidate(rec, media_type)
                if item is not None:
                    items.append(item)
        return items


class CandidatePool:
    """
    Two-stage pool: the primary source (LLM) first, the fallback source when
    the primary fails, times out or comes back empty. Provider failures and
    timeouts never raise; anything else propagates.
    """

    def __init__(self, primary, fallback=None, timeout: Optional[float] = None) -> None:
        self._primary = primary
        self._fallback = fallback
        self._timeout = timeout

    async def get_pool(self, mood: str, criteria: str = "") -> List[CandidateItem]:
        items = await self._try("primary", self._primary, mood, criteria)
        if items:
            return items

        if self._fallback is None:
            log.error("Candidate pool is empty for mood=%r and no fallback is configured.", mood)
            return []

        log.warning("Primary candidate pool empty for mood=%r; using fallback.", mood)
        items = await self._try("fallback", self._fallback, mood, criteria)
        if not items:
            log.error("Candidate pool is empty after fallback for mood=%r.", mood)
        return items

    async def _try(self, stage: str, source, mood: str, criteria: str) -> List[CandidateItem]:
        try:
            items = await asyncio.wait_for(source.fetch(mood, criteria), self._timeout)
        except (ProviderError, asyncio.TimeoutError) as e:
            log.warning("%s candidate source failed: %s", stage.capitalize(), str(e) or "timeout")
            return []
        return dedupe_candidates(items or [])
