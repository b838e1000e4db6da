from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from moodpicks.catalog import GoogleBooksClient, TMDbClient, best_match, strip_annotations
from moodpicks.errors import ProviderError
from moodpicks.schemas import CandidateItem

log = logging.getLogger(__name__)


class Enricher:
    """
    Attaches catalog id, canonical title, cover/poster and description to
    LLM-proposed candidates by fuzzy title match. Misses are not errors:
    the candidate passes through unchanged.
    """

    def __init__(self, tmdb: TMDbClient, books: GoogleBooksClient, timeout: Optional[float] = None) -> None:
        self._tmdb = tmdb
        self._books = books
        self._timeout = timeout

    async def enrich_all(self, items: Sequence[CandidateItem]) -> List[CandidateItem]:
        # gather keeps input order, whatever order lookups finish in
        return list(await asyncio.gather(*(self.enrich_one(i) for i in items)))

    async def enrich_one(self, item: CandidateItem) -> CandidateItem:
        if item.external_id:
            return item
        try:
            return await asyncio.wait_for(self._lookup(item), self._timeout)
        except (ProviderError, asyncio.TimeoutError) as e:
            log.warning("Enrichment failed for %s %r: %s", item.type, item.title, str(e) or "timeout")
            return item
        except Exception:
            log.exception("Unexpected catalog data while enriching %s %r", item.type, item.title)
            return item

    async def _lookup(self, item: CandidateItem) -> CandidateItem:
        query = strip_annotations(item.title)
        if item.type == "book":
            return await self._lookup_book(item, query)
        return await self._lookup_screen(item, query)

    async def _lookup_screen(self, item: CandidateItem, query: str) -> CandidateItem:
        results = await self._tmdb.search(item.type, query)
        match = best_match(query, results, TMDbClient.result_title)
        if match is None:
            log.info("No TMDB %s match for %r", item.type, item.title)
            return item
        return item.with_enrichment(
            external_id=str(match["id"]),
            title=TMDbClient.result_title(match),
            description=match.get("overview"),
            image=TMDbClient.poster_url(match),
        )

    async def _lookup_book(self, item: CandidateItem, query: str) -> CandidateItem:
        results = await self._books.search(query)
        match = best_match(query, results, GoogleBooksClient.volume_title)
        if match is None:
            log.info("No Google Books match for %r", item.title)
            return item
        return item.with_enrichment(
            external_id=str(match["id"]),
            title=GoogleBooksClient.volume_title(match),
            description=GoogleBooksClient.volume_description(match),
            image=GoogleBooksClient.volume_image(match),
        )
