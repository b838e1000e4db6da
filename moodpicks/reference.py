from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from moodpicks.catalog import GoogleBooksClient, TMDbClient
from moodpicks.errors import ProviderError
from moodpicks.schemas import MoodContext, MoodQuery, Reference

log = logging.getLogger(__name__)


def _names(entries: Any) -> List[str]:
    return [e["name"] for e in entries or [] if isinstance(e, dict) and e.get("name")]


class ReferenceResolver:
    """Fetches title, synopsis, keywords and genres of a reference title."""

    def __init__(self, tmdb: TMDbClient, books: GoogleBooksClient, timeout: Optional[float] = None) -> None:
        self._tmdb = tmdb
        self._books = books
        self._timeout = timeout

    async def resolve(self, ref_id: Optional[str], ref_type: Optional[str]) -> Optional[Reference]:
        if not ref_id or not ref_type:
            return None
        try:
            return await asyncio.wait_for(self._fetch(ref_id, ref_type), self._timeout)
        except (ProviderError, asyncio.TimeoutError) as e:
            log.warning("Could not resolve reference %s/%s: %s", ref_type, ref_id, str(e) or "timeout")
            return None
        except Exception:
            log.exception("Reference %s/%s could not be parsed", ref_type, ref_id)
            return None

    async def _fetch(self, ref_id: str, ref_type: str) -> Optional[Reference]:
        if ref_type == "book":
            vol = await self._books.volume(ref_id)
            categories = GoogleBooksClient.volume_categories(vol)
            return Reference(
                title=GoogleBooksClient.volume_title(vol),
                overview=GoogleBooksClient.volume_description(vol),
                keywords=frozenset(),
                genres=frozenset(categories),
            )

        data = await self._tmdb.details(ref_type, ref_id)
        kw_block: Dict[str, Any] = data.get("keywords") or {}
        # movies nest keywords under "keywords", tv under "results"
        keywords = _names(kw_block.get("keywords") or kw_block.get("results"))
        return Reference(
            title=TMDbClient.result_title(data),
            overview=data.get("overview") or "",
            keywords=frozenset(keywords),
            genres=frozenset(_names(data.get("genres"))),
        )


def build_context(query: MoodQuery, reference: Optional[Reference]) -> MoodContext:
    ref = reference or Reference()
    return MoodContext(
        mood_text=(query.mood_text or "").strip(),
        criteria=query.criteria,
        reference_title=ref.title,
        reference_overview=ref.overview,
        reference_keywords=ref.keywords,
        reference_genres=ref.genres,
    )
