# moodpicks/pipeline.py
# ---------------------------------------------------------------------------
# Request-scoped orchestration:
#   reference | pool | playlist  (concurrent)
#   -> enrichment | mood embedding (concurrent)
#   -> per-category hybrid scoring (concurrent) -> finalize -> response
# ---------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence

import httpx

from moodpicks.catalog import GoogleBooksClient, TMDbClient
from moodpicks.config import Settings
from moodpicks.enrichment import Enricher
from moodpicks.errors import ConfigError, ProviderError
from moodpicks.llm_helper import LLMCandidateSource, OpenAIEmbedder, make_openai_client
from moodpicks.pool import CandidatePool, TrendingCandidateSource
from moodpicks.ranking import dedupe_candidates, finalize
from moodpicks.reference import ReferenceResolver, build_context
from moodpicks.schemas import (
    MEDIA_TYPES, CandidateItem, MoodQuery, MoodResponse, ScoredItem, SearchHit,
)
from moodpicks.scoring import score_candidates
from moodpicks.spotify import SpotifyPlaylistClient

log = logging.getLogger(__name__)

MISSING_LLM_MESSAGE = "Missing OPENAI_API_KEY in environment variables."
SEARCH_HITS_PER_SOURCE = 5


def assemble_response(final: Dict[str, List[ScoredItem]], playlist: Optional[str]) -> MoodResponse:
    return MoodResponse(
        movies=final.get("movie", []),
        tv=final.get("tv", []),
        books=final.get("book", []),
        spotify=playlist,
    )


class MoodPipeline:
    def __init__(
        self,
        pool: Optional[CandidatePool],
        embedder,
        enricher: Enricher,
        references: ReferenceResolver,
        playlists: Optional[SpotifyPlaylistClient],
        tmdb: TMDbClient,
        books: GoogleBooksClient,
        timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.pool = pool
        self.embedder = embedder
        self.enricher = enricher
        self.references = references
        self.playlists = playlists
        self.tmdb = tmdb
        self.books = books
        self.timeout = timeout
        self.rng = rng

    # ------------------------------------------------------------------
    # Mood path
    # ------------------------------------------------------------------
    async def recommend(self, query: MoodQuery) -> MoodResponse:
        if self.pool is None or self.embedder is None:
            raise ConfigError(MISSING_LLM_MESSAGE)
        mood = (query.mood_text or "").strip()

        reference, pool, playlist = await asyncio.gather(
            self.references.resolve(query.ref_id, query.ref_type),
            self.pool.get_pool(mood, query.criteria),
            self._playlist(query.playlist_query()),
        )
        context = build_context(query, reference)

        enriched, mood_vectors = await asyncio.gather(
            self.enricher.enrich_all(pool),
            self._embed_context(context.embedding_text()),
        )
        candidates = dedupe_candidates(enriched)

        by_type: Dict[str, List[CandidateItem]] = {t: [] for t in MEDIA_TYPES}
        for item in candidates:
            by_type[item.type].append(item)

        scored = await self._score_categories(
            by_type, mood_vectors[0], context.reference_keywords, context.reference_genres,
        )
        final = {t: finalize(items, rng=self.rng) for t, items in scored.items()}

        log.info(
            "mood=%r pool=%d movies=%d tv=%d books=%d playlist=%s",
            mood, len(pool), len(final["movie"]), len(final["tv"]), len(final["book"]),
            "yes" if playlist else "no",
        )
        return assemble_response(final, playlist)

    async def _embed_context(self, text: str) -> List[List[float]]:
        # mandatory: no mood vector means nothing can be ranked
        vectors = await asyncio.wait_for(self.embedder.embed([text]), self.timeout)
        if len(vectors) != 1:
            raise ProviderError(f"expected 1 mood embedding, got {len(vectors)}")
        return vectors

    async def _score_categories(
        self,
        by_type: Dict[str, List[CandidateItem]],
        mood_vector: Sequence[float],
        keywords,
        genres,
    ) -> Dict[str, List[ScoredItem]]:
        types = list(by_type)
        results = await asyncio.gather(
            *(self._score_one(by_type[t], mood_vector, keywords, genres) for t in types),
            return_exceptions=True,
        )

        scored: Dict[str, List[ScoredItem]] = {}
        errors: List[BaseException] = []
        attempted = 0
        for t, res in zip(types, results):
            if by_type[t]:
                attempted += 1
            if isinstance(res, BaseException):
                log.error("Scoring failed for %s category", t, exc_info=res)
                errors.append(res)
                scored[t] = []
            else:
                scored[t] = res

        if attempted and len(errors) == attempted:
            raise errors[0]
        return scored

    async def _score_one(self, items, mood_vector, keywords, genres) -> List[ScoredItem]:
        try:
            return await asyncio.wait_for(
                score_candidates(items, mood_vector, keywords, genres, self.embedder),
                self.timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Scoring %d %s item(s) timed out", len(items), items[0].type)
            return []

    async def _playlist(self, query: str) -> Optional[str]:
        if self.playlists is None:
            return None
        try:
            return await asyncio.wait_for(self.playlists.find_playlist(query), self.timeout)
        except asyncio.TimeoutError:
            log.warning("Spotify playlist lookup timed out for %r", query)
            return None
        except Exception:
            # the playlist is optional; it never fails the request
            log.exception("Spotify playlist lookup crashed for %r", query)
            return None

    # ------------------------------------------------------------------
    # Search path
    # ------------------------------------------------------------------
    async def search(self, text: str) -> List[SearchHit]:
        text = (text or "").strip()
        if not text:
            return []
        movies, shows, books = await asyncio.gather(
            self._bounded(self.tmdb.search("movie", text), "TMDB movie search"),
            self._bounded(self.tmdb.search("tv", text), "TMDB tv search"),
            self._bounded(self.books.search(text, limit=SEARCH_HITS_PER_SOURCE), "Google Books search"),
        )

        hits: List[SearchHit] = []
        for media_type, results in (("movie", movies), ("tv", shows)):
            for rec in results[:SEARCH_HITS_PER_SOURCE]:
                title = TMDbClient.result_title(rec)
                if title:
                    hits.append(SearchHit(
                        id=str(rec["id"]), title=title, type=media_type,
                        image=TMDbClient.poster_url(rec),
                    ))
        for vol in books[:SEARCH_HITS_PER_SOURCE]:
            title = GoogleBooksClient.volume_title(vol)
            if title:
                hits.append(SearchHit(
                    id=str(vol["id"]), title=title, type="book",
                    image=GoogleBooksClient.volume_image(vol),
                ))
        return hits

    async def _bounded(self, coro, what: str) -> list:
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except (ProviderError, asyncio.TimeoutError) as e:
            log.warning("%s failed: %s", what, str(e) or "timeout")
            return []


def build_pipeline(settings: Settings, http: httpx.AsyncClient) -> MoodPipeline:
    """Wire the real providers. OpenAI clients exist only when a key is set."""
    tmdb = TMDbClient(settings.tmdb_api_key, http)
    books = GoogleBooksClient(http, api_key=settings.google_books_api_key)

    pool = embedder = None
    if settings.has_llm:
        openai_client = make_openai_client(settings)
        pool = CandidatePool(
            primary=LLMCandidateSource(
                openai_client,
                model=settings.openai_model,
                temperature=settings.openai_temperature,
                per_type=settings.pool_per_type,
            ),
            fallback=TrendingCandidateSource(tmdb),
            timeout=settings.provider_timeout,
        )
        embedder = OpenAIEmbedder(openai_client, model=settings.embedding_model)
    else:
        log.warning("OPENAI_API_KEY not set; only the search path is available.")

    playlists = None
    if settings.has_spotify:
        playlists = SpotifyPlaylistClient(
            settings.spotify_client_id,
            settings.spotify_client_secret,
            http,
            market=settings.spotify_market,
        )

    return MoodPipeline(
        pool=pool,
        embedder=embedder,
        enricher=Enricher(tmdb, books, timeout=settings.provider_timeout),
        references=ReferenceResolver(tmdb, books, timeout=settings.provider_timeout),
        playlists=playlists,
        tmdb=tmdb,
        books=books,
        timeout=settings.provider_timeout,
    )
