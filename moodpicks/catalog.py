# moodpicks/catalog.py
# ---------------------------------------------------------------------------
# Catalog clients: TMDB (movies, TV) and Google Books.
# Every HTTP failure surfaces as ProviderError; callers decide how to degrade.
# ---------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from difflib import SequenceMatcher
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from moodpicks.errors import ProviderError
from moodpicks.schemas import CandidateItem

log = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w500"
GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"

# TMDB genre ids are stable; trending results only carry ids.
TMDB_GENRES: Dict[int, str] = {
    28: "Action", 12: "Adventure", 16: "Animation", 35: "Comedy", 80: "Crime",
    99: "Documentary", 18: "Drama", 10751: "Family", 14: "Fantasy", 36: "History",
    27: "Horror", 10402: "Music", 9648: "Mystery", 10749: "Romance",
    878: "Science Fiction", 10770: "TV Movie", 53: "Thriller", 10752: "War",
    37: "Western", 10759: "Action & Adventure", 10762: "Kids", 10763: "News",
    10764: "Reality", 10765: "Sci-Fi & Fantasy", 10766: "Soap", 10767: "Talk",
    10768: "War & Politics",
}

_ANNOTATION_RE = re.compile(r"\s*(\([^)]*\)|\[[^\]]*\])")


def strip_annotations(title: str) -> str:
    """'Amélie (2001) [French]' -> 'Amélie'"""
    stripped = _ANNOTATION_RE.sub("", title or "")
    return re.sub(r"\s+", " ", stripped).strip() or (title or "").strip()


def title_similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, (a or "").casefold(), (b or "").casefold()).ratio()


def best_match(
    title: str,
    results: Sequence[Dict[str, Any]],
    key: Callable[[Dict[str, Any]], str],
) -> Optional[Dict[str, Any]]:
    """Closest title wins; on equal ratios the catalog's own order decides."""
    best, best_ratio = None, -1.0
    for rec in results:
        ratio = title_similarity(title, key(rec))
        if ratio > best_ratio:
            best, best_ratio = rec, ratio
    return best


async def _get_json(http: httpx.AsyncClient, url: str, params: Dict[str, Any], source: str) -> Dict[str, Any]:
    try:
        r = await http.get(url, params=params)
        r.raise_for_status()
        data = r.json()
    except httpx.HTTPStatusError as e:
        raise ProviderError(f"{source} returned HTTP {e.response.status_code} for {e.request.url.path}") from e
    except (httpx.HTTPError, ValueError) as e:
        raise ProviderError(f"{source} request failed: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError(f"{source} returned an unexpected payload")
    return data


# ---------------------------------------------------------------------------
# TMDB
# ---------------------------------------------------------------------------
class TMDbClient:
    """The Movie Database v3 client (movie and tv)."""

    def __init__(self, api_key: str, http: httpx.AsyncClient, base_url: str = TMDB_BASE_URL) -> None:
        self._api_key = api_key
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = {"api_key": self._api_key, "language": "en-US", **(params or {})}
        return await _get_json(self._http, f"{self._base_url}{endpoint}", query, "TMDB")

    async def search(self, media_type: str, query: str) -> List[Dict[str, Any]]:
        data = await self.get(f"/search/{media_type}", {"query": query, "include_adult": "false"})
        return [r for r in data.get("results") or [] if isinstance(r, dict) and r.get("id")]

    async def details(self, media_type: str, tmdb_id: str) -> Dict[str, Any]:
        return await self.get(f"/{media_type}/{tmdb_id}", {"append_to_response": "keywords"})

    async def trending(self, media_type: str, window: str = "week") -> List[Dict[str, Any]]:
        data = await self.get(f"/trending/{media_type}/{window}")
        return [r for r in data.get("results") or [] if isinstance(r, dict) and r.get("id")]

    @staticmethod
    def result_title(rec: Dict[str, Any]) -> str:
        return rec.get("title") or rec.get("name") or ""

    @staticmethod
    def poster_url(rec: Dict[str, Any]) -> Optional[str]:
        path = rec.get("poster_path")
        return f"{TMDB_IMAGE_BASE}{path}" if path else None

    @classmethod
    def to_candidate(cls, rec: Dict[str, Any], media_type: str) -> Optional[CandidateItem]:
        title = cls.result_title(rec).strip()
        if not title:
            return None
        genres = [TMDB_GENRES[g] for g in rec.get("genre_ids") or [] if g in TMDB_GENRES]
        return CandidateItem(
            title=title,
            type=media_type,
            description=rec.get("overview") or "",
            tags=genres,
            external_id=str(rec["id"]),
            image=cls.poster_url(rec),
        )


# ---------------------------------------------------------------------------
# Google Books
# ---------------------------------------------------------------------------
class GoogleBooksClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str = "", base_url: str = GOOGLE_BOOKS_URL) -> None:
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    def _params(self, extra: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(extra)
        if self._api_key:
            params["key"] = self._api_key
        return params

    async def search(self, title: str, limit: int = 5) -> List[Dict[str, Any]]:
        params = self._params({"q": f'intitle:"{title}"', "maxResults": limit, "printType": "books"})
        data = await _get_json(self._http, self._base_url, params, "Google Books")
        return [v for v in data.get("items") or [] if isinstance(v, dict) and v.get("id")]

    async def volume(self, volume_id: str) -> Dict[str, Any]:
        return await _get_json(self._http, f"{self._base_url}/{volume_id}", self._params({}), "Google Books")

    @staticmethod
    def volume_title(vol: Dict[str, Any]) -> str:
        return ((vol.get("volumeInfo") or {}).get("title") or "").strip()

    @staticmethod
    def volume_description(vol: Dict[str, Any]) -> str:
        text = (vol.get("volumeInfo") or {}).get("description") or ""
        return re.sub(r"<[^>]+>", "", text).strip()

    @staticmethod
    def volume_image(vol: Dict[str, Any]) -> Optional[str]:
        links = (vol.get("volumeInfo") or {}).get("imageLinks") or {}
        thumb = links.get("thumbnail") or links.get("smallThumbnail")
        # Google returns http URLs; upgrade to https
        return thumb.replace("http://", "https://", 1) if thumb else None

    @staticmethod
    def volume_categories(vol: Dict[str, Any]) -> List[str]:
        out: List[str] = []
        for cat in (vol.get("volumeInfo") or {}).get("categories") or []:
            out.extend(p.strip() for p in str(cat).split("/") if p.strip())
        return out
