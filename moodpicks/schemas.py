from __future__ import annotations

import re
from typing import Any, FrozenSet, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

MediaType = Literal["movie", "tv", "book"]
MEDIA_TYPES: Tuple[MediaType, ...] = ("movie", "tv", "book")

# LLM output drifts on type names; map the spellings we see to canonical types.
_TYPE_ALIASES = {
    "movie": "movie", "movies": "movie", "film": "movie", "films": "movie",
    "tv": "tv", "tvseries": "tv", "tv series": "tv", "tv show": "tv", "tvshow": "tv",
    "show": "tv", "series": "tv", "tv-series": "tv", "television": "tv", "miniseries": "tv",
    "book": "book", "books": "book", "novel": "book", "novella": "book",
}


def coerce_media_type(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    key = re.sub(r"[_\s]+", " ", value.strip().lower())
    return _TYPE_ALIASES.get(key) or _TYPE_ALIASES.get(key.replace(" ", ""))


class CandidateItem(BaseModel):
    """One recommendable unit. Immutable; enrichment returns a copy."""

    model_config = ConfigDict(frozen=True)

    title: str
    type: MediaType
    description: str = ""
    tags: Tuple[str, ...] = ()
    external_id: Optional[str] = Field(default=None, serialization_alias="id")
    image: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> str:
        title = str(v or "").strip()
        if not title:
            raise ValueError("title must not be empty")
        return title

    @field_validator("type", mode="before")
    @classmethod
    def _canonical_type(cls, v: Any) -> Any:
        return coerce_media_type(v) or v

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return str(v or "").strip()

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> Tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(",")
        out: List[str] = []
        seen = set()
        for t in v:
            if not isinstance(t, str):
                continue
            t = t.strip()
            if t and t.lower() not in seen:
                out.append(t)
                seen.add(t.lower())
        return tuple(out)

    @field_validator("external_id", mode="before")
    @classmethod
    def _external_id(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and re.match(r"^https?://\S+$", v.strip()):
            return v.strip()
        return None

    def with_enrichment(
        self,
        external_id: Optional[str] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        image: Optional[str] = None,
    ) -> "CandidateItem":
        # type and tags are fixed by the pool builder
        data = self.model_dump()
        if external_id:
            data["external_id"] = external_id
        if title and title.strip():
            data["title"] = title
        if description and description.strip():
            data["description"] = description
        if image:
            data["image"] = image
        return type(self).model_validate(data)


class ScoredItem(CandidateItem):
    score: float = Field(ge=-1.0, le=1.0)
    reason: str = ""


class Reference(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    overview: str = ""
    keywords: FrozenSet[str] = frozenset()
    genres: FrozenSet[str] = frozenset()


class MoodContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    mood_text: str
    criteria: str = ""
    reference_title: str = ""
    reference_overview: str = ""
    reference_keywords: FrozenSet[str] = frozenset()
    reference_genres: FrozenSet[str] = frozenset()

    def embedding_text(self) -> str:
        parts = [self.mood_text, self.criteria, self.reference_title, self.reference_overview]
        return " ".join(p.strip() for p in parts if p and p.strip())


class MoodQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    mood_text: Optional[str] = None
    criteria: str = ""
    ref_id: Optional[str] = None
    ref_type: Optional[MediaType] = None
    search: Optional[str] = None

    def playlist_query(self) -> str:
        return " ".join(p for p in (self.mood_text or "", self.criteria) if p).strip()


class SearchHit(BaseModel):
    id: str
    title: str
    type: MediaType
    image: Optional[str] = None


class MoodResponse(BaseModel):
    movies: List[ScoredItem] = []
    tv: List[ScoredItem] = []
    books: List[ScoredItem] = []
    spotify: Optional[str] = None

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
