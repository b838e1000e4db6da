# moodpicks/scoring.py
from __future__ import annotations

import asyncio
import logging
import re
from typing import Iterable, List, Sequence, Set

import numpy as np

from moodpicks.errors import ProviderError
from moodpicks.schemas import CandidateItem, ScoredItem

log = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Hybrid weights: semantic similarity dominates, lexical overlap with
# the reference title breaks ties.
# -------------------------------------------------------------------
WEIGHTS = {
    "similarity": 0.5,
    "keywords": 0.3,
    "genres": 0.2,
}

_TERM_SPLIT = re.compile(r"[\s,]+")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in [-1, 1]. Returns 0.0 when either vector has zero
    norm so an empty or degenerate embedding never produces NaN.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"embedding size mismatch: {va.shape} vs {vb.shape}")
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return max(-1.0, min(1.0, sim))


def normalize_terms(values: Iterable[str]) -> Set[str]:
    terms: Set[str] = set()
    for v in values or ():
        if not isinstance(v, str):
            continue
        terms.update(t for t in _TERM_SPLIT.split(v.casefold()) if t)
    return terms


def overlap_score(reference: Iterable[str], tags: Iterable[str]) -> float:
    """Share of reference terms found among the tags; 0.0 without a reference."""
    ref = normalize_terms(reference)
    if not ref:
        return 0.0
    return len(ref & normalize_terms(tags)) / max(1, len(ref))


def hybrid_score(similarity: float, keyword_score: float, genre_score: float) -> float:
    return (
        WEIGHTS["similarity"] * similarity
        + WEIGHTS["keywords"] * keyword_score
        + WEIGHTS["genres"] * genre_score
    )


def item_text(item: CandidateItem) -> str:
    return f"{item.title} {item.description} {' '.join(item.tags)}"


def reason_string(
    similarity: float,
    keyword_score: float,
    genre_score: float,
    has_keywords: bool,
    has_genres: bool,
) -> str:
    """
    Compact explanation, e.g. 'similarity=0.62, keywords=0.33, genres=1.00'.
    Overlap parts are only listed when a reference provided terms to match.
    """
    parts = [f"similarity={similarity:.2f}"]
    if has_keywords:
        parts.append(f"keywords={keyword_score:.2f}")
    if has_genres:
        parts.append(f"genres={genre_score:.2f}")
    return ", ".join(parts)


def score_item(
    item: CandidateItem,
    item_vector: Sequence[float],
    mood_vector: Sequence[float],
    reference_keywords: Iterable[str],
    reference_genres: Iterable[str],
) -> ScoredItem:
    keywords = normalize_terms(reference_keywords)
    genres = normalize_terms(reference_genres)

    sim = cosine_similarity(mood_vector, item_vector)
    kw = overlap_score(keywords, item.tags)
    gs = overlap_score(genres, item.tags)
    score = max(-1.0, min(1.0, hybrid_score(sim, kw, gs)))

    return ScoredItem(
        **item.model_dump(),
        score=score,
        reason=reason_string(sim, kw, gs, bool(keywords), bool(genres)),
    )


async def score_candidates(
    items: Sequence[CandidateItem],
    mood_vector: Sequence[float],
    reference_keywords: Iterable[str],
    reference_genres: Iterable[str],
    embedder,
) -> List[ScoredItem]:
    """
    Score one category. All item texts go to the embedder in a single
    batch; if that batch fails or comes back with the wrong number of
    vectors the whole category is dropped rather than misaligned.
    """
    if not items:
        return []

    keywords = normalize_terms(reference_keywords)
    genres = normalize_terms(reference_genres)

    try:
        vectors = await embedder.embed([item_text(i) for i in items])
    except (ProviderError, asyncio.TimeoutError) as e:
        log.warning("Embedding batch of %d %s items failed: %s", len(items), items[0].type, e)
        return []

    if len(vectors) != len(items):
        log.warning(
            "Embedding count mismatch for %s: %d vectors for %d items; dropping category.",
            items[0].type, len(vectors), len(items),
        )
        return []

    return [
        score_item(item, vec, mood_vector, keywords, genres)
        for item, vec in zip(items, vectors)
    ]
