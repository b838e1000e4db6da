from __future__ import annotations

import random
from typing import Iterable, List, Optional, Sequence, TypeVar

from moodpicks.schemas import CandidateItem

T = TypeVar("T")

TOP_BAND = 12
FINAL_SIZE = 6


def _score_of(item) -> float:
    score = getattr(item, "score", None)
    return float(score) if score is not None else 0.0


def finalize(
    items: Sequence[T],
    band: int = TOP_BAND,
    keep: int = FINAL_SIZE,
    rng: Optional[random.Random] = None,
) -> List[T]:
    """
    Pick the final set for one category: best `band` items by score, shuffled,
    first `keep` of them. Returns a new list; `items` is left untouched.
    """
    # sorted() is stable, so equal scores keep pool order before the shuffle
    ranked = sorted(items, key=_score_of, reverse=True)
    top = list(ranked[:band])
    (rng or random).shuffle(top)
    return top[:keep]


def dedupe_candidates(items: Iterable[CandidateItem]) -> List[CandidateItem]:
    """First occurrence wins; identity is the catalog id when known, else the title."""
    seen = set()
    out: List[CandidateItem] = []
    for item in items:
        key = (item.type, item.external_id) if item.external_id else (item.type, item.title.casefold())
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
