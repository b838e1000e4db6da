from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from moodpicks.errors import ConfigError
from moodpicks.schemas import MoodQuery, coerce_media_type

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mood"])


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def interpret_query(
    mood: Optional[str] = None,
    mood_text: Optional[str] = None,
    criteria: Optional[str] = None,
    tags: Optional[str] = None,
    ref_id: Optional[str] = None,
    ref_type: Optional[str] = None,
    search: Optional[str] = None,
) -> MoodQuery:
    """Normalize raw query parameters; `tags` is the legacy name for criteria."""
    ref_kind = None
    if _clean(ref_type):
        ref_kind = coerce_media_type(ref_type)
        if ref_kind is None:
            log.warning("Ignoring unknown refType=%r", ref_type)
    ref_id = _clean(ref_id)
    return MoodQuery(
        mood_text=_clean(mood) or _clean(mood_text),
        criteria=_clean(criteria) or _clean(tags) or "",
        ref_id=ref_id if ref_kind else None,
        ref_type=ref_kind if ref_id else None,
        search=_clean(search),
    )


def _error(status: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status, content=body)


@router.get("/mood")
async def mood_endpoint(
    request: Request,
    mood: Optional[str] = Query(default=None),
    moodText: Optional[str] = Query(default=None),
    criteria: Optional[str] = Query(default=None),
    tags: Optional[str] = Query(default=None),
    refId: Optional[str] = Query(default=None),
    refType: Optional[str] = Query(default=None),
    query: Optional[str] = Query(default=None),
):
    q = interpret_query(mood, moodText, criteria, tags, refId, refType, query)
    pipeline = request.app.state.pipeline

    if q.mood_text is None:
        if q.search is None:
            return _error(400, "Missing mood input")
        try:
            hits = await pipeline.search(q.search)
        except Exception as e:
            log.exception("Title search failed for query=%r", q.search)
            return _error(500, "Search failed", str(e))
        return JSONResponse([h.model_dump() for h in hits])

    try:
        result = await pipeline.recommend(q)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return _error(500, "Server misconfigured", str(e))
    except Exception as e:
        log.exception("Recommendation pipeline failed for mood=%r", q.mood_text)
        return _error(500, "Failed to generate recommendations", str(e))
    return JSONResponse(result.to_payload())
