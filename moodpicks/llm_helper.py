# moodpicks/llm_helper.py
# ---------------------------------------------------------------------------
# OpenAI helpers: candidate pool prompt/parse and the text embedding service.
# Both providers take a ready AsyncOpenAI client so tests can pass a fake.
# ---------------------------------------------------------------------------

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from moodpicks.config import Settings
from moodpicks.errors import ProviderError
from moodpicks.ranking import dedupe_candidates
from moodpicks.schemas import CandidateItem

log = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a well-read film, television and literature curator. You answer with JSON only."


def make_openai_client(settings: Settings) -> AsyncOpenAI:
    # single attempt per call; the pipeline owns degradation
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.provider_timeout,
        max_retries=0,
    )


# ---------------------------------------------------------------------------
# Candidate pool (prompt + strict parsing)
# ---------------------------------------------------------------------------
def build_candidate_prompt(mood: str, criteria: str, per_type: int) -> str:
    mood = (mood or "").strip()
    criteria = (criteria or "").strip() or "popular, widely recognized"
    return (
        "Based on the following mood and style criteria:\n"
        f'Mood: "{mood}"\n'
        f'Criteria: "{criteria}"\n\n'
        f"Suggest {per_type} movies, {per_type} TV series and {per_type} books that match "
        "the emotional tone. Prefer titles that are known and generally well-rated.\n"
        "Return ONLY a JSON array, no explanations, where every element is:\n"
        '{"title": "...", "type": "movie" | "tv" | "book", '
        '"description": "one sentence", "tags": ["genre or keyword", ...]}\n'
        "Use the exact published title without year or author."
    )


_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*|\s*```\s*$")


def _load_json(text: str) -> Any:
    body = _FENCE_RE.sub("", text or "").strip()
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        # models sometimes wrap the array in prose
        start, end = body.find("["), body.rfind("]")
        if start == -1 or end <= start:
            raise
        return json.loads(body[start:end + 1])


def _records(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    if isinstance(data, dict):
        # {"items": [...]} or per-category lists like {"movies": [...], "books": [...]}
        out: List[Dict[str, Any]] = []
        for key, value in data.items():
            if not isinstance(value, list):
                continue
            for rec in value:
                if isinstance(rec, str):
                    out.append({"title": rec, "type": key})
                elif isinstance(rec, dict):
                    out.append({"type": key, **rec})
        return out
    return []


def parse_candidates(text: str) -> List[CandidateItem]:
    """
    Validate raw model output into CandidateItems. Malformed output gives an
    empty list (logged); individual bad records are dropped.
    """
    try:
        data = _load_json(text)
    except (json.JSONDecodeError, TypeError):
        log.warning("LLM returned non-JSON candidate list: %.200r", text)
        return []

    items: List[CandidateItem] = []
    dropped = 0
    for rec in _records(data):
        try:
            items.append(CandidateItem.model_validate({
                "title": rec.get("title"),
                "type": rec.get("type"),
                "description": rec.get("description"),
                "tags": rec.get("tags"),
            }))
        except ValidationError:
            dropped += 1
    if dropped:
        log.warning("Dropped %d malformed candidate record(s) from LLM output.", dropped)
    return dedupe_candidates(items)


class LLMCandidateSource:
    """Primary candidate pool: asks the chat model for a typed JSON list."""

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.5, per_type: int = 10) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._per_type = per_type

    async def fetch(self, mood: str, criteria: str = "") -> List[CandidateItem]:
        prompt = build_candidate_prompt(mood, criteria, self._per_type)
        try:
            res = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._temperature,
            )
        except OpenAIError as e:
            raise ProviderError(f"OpenAI chat completion failed: {e}") from e

        text = (res.choices[0].message.content or "").strip() if res.choices else ""
        items = parse_candidates(text)
        log.info("LLM proposed %d candidate(s) for mood=%r", len(items), mood)
        return items


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------
class OpenAIEmbedder:
    """Batch text embeddings; one request per call regardless of batch size."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        try:
            res = await self._client.embeddings.create(model=self._model, input=list(texts))
        except OpenAIError as e:
            raise ProviderError(f"OpenAI embeddings failed: {e}") from e
        data = sorted(res.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]
