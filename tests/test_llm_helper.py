"""Tests for the OpenAI-backed candidate source and embedder."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError

from moodpicks.errors import ProviderError
from moodpicks.llm_helper import (
    LLMCandidateSource,
    OpenAIEmbedder,
    build_candidate_prompt,
    parse_candidates,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Completions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _Embeddings:
    def __init__(self, vectors=None, error=None):
        self.vectors = vectors or []
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        # returned out of order on purpose
        data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(self.vectors)]
        return SimpleNamespace(data=list(reversed(data)))


def _chat_client(content=None, error=None):
    return SimpleNamespace(chat=SimpleNamespace(completions=_Completions(content, error)))


RECORDS = [
    {"title": "Paddington 2", "type": "movie", "description": "Warm.", "tags": ["family", "comedy"]},
    {"title": "Ted Lasso", "type": "tv", "description": "Kind.", "tags": ["comedy"]},
    {"title": "The House in the Cerulean Sea", "type": "book", "description": "Cozy.", "tags": "fantasy, found family"},
]


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


class TestPrompt:
    def test_includes_mood_criteria_and_counts(self) -> None:
        prompt = build_candidate_prompt("cozy and hopeful", "90s", 8)
        assert '"cozy and hopeful"' in prompt
        assert '"90s"' in prompt
        assert "8 movies, 8 TV series and 8 books" in prompt
        assert "JSON array" in prompt

    def test_empty_criteria_asks_for_popular(self) -> None:
        assert "popular, widely recognized" in build_candidate_prompt("sad", "", 5)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseCandidates:
    def test_plain_array(self) -> None:
        items = parse_candidates(json.dumps(RECORDS))
        assert [(i.title, i.type) for i in items] == [
            ("Paddington 2", "movie"), ("Ted Lasso", "tv"), ("The House in the Cerulean Sea", "book"),
        ]
        assert items[2].tags == ("fantasy", "found family")

    def test_code_fence(self) -> None:
        text = "```json\n" + json.dumps(RECORDS) + "\n```"
        assert len(parse_candidates(text)) == 3

    def test_array_inside_prose(self) -> None:
        text = "Here you go:\n" + json.dumps(RECORDS) + "\nEnjoy!"
        assert len(parse_candidates(text)) == 3

    def test_object_wrapping_items(self) -> None:
        assert len(parse_candidates(json.dumps({"items": RECORDS}))) == 3

    def test_per_category_title_lists(self) -> None:
        items = parse_candidates(json.dumps({"movies": ["Up", "Amélie"], "books": ["Matilda"]}))
        assert [(i.title, i.type) for i in items] == [("Up", "movie"), ("Amélie", "movie"), ("Matilda", "book")]

    @pytest.mark.parametrize("text", ["", "not json at all", "{broken", "42", "null"])
    def test_malformed_gives_empty(self, text) -> None:
        assert parse_candidates(text) == []

    def test_invalid_records_dropped(self) -> None:
        records = RECORDS + [
            {"title": "", "type": "movie"},
            {"title": "Serial", "type": "podcast"},
            "just a string",
            {"type": "book"},
        ]
        assert len(parse_candidates(json.dumps(records))) == 3

    def test_type_spelling_coerced(self) -> None:
        items = parse_candidates(json.dumps([{"title": "Dark", "type": "TvSeries"}]))
        assert items[0].type == "tv"

    def test_duplicates_removed(self) -> None:
        records = [RECORDS[0], dict(RECORDS[0], title="paddington 2")]
        assert len(parse_candidates(json.dumps(records))) == 1


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class TestLLMCandidateSource:
    def test_fetch_parses_response(self) -> None:
        client = _chat_client(content=json.dumps(RECORDS))
        source = LLMCandidateSource(client, model="gpt-test", temperature=0.5, per_type=4)
        items = asyncio.run(source.fetch("I felt happy", "classic"))
        assert len(items) == 3
        kwargs = client.chat.completions.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["temperature"] == 0.5
        assert '"I felt happy"' in kwargs["messages"][-1]["content"]

    def test_malformed_response_is_empty_not_error(self) -> None:
        source = LLMCandidateSource(_chat_client(content="Sorry, I can't help."), model="m")
        assert asyncio.run(source.fetch("sad")) == []

    def test_api_error_becomes_provider_error(self) -> None:
        source = LLMCandidateSource(_chat_client(error=OpenAIError("quota exceeded")), model="m")
        with pytest.raises(ProviderError):
            asyncio.run(source.fetch("sad"))


class TestOpenAIEmbedder:
    def test_orders_by_index(self) -> None:
        embeddings = _Embeddings(vectors=[[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]])
        embedder = OpenAIEmbedder(SimpleNamespace(embeddings=embeddings), model="emb-test")
        vectors = asyncio.run(embedder.embed(["a", "b", "c"]))
        assert vectors == [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]
        assert embeddings.kwargs == {"model": "emb-test", "input": ["a", "b", "c"]}

    def test_empty_batch_skips_call(self) -> None:
        embeddings = _Embeddings()
        embedder = OpenAIEmbedder(SimpleNamespace(embeddings=embeddings), model="emb-test")
        assert asyncio.run(embedder.embed([])) == []
        assert embeddings.kwargs is None

    def test_api_error_becomes_provider_error(self) -> None:
        embedder = OpenAIEmbedder(SimpleNamespace(embeddings=_Embeddings(error=OpenAIError("down"))), model="m")
        with pytest.raises(ProviderError):
            asyncio.run(embedder.embed(["x"]))
