from __future__ import annotations

import json

import pytest

from sentiment_core.classifier import NO_TRANSCRIPT, UNKNOWN_SOURCE, SentimentClassifier
from sentiment_core.errors import MalformedResponseError, ModelCallError, RateLimitedError
from sentiment_core.model_client import AudioPayload, ModelBackend, ModelRequest
from sentiment_core.prompts import AUDIO_SCHEMA, BATCH_SCHEMA, SINGLE_SCHEMA
from sentiment_core.retry import RetryPolicy
from sentiment_core.sentiment_types import NO_EXPLANATION, SentimentLabel

_NO_WAIT = RetryPolicy(retries=3, initial_delay_sec=0.0)


class _FakeBackend(ModelBackend):
    """Replays queued responses; an Exception in the queue is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[ModelRequest] = []

    @property
    def model_name(self) -> str:
        return "fake"

    async def generate(self, request: ModelRequest) -> str:
        self.requests.append(request)
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _item(sentiment="POSITIVE", confidence=0.9, keywords=("great",), explanation="upbeat"):
    return {
        "sentiment": sentiment,
        "confidence": confidence,
        "keywords": list(keywords),
        "explanation": explanation,
    }


@pytest.mark.asyncio
async def test_classify_text_maps_response_fields():
    backend = _FakeBackend(json.dumps(_item()))
    res = await SentimentClassifier(backend, _NO_WAIT).classify_text("I love this")

    assert res.source_text == "I love this"
    assert res.label is SentimentLabel.POSITIVE
    assert res.confidence == 0.9
    assert res.keywords == ("great",)
    assert res.explanation == "upbeat"
    assert backend.requests[0].response_schema is SINGLE_SCHEMA
    assert "I love this" in backend.requests[0].prompt


@pytest.mark.asyncio
async def test_classify_text_defaults_missing_fields():
    backend = _FakeBackend(json.dumps({"confidence": "very"}))
    res = await SentimentClassifier(backend, _NO_WAIT).classify_text("meh")

    assert res.label is SentimentLabel.NEUTRAL
    assert res.confidence == 0.0
    assert res.keywords == ()
    assert res.explanation == NO_EXPLANATION


@pytest.mark.asyncio
async def test_classify_text_degrades_on_unparseable_body():
    backend = _FakeBackend("not json at all")
    res = await SentimentClassifier(backend, _NO_WAIT).classify_text("hello there")

    assert res.label is SentimentLabel.NEUTRAL
    assert res.confidence == 0.0
    assert res.source_text == "hello there"


@pytest.mark.asyncio
async def test_classify_text_unknown_label_becomes_neutral():
    backend = _FakeBackend(json.dumps(_item(sentiment="MIXED")))
    res = await SentimentClassifier(backend, _NO_WAIT).classify_text("love and hate")
    assert res.label is SentimentLabel.NEUTRAL


@pytest.mark.asyncio
async def test_classify_text_rejects_blank_input():
    backend = _FakeBackend()
    with pytest.raises(ValueError):
        await SentimentClassifier(backend, _NO_WAIT).classify_text("   ")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_classify_text_retries_rate_limit_then_succeeds():
    backend = _FakeBackend(RateLimitedError("429"), json.dumps(_item()))
    res = await SentimentClassifier(backend, _NO_WAIT).classify_text("I love this")

    assert res.label is SentimentLabel.POSITIVE
    assert len(backend.requests) == 2


@pytest.mark.asyncio
async def test_classify_text_propagates_auth_failure():
    backend = _FakeBackend(ModelCallError("forbidden", status_code=403))
    with pytest.raises(ModelCallError):
        await SentimentClassifier(backend, _NO_WAIT).classify_text("I love this")
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_classify_audio_uses_transcript_as_source():
    body = {**_item(sentiment="NEGATIVE"), "transcription": " this is awful "}
    backend = _FakeBackend(json.dumps(body))
    audio = AudioPayload.from_pcm(b"\x00\x01" * 8)

    res = await SentimentClassifier(backend, _NO_WAIT).classify_audio(audio)

    assert res.source_text == "this is awful"
    assert res.label is SentimentLabel.NEGATIVE
    assert backend.requests[0].audio == audio
    assert backend.requests[0].response_schema is AUDIO_SCHEMA


@pytest.mark.asyncio
async def test_classify_audio_without_transcript_uses_placeholder():
    backend = _FakeBackend(json.dumps(_item()))
    res = await SentimentClassifier(backend, _NO_WAIT).classify_audio(AudioPayload(data="AAAA"))
    assert res.source_text == NO_TRANSCRIPT


@pytest.mark.asyncio
async def test_batch_filters_blanks_and_aligns_by_position():
    items = [_item("POSITIVE"), _item("NEUTRAL"), _item("NEGATIVE")]
    backend = _FakeBackend(json.dumps(items))

    results = await SentimentClassifier(backend, _NO_WAIT).classify_batch(
        ["I love this", "", "It is fine", "Terrible!"]
    )

    assert [r.source_text for r in results] == ["I love this", "It is fine", "Terrible!"]
    assert [r.label for r in results] == [
        SentimentLabel.POSITIVE,
        SentimentLabel.NEUTRAL,
        SentimentLabel.NEGATIVE,
    ]
    assert len({r.id for r in results}) == 3
    assert backend.requests[0].response_schema is BATCH_SCHEMA
    assert "following 3 distinct entries" in backend.requests[0].prompt


@pytest.mark.asyncio
async def test_batch_of_blanks_makes_no_remote_call():
    backend = _FakeBackend()
    assert await SentimentClassifier(backend, _NO_WAIT).classify_batch(["", "   ", "\n"]) == []
    assert await SentimentClassifier(backend, _NO_WAIT).classify_batch([]) == []
    assert backend.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ['{"sentiment": "POSITIVE"}', "garbage", '["oops", 1]', ""])
async def test_batch_malformed_response_fails_whole_batch(body):
    backend = _FakeBackend(body)
    with pytest.raises(MalformedResponseError, match="smaller batch"):
        await SentimentClassifier(backend, _NO_WAIT).classify_batch(["a fine day", "a bad day"])


@pytest.mark.asyncio
async def test_batch_shorter_response_only_returns_given_items():
    backend = _FakeBackend(json.dumps([_item()]))
    results = await SentimentClassifier(backend, _NO_WAIT).classify_batch(["first one", "second one"])
    assert [r.source_text for r in results] == ["first one"]


@pytest.mark.asyncio
async def test_batch_longer_response_placeholders_extra_items():
    backend = _FakeBackend(json.dumps([_item(), _item()]))
    results = await SentimentClassifier(backend, _NO_WAIT).classify_batch(["only one"])
    assert [r.source_text for r in results] == ["only one", UNKNOWN_SOURCE]


@pytest.mark.asyncio
async def test_batch_rate_limit_exhaustion_propagates():
    backend = _FakeBackend(*[RateLimitedError("429")] * 4)
    with pytest.raises(RateLimitedError):
        await SentimentClassifier(backend, _NO_WAIT).classify_batch(["one entry"])
    assert len(backend.requests) == 4
