from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

from sentiment_core.errors import MalformedResponseError
from sentiment_core.model_client import AudioPayload, ModelBackend, ModelRequest
from sentiment_core.prompts import (
    AUDIO_SCHEMA,
    BATCH_SCHEMA,
    SINGLE_SCHEMA,
    build_audio_prompt,
    build_batch_prompt,
    build_text_prompt,
)
from sentiment_core.retry import RetryPolicy, call_with_retry
from sentiment_core.sentiment_types import ClassificationResult

logger = logging.getLogger(__name__)

NO_TRANSCRIPT = "Audio transcript unavailable."
UNKNOWN_SOURCE = "Unknown source"


class SentimentClassifier:
    """
    Sentiment classification against a remote model.

    - every remote call goes through the rate-limit retry policy
    - single items degrade to default fields on a malformed payload
    - batches are all-or-nothing and matched to inputs by position
    - holds no mutable state; concurrent calls are independent
    """

    def __init__(self, backend: ModelBackend, retry_policy: RetryPolicy = RetryPolicy()):
        self._backend = backend
        self._retry = retry_policy

    @property
    def model_name(self) -> str:
        return self._backend.model_name

    async def classify_text(
            self,
            text: str,
            *,
            cancel: Optional[asyncio.Event] = None,
    ) -> ClassificationResult:
        """
        Classify one text.

        Raises:
            ValueError: empty/blank text
            ModelCallError: remote failure (after retries for rate limits)
        """
        if not text or not text.strip():
            raise ValueError("text must be non-empty")

        request = ModelRequest(prompt=build_text_prompt(text), response_schema=SINGLE_SCHEMA)
        raw = await self._send(request, cancel)
        return ClassificationResult.from_payload(_decode_object(raw), source_text=text)

    async def classify_audio(
            self,
            audio: AudioPayload,
            *,
            cancel: Optional[asyncio.Event] = None,
    ) -> ClassificationResult:
        """Classify one audio clip; source_text is the model transcript."""
        if not audio.data:
            raise ValueError("audio payload must be non-empty")

        request = ModelRequest(
            prompt=build_audio_prompt(),
            response_schema=AUDIO_SCHEMA,
            audio=audio,
        )
        raw = await self._send(request, cancel)
        payload = _decode_object(raw)

        transcript = payload.get("transcription")
        if not isinstance(transcript, str) or not transcript.strip():
            transcript = NO_TRANSCRIPT
        return ClassificationResult.from_payload(payload, source_text=transcript.strip())

    async def classify_batch(
            self,
            texts: Sequence[str],
            *,
            cancel: Optional[asyncio.Event] = None,
    ) -> list[ClassificationResult]:
        """
        Classify many texts with one remote request.

        Rules:
        - blank entries are dropped before anything else
        - nothing left -> [] and no remote call
        - response element i belongs to filtered input i (not verified)
        - extra response elements get UNKNOWN_SOURCE as their text
        - batch size is the caller's concern; the model context window is the limit

        Raises:
            MalformedResponseError: the response is not an array of objects
            ModelCallError: remote failure (after retries for rate limits)
        """
        filtered = [t for t in texts if t is not None and t.strip()]
        if not filtered:
            return []

        request = ModelRequest(prompt=build_batch_prompt(filtered), response_schema=BATCH_SCHEMA)
        raw = await self._send(request, cancel)
        items = _decode_array(raw)

        if len(items) != len(filtered):
            logger.warning(
                "Batch size mismatch: inputs=%s outputs=%s model=%s",
                len(filtered),
                len(items),
                self.model_name,
            )

        out: list[ClassificationResult] = []
        for i, item in enumerate(items):
            source = filtered[i] if i < len(filtered) else UNKNOWN_SOURCE
            out.append(ClassificationResult.from_payload(item, source_text=source))

        logger.info("Batch classified: inputs=%s results=%s", len(filtered), len(out))
        return out

    async def _send(self, request: ModelRequest, cancel: Optional[asyncio.Event]) -> str:
        return await call_with_retry(
            lambda: self._backend.generate(request),
            self._retry,
            cancel=cancel,
        )


def _decode_object(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        logger.warning("Single response is not JSON, using defaults: err=%s", e)
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Single response is not an object (type=%s), using defaults",
            type(data).__name__,
        )
        return {}
    return data


def _decode_array(raw: str) -> list[dict[str, Any]]:
    malformed = MalformedResponseError(
        "Invalid response format from the model. Please try again with a smaller batch."
    )
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Failed to parse batch response: err=%s", e)
        raise malformed from e

    if not isinstance(data, list):
        logger.error("Batch response is not an array: type=%s", type(data).__name__)
        raise malformed

    for i, item in enumerate(data):
        if not isinstance(item, dict):
            logger.error("Batch item %s is not an object: type=%s", i, type(item).__name__)
            raise malformed
    return data
