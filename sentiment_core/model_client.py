from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from sentiment_core.errors import ModelCallError, RateLimitedError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_MIME_TYPE = "audio/pcm;rate=16000"


@dataclass(frozen=True)
class AudioPayload:
    """Base64-encoded audio clip plus its media type."""

    data: str
    mime_type: str = DEFAULT_AUDIO_MIME_TYPE

    @classmethod
    def from_pcm(cls, pcm: bytes, rate: int = 16000) -> "AudioPayload":
        return cls(
            data=base64.b64encode(pcm).decode("ascii"),
            mime_type=f"audio/pcm;rate={rate}",
        )


@dataclass(frozen=True)
class ModelRequest:
    prompt: str
    response_schema: Mapping[str, Any]
    audio: Optional[AudioPayload] = None


class ModelBackend(ABC):
    """
    Contract for the remote classification model.

    generate() returns the raw structured (JSON) text the model produced.
    Implementations raise ModelCallError subclasses for remote failures.
    """

    @abstractmethod
    async def generate(self, request: ModelRequest) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def model_name(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class GeminiConfig:
    api_key: str
    model: str = "gemini-3-flash-preview"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_sec: float = 60.0


class GeminiBackend(ModelBackend):
    """
    Gemini generateContent over plain HTTP.

    - JSON mode with a response schema
    - inline audio sent as inlineData
    - 429 / RESOURCE_EXHAUSTED -> RateLimitedError, other non-2xx -> ModelCallError
    """

    def __init__(self, cfg: GeminiConfig, client: Optional[httpx.AsyncClient] = None):
        if not cfg.api_key:
            raise ValueError("GeminiBackend requires an api_key")
        self._cfg = cfg
        self._client = client

    @property
    def model_name(self) -> str:
        return self._cfg.model

    async def generate(self, request: ModelRequest) -> str:
        url = f"{self._cfg.base_url.rstrip('/')}/models/{self._cfg.model}:generateContent"
        headers = {"x-goog-api-key": self._cfg.api_key}
        payload = self._build_payload(request)

        logger.debug(
            "Sending request to model: model=%s prompt_len=%s audio=%s",
            self._cfg.model,
            len(request.prompt),
            request.audio is not None,
        )

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=headers)
            else:
                timeout = httpx.Timeout(self._cfg.timeout_sec, connect=5.0)
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(f"Model request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Model request failed: {e}") from e

        if response.status_code != 200:
            self._raise_for_status(response)

        return self._extract_text(response)

    def _build_payload(self, request: ModelRequest) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        if request.audio is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": request.audio.mime_type,
                        "data": request.audio.data,
                    }
                }
            )
        parts.append({"text": request.prompt})
        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": dict(request.response_schema),
            },
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        body = response.text[:500]
        logger.error("Model error: status=%s body=%s", response.status_code, body)
        message = f"Model error [{response.status_code}]: {body}"
        if response.status_code == 429 or "RESOURCE_EXHAUSTED" in body:
            raise RateLimitedError(message, status_code=response.status_code)
        raise ModelCallError(message, status_code=response.status_code)

    def _extract_text(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            logger.warning("Model response envelope is not JSON: err=%s", e)
            return ""

        if not isinstance(data, dict):
            logger.warning("Model response envelope is not an object: type=%s", type(data).__name__)
            return ""

        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            logger.warning("Model response has no candidates")
            return ""

        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            logger.warning("Model response candidate has no content parts")
            return ""
        text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))

        usage = data.get("usageMetadata")
        if isinstance(usage, dict) and usage:
            logger.info(
                "Tokens used: total=%s prompt=%s completion=%s",
                usage.get("totalTokenCount", 0),
                usage.get("promptTokenCount", 0),
                usage.get("candidatesTokenCount", 0),
            )
        return text
