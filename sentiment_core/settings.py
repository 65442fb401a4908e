from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sentiment_core.model_client import GeminiConfig
from sentiment_core.retry import RetryPolicy


class ClassifierSettings(BaseSettings):
    """
    Environment-driven settings for the remote model, retries and batch input.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ---- Remote model ----
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-3-flash-preview", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    request_timeout_sec: float = Field(default=60.0, alias="SENTIMENT_REQUEST_TIMEOUT_SEC")

    # ---- Retry (rate limits only) ----
    max_retries: int = Field(default=3, alias="SENTIMENT_MAX_RETRIES")
    retry_delay_sec: float = Field(default=2.0, alias="SENTIMENT_RETRY_DELAY_SEC")
    backoff_multiplier: float = Field(default=2.0, alias="SENTIMENT_BACKOFF_MULTIPLIER")
    # Per attempt, on top of the HTTP timeout. Unset -> no extra bound.
    attempt_timeout_sec: Optional[float] = Field(default=None, alias="SENTIMENT_ATTEMPT_TIMEOUT_SEC")

    # ---- Batch input ----
    batch_cap: int = Field(default=15, alias="SENTIMENT_BATCH_CAP")
    min_line_length: int = Field(default=2, alias="SENTIMENT_MIN_LINE_LENGTH")

    # Results below this confidence are flagged for manual verification
    review_threshold: float = Field(default=0.65, alias="SENTIMENT_REVIEW_THRESHOLD")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            retries=self.max_retries,
            initial_delay_sec=self.retry_delay_sec,
            multiplier=self.backoff_multiplier,
            attempt_timeout_sec=self.attempt_timeout_sec,
        )

    def gemini_config(self) -> GeminiConfig:
        return GeminiConfig(
            api_key=self.gemini_api_key,
            model=self.gemini_model,
            base_url=self.gemini_base_url,
            timeout_sec=self.request_timeout_sec,
        )


def load_settings() -> ClassifierSettings:
    return ClassifierSettings()
