from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Optional

NO_EXPLANATION = "No explanation provided."


class SentimentLabel(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"

    @classmethod
    def coerce(cls, value: Any) -> "SentimentLabel":
        """
        Resolve any raw value to one of the three labels.

        Anything unrecognised (None, "MIXED", numbers...) becomes NEUTRAL.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.NEUTRAL


def new_result_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ClassificationResult:
    """
    One classified input.

    - source_text: original text, or the model transcript for audio
    - confidence: model self-reported score, passed through uncalibrated
    - manual_label: optional human label used for accuracy tracking
    """

    source_text: str
    label: SentimentLabel
    confidence: float
    keywords: tuple[str, ...] = ()
    explanation: str = NO_EXPLANATION
    id: str = field(default_factory=new_result_id)
    manual_label: Optional[SentimentLabel] = None

    def needs_review(self, threshold: float) -> bool:
        return self.confidence < threshold

    def with_manual_label(self, label: SentimentLabel | str) -> "ClassificationResult":
        return replace(self, manual_label=SentimentLabel.coerce(label))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.source_text,
            "sentiment": self.label.value,
            "confidence": self.confidence,
            "keywords": list(self.keywords),
            "explanation": self.explanation,
            "manual_label": self.manual_label.value if self.manual_label else None,
        }

    @classmethod
    def from_payload(cls, payload: Any, source_text: str) -> "ClassificationResult":
        """
        Build a result from one decoded response object.

        Rules:
        - non-mapping payload -> every field defaulted
        - sentiment missing/unknown -> NEUTRAL
        - confidence missing or non-numeric -> 0.0
        - keywords missing/not a list -> empty; non-string entries dropped
        - explanation missing/blank -> placeholder
        """
        data: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}
        return cls(
            source_text=source_text,
            label=SentimentLabel.coerce(data.get("sentiment")),
            confidence=_coerce_confidence(data.get("confidence")),
            keywords=_coerce_keywords(data.get("keywords")),
            explanation=_coerce_explanation(data.get("explanation")),
        )


def _coerce_confidence(value: Any) -> float:
    # bool is an int subclass; a boolean is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _coerce_keywords(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(k).strip() for k in value if isinstance(k, str) and k.strip())


def _coerce_explanation(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return NO_EXPLANATION
