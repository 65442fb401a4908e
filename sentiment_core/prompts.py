from __future__ import annotations

from typing import Any, Sequence

_ITEM_PROPERTIES: dict[str, Any] = {
    "sentiment": {
        "type": "STRING",
        "enum": ["POSITIVE", "NEGATIVE", "NEUTRAL"],
        "description": "Classification of text sentiment.",
    },
    "confidence": {
        "type": "NUMBER",
        "description": "Score from 0 to 1 indicating model certainty.",
    },
    "keywords": {
        "type": "ARRAY",
        "items": {"type": "STRING"},
        "description": "Specific terms indicating the sentiment.",
    },
    "explanation": {
        "type": "STRING",
        "description": "Reasoning for the classification.",
    },
}
_REQUIRED = ["sentiment", "confidence", "keywords", "explanation"]

SINGLE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": _ITEM_PROPERTIES,
    "required": _REQUIRED,
}

AUDIO_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        **_ITEM_PROPERTIES,
        "transcription": {
            "type": "STRING",
            "description": "Verbatim transcript of the spoken audio.",
        },
    },
    "required": [*_REQUIRED, "transcription"],
}

# no transcript and no echoed index: elements are matched by position
BATCH_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": SINGLE_SCHEMA,
}


def build_text_prompt(text: str) -> str:
    return f'Analyze the following text and extract sentiment details: "{text}"'


def build_audio_prompt() -> str:
    return (
        "Transcribe the attached audio, then analyze the sentiment of what was said. "
        "Return the transcript together with the sentiment details."
    )


def build_batch_prompt(texts: Sequence[str]) -> str:
    """Number entries from 1 so the model can keep them apart; order is the contract."""
    entries = "\n".join(f"Entry {i + 1}: {t}" for i, t in enumerate(texts))
    return (
        f"Perform sentiment analysis on the following {len(texts)} distinct entries. "
        "Return an array of analysis objects corresponding to each entry, in the same order.\n\n"
        f"Inputs:\n{entries}"
    )
