from __future__ import annotations

from typing import Sequence


def split_lines(blob: str, min_length: int = 2) -> list[str]:
    """
    Split an uploaded text blob into batch entries.

    Rules:
    - each line is stripped
    - lines of min_length characters or fewer are dropped
    - order is kept
    """
    lines = (line.strip() for line in (blob or "").splitlines())
    return [line for line in lines if len(line) > min_length]


def cap_batch(lines: Sequence[str], cap: int) -> list[str]:
    """
    Keep the first `cap` lines. The classifier itself does not cap batches.

    Raises:
        ValueError: cap <= 0
    """
    if cap <= 0:
        raise ValueError("cap must be > 0")
    return list(lines[:cap])
