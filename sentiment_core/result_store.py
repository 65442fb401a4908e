from __future__ import annotations

import logging
from typing import Iterable, Iterator

from sentiment_core.sentiment_types import ClassificationResult, SentimentLabel

logger = logging.getLogger(__name__)


class ResultStore:
    """
    Session-scoped, most-recent-first list of results.

    Results are only ever prepended. A manual label replaces the stored
    entry with a labelled copy; the original object is left untouched.
    """

    def __init__(self) -> None:
        self._results: list[ClassificationResult] = []

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[ClassificationResult]:
        return iter(tuple(self._results))

    @property
    def results(self) -> tuple[ClassificationResult, ...]:
        return tuple(self._results)

    def add(self, result: ClassificationResult) -> None:
        self._results.insert(0, result)

    def add_many(self, results: Iterable[ClassificationResult]) -> None:
        """Prepend a batch as one block, keeping the batch's own order."""
        block = list(results)
        self._results[:0] = block
        logger.debug("Prepended results: count=%s total=%s", len(block), len(self._results))

    def latest(self, n: int) -> tuple[ClassificationResult, ...]:
        return tuple(self._results[: max(n, 0)])

    def clear(self) -> None:
        self._results.clear()

    def label_manually(self, result_id: str, label: SentimentLabel | str) -> ClassificationResult:
        """
        Raises:
            KeyError: no stored result has result_id
        """
        for i, res in enumerate(self._results):
            if res.id == result_id:
                labelled = res.with_manual_label(label)
                self._results[i] = labelled
                return labelled
        raise KeyError(result_id)

    def counts(self) -> dict[SentimentLabel, int]:
        out = {label: 0 for label in SentimentLabel}
        for res in self._results:
            out[res.label] += 1
        return out

    def percentages(self) -> dict[SentimentLabel, float]:
        total = len(self._results)
        if total == 0:
            return {label: 0.0 for label in SentimentLabel}
        return {label: count * 100.0 / total for label, count in self.counts().items()}

    def positive_share(self) -> float:
        return self.percentages()[SentimentLabel.POSITIVE]

    def flagged_for_review(self, threshold: float) -> list[ClassificationResult]:
        return [r for r in self._results if r.needs_review(threshold)]
