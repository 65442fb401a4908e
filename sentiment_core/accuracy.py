from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

import numpy as np

from sentiment_core.sentiment_types import ClassificationResult, SentimentLabel

LABELS: tuple[SentimentLabel, ...] = (
    SentimentLabel.POSITIVE,
    SentimentLabel.NEUTRAL,
    SentimentLabel.NEGATIVE,
)


@dataclass(frozen=True)
class LabelScores:
    precision: float
    recall: float
    f1_score: float


@dataclass(frozen=True)
class ComparisonMetrics:
    """
    Model predictions compared against human labels.

    - accuracy/precision/recall/f1_score are fractions in [0, 1]
    - precision/recall/f1_score are macro averages over the three labels
    - confusion_matrix is actual -> predicted -> count
    """

    accuracy: float
    precision: float
    recall: float
    f1_score: float
    per_label: Mapping[SentimentLabel, LabelScores]
    confusion_matrix: Mapping[SentimentLabel, Mapping[SentimentLabel, int]]
    sample_size: int


def compute_metrics(
        pairs: Iterable[tuple[SentimentLabel | str, SentimentLabel | str]],
) -> ComparisonMetrics:
    """Compute metrics from (actual, predicted) label pairs."""
    index = {label: i for i, label in enumerate(LABELS)}
    matrix = np.zeros((len(LABELS), len(LABELS)), dtype=np.int64)
    for actual, predicted in pairs:
        a = index[SentimentLabel.coerce(actual)]
        p = index[SentimentLabel.coerce(predicted)]
        matrix[a, p] += 1

    total = int(matrix.sum())
    true_pos = np.diag(matrix).astype(np.float64)
    predicted_totals = matrix.sum(axis=0).astype(np.float64)
    actual_totals = matrix.sum(axis=1).astype(np.float64)

    precision = _safe_divide(true_pos, predicted_totals)
    recall = _safe_divide(true_pos, actual_totals)
    f1 = _safe_divide(2 * precision * recall, precision + recall)

    per_label = {
        label: LabelScores(
            precision=float(precision[i]),
            recall=float(recall[i]),
            f1_score=float(f1[i]),
        )
        for label, i in index.items()
    }
    confusion = {
        actual: {predicted: int(matrix[index[actual], index[predicted]]) for predicted in LABELS}
        for actual in LABELS
    }

    return ComparisonMetrics(
        accuracy=float(true_pos.sum() / total) if total else 0.0,
        precision=float(precision.mean()),
        recall=float(recall.mean()),
        f1_score=float(f1.mean()),
        per_label=per_label,
        confusion_matrix=confusion,
        sample_size=total,
    )


def metrics_from_results(results: Iterable[ClassificationResult]) -> ComparisonMetrics:
    """Only results carrying a manual label take part."""
    return compute_metrics(
        (r.manual_label, r.label) for r in results if r.manual_label is not None
    )


def _safe_divide(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    out = np.zeros_like(num, dtype=np.float64)
    np.divide(num, den, out=out, where=den != 0)
    return out
