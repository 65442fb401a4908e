from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional, Sequence

from sentiment_core.sentiment_types import ClassificationResult

logger = logging.getLogger(__name__)

ExportFormat = Literal["json", "csv"]

CSV_HEADERS = ["Text", "Sentiment", "Confidence", "Keywords", "Explanation"]


def to_json(results: Sequence[ClassificationResult]) -> str:
    return json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2)


def to_csv(results: Sequence[ClassificationResult]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in results:
        writer.writerow(
            [
                r.source_text,
                r.label.value,
                r.confidence,
                ", ".join(r.keywords),
                r.explanation,
            ]
        )
    return buf.getvalue()


def export_filename(prefix: str, ext: str, now: Optional[datetime] = None) -> str:
    """{prefix}_{epoch millis}.{ext}"""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}_{int(now.timestamp() * 1000)}.{ext}"


def write_export(
        results: Sequence[ClassificationResult],
        directory: str | Path,
        fmt: ExportFormat,
        prefix: str = "sentiment_analysis",
) -> Path:
    """
    Write results to a new file and return its path.

    Raises:
        ValueError: unknown format
    """
    if fmt == "json":
        content = to_json(results)
    elif fmt == "csv":
        content = to_csv(results)
    else:
        raise ValueError(f"Unsupported export format: {fmt}")

    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(prefix, fmt)
    path.write_text(content, encoding="utf-8")
    logger.info("Exported results: count=%s path=%s", len(results), path)
    return path
