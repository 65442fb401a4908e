from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from sentiment_core.classifier import SentimentClassifier
from sentiment_core.errors import ClassificationError, RateLimitedError
from sentiment_core.export import to_json, write_export
from sentiment_core.model_client import GeminiBackend
from sentiment_core.result_store import ResultStore
from sentiment_core.settings import load_settings
from sentiment_core.text_input import cap_batch, split_lines

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Classify the lines of a text file once.")
    p.add_argument("path", help="UTF-8 text file, one entry per line")
    p.add_argument("--export", choices=["json", "csv"], default=None)
    p.add_argument("--out-dir", default="exports")
    return p.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    s = load_settings()

    lines = split_lines(Path(args.path).read_text(encoding="utf-8"), s.min_line_length)
    batch = cap_batch(lines, s.batch_cap) if lines else []
    if len(lines) > len(batch):
        logger.warning("Batch capped: lines=%s sent=%s", len(lines), len(batch))

    if not batch:
        logger.info("No usable lines in %s", args.path)
        print("[]")
        return 0

    try:
        backend = GeminiBackend(s.gemini_config())
    except ValueError as e:
        logger.error("Model backend not configured: %s", e)
        print(f"Classification failed: {e} (set GEMINI_API_KEY)", file=sys.stderr)
        return 1

    classifier = SentimentClassifier(backend, s.retry_policy())
    store = ResultStore()

    try:
        store.add_many(await classifier.classify_batch(batch))
    except RateLimitedError as e:
        logger.error("Quota exhausted: %s", e)
        print("API quota exceeded. Wait a minute and try again.", file=sys.stderr)
        return 2
    except ClassificationError as e:
        logger.error("Classification failed: %s", e)
        print(f"Classification failed: {e}", file=sys.stderr)
        return 1

    logger.info(
        "Classified: total=%s counts=%s flagged=%s",
        len(store),
        {k.value: v for k, v in store.counts().items()},
        len(store.flagged_for_review(s.review_threshold)),
    )

    if args.export:
        path = write_export(store.results, args.out_dir, args.export)
        print(path)
    else:
        print(to_json(store.results))
    return 0


def main() -> None:
    sys.exit(asyncio.run(run(_parse_args())))


if __name__ == "__main__":
    main()
