"""Run one news ingestion pass from the command line.

Usage:
  uv run -- python scripts/run_ingestion.py -c entertainment -n 10

Reads configuration from .env via pydantic settings. Exits with status 2 when
required settings (POSTGRES_DSN, INGESTION_REDIS_URL) are missing, before any
network or database work starts.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List

from dotenv import load_dotenv

from ingestion.settings import get_settings
from ingestion.tasks.collect import ingest_core
from ingestion.utils.logging import configure_logging


def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Gidi news ingestion")
    parser.add_argument("-c", "--category", default="general", help="Category hint (default: general = all sources)")
    parser.add_argument("-n", "--limit", type=int, default=10, help="Articles to report (default: 10)")
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        cfg = get_settings()
    except RuntimeError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2
    configure_logging(cfg.structlog_level, json_enabled=cfg.log_json)

    report = ingest_core(args.category, args.limit, settings=cfg)
    print(
        json.dumps(
            {
                "trace_id": report.trace_id,
                "discovered": report.discovered,
                "validated": report.validated,
                "deduplicated": report.deduplicated,
                "inserted": report.inserted,
                "updated": report.updated,
                "failed": report.failed,
                "articles": [{"title": a.title, "url": a.url} for a in report.articles],
            },
            indent=2,
        )
    )
    return 1 if report.failed and not (report.inserted or report.updated) else 0


if __name__ == "__main__":
    sys.exit(main())
