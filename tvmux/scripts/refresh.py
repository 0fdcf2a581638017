#!/usr/bin/env python3
"""
Run the refresh pipeline once from the command line.

Intended for cron or any scheduler that runs commands instead of calling the
HTTP trigger.

Usage:
    python -m tvmux.scripts.refresh
    python -m tvmux.scripts.refresh --batch-size 100 --sources sources.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from tvmux.config import get_settings
from tvmux.services.cache import get_cache
from tvmux.services.pipeline import RefreshPipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Refresh the TVMux channel cache once")
    parser.add_argument("--batch-size", type=int, help="Streams probed concurrently per batch")
    parser.add_argument("--probe-timeout", type=float, help="Per-probe timeout in seconds")
    parser.add_argument("--sources", type=Path, help="JSON file with custom [{name, url}] playlist sources")
    parser.add_argument("--db", help="SQLite cache path")
    return parser


async def run(args: argparse.Namespace) -> int:
    overrides = {}
    if args.batch_size:
        overrides["probe_batch_size"] = args.batch_size
    if args.probe_timeout:
        overrides["probe_timeout_seconds"] = args.probe_timeout
    if args.sources:
        overrides["custom_m3u_sources"] = args.sources.read_text(encoding="utf-8")
    if args.db:
        overrides["database_path"] = args.db

    settings = get_settings().model_copy(update=overrides)
    cache = await get_cache(settings.database_path)

    result = await RefreshPipeline(settings, cache).run()
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0 if result.succeeded else 1


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
