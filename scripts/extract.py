#!/usr/bin/env python3
"""
Extract Instagram post metadata from the command line.

Usage:
    python scripts/extract.py extract https://www.instagram.com/p/ABC123/
    python scripts/extract.py info https://www.instagram.com/reel/XYZ789/
    python scripts/extract.py batch URL [URL ...]
    python scripts/extract.py probe https://www.instagram.com/p/ABC123/
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from instameta.core.exceptions import InstaMetaError
from instameta.core.scraper import MediaExtractor
from instameta.models.data_models import to_info_view
from instameta.utils.config import APP_NAME, APP_VERSION
from instameta.utils.logging import setup_logging

# Batch size accepted by the public API
MAX_BATCH_URLS = 10


def print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def run(args: argparse.Namespace) -> int:
    async with MediaExtractor() as extractor:
        try:
            if args.command == "extract":
                record = await extractor.extract(args.urls[0])
                print_json(record.to_dict())
            elif args.command == "info":
                record = await extractor.extract(args.urls[0])
                print_json(to_info_view(record).to_dict())
            elif args.command == "batch":
                if len(args.urls) > MAX_BATCH_URLS:
                    print(f"❌ Maximum {MAX_BATCH_URLS} URLs allowed per batch")
                    return 2
                result = await extractor.extract_many(args.urls)
                print_json(result.to_dict())
                return 0 if result.failed == 0 else 1
            elif args.command == "probe":
                report = await extractor.probe(args.urls[0])
                print_json(report.to_dict())
        except InstaMetaError as e:
            print(f"❌ {e.code}: {e}")
            return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Extract Instagram post metadata")
    parser.add_argument("command", choices=["extract", "info", "batch", "probe"])
    parser.add_argument("urls", nargs="+", help="Instagram post or reel URL(s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    args = parser.parse_args()

    if args.command != "batch" and len(args.urls) != 1:
        parser.error(f"{args.command} takes exactly one URL")

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
