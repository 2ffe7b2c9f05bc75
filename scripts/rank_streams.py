#!/usr/bin/env python3
"""Dry-run a stream lookup and print the JSON response.

Uses the same settings as the service (environment / .env):
    BITMAGNET_GRAPHQL_ENDPOINT, TMDB_API_KEY, OMDB_API_KEY, ...

Usage:
    python -m scripts.rank_streams movie tt1160419
    python -m scripts.rank_streams series tt0903747:1:2 --max-size-gb 20
"""

import argparse
import asyncio
import json
import sys

from src.cache import TTLCache
from src.logger import get_logger
from src.streams.service import create_stream_service

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank BitMagnet streams for a movie or episode.")
    parser.add_argument("type", choices=["movie", "series"], help="Content type")
    parser.add_argument("id", help="IMDb id, with :season:episode for series")
    parser.add_argument("--max-streams", type=int, help="Override the stream count limit")
    parser.add_argument("--max-size-gb", type=float, help="Override the size cap in GiB")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> dict:
    service = create_stream_service(
        TTLCache(),
        max_streams=args.max_streams,
        max_size_gb=args.max_size_gb,
    )
    return await service.get_streams(args.type, args.id)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        response = asyncio.run(run(args))
    except KeyboardInterrupt:
        sys.exit(130)

    print(json.dumps(response, indent=2, ensure_ascii=False))
    if not response["streams"]:
        logger.info("no_streams", type=args.type, id=args.id)
        sys.exit(1)


if __name__ == "__main__":
    main()
