#!/usr/bin/env python3
"""Fetch Google reviews from SerpAPI and push them into the CMS.

Usage:
    python -m tour_gateway.scripts.sync_reviews --key <sync key>
    python -m tour_gateway.scripts.sync_reviews --fetch-only
"""
import argparse
import asyncio
import hmac
import json
import sys

from tour_gateway.config import get_config, setup_logging
from tour_gateway.providers.base import ProviderError, Success
from tour_gateway.providers.serpapi_provider import SerpApiReviewProvider, transform_review
from tour_gateway.services.session_manager import SessionManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Google reviews from SerpAPI into the CMS.")
    parser.add_argument('--key', help='Review sync key (defaults to the configured key)')
    parser.add_argument('--place-id', help='Google place id (defaults to SERPAPI_PLACE_ID)')
    parser.add_argument('--fetch-only', action='store_true', help='Print transformed reviews without syncing')
    return parser


async def run(args) -> int:
    config = get_config()
    sessions = SessionManager(config)
    provider = SerpApiReviewProvider(config, sessions)
    try:
        if args.fetch_only:
            result = await provider.fetch_reviews(args.place_id)
            if not isinstance(result, Success):
                print(f"Fetch failed: {result.detail}", file=sys.stderr)
                return 1
            reviews = [transform_review(raw).to_dict() for raw in result.value.get('reviews') or []]
            print(json.dumps(reviews, ensure_ascii=False, indent=2))
            return 0

        key = args.key or config.reviews_config.sync_key
        expected = config.reviews_config.sync_key
        if not key or not expected or not hmac.compare_digest(key.encode('utf-8'), expected.encode('utf-8')):
            print("Sync key does not match the configured key", file=sys.stderr)
            return 2

        try:
            result = await provider.sync_reviews(key, args.place_id)
        except ProviderError as e:
            print(f"Sync failed: {e}", file=sys.stderr)
            return 1
        if not isinstance(result, Success):
            print(f"Sync failed: {result.detail}", file=sys.stderr)
            return 1
        print(f"Synced {result.value['count']} reviews")
        return 0
    finally:
        await sessions.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    return asyncio.run(run(args))


if __name__ == '__main__':
    sys.exit(main())
