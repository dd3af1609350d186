#!/usr/bin/env python3
"""
Manual run of the discovery pipeline against the live web.

Usage:
    python try_discovery.py "software" "CTO" "Austin, TX"
    python try_discovery.py "dental clinics" "" "Denver" --limit 5
    python try_discovery.py --site https://acme.com   # crawl one company site only
"""

import argparse
import asyncio
import logging
import time

# Setup detailed logging
logging.basicConfig(
    level=logging.INFO,
    format='%(message)s'  # Clean format for visibility
)

# Reduce noise from other loggers
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)


async def try_discovery(industry: str, position: str, location: str, limit: int):
    """Full orchestrated run: strategies, validation, scoring, fallback."""
    from models import SearchFilters
    from pipeline import discover_prospects

    filters = SearchFilters(
        industries=[industry] if industry else [],
        positions=[position] if position else [],
        location=location,
        limit=limit
    )

    print(f"\n{'='*60}")
    print("DISCOVERY RUN")
    print(f"Industry: {industry or '-'}  Position: {position or '-'}  Location: {location or '-'}")
    print(f"{'='*60}\n")

    start = time.time()
    result = await discover_prospects(filters)
    elapsed = time.time() - start

    meta = result.metadata
    print(f"\n{'='*60}")
    print("RESULTS")
    print(f"{'='*60}")
    print(f"Tier: {meta.fallback_tier.value}  Strategy: {meta.strategy_used or '---'}")
    print(f"Tried: {', '.join(meta.strategies_tried) or '-'}")
    print(f"Time: {elapsed:.1f}s")
    for warning in meta.warnings:
        print(f"Warning: {warning}")
    print(f"\nProspects: {len(result.prospects)}")

    for i, p in enumerate(result.prospects, 1):
        print(f"\n  {i}. {p.full_name} [{p.score}]")
        print(f"     {p.position} @ {p.company}")
        if p.email:
            status = "✓" if p.validated else "✗"
            print(f"     Email: {p.email} {status} ({p.email_validation.reason})")
        if p.linkedin_url:
            print(f"     Profile: {p.linkedin_url}")
        print(f"     Tags: {', '.join(p.tags)}")

    print(f"\n{'='*60}\n")
    return result


async def try_site(url: str):
    """Crawl a single company site (homepage + team pages) and print raw candidates."""
    from models import SearchFilters
    from clients.strategies import CompanySiteStrategy
    from clients.web_fetcher import WebFetcher

    async with WebFetcher() as fetcher:
        strategy = CompanySiteStrategy(fetcher)
        contacts = await strategy._crawl_site(url, SearchFilters())

    print(f"\n{url}: {len(contacts)} candidate(s)")
    for c in contacts:
        inferred = " (guessed)" if c.email_inferred else ""
        print(f"  - {c.full_name}, {c.position} @ {c.company}: {c.email}{inferred}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manual prospect discovery run")
    parser.add_argument("industry", nargs="?", default="")
    parser.add_argument("position", nargs="?", default="")
    parser.add_argument("location", nargs="?", default="")
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--site", help="Only crawl this company site")
    args = parser.parse_args()

    if args.site:
        asyncio.run(try_site(args.site))
    else:
        asyncio.run(try_discovery(args.industry, args.position, args.location, args.limit))
