# stream_resolver/__main__.py

"""
Command-line entry point.

Run:
    python -m stream_resolver tt0111161 [--resolve]
    python -m stream_resolver tt0388629 --season 1 --episode 1 --anime \
        --title "One Piece" --original-title "ワンピース"

Loads config.ini, gathers and ranks candidates from every enabled provider
and prints them. With ``--resolve`` the best pick is turned into a direct URL
through the debrid service.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from stream_resolver.config import get_configuration, logger
from stream_resolver.errors import DebridResolutionError
from stream_resolver.models import (
    MOVIE,
    SERIES,
    ContentRequest,
    RankedCandidate,
    ScoringContext,
)
from stream_resolver.services.aggregator import aggregate_sources
from stream_resolver.services.availability_cache import AvailabilityCache
from stream_resolver.services.debrid_resolver import DebridResolver
from stream_resolver.services.junk_filter import load_filter_policy
from stream_resolver.services.providers import build_providers
from stream_resolver.services.realdebrid import RealDebridClient
from stream_resolver.utils import format_bytes


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stream_resolver",
        description="Rank torrent stream sources and resolve them to direct URLs.",
    )
    parser.add_argument("imdb_id", help="IMDB id of the movie or series, e.g. tt0111161")
    parser.add_argument("--season", type=int)
    parser.add_argument("--episode", type=int)
    parser.add_argument("--title", help="Display title, used for anime searches")
    parser.add_argument("--original-title", dest="original_title")
    parser.add_argument("--year", type=int)
    parser.add_argument("--anime", action="store_true", help="Also search Nyaa")
    parser.add_argument(
        "--resolve",
        action="store_true",
        help="Resolve the best candidate to a direct URL",
    )
    parser.add_argument("--config", default="config.ini", help="Path to config.ini")
    parser.add_argument("--top", type=int, default=10, help="Rows to print")
    return parser


def _format_row(idx: int, item: RankedCandidate) -> str:
    meta = item.metadata
    cand = item.candidate
    flags = "cached" if cand.is_cached else "uncached"
    extras = " ".join(
        part for part in (meta.video_codec, meta.hdr, meta.audio, meta.source_type) if part
    )
    return (
        f"{idx:>2}. [{item.score:8.1f}] {meta.quality:<7} "
        f"{format_bytes(meta.size_bytes):>10}  {cand.seeders or 0:>5} seeds  "
        f"{flags:<8} {cand.provider}: {cand.title}"
        + (f"  ({extras})" if extras else "")
    )


async def _run(args: argparse.Namespace) -> int:
    api_token, services_config, search_config = get_configuration(args.config)
    preferences = search_config.get("preferences", {})

    is_episode = args.season is not None and args.episode is not None
    request = ContentRequest(
        external_id=args.imdb_id,
        media_kind=SERIES if is_episode else MOVIE,
        season=args.season,
        episode=args.episode,
        title=args.title,
        original_title=args.original_title,
        year=args.year,
        is_anime=args.anime,
    )
    context = ScoringContext(
        media_kind=request.media_kind,
        is_anime=args.anime,
        preferred_languages=tuple(preferences.get("languages", [])),
    )

    debrid_config = services_config["debrid"]
    client = RealDebridClient(api_token, base_url=debrid_config["base_url"])
    result = await aggregate_sources(
        request,
        context,
        build_providers(services_config, api_token),
        availability=client,
        cache=AvailabilityCache(),
        policy=load_filter_policy(search_config.get("filter_policy")),
        recommended_limit=int(preferences.get("recommended_limit", 2)),
        quality_filter=preferences.get("qualities", []),
        language_filter=preferences.get("filter_languages", []),
    )

    if result.is_empty:
        print(f"No usable sources found for {request.stream_id}.")
        return 1

    print(f"Ranked sources for {request.stream_id}:")
    for idx, item in enumerate(result.ranked[: args.top], start=1):
        print(_format_row(idx, item))
    print("\nRecommended:")
    for idx, item in enumerate(result.recommended, start=1):
        print(_format_row(idx, item))
    if not result.recommended:
        print("  (none)")

    if not args.resolve:
        return 0

    best = (result.recommended or result.ranked)[0]
    resolver = DebridResolver(
        client,
        poll_interval=debrid_config["poll_interval"],
        timeout=debrid_config["timeout"],
    )
    try:
        stream = await resolver.resolve_candidate(best.candidate)
    except DebridResolutionError as exc:
        print(f"\nResolution failed ({type(exc).__name__}): {exc}")
        return 2

    print(f"\nResolved: {stream.url}")
    if stream.filename:
        print(f"File: {stream.filename} ({format_bytes(stream.size_bytes)})")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if (args.season is None) != (args.episode is None):
        logger.error("--season and --episode must be given together.")
        return 2
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
