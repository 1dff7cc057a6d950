# stream_resolver/services/aggregator.py

from __future__ import annotations

import asyncio
import dataclasses
import time
from typing import Iterable, Protocol

from ..config import DEFAULT_RECOMMENDED_LIMIT, SLOW_AGGREGATION_SECONDS, logger
from ..errors import DebridError
from ..models import (
    AggregateResult,
    Candidate,
    ContentRequest,
    ScoringContext,
    TorrentFile,
)
from ..utils import format_bytes
from .availability_cache import AvailabilityCache
from .junk_filter import FilterPolicy
from .metadata_parser import parse_candidate
from .providers.base_provider import Provider
from .scoring import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    filter_ranked,
    rank_candidates,
    recommend,
)


class AvailabilityChecker(Protocol):
    async def check_instant_availability(
        self, info_hashes: Iterable[str]
    ) -> dict[str, list[TorrentFile]]: ...


# --- Aggregation ---


async def aggregate_sources(
    request: ContentRequest,
    context: ScoringContext,
    providers: Iterable[Provider],
    *,
    availability: AvailabilityChecker | None = None,
    cache: AvailabilityCache | None = None,
    policy: FilterPolicy | None = None,
    weights: ScoringWeights | None = None,
    recommended_limit: int = DEFAULT_RECOMMENDED_LIMIT,
    quality_filter: Iterable[str] = (),
    language_filter: Iterable[str] = (),
) -> AggregateResult:
    """
    Queries every applicable provider concurrently and returns one ranked list.

    A provider that fails contributes nothing; the others are still used. The
    user's quality and language filters are applied to the ranked list before
    recommending. An empty result means no usable candidate exists and is not
    an error.
    """
    started = time.monotonic()
    active = [provider for provider in providers if provider.applies_to(request)]
    if not active:
        logger.warning(
            "[AGGREGATE] No providers apply to request '%s'.", request.stream_id
        )
        return AggregateResult()

    results_per_provider = await asyncio.gather(
        *(_run_provider(provider, request) for provider in active)
    )
    for provider, provider_results in zip(active, results_per_provider):
        _log_provider_results(provider.name, provider_results)

    merged = [c for provider_results in results_per_provider for c in provider_results]
    candidates = deduplicate(merged)

    if availability is not None:
        candidates = await mark_cached(candidates, availability, cache)

    parsed = [(candidate, parse_candidate(candidate)) for candidate in candidates]
    ranked = rank_candidates(
        parsed, context, policy=policy, weights=weights or DEFAULT_WEIGHTS
    )
    filtered = filter_ranked(ranked, quality_filter, language_filter)
    if len(filtered) != len(ranked):
        logger.info(
            "[AGGREGATE] Source filters kept %d of %d candidates for '%s'.",
            len(filtered),
            len(ranked),
            request.stream_id,
        )
    ranked = filtered
    recommended = recommend(ranked, recommended_limit)

    elapsed = time.monotonic() - started
    if elapsed > SLOW_AGGREGATION_SECONDS:
        logger.warning(
            "[AGGREGATE] Slow source fetch: %.0fms for '%s' (%d results).",
            elapsed * 1000,
            request.stream_id,
            len(ranked),
        )
    logger.info(
        "[AGGREGATE] %d candidates merged, %d ranked, %d recommended for '%s'.",
        len(candidates),
        len(ranked),
        len(recommended),
        request.stream_id,
    )
    return AggregateResult(ranked=ranked, recommended=recommended)


async def _run_provider(provider: Provider, request: ContentRequest) -> list[Candidate]:
    try:
        return await provider.search(request)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "[AGGREGATE] Provider '%s' failed for '%s': %s",
            provider.name,
            request.stream_id,
            exc,
        )
        return []


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    """
    Collapses candidates sharing an info hash (or, without one, the same title
    from the same provider). First-seen order is kept; a cached duplicate
    replaces an uncached one.
    """
    unique: dict[tuple[str, ...], Candidate] = {}
    for candidate in candidates:
        key = candidate.dedupe_key
        existing = unique.get(key)
        if existing is None or (candidate.is_cached and not existing.is_cached):
            unique[key] = candidate
    return list(unique.values())


async def mark_cached(
    candidates: list[Candidate],
    availability: AvailabilityChecker,
    cache: AvailabilityCache | None = None,
) -> list[Candidate]:
    """
    Flags candidates whose info hash is already cached by the debrid service.
    Answers are taken from ``cache`` when present; the rest are checked in one
    batched call. A failed check leaves the candidates untouched.
    """
    known: dict[str, bool] = {}
    to_check: list[str] = []
    for candidate in candidates:
        if candidate.is_cached or not candidate.info_hash:
            continue
        info_hash = candidate.info_hash.lower()
        if info_hash in known or info_hash in to_check:
            continue
        cached_value = cache.get(info_hash) if cache is not None else AvailabilityCache.MISS
        if cached_value is AvailabilityCache.MISS:
            to_check.append(info_hash)
        else:
            known[info_hash] = bool(cached_value)

    if to_check:
        try:
            available = await availability.check_instant_availability(to_check)
        except DebridError as exc:
            logger.warning(
                "[AGGREGATE] Availability check failed for %d hashes: %s",
                len(to_check),
                exc,
            )
        else:
            for info_hash in to_check:
                is_available = info_hash in available
                known[info_hash] = is_available
                if cache is not None:
                    cache.set(info_hash, is_available)

    if not any(known.values()):
        return candidates
    return [
        dataclasses.replace(candidate, is_cached=True)
        if candidate.info_hash and known.get(candidate.info_hash.lower())
        else candidate
        for candidate in candidates
    ]


def _log_provider_results(provider_name: str, results: list[Candidate]) -> None:
    """
    Emits one log entry listing every candidate a provider returned, before
    any filtering happens.
    """
    lines = [f"--- {provider_name} Provider Results ---"]
    if not results:
        lines.append("No results returned.")
        lines.append("--------------------")
        logger.info("\n".join(lines))
        return

    for idx, candidate in enumerate(results, start=1):
        lines.append(f"Result {idx}:")
        lines.append(f"  title: {candidate.title}")
        lines.append(f"  source: {candidate.provider}")
        lines.append(f"  size: {candidate.size_text or format_bytes(candidate.size_bytes)}")
        lines.append(f"  seeders: {candidate.seeders}")
        lines.append(f"  cached: {candidate.is_cached}")
        lines.append("--------------------")
    logger.info("\n".join(lines))
