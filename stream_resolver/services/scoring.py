# stream_resolver/services/scoring.py

import math
from dataclasses import dataclass
from typing import Iterable

from ..models import (
    QUALITY_RANK,
    Candidate,
    ParsedStreamMetadata,
    RankedCandidate,
    ScoringContext,
)
from .junk_filter import FilterPolicy, is_junk
from .languages import normalize_language

JUNK_SCORE = -10000.0


@dataclass(frozen=True)
class ScoringWeights:
    # 2160p sits below 720p on purpose: bandwidth-friendly tiers are preferred.
    quality_1080p: float = 1000
    quality_720p: float = 800
    quality_2160p: float = 600
    quality_other: float = 400
    cached_bonus: float = 1000
    per_language: float = 30
    preferred_language: float = 150
    seeder_factor: float = 50
    size_factor: float = 80
    size_exponent: float = 1.5
    anime_provider_bonus: float = 0


DEFAULT_WEIGHTS = ScoringWeights()


def _quality_points(quality: str, weights: ScoringWeights) -> float:
    if quality == "1080p":
        return weights.quality_1080p
    if quality == "720p":
        return weights.quality_720p
    if quality == "2160p":
        return weights.quality_2160p
    return weights.quality_other


def score_candidate(
    candidate: Candidate,
    metadata: ParsedStreamMetadata,
    context: ScoringContext,
    *,
    policy: FilterPolicy | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """
    Scores a parsed candidate; higher is better.

    Junk results short-circuit to ``JUNK_SCORE``. Everything else is an
    additive sum of quality, cache, language and seeder bonuses minus a
    superlinear size penalty.
    """
    if is_junk(candidate, metadata, context.media_kind, policy):
        return JUNK_SCORE

    score = _quality_points(metadata.quality, weights)

    if candidate.is_cached:
        score += weights.cached_bonus

    if (
        context.is_anime
        and weights.anime_provider_bonus
        and "nyaa" in candidate.provider.lower()
    ):
        score += weights.anime_provider_bonus

    if metadata.languages:
        score += len(metadata.languages) * weights.per_language
        for language in metadata.languages:
            if language in context.preferred_languages:
                score += weights.preferred_language

    if candidate.seeders and candidate.seeders > 0:
        score += math.log2(candidate.seeders + 1) * weights.seeder_factor

    score -= math.pow(metadata.size_gb, weights.size_exponent) * weights.size_factor

    return score


def _sort_key(item: RankedCandidate) -> tuple[float, int, int]:
    quality_rank = QUALITY_RANK.get(item.metadata.quality, -1)
    return (-item.score, -quality_rank, item.metadata.size_bytes)


def rank_candidates(
    parsed: Iterable[tuple[Candidate, ParsedStreamMetadata]],
    context: ScoringContext,
    *,
    policy: FilterPolicy | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> list[RankedCandidate]:
    """
    Scores every candidate, drops junk and sorts best first. Equal scores fall
    back to the higher quality tier, then the smaller file.
    """
    ranked: list[RankedCandidate] = []
    for candidate, metadata in parsed:
        if is_junk(candidate, metadata, context.media_kind, policy):
            continue
        score = score_candidate(
            candidate, metadata, context, policy=policy, weights=weights
        )
        ranked.append(RankedCandidate(candidate, metadata, score))
    ranked.sort(key=_sort_key)
    return ranked


def recommend(ranked: list[RankedCandidate], limit: int = 2) -> list[RankedCandidate]:
    """Returns the best ``limit`` candidates whose score is strictly positive."""
    if limit <= 0:
        return []
    return [item for item in ranked if item.score > 0][:limit]


def _normalize_quality_choice(quality: str) -> str:
    choice = quality.strip().lower()
    return "2160p" if choice == "4k" else choice


def filter_ranked(
    ranked: list[RankedCandidate],
    qualities: Iterable[str] = (),
    languages: Iterable[str] = (),
) -> list[RankedCandidate]:
    """
    Applies the user's source filters to a ranked list, keeping its order.

    ``qualities`` keeps only the listed tiers (``4K`` counts as ``2160p``);
    ``languages`` keeps only candidates carrying at least one of the listed
    languages. An empty list means "all".
    """
    wanted_qualities = {_normalize_quality_choice(q) for q in qualities if q}
    wanted_languages = {
        normalize_language(language) or language for language in languages if language
    }
    if not wanted_qualities and not wanted_languages:
        return ranked
    return [
        item
        for item in ranked
        if (not wanted_qualities or item.metadata.quality in wanted_qualities)
        and (
            not wanted_languages
            or not wanted_languages.isdisjoint(item.metadata.languages)
        )
    ]
