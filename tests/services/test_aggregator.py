import logging

import pytest

from stream_resolver.errors import DebridAPIError, ProviderUnavailable
from stream_resolver.models import MOVIE, ContentRequest, ScoringContext, TorrentFile
from stream_resolver.services.aggregator import (
    aggregate_sources,
    deduplicate,
    mark_cached,
)
from stream_resolver.services.availability_cache import AvailabilityCache
from stream_resolver.services.providers.base_provider import Provider

GIB = 1024**3
HASH_A = "a" * 40
HASH_B = "b" * 40
REQUEST = ContentRequest("tt1234567", media_kind=MOVIE)
CONTEXT = ScoringContext(media_kind=MOVIE)


class FakeProvider(Provider):
    def __init__(self, name, results=None, error=None, applies=True):
        self.name = name
        self._results = results or []
        self._error = error
        self._applies = applies
        self.calls = 0

    def applies_to(self, request):
        return self._applies

    async def search(self, request):
        self.calls += 1
        if self._error:
            raise self._error
        return list(self._results)


class FakeAvailability:
    def __init__(self, cached=(), error=None):
        self.cached = set(cached)
        self.error = error
        self.requests: list[list[str]] = []

    async def check_instant_availability(self, hashes):
        hashes = list(hashes)
        self.requests.append(hashes)
        if self.error:
            raise self.error
        return {
            h: [TorrentFile(id=1, path="movie.mkv", size_bytes=GIB, selected=True)]
            for h in hashes
            if h in self.cached
        }


@pytest.mark.asyncio
async def test_same_hash_from_two_providers_is_merged(make_candidate):
    first = FakeProvider(
        "Torrentio",
        [make_candidate("Movie.2024.1080p.WEB-DL", info_hash=HASH_A, size_bytes=2 * GIB)],
    )
    second = FakeProvider(
        "Other",
        [make_candidate("Movie 2024 1080p WEB", info_hash=HASH_A.upper(), size_bytes=2 * GIB)],
    )

    result = await aggregate_sources(REQUEST, CONTEXT, [first, second])

    assert len(result.ranked) == 1
    assert result.ranked[0].candidate.title == "Movie.2024.1080p.WEB-DL"


@pytest.mark.asyncio
async def test_failing_provider_contributes_nothing(make_candidate, caplog):
    healthy = FakeProvider(
        "Torrentio", [make_candidate("Movie.1080p", info_hash=HASH_A, size_bytes=2 * GIB)]
    )
    broken = FakeProvider(
        "Nyaa", error=ProviderUnavailable("Nyaa", "Movie", "all feed requests failed")
    )
    crashing = FakeProvider("Buggy", error=RuntimeError("unexpected"))

    with caplog.at_level(logging.WARNING):
        result = await aggregate_sources(REQUEST, CONTEXT, [healthy, broken, crashing])

    assert [r.candidate.info_hash for r in result.ranked] == [HASH_A]
    assert "Nyaa" in caplog.text and "tt1234567" in caplog.text
    assert "Buggy" in caplog.text


@pytest.mark.asyncio
async def test_sample_is_junk_even_when_large(make_candidate):
    provider = FakeProvider(
        "Torrentio",
        [
            make_candidate(
                "Movie.2024.1080p.WEB-DL.x264-GROUP sample",
                info_hash=HASH_A,
                size_bytes=3 * GIB,
            ),
            make_candidate("Movie.2024.1080p.WEB-DL.x264-GROUP", info_hash=HASH_B, size_bytes=3 * GIB),
        ],
    )

    result = await aggregate_sources(REQUEST, CONTEXT, [provider])

    assert [r.candidate.info_hash for r in result.ranked] == [HASH_B]


@pytest.mark.asyncio
async def test_only_applicable_providers_are_queried(make_candidate):
    skipped = FakeProvider("Nyaa", applies=False)
    used = FakeProvider("Torrentio", [make_candidate(size_bytes=2 * GIB)])

    await aggregate_sources(REQUEST, CONTEXT, [skipped, used])

    assert skipped.calls == 0
    assert used.calls == 1


@pytest.mark.asyncio
async def test_no_candidates_is_an_empty_result():
    result = await aggregate_sources(REQUEST, CONTEXT, [FakeProvider("Torrentio")])
    assert result.is_empty
    assert result.recommended == []

    nothing = await aggregate_sources(REQUEST, CONTEXT, [])
    assert nothing.is_empty


@pytest.mark.asyncio
async def test_recommendations_respect_limit(make_candidate):
    provider = FakeProvider(
        "Torrentio",
        [
            make_candidate(f"Movie.1080p.{i}", info_hash=f"{i:040x}", size_bytes=2 * GIB)
            for i in range(5)
        ],
    )
    result = await aggregate_sources(REQUEST, CONTEXT, [provider], recommended_limit=3)
    assert len(result.ranked) == 5
    assert len(result.recommended) == 3


@pytest.mark.asyncio
async def test_source_filters_apply_before_recommending(make_candidate):
    provider = FakeProvider(
        "Torrentio",
        [
            make_candidate("Movie.1080p.ITA", info_hash=HASH_A, size_bytes=2 * GIB),
            make_candidate("Movie.2160p.ENG", info_hash=HASH_B, size_bytes=8 * GIB),
            make_candidate("Movie.720p.ENG", info_hash="c" * 40, size_bytes=GIB),
        ],
    )
    result = await aggregate_sources(
        REQUEST,
        CONTEXT,
        [provider],
        quality_filter=["4K", "720p"],
        language_filter=["English"],
    )
    assert [r.candidate.title for r in result.ranked] == [
        "Movie.720p.ENG",
        "Movie.2160p.ENG",
    ]
    assert result.recommended[0].candidate.title == "Movie.720p.ENG"


@pytest.mark.asyncio
async def test_availability_marks_cached_and_uses_cache(make_candidate):
    provider = FakeProvider(
        "Nyaa",
        [
            make_candidate("Movie.1080p.A", info_hash=HASH_A, size_bytes=2 * GIB),
            make_candidate("Movie.1080p.B", info_hash=HASH_B, size_bytes=2 * GIB),
            make_candidate("Movie.1080p.C", size_bytes=2 * GIB),
        ],
    )
    availability = FakeAvailability(cached={HASH_B})
    cache = AvailabilityCache()

    result = await aggregate_sources(
        REQUEST, CONTEXT, [provider], availability=availability, cache=cache
    )

    assert result.ranked[0].candidate.info_hash == HASH_B
    assert result.ranked[0].candidate.is_cached is True
    assert availability.requests == [[HASH_A, HASH_B]]
    assert cache.get(HASH_A) is False
    assert cache.get(HASH_B) is True

    await aggregate_sources(
        REQUEST, CONTEXT, [provider], availability=availability, cache=cache
    )
    assert len(availability.requests) == 1


@pytest.mark.asyncio
async def test_availability_failure_is_not_raised(make_candidate):
    provider = FakeProvider(
        "Nyaa", [make_candidate("Movie.1080p", info_hash=HASH_A, size_bytes=2 * GIB)]
    )
    availability = FakeAvailability(error=DebridAPIError(503, "service_unavailable"))

    result = await aggregate_sources(
        REQUEST, CONTEXT, [provider], availability=availability
    )

    assert result.ranked[0].candidate.is_cached is False


def test_deduplicate_prefers_cached_copy(make_candidate):
    uncached = make_candidate("First", info_hash=HASH_A)
    cached = make_candidate("Second", info_hash=HASH_A, is_cached=True)
    other = make_candidate("Other")

    assert deduplicate([uncached, other, cached]) == [cached, other]


def test_deduplicate_without_hash_uses_title_and_provider(make_candidate):
    a = make_candidate("Same", provider="X")
    b = make_candidate("Same", provider="Y")
    c = make_candidate("Same", provider="X")
    assert deduplicate([a, b, c]) == [a, b]


@pytest.mark.asyncio
async def test_mark_cached_skips_already_cached(make_candidate):
    availability = FakeAvailability()
    candidates = [make_candidate(info_hash=HASH_A, is_cached=True)]
    assert await mark_cached(candidates, availability) == candidates
    assert availability.requests == []
