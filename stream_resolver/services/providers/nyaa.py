# stream_resolver/services/providers/nyaa.py

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from bs4 import BeautifulSoup
from thefuzz import fuzz

from ...config import HTTP_TIMEOUT, NYAA_CATEGORIES, NYAA_URL, logger
from ...errors import ProviderUnavailable
from ...models import SERIES, Candidate, ContentRequest
from ...utils import parse_size, safe_int
from .base_provider import Provider

_DEFAULT_FUZZ_THRESHOLD = 70


def _episode_token(season: int | None, episode: int | None) -> str:
    if season is None or episode is None:
        return ""
    return f"S{season:02d}E{episode:02d}"


def build_anime_queries(request: ContentRequest) -> list[str]:
    """
    Builds the feed queries for an anime request: the title, plus the original
    title when it differs, each suffixed with the episode token for series or
    the year for movies.
    """
    if not request.title or not request.title.strip():
        return []

    episode_token = _episode_token(request.season, request.episode)

    def _with_tokens(base_title: str) -> str:
        tokens = [base_title.strip()]
        if request.media_kind == SERIES and episode_token:
            tokens.append(episode_token)
        elif request.media_kind != SERIES and request.year:
            tokens.append(str(request.year))
        return " ".join(token for token in tokens if token)

    queries = [_with_tokens(request.title)]
    original = request.original_title
    if (
        original
        and original.strip()
        and original.strip().lower() != request.title.strip().lower()
    ):
        queries.append(_with_tokens(original))
    return queries


def parse_feed(xml: str) -> list[Candidate]:
    """Parses a Nyaa RSS document. Items without a title are skipped."""
    soup = BeautifulSoup(xml, "xml")
    candidates: list[Candidate] = []
    for item in soup.find_all("item"):
        title_tag = item.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""
        if not title:
            continue

        seeders_tag = item.find("seeders")
        hash_tag = item.find("infoHash")
        size_tag = item.find("size")

        size_text = size_tag.get_text(strip=True) if size_tag else None
        info_hash = hash_tag.get_text(strip=True).lower() if hash_tag else None

        candidates.append(
            Candidate(
                provider="Nyaa",
                title=title,
                size_bytes=parse_size(size_text) if size_text else 0,
                size_text=size_text or None,
                seeders=safe_int(seeders_tag.get_text(strip=True))
                if seeders_tag
                else None,
                info_hash=info_hash or None,
            )
        )
    return candidates


class NyaaProvider(Provider):
    """Anime index queried through its RSS search feed."""

    name = "Nyaa"

    def __init__(self, config: dict[str, Any] | None = None):
        config = config or {}
        self.base_url = str(config.get("base_url") or NYAA_URL).rstrip("/")
        self.categories = list(config.get("categories") or NYAA_CATEGORIES)
        self.fuzz_threshold = int(
            config.get("fuzz_threshold", _DEFAULT_FUZZ_THRESHOLD)
        )

    def applies_to(self, request: ContentRequest) -> bool:
        return request.is_anime and bool(request.title and request.title.strip())

    async def _fetch_feed(
        self, client: httpx.AsyncClient, query: str, category: str
    ) -> list[Candidate]:
        params = {"page": "rss", "c": category, "f": "0", "q": query}
        response = await client.get(f"{self.base_url}/", params=params)
        response.raise_for_status()
        return parse_feed(response.text)

    def _is_relevant(self, candidate: Candidate, request: ContentRequest) -> bool:
        if self.fuzz_threshold <= 0:
            return True
        targets = [t for t in (request.title, request.original_title) if t]
        title = candidate.title.lower()
        return any(
            fuzz.partial_ratio(target.lower(), title) >= self.fuzz_threshold
            for target in targets
        )

    async def search(self, request: ContentRequest) -> list[Candidate]:
        queries = build_anime_queries(request)
        if not queries:
            return []

        jobs = [(query, category) for query in queries for category in self.categories]
        async with httpx.AsyncClient(
            timeout=HTTP_TIMEOUT, follow_redirects=True
        ) as client:
            responses = await asyncio.gather(
                *(self._fetch_feed(client, query, cat) for query, cat in jobs),
                return_exceptions=True,
            )

        items: list[Candidate] = []
        failures = 0
        for (query, category), result in zip(jobs, responses):
            if isinstance(result, Exception):
                failures += 1
                logger.warning(
                    "[PROVIDER] Nyaa: Feed request failed for '%s' (category %s): %s",
                    query,
                    category,
                    result,
                )
                continue
            items.extend(result)

        if failures == len(jobs):
            raise ProviderUnavailable(
                self.name, " | ".join(queries), "all feed requests failed"
            )

        unique: dict[str, Candidate] = {}
        for item in items:
            key = item.info_hash or item.title
            if key not in unique:
                unique[key] = item

        results = [c for c in unique.values() if self._is_relevant(c, request)]
        dropped = len(unique) - len(results)
        if dropped:
            logger.info("[PROVIDER] Nyaa: Dropped %d unrelated results.", dropped)
        logger.info(
            "[PROVIDER] Nyaa: Found %d results for %s.", len(results), queries
        )
        return results
