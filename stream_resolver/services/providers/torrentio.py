# stream_resolver/services/providers/torrentio.py

from __future__ import annotations

import re
import urllib.parse
from typing import Any

import httpx

from ...config import HTTP_TIMEOUT, TORRENTIO_URL, logger
from ...errors import ProviderUnavailable
from ...models import SERIES, Candidate, ContentRequest
from ...utils import parse_size
from .base_provider import Provider

DEFAULT_PROVIDERS = (
    "yts",
    "eztv",
    "rarbg",
    "1337x",
    "thepiratebay",
    "kickasstorrents",
    "torrentgalaxy",
    "nyaasi",
)
DEFAULT_QUALITY_FILTER = ("scr", "cam")
DEFAULT_SORT = "qualitysize"

_CACHED_MARKERS = ("[RD+]", "[⚡", "[RD⚡")
_SEEDERS_PATTERN = re.compile(r"👤\s*(\d+)")
_SIZE_PATTERN = re.compile(r"💾\s*([\d.,]+)\s*(TB|GB|MB)", re.IGNORECASE)
_LABEL_PATTERN = re.compile(r"⚙️?\s*([^\s\n]+)")
_BRACKET_PROVIDER_PATTERN = re.compile(r"\]\s*(\w+)")
_HASH_SEGMENT_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")


def _hash_from_url(url: str | None) -> str | None:
    if not url:
        return None
    path = urllib.parse.urlparse(url).path
    for segment in path.split("/"):
        if _HASH_SEGMENT_PATTERN.match(segment):
            return segment.lower()
    return None


def parse_stream(stream: Any) -> Candidate | None:
    """
    Converts one entry of the addon's ``streams`` array into a Candidate.
    Returns None for entries that cannot be used.
    """
    if not isinstance(stream, dict):
        return None
    title_block = stream.get("title")
    if not isinstance(title_block, str) or not title_block.strip():
        return None
    name = stream.get("name")
    name = name if isinstance(name, str) else ""

    lines = title_block.split("\n")
    title = lines[0].strip()
    details = "\n".join(part for part in [*lines[1:], name] if part.strip())

    label_match = _LABEL_PATTERN.search(title_block)
    bracket_match = _BRACKET_PROVIDER_PATTERN.search(name)
    if label_match:
        provider = label_match.group(1)
    elif bracket_match:
        provider = bracket_match.group(1)
    else:
        provider = "unknown"

    seeders_match = _SEEDERS_PATTERN.search(title_block)
    seeders = int(seeders_match.group(1)) if seeders_match else None

    size_text = None
    size_match = _SIZE_PATTERN.search(title_block)
    if size_match:
        size_text = f"{size_match.group(1)} {size_match.group(2).upper()}"

    url = stream.get("url") if isinstance(stream.get("url"), str) else None
    info_hash = stream.get("infoHash")
    if isinstance(info_hash, str) and info_hash.strip():
        info_hash = info_hash.strip().lower()
    else:
        info_hash = _hash_from_url(url)

    return Candidate(
        provider=provider,
        title=title,
        details=details,
        size_bytes=parse_size(size_text) if size_text else 0,
        size_text=size_text,
        seeders=seeders,
        info_hash=info_hash,
        url=url,
        is_cached=any(marker in name for marker in _CACHED_MARKERS),
    )


class TorrentioProvider(Provider):
    """Client for the Torrentio addon's per-title stream list."""

    name = "Torrentio"

    def __init__(self, api_token: str | None, config: dict[str, Any] | None = None):
        config = config or {}
        self._api_token = api_token
        self.base_url = str(config.get("base_url") or TORRENTIO_URL).rstrip("/")
        self.providers = list(config.get("providers") or DEFAULT_PROVIDERS)
        self.quality_filter = list(
            config.get("quality_filter") or DEFAULT_QUALITY_FILTER
        )
        self.sort = config.get("sort") or DEFAULT_SORT
        self.show_uncached = bool(config.get("show_uncached", True))

    def build_config_string(self) -> str:
        parts = [
            f"providers={','.join(self.providers)}",
            f"sort={self.sort}",
            f"qualityfilter={','.join(self.quality_filter)}",
        ]
        if self._api_token:
            if not self.show_uncached:
                parts.append("debridoptions=nodownloadlinks")
            parts.append(f"realdebrid={self._api_token}")
        return "|".join(parts)

    def build_url(self, request: ContentRequest) -> str:
        stream_type = "series" if request.media_kind == SERIES else "movie"
        return (
            f"{self.base_url}/{self.build_config_string()}"
            f"/stream/{stream_type}/{request.stream_id}.json"
        )

    async def search(self, request: ContentRequest) -> list[Candidate]:
        url = self.build_url(request)
        try:
            async with httpx.AsyncClient(
                timeout=HTTP_TIMEOUT, follow_redirects=True
            ) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    logger.info(
                        "[PROVIDER] Torrentio: No streams for '%s'.", request.stream_id
                    )
                    return []
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(
                self.name, request.stream_id, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, request.stream_id, str(exc)) from exc
        except ValueError as exc:  # JSON decode
            raise ProviderUnavailable(
                self.name, request.stream_id, "invalid JSON payload"
            ) from exc

        streams = payload.get("streams") if isinstance(payload, dict) else None
        if not isinstance(streams, list):
            logger.warning(
                "[PROVIDER] Torrentio: Unexpected payload for '%s'.", request.stream_id
            )
            return []

        candidates = [c for c in (parse_stream(s) for s in streams) if c is not None]
        skipped = len(streams) - len(candidates)
        if skipped:
            logger.debug("[PROVIDER] Torrentio: Skipped %d malformed streams.", skipped)
        logger.info(
            "[PROVIDER] Torrentio: Found %d streams for '%s'.",
            len(candidates),
            request.stream_id,
        )
        return candidates
