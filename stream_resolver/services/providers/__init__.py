# stream_resolver/services/providers/__init__.py

from typing import Any

from ...config import logger
from .base_provider import Provider
from .nyaa import NyaaProvider, build_anime_queries
from .torrentio import TorrentioProvider


def build_providers(
    services_config: dict[str, dict[str, Any]], api_token: str | None
) -> list[Provider]:
    """Instantiates every provider enabled in the services configuration."""
    providers: list[Provider] = []
    torrentio_config = services_config.get("torrentio", {})
    if torrentio_config.get("enabled", True):
        providers.append(TorrentioProvider(api_token, torrentio_config))
    nyaa_config = services_config.get("nyaa", {})
    if nyaa_config.get("enabled", True):
        providers.append(NyaaProvider(nyaa_config))
    logger.info(
        "[CONFIG] Enabled providers: %s", ", ".join(p.name for p in providers) or "none"
    )
    return providers


__all__ = [
    "Provider",
    "TorrentioProvider",
    "NyaaProvider",
    "build_anime_queries",
    "build_providers",
]
