# stream_resolver/services/realdebrid.py

"""
Real-Debrid REST client.

Only the endpoints needed to turn an info hash into a direct URL are wrapped:
instant availability, magnet submission, file selection, job info, link
unrestriction and job deletion. Every request carries the caller's bearer
token; the token is kept in memory only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

import httpx

from ..config import DEBRID_API_URL, HTTP_TIMEOUT, logger
from ..errors import DebridAPIError, DebridNotFound
from ..models import TorrentFile
from ..utils import safe_int

_AVAILABILITY_BATCH_SIZE = 50


def build_magnet(info_hash: str) -> str:
    return f"magnet:?xt=urn:btih:{info_hash.lower()}"


def parse_torrent_files(info: dict[str, Any]) -> list[TorrentFile]:
    """Converts the ``files`` array of a torrent info payload, skipping bad rows."""
    files: list[TorrentFile] = []
    raw_files = info.get("files") if isinstance(info, dict) else None
    if not isinstance(raw_files, list):
        return files
    for raw in raw_files:
        if not isinstance(raw, dict):
            continue
        file_id = safe_int(raw.get("id"))
        path = raw.get("path")
        if file_id is None or not isinstance(path, str) or not path:
            continue
        files.append(
            TorrentFile(
                id=file_id,
                path=path,
                size_bytes=safe_int(raw.get("bytes")) or 0,
                selected=bool(safe_int(raw.get("selected"))),
            )
        )
    return files


def _parse_availability_variant(variant: Any) -> list[TorrentFile]:
    files: list[TorrentFile] = []
    if not isinstance(variant, dict):
        return files
    for file_id, meta in variant.items():
        parsed_id = safe_int(file_id)
        if parsed_id is None or not isinstance(meta, dict):
            continue
        filename = meta.get("filename")
        if not isinstance(filename, str) or not filename:
            continue
        files.append(
            TorrentFile(
                id=parsed_id,
                path=filename,
                size_bytes=safe_int(meta.get("filesize")) or 0,
                selected=True,
            )
        )
    return files


class RealDebridClient:
    """Thin async wrapper over the Real-Debrid REST API."""

    def __init__(
        self,
        api_token: str,
        *,
        base_url: str = DEBRID_API_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = HTTP_TIMEOUT,
    ) -> None:
        self._api_token = api_token
        self.base_url = base_url.rstrip("/")
        self._client = http_client
        self._timeout = timeout

    async def _request(
        self, method: str, endpoint: str, *, data: dict[str, str] | None = None
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self._api_token}"}
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, data=data, headers=headers
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout, follow_redirects=True
                ) as client:
                    response = await client.request(
                        method, url, data=data, headers=headers
                    )
        except httpx.HTTPError as exc:
            logger.warning("[DEBRID] %s %s failed: %s", method, endpoint, exc)
            raise DebridAPIError(0, f"network_error: {exc}") from exc

        if response.status_code >= 400:
            error, error_code = "unknown_error", None
            try:
                body = response.json()
                if isinstance(body, dict):
                    error = str(body.get("error") or error)
                    error_code = safe_int(body.get("error_code"))
            except ValueError:
                pass
            if response.status_code == 404:
                raise DebridNotFound(response.status_code, error, error_code)
            raise DebridAPIError(response.status_code, error, error_code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DebridAPIError(response.status_code, "invalid_json") from exc

    async def check_instant_availability(
        self, info_hashes: Iterable[str]
    ) -> dict[str, list[TorrentFile]]:
        """
        Returns the hashes that are already cached, each mapped to the files of
        its richest cached variant. Hashes absent from the result are not cached.
        """
        hashes = list(dict.fromkeys(h.lower() for h in info_hashes if h))
        available: dict[str, list[TorrentFile]] = {}
        for start in range(0, len(hashes), _AVAILABILITY_BATCH_SIZE):
            batch = hashes[start : start + _AVAILABILITY_BATCH_SIZE]
            payload = await self._request(
                "GET", "/torrents/instantAvailability/" + "/".join(batch)
            )
            if not isinstance(payload, dict):
                continue
            lowered = {str(k).lower(): v for k, v in payload.items()}
            for info_hash in batch:
                entry = lowered.get(info_hash)
                if not isinstance(entry, dict):
                    continue
                variants = entry.get("rd")
                if not isinstance(variants, list):
                    continue
                best: list[TorrentFile] = []
                for variant in variants:
                    files = _parse_availability_variant(variant)
                    if sum(f.size_bytes for f in files) > sum(
                        f.size_bytes for f in best
                    ):
                        best = files
                if best:
                    available[info_hash] = best
        logger.info(
            "[DEBRID] Instant availability: %d of %d hashes cached.",
            len(available),
            len(hashes),
        )
        return available

    async def add_magnet(self, info_hash: str) -> str:
        payload = await self._request(
            "POST", "/torrents/addMagnet", data={"magnet": build_magnet(info_hash)}
        )
        torrent_id = payload.get("id") if isinstance(payload, dict) else None
        if not torrent_id:
            raise DebridAPIError(200, "missing_torrent_id")
        return str(torrent_id)

    async def select_files(
        self, torrent_id: str, file_ids: Iterable[int] | None = None
    ) -> None:
        files = "all" if file_ids is None else ",".join(str(i) for i in file_ids)
        await self._request(
            "POST", f"/torrents/selectFiles/{torrent_id}", data={"files": files}
        )

    async def get_torrent_info(self, torrent_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/torrents/info/{torrent_id}")
        if not isinstance(payload, dict):
            raise DebridAPIError(200, "invalid_torrent_info")
        return payload

    async def unrestrict_link(self, link: str) -> dict[str, Any]:
        payload = await self._request("POST", "/unrestrict/link", data={"link": link})
        if not isinstance(payload, dict) or not payload.get("download"):
            raise DebridAPIError(200, "missing_download_link")
        return payload

    async def delete_torrent(self, torrent_id: str) -> None:
        await self._request("DELETE", f"/torrents/delete/{torrent_id}")

    async def get_user(self) -> dict[str, Any]:
        payload = await self._request("GET", "/user")
        if not isinstance(payload, dict):
            raise DebridAPIError(200, "invalid_user")
        return payload

    async def validate_token(self) -> dict[str, Any]:
        """Checks the token against ``/user`` and reports premium status."""
        try:
            user = await self.get_user()
        except DebridAPIError as exc:
            logger.warning("[DEBRID] Token validation failed: %s", exc)
            return {"valid": False}

        expires_at = None
        expiration = user.get("expiration")
        if isinstance(expiration, str) and expiration:
            try:
                expires_at = datetime.fromisoformat(expiration.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("[DEBRID] Unreadable expiration date: %s", expiration)
        return {
            "valid": True,
            "username": user.get("username"),
            "is_premium": user.get("type") == "premium"
            and (safe_int(user.get("premium")) or 0) > 0,
            "expires_at": expires_at,
        }
