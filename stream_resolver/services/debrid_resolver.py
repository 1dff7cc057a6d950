# stream_resolver/services/debrid_resolver.py

"""
Drives a debrid job from info hash to direct URL.

    UNCACHED -> SUBMITTED -> FILES_SELECTED -> POLLING -> READY
                                      exits: FAILED, TIMED_OUT, UNPLAYABLE, CANCELLED

When the availability check reports the hash as already cached, the known
file list is used straight away and the submit/poll loop is skipped:

    UNCACHED -> FILES_SELECTED -> READY
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..config import (
    ARCHIVE_EXTENSIONS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RESOLVE_TIMEOUT,
    DISC_IMAGE_EXTENSIONS,
    EXECUTABLE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    logger,
)
from ..errors import (
    DebridAPIError,
    DebridNoFiles,
    DebridNotFound,
    DebridPollFailed,
    DebridResolutionError,
    DebridSubmitFailed,
    DebridTimeout,
    DebridUnrestrictFailed,
    UnplayableFile,
)
from ..models import Candidate, JobStatus, ResolvedStream, TorrentFile, TorrentJob
from ..utils import file_extension, safe_int
from .realdebrid import RealDebridClient, parse_torrent_files

READY_STATUS = "downloaded"
WAITING_SELECTION_STATUS = "waiting_files_selection"
ERROR_STATUSES = frozenset({"magnet_error", "error", "virus", "dead"})

DISC_IMAGE = "disc_image"
ARCHIVE = "archive"
OTHER = "other"


def unplayable_category(extension: str) -> str | None:
    """Maps a deny-listed extension to its category, or None if not deny-listed."""
    ext = extension.lower()
    if ext in DISC_IMAGE_EXTENSIONS:
        return DISC_IMAGE
    if ext in ARCHIVE_EXTENSIONS:
        return ARCHIVE
    if ext in EXECUTABLE_EXTENSIONS:
        return OTHER
    return None


def select_playable_file(files: list[TorrentFile]) -> TorrentFile:
    """
    Picks the largest video among the selected files (all files when none is
    marked selected).

    Raises:
        UnplayableFile: no video, but a disc image/archive/executable exists.
        DebridNoFiles: nothing usable at all.
    """
    pool = [f for f in files if f.selected] or list(files)
    playable = [f for f in pool if f.extension in VIDEO_EXTENSIONS]
    if playable:
        return max(playable, key=lambda f: f.size_bytes)

    unplayable = [f for f in pool if unplayable_category(f.extension)]
    if unplayable:
        largest = max(unplayable, key=lambda f: f.size_bytes)
        raise UnplayableFile(
            largest.filename,
            largest.extension,
            unplayable_category(largest.extension) or OTHER,
        )
    raise DebridNoFiles("No downloadable files in debrid job")


def ensure_playable_url(url: str, filename: str | None = None) -> None:
    """Raises UnplayableFile when the URL or the reported filename is deny-listed."""
    for name in (url, filename):
        extension = file_extension(name)
        category = unplayable_category(extension)
        if category:
            shown = filename or url.rsplit("/", 1)[-1]
            raise UnplayableFile(shown, extension, category)


def _string_links(info: dict[str, Any]) -> list[str]:
    links = info.get("links")
    if not isinstance(links, list):
        return []
    return [link for link in links if isinstance(link, str) and link]


def _link_for_file(job: TorrentJob, chosen: TorrentFile) -> str:
    """Links are listed in the same order as the job's selected files."""
    selected = [f for f in job.files if f.selected] or job.files
    index = next((i for i, f in enumerate(selected) if f.id == chosen.id), 0)
    if index < len(job.links):
        return job.links[index]
    logger.warning(
        "[DEBRID] Link count (%d) does not match selected files (%d) for %s; "
        "using the first link.",
        len(job.links),
        len(selected),
        job.info_hash,
    )
    return job.links[0]


class DebridResolver:
    """Resolves info hashes to playable URLs through a debrid service."""

    def __init__(
        self,
        client: RealDebridClient,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_RESOLVE_TIMEOUT,
        cleanup_on_failure: bool = False,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._client = client
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.cleanup_on_failure = cleanup_on_failure
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

    def start(self, info_hash: str, **kwargs: Any) -> asyncio.Task[ResolvedStream]:
        """Runs ``resolve`` in a task the caller can cancel to abandon resolution."""
        return asyncio.create_task(self.resolve(info_hash, **kwargs))

    async def resolve_candidate(
        self, candidate: Candidate, *, check_availability: bool = True
    ) -> ResolvedStream:
        """
        A cached candidate's URL (or the URL of one without an info hash) is
        used as-is. An uncached URL only asks the index to start a download,
        so such candidates go through ``resolve`` like any other hash.
        """
        if candidate.url and (candidate.is_cached or not candidate.info_hash):
            ensure_playable_url(candidate.url)
            return ResolvedStream(
                url=candidate.url,
                size_bytes=candidate.size_bytes,
                info_hash=candidate.info_hash,
                from_cache=candidate.is_cached,
            )
        if not candidate.info_hash:
            raise DebridSubmitFailed(
                f"'{candidate.title}' has neither a direct URL nor an info hash"
            )
        return await self.resolve(
            candidate.info_hash, check_availability=check_availability
        )

    async def resolve(
        self,
        info_hash: str,
        *,
        check_availability: bool = True,
        job: TorrentJob | None = None,
    ) -> ResolvedStream:
        job = job or TorrentJob(info_hash=info_hash.lower())
        logger.info("[DEBRID] Resolving %s", job.info_hash)
        try:
            known_files = (
                await self._check_availability(job) if check_availability else None
            )
            if known_files:
                return await self._resolve_cached(job, known_files)

            await self._submit(job)
            await self._poll_until_ready(job)
            return await self._finish(job, from_cache=False)
        except asyncio.CancelledError:
            job.transition(JobStatus.CANCELLED)
            logger.info("[DEBRID] Resolution of %s cancelled.", job.info_hash)
            raise
        except UnplayableFile as exc:
            await self._fail(job, JobStatus.UNPLAYABLE, exc)
            raise
        except DebridTimeout as exc:
            await self._fail(job, JobStatus.TIMED_OUT, exc)
            raise
        except DebridResolutionError as exc:
            await self._fail(job, JobStatus.FAILED, exc)
            raise

    async def _fail(
        self, job: TorrentJob, status: JobStatus, exc: DebridResolutionError
    ) -> None:
        job.transition(status)
        job.error = str(exc)
        logger.warning("[DEBRID] %s ended as %s: %s", job.info_hash, status.value, exc)
        if self.cleanup_on_failure and job.torrent_id:
            try:
                await self._client.delete_torrent(job.torrent_id)
            except DebridAPIError as cleanup_exc:
                logger.warning(
                    "[DEBRID] Could not delete job %s: %s", job.torrent_id, cleanup_exc
                )

    async def _check_availability(self, job: TorrentJob) -> list[TorrentFile] | None:
        try:
            available = await self._client.check_instant_availability([job.info_hash])
        except DebridAPIError as exc:
            logger.warning(
                "[DEBRID] Availability check failed for %s: %s", job.info_hash, exc
            )
            return None
        return available.get(job.info_hash)

    async def _resolve_cached(
        self, job: TorrentJob, files: list[TorrentFile]
    ) -> ResolvedStream:
        job.files = files
        logger.info("[DEBRID] %s is cached; skipping the polling loop.", job.info_hash)
        chosen = select_playable_file(files)

        link = chosen.link or await self._materialize_cached_link(job, chosen)
        if link is None:
            logger.info(
                "[DEBRID] Cached job %s returned no link yet; polling instead.",
                job.info_hash,
            )
            await self._poll_until_ready(job)
            return await self._finish(job, from_cache=True)
        job.transition(JobStatus.READY)
        return await self._unrestrict(job, chosen, link, from_cache=True)

    async def _materialize_cached_link(
        self, job: TorrentJob, chosen: TorrentFile
    ) -> str | None:
        """Registers the cached torrent with only ``chosen`` selected and reads its link once."""
        try:
            job.torrent_id = await self._client.add_magnet(job.info_hash)
            await self._client.select_files(job.torrent_id, [chosen.id])
        except DebridAPIError as exc:
            raise DebridSubmitFailed(f"Could not register cached torrent: {exc}") from exc
        job.transition(JobStatus.FILES_SELECTED)

        try:
            info = await self._client.get_torrent_info(job.torrent_id)
        except DebridNotFound:
            return None
        except DebridAPIError as exc:
            raise DebridPollFailed("api_error", str(exc)) from exc

        links = _string_links(info)
        if str(info.get("status")) == READY_STATUS and links:
            job.links = links
            return links[0]
        return None

    async def _submit(self, job: TorrentJob) -> None:
        try:
            job.torrent_id = await self._client.add_magnet(job.info_hash)
        except DebridAPIError as exc:
            raise DebridSubmitFailed(f"Could not submit magnet: {exc}") from exc
        job.transition(JobStatus.SUBMITTED)
        logger.info("[DEBRID] Submitted %s as job %s", job.info_hash, job.torrent_id)

        try:
            await self._client.select_files(job.torrent_id)
        except DebridAPIError as exc:
            raise DebridSubmitFailed(f"Could not select files: {exc}") from exc
        job.transition(JobStatus.FILES_SELECTED)

    async def _poll_until_ready(self, job: TorrentJob) -> None:
        torrent_id = job.torrent_id
        if torrent_id is None:
            raise DebridSubmitFailed(f"No debrid job registered for {job.info_hash}")
        job.transition(JobStatus.POLLING)
        started = self._clock()
        polls = 0

        while True:
            await self._sleep(self.poll_interval)
            polls += 1
            try:
                info: dict[str, Any] | None = await self._client.get_torrent_info(
                    torrent_id
                )
            except DebridNotFound:
                # The job is not visible yet; keep waiting.
                info = None
            except DebridAPIError as exc:
                raise DebridPollFailed("api_error", str(exc)) from exc

            if info is not None:
                status = str(info.get("status") or "")
                if status in ERROR_STATUSES:
                    raise DebridPollFailed(status)
                links = _string_links(info)
                if status == READY_STATUS and links:
                    job.files = parse_torrent_files(info)
                    job.links = links
                    job.transition(JobStatus.READY)
                    logger.info(
                        "[DEBRID] Job %s ready after %d polls.", torrent_id, polls
                    )
                    return
                if status == WAITING_SELECTION_STATUS:
                    await self._reselect(torrent_id)
                logger.debug(
                    "[DEBRID] Job %s status=%s progress=%s",
                    torrent_id,
                    status,
                    info.get("progress"),
                )

            elapsed = self._clock() - started
            if elapsed >= self.timeout:
                raise DebridTimeout(elapsed, self.timeout)

    async def _reselect(self, torrent_id: str) -> None:
        try:
            await self._client.select_files(torrent_id)
        except DebridAPIError as exc:
            logger.warning(
                "[DEBRID] Re-selecting files for %s failed: %s", torrent_id, exc
            )

    async def _finish(self, job: TorrentJob, *, from_cache: bool) -> ResolvedStream:
        if not job.files:
            # No file metadata: the URL check after unrestricting is all we have.
            placeholder = TorrentFile(id=0, path="", selected=True)
            return await self._unrestrict(job, placeholder, job.links[0], from_cache)
        chosen = select_playable_file(job.files)
        return await self._unrestrict(
            job, chosen, _link_for_file(job, chosen), from_cache
        )

    async def _unrestrict(
        self, job: TorrentJob, chosen: TorrentFile, link: str, from_cache: bool
    ) -> ResolvedStream:
        try:
            payload = await self._client.unrestrict_link(link)
        except DebridAPIError as exc:
            raise DebridUnrestrictFailed(f"Could not unrestrict link: {exc}") from exc

        url = str(payload["download"])
        filename = payload.get("filename")
        filename = filename if isinstance(filename, str) and filename else None
        ensure_playable_url(url, filename)

        job.url = url
        job.filename = filename or chosen.filename or None
        logger.info("[DEBRID] Resolved %s -> %s", job.info_hash, job.filename or url)
        return ResolvedStream(
            url=url,
            filename=job.filename,
            size_bytes=safe_int(payload.get("filesize")) or chosen.size_bytes,
            info_hash=job.info_hash,
            torrent_id=job.torrent_id,
            from_cache=from_cache,
        )
