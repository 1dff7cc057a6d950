# stream_resolver/models.py

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum

from .utils import file_extension

QUALITY_TIERS = ("2160p", "1080p", "720p", "480p", "360p")
UNKNOWN_QUALITY = "unknown"

# Used only for tie-breaking; higher is better.
QUALITY_RANK: dict[str, int] = {
    "2160p": 4,
    "1080p": 3,
    "720p": 2,
    "480p": 1,
    "360p": 0,
}

MOVIE = "movie"
SERIES = "series"


@dataclass(frozen=True)
class Candidate:
    """One raw result returned by a provider, before parsing and scoring."""

    provider: str
    title: str
    details: str = ""
    size_bytes: int = 0
    size_text: str | None = None
    seeders: int | None = None
    info_hash: str | None = None
    url: str | None = None
    is_cached: bool = False

    @property
    def text(self) -> str:
        """Title plus any extra descriptive text, used for metadata parsing."""
        if self.details:
            return f"{self.title}\n{self.details}"
        return self.title

    @property
    def dedupe_key(self) -> tuple[str, ...]:
        if self.info_hash:
            return ("hash", self.info_hash.lower())
        return ("title", self.title, self.provider)


@dataclass(frozen=True)
class ParsedStreamMetadata:
    quality: str = UNKNOWN_QUALITY
    video_codec: str | None = None
    hdr: str | None = None
    audio: str | None = None
    source_type: str | None = None
    languages: tuple[str, ...] = ()
    size_bytes: int = 0
    bit_depth: int | None = None

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)

    @property
    def size_gb(self) -> float:
        return self.size_bytes / (1024**3)


@dataclass(frozen=True)
class ScoringContext:
    media_kind: str = MOVIE
    is_anime: bool = False
    preferred_languages: tuple[str, ...] = ()


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Candidate
    metadata: ParsedStreamMetadata
    score: float


@dataclass(frozen=True)
class ContentRequest:
    """What the caller wants to watch, as supplied by the metadata service."""

    external_id: str
    media_kind: str = MOVIE
    season: int | None = None
    episode: int | None = None
    title: str | None = None
    original_title: str | None = None
    year: int | None = None
    is_anime: bool = False

    @property
    def is_episode(self) -> bool:
        return self.season is not None and self.episode is not None

    @property
    def stream_id(self) -> str:
        if self.is_episode:
            return f"{self.external_id}:{self.season}:{self.episode}"
        return self.external_id


@dataclass
class AggregateResult:
    ranked: list[RankedCandidate] = field(default_factory=list)
    recommended: list[RankedCandidate] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.ranked


class JobStatus(str, Enum):
    UNCACHED = "uncached"
    SUBMITTED = "submitted"
    FILES_SELECTED = "files_selected"
    POLLING = "polling"
    READY = "ready"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    UNPLAYABLE = "unplayable"
    CANCELLED = "cancelled"


@dataclass
class TorrentFile:
    id: int
    path: str
    size_bytes: int = 0
    selected: bool = False
    link: str | None = None

    @property
    def filename(self) -> str:
        return posixpath.basename(self.path.replace("\\", "/")) or self.path

    @property
    def extension(self) -> str:
        return file_extension(self.path)


@dataclass
class TorrentJob:
    """Mutable state of one debrid resolution; discarded once it terminates."""

    info_hash: str
    torrent_id: str | None = None
    status: JobStatus = JobStatus.UNCACHED
    files: list[TorrentFile] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    url: str | None = None
    filename: str | None = None
    error: str | None = None
    history: list[JobStatus] = field(default_factory=lambda: [JobStatus.UNCACHED])

    def transition(self, status: JobStatus) -> None:
        self.status = status
        self.history.append(status)


@dataclass(frozen=True)
class ResolvedStream:
    url: str
    filename: str | None = None
    size_bytes: int = 0
    info_hash: str | None = None
    torrent_id: str | None = None
    from_cache: bool = False
