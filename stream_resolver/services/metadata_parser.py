# stream_resolver/services/metadata_parser.py

import re
from dataclasses import replace

from ..models import Candidate, ParsedStreamMetadata, UNKNOWN_QUALITY
from ..utils import parse_size
from .languages import detect_languages

_QUALITY_PATTERN = re.compile(r"(?i)\b(2160p|4k|1080p|720p|480p|360p)\b")

# Each table is ordered: the first pattern that matches wins, so more specific
# variants come before the generic ones.
_CODEC_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("AV1", re.compile(r"(?i)\bav1\b")),
    ("HEVC", re.compile(r"(?i)\b(?:x\s*265|h\s*[.\s]?265|hevc)\b")),
    ("AVC", re.compile(r"(?i)\b(?:x\s*264|h\s*[.\s]?264|avc)\b")),
    ("VC1", re.compile(r"(?i)\bvc-?1\b")),
]

_HDR_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("DV", re.compile(r"(?i)\b(?:dovi|dv|dolby[\s.]?vision)\b")),
    ("HDR10+", re.compile(r"(?i)\bhdr10(?:\+|plus\b)")),
    ("HDR10", re.compile(r"(?i)\bhdr10\b")),
    ("HDR", re.compile(r"(?i)\bhdr\b")),
]

_SOURCE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("REMUX", re.compile(r"(?i)\bremux\b")),
    ("BluRay", re.compile(r"(?i)\bblu[\s.-]?ray\b")),
    ("BDRip", re.compile(r"(?i)\bbd[\s.-]?rip\b")),
    ("BRRip", re.compile(r"(?i)\bbr[\s.-]?rip\b")),
    ("WEB-DL", re.compile(r"(?i)\bweb[\s.-]?dl\b")),
    ("WEBRip", re.compile(r"(?i)\bweb[\s.-]?rip\b")),
    ("HDTV", re.compile(r"(?i)\bhdtv\b")),
    ("DVDRip", re.compile(r"(?i)\bdvd[\s.-]?rip\b")),
    ("HDRip", re.compile(r"(?i)\bhd[\s.-]?rip\b")),
    ("WEB-DL", re.compile(r"(?i)\bweb\b")),
]


def _audio_pattern(body: str) -> re.Pattern[str]:
    # Trailing group captures an optional channel layout such as "5.1".
    return re.compile(
        rf"(?i)(?<![a-z0-9])(?:{body})(?![a-z])(?:[\s.]?([1-9]\.[0-2]))?"
    )


_AUDIO_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("DTS-HD MA", _audio_pattern(r"dts[\s.-]?hd[\s.-]?ma")),
    ("DTS:X", _audio_pattern(r"dts[\s.:-]?x")),
    ("TrueHD", _audio_pattern(r"true[\s.-]?hd")),
    ("DTS", _audio_pattern(r"dts")),
    ("EAC3", _audio_pattern(r"e-?ac-?3|ddp|dd\+")),
    ("AC3", _audio_pattern(r"ac-?3|dd")),
    ("FLAC", _audio_pattern(r"flac")),
    ("AAC", _audio_pattern(r"aac")),
    ("Atmos", _audio_pattern(r"atmos")),
    ("LPCM", _audio_pattern(r"l?pcm")),
    ("Opus", _audio_pattern(r"opus")),
]

_BIT_DEPTH_PATTERN = re.compile(r"(?i)\b10[\s.-]?bit\b")


def _first_match(
    text: str, patterns: list[tuple[str, re.Pattern[str]]]
) -> str | None:
    for normalized, pattern in patterns:
        if pattern.search(text):
            return normalized
    return None


def parse_quality(text: str | None) -> str:
    """Returns the first resolution tag in ``text`` ("4K" becomes "2160p")."""
    if not text:
        return UNKNOWN_QUALITY
    match = _QUALITY_PATTERN.search(text.replace("_", " "))
    if not match:
        return UNKNOWN_QUALITY
    quality = match.group(1).lower()
    return "2160p" if quality == "4k" else quality


def parse_codec(text: str | None) -> str | None:
    """Extracts the video codec from a release name.

    Handles common variants and spacing/punctuation, e.g.:
    - "H264", "H.264", "H 264", "x264", "AVC" -> "AVC"
    - "H265", "H.265", "H 265", "x265", "HEVC" -> "HEVC"
    - "AV1" -> "AV1"
    """
    if not text:
        return None
    return _first_match(text.replace("_", " "), _CODEC_PATTERNS)


def parse_audio(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = text.replace("_", " ")
    for normalized, pattern in _AUDIO_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            channels = match.group(1)
            return f"{normalized} {channels}" if channels else normalized
    return None


def _detect_languages(text: str) -> tuple[str, ...]:
    """Language names count only after the first (release title) line."""
    title, _, details = text.partition("\n")
    found = detect_languages(title, names=False) + detect_languages(details)
    return tuple(dict.fromkeys(found))


def parse_stream_metadata(text: str | None) -> ParsedStreamMetadata:
    """
    Turns a free-text release title into structured attributes.

    Never raises: anything that cannot be recognised is left at its default
    (``unknown`` quality, ``None`` for the optional fields, 0 bytes).
    """
    if not isinstance(text, str) or not text:
        return ParsedStreamMetadata()

    cleaned = text.replace("_", " ")
    return ParsedStreamMetadata(
        quality=parse_quality(cleaned),
        video_codec=parse_codec(cleaned),
        hdr=_first_match(cleaned, _HDR_PATTERNS),
        audio=parse_audio(cleaned),
        source_type=_first_match(cleaned, _SOURCE_PATTERNS),
        languages=_detect_languages(text),
        size_bytes=parse_size(text),
        bit_depth=10 if _BIT_DEPTH_PATTERN.search(cleaned) else None,
    )


def parse_candidate(candidate: Candidate) -> ParsedStreamMetadata:
    """
    Parses a provider candidate. A size reported by the provider wins over one
    found in the free text.
    """
    metadata = parse_stream_metadata(candidate.text)
    size_bytes = candidate.size_bytes
    if size_bytes <= 0:
        size_bytes = parse_size(candidate.size_text) or metadata.size_bytes
    if size_bytes == metadata.size_bytes:
        return metadata
    return replace(metadata, size_bytes=size_bytes)
