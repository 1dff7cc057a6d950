# stream_resolver/utils.py

import math
import posixpath
import re
from typing import Any
from urllib.parse import unquote, urlparse

_SIZE_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*(TiB|GiB|MiB|KiB|TB|GB|MB|KB)\b", re.IGNORECASE
)

_SIZE_MULTIPLIERS: dict[str, int] = {
    "TIB": 1024**4,
    "GIB": 1024**3,
    "MIB": 1024**2,
    "KIB": 1024,
    "TB": 1000**4,
    "GB": 1000**3,
    "MB": 1000**2,
    "KB": 1000,
}


def format_bytes(size_bytes: int) -> str:
    """Converts bytes into a human-readable string (e.g., KB, MB, GB)."""
    if size_bytes <= 0:
        return "0B"
    size_name = ("B", "KB", "MB", "GB", "TB")
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(size_name) - 1)
    p = math.pow(1024, i)
    s = round(size_bytes / p, 2)
    return f"{s} {size_name[i]}"


def parse_size(text: str | None) -> int:
    """
    Converts the first size token in ``text`` (e.g. ``'1.4 GiB'``, ``'700 MB'``)
    to bytes. Binary units use powers of 1024, decimal units powers of 1000.
    Returns 0 when nothing size-like is found.
    """
    if not text:
        return 0
    match = _SIZE_PATTERN.search(text.replace(",", ""))
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return int(round(value * _SIZE_MULTIPLIERS[match.group(2).upper()]))


def safe_int(value: Any) -> int | None:
    """Coerces ``value`` to a non-negative int, or None when that is impossible."""
    if isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed >= 0 else None


def file_extension(name_or_url: str | None) -> str:
    """
    Returns the lower-cased extension (with the dot) of a filename, path or URL.

    Examples:
        - "Movie.2024.1080p.mkv" -> ".mkv"
        - "https://host/d/ABC/Movie.iso?token=1" -> ".iso"
        - "folder/README" -> ""
    """
    if not name_or_url:
        return ""
    path = name_or_url
    if "://" in name_or_url:
        path = urlparse(name_or_url).path
    basename = posixpath.basename(unquote(path).replace("\\", "/"))
    return posixpath.splitext(basename)[1].lower()
