# stream_resolver/services/junk_filter.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from ..config import logger
from ..models import MOVIE, SERIES, Candidate, ParsedStreamMetadata

DEFAULT_POLICY_PATH = Path(__file__).with_name("filter_policy.yaml")

JUNK_KEYWORDS = (
    "trailer",
    "promo",
    "sample",
    "preview",
    "clip",
    "extra",
    "bonus",
    "teaser",
    "opening",
    "ending",
    "op",
    "ed",
)
_KEYWORD_PATTERN = re.compile(r"\b(" + "|".join(JUNK_KEYWORDS) + r")\b")

_DEFAULT_THRESHOLDS: dict[str, dict[str, float]] = {
    MOVIE: {"2160p": 2000, "1080p": 800, "720p": 400, "default": 150},
    SERIES: {"2160p": 400, "1080p": 150, "720p": 80, "default": 30},
}

# Cache for policy files to avoid repeated disk reads.
_policy_cache: dict[Path, FilterPolicy] = {}


@dataclass(frozen=True)
class FilterPolicy:
    """Per media kind, per quality minimum sizes in MiB."""

    min_size_mb: dict[str, dict[str, float]] = field(
        default_factory=lambda: {
            kind: dict(values) for kind, values in _DEFAULT_THRESHOLDS.items()
        }
    )

    def threshold_mb(self, media_kind: str, quality: str) -> float:
        kind = SERIES if media_kind == SERIES else MOVIE
        thresholds = self.min_size_mb.get(kind) or _DEFAULT_THRESHOLDS[kind]
        if quality in thresholds:
            return float(thresholds[quality])
        return float(thresholds.get("default", _DEFAULT_THRESHOLDS[kind]["default"]))


def load_filter_policy(config_path: Path | str | None = None) -> FilterPolicy:
    """Load the size-threshold policy from YAML.

    Missing kinds or tiers fall back to the built-in defaults. Results are
    cached per resolved path.
    """
    resolved_path = Path(config_path or DEFAULT_POLICY_PATH).resolve()
    cached = _policy_cache.get(resolved_path)
    if cached is not None:
        return cached

    if not resolved_path.exists():
        raise FileNotFoundError(f"Filter policy not found: {resolved_path}")

    with resolved_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Filter policy must be a mapping: {resolved_path}")

    raw_thresholds = data.get("min_size_mb", {}) or {}
    if not isinstance(raw_thresholds, dict):
        raise ValueError("'min_size_mb' must map media kinds to thresholds")

    thresholds: dict[str, dict[str, float]] = {}
    for kind, defaults in _DEFAULT_THRESHOLDS.items():
        merged = dict(defaults)
        merged.update(_coerce_thresholds(kind, raw_thresholds.get(kind)))
        thresholds[kind] = merged

    policy = FilterPolicy(min_size_mb=thresholds)
    logger.info("[FILTER] Loaded size thresholds from %s", resolved_path)
    _policy_cache[resolved_path] = policy
    return policy


def _coerce_thresholds(kind: str, raw: Any) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Thresholds for '{kind}' must be a mapping")
    out: dict[str, float] = {}
    for quality, value in raw.items():
        try:
            out[str(quality).lower()] = float(value)
        except (TypeError, ValueError):
            raise ValueError(
                f"Invalid threshold for {kind}/{quality}: {value!r}"
            ) from None
    return out


def has_junk_keyword(title: str) -> bool:
    return bool(_KEYWORD_PATTERN.search(title.lower().replace("_", " ")))


def is_junk(
    candidate: Candidate,
    metadata: ParsedStreamMetadata,
    media_kind: str,
    policy: FilterPolicy | None = None,
) -> bool:
    """
    Flags trailers, samples and other non-feature results.

    A keyword in the title is decisive. Otherwise a known size below the
    minimum for the detected quality marks the result as junk; unknown sizes
    are given the benefit of the doubt.
    """
    if has_junk_keyword(candidate.title):
        return True

    if metadata.size_bytes <= 0:
        return False

    policy = policy or load_filter_policy()
    return metadata.size_mb < policy.threshold_mb(media_kind, metadata.quality)
