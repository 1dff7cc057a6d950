# stream_resolver/config.py

import configparser
import json
import logging
import os
import sys
from typing import Any

# --- Constants ---
DEBRID_API_URL = "https://api.real-debrid.com/rest/1.0"
TORRENTIO_URL = "https://torrentio.strem.fun"
NYAA_URL = "https://nyaa.si"
NYAA_CATEGORIES = ["1_2", "1_4"]
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_RESOLVE_TIMEOUT = 120.0
DEFAULT_RECOMMENDED_LIMIT = 2
HTTP_TIMEOUT = 30
SLOW_AGGREGATION_SECONDS = 3.0

VIDEO_EXTENSIONS = frozenset(
    {
        ".mkv",
        ".mp4",
        ".avi",
        ".mov",
        ".wmv",
        ".m4v",
        ".webm",
        ".ts",
        ".m2ts",
        ".mpg",
        ".mpeg",
        ".flv",
        ".3gp",
    }
)
DISC_IMAGE_EXTENSIONS = frozenset(
    {".iso", ".img", ".bin", ".cue", ".nrg", ".mdf", ".mds", ".dmg"}
)
ARCHIVE_EXTENSIONS = frozenset(
    {".rar", ".zip", ".7z", ".tar", ".gz", ".bz2", ".xz", ".r00", ".001"}
)
EXECUTABLE_EXTENSIONS = frozenset(
    {".exe", ".msi", ".bat", ".cmd", ".scr", ".com", ".apk", ".lnk", ".jar"}
)

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)
logging.getLogger("httpx").setLevel(logging.WARNING)


def get_configuration(
    config_path: str = "config.ini",
) -> tuple[str, dict[str, dict[str, Any]], dict[str, Any]]:
    """
    Reads the debrid token, provider/service settings and search preferences
    from the config.ini file.

    Returns a ``(api_token, services_config, search_config)`` tuple. The token
    is handed straight to the debrid client and is never written anywhere.
    """
    if not os.path.exists(config_path):
        logger.critical(
            f"Configuration file '{config_path}' not found. Please create it."
        )
        sys.exit(1)

    with open(config_path, encoding="utf-8") as f:
        lines = f.readlines()

    # --- The [search] preferences value is JSON and may span several lines ---
    search_config = _parse_search_section(lines)

    config_for_parser = configparser.ConfigParser()
    clean_lines = [
        line for line in lines if not _is_in_section("[search]", line, lines)
    ]
    config_for_parser.read_string("".join(clean_lines))

    token = config_for_parser.get("debrid", "api_token", fallback=None)
    if not token or token.strip() == "PLACE_TOKEN_HERE":
        logger.critical(f"Debrid API token not found or not set in '{config_path}'.")
        sys.exit(1)

    services_config = {
        "debrid": _load_debrid_config(config_for_parser),
        "torrentio": _load_torrentio_config(config_for_parser),
        "nyaa": _load_nyaa_config(config_for_parser),
    }

    if not search_config:
        logger.info("[CONFIG] No [search] section found. Using default preferences.")
    search_config.setdefault("preferences", {})
    search_config["preferences"].setdefault("languages", [])
    search_config["preferences"].setdefault(
        "recommended_limit", DEFAULT_RECOMMENDED_LIMIT
    )
    search_config["preferences"].setdefault("qualities", [])
    search_config["preferences"].setdefault("filter_languages", [])

    return token.strip(), services_config, search_config


def _is_in_section(
    section_header: str, current_line: str, all_lines: list[str]
) -> bool:
    """Helper to check if a line belongs to a given section."""
    try:
        index = all_lines.index(current_line)
        for i in range(index, -1, -1):
            line = all_lines[i].strip()
            if line.startswith("[") and line.endswith("]"):
                return line == section_header
        return False
    except ValueError:
        return False


def _parse_search_section(lines: list[str]) -> dict[str, Any]:
    """Extracts the [search] section, decoding ``preferences`` as JSON."""
    search_config: dict[str, Any] = {}
    raw_values: dict[str, str] = {}
    in_search_section = False
    current_key = None

    for line in lines:
        stripped_line = line.strip()
        if stripped_line == "[search]":
            in_search_section = True
            continue
        if in_search_section:
            if stripped_line.startswith("[") and stripped_line.endswith("]"):
                break
            if "=" in line and stripped_line.startswith(
                ("preferences", "filter_policy")
            ):
                key, value = line.split("=", 1)
                current_key = key.strip()
                raw_values[current_key] = value.strip()
            elif current_key == "preferences" and stripped_line:
                raw_values[current_key] += "\n" + line

    if "filter_policy" in raw_values and raw_values["filter_policy"]:
        search_config["filter_policy"] = os.path.expanduser(
            raw_values["filter_policy"]
        )

    try:
        if raw_values.get("preferences"):
            search_config["preferences"] = json.loads(raw_values["preferences"])
            logger.info("[CONFIG] Search preferences loaded successfully.")
    except json.JSONDecodeError as e:
        logger.critical(f"Failed to parse JSON from [search] section: {e}")
        raise ValueError(f"Invalid JSON in [search] section: {e}")

    return search_config


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_debrid_config(config: configparser.ConfigParser) -> dict[str, Any]:
    return {
        "base_url": config.get("debrid", "base_url", fallback=DEBRID_API_URL),
        "poll_interval": config.getfloat(
            "debrid", "poll_interval", fallback=DEFAULT_POLL_INTERVAL
        ),
        "timeout": config.getfloat(
            "debrid", "timeout", fallback=DEFAULT_RESOLVE_TIMEOUT
        ),
    }


def _load_torrentio_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Loads the Torrentio section; absent keys fall back to the addon defaults."""
    torrentio_config: dict[str, Any] = {
        "enabled": config.getboolean("torrentio", "enabled", fallback=True),
        "base_url": config.get("torrentio", "base_url", fallback=TORRENTIO_URL),
        "sort": config.get("torrentio", "sort", fallback="qualitysize"),
        "show_uncached": config.getboolean(
            "torrentio", "show_uncached", fallback=True
        ),
    }
    providers = _split_list(config.get("torrentio", "providers", fallback=None))
    if providers:
        torrentio_config["providers"] = providers
    quality_filter = _split_list(
        config.get("torrentio", "quality_filter", fallback=None)
    )
    if quality_filter:
        torrentio_config["quality_filter"] = quality_filter
    return torrentio_config


def _load_nyaa_config(config: configparser.ConfigParser) -> dict[str, Any]:
    categories = _split_list(config.get("nyaa", "categories", fallback=None))
    return {
        "enabled": config.getboolean("nyaa", "enabled", fallback=True),
        "base_url": config.get("nyaa", "base_url", fallback=NYAA_URL),
        "categories": categories or list(NYAA_CATEGORIES),
        "fuzz_threshold": config.getint("nyaa", "fuzz_threshold", fallback=70),
    }
