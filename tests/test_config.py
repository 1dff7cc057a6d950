import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parent.parent))

import pytest

from stream_resolver.config import (
    DEBRID_API_URL,
    NYAA_CATEGORIES,
    TORRENTIO_URL,
    get_configuration,
)


def test_get_configuration_happy_path(mocker):
    config_data = """
[debrid]
api_token = RD_TOKEN
poll_interval = 2
timeout = 60

[torrentio]
providers = yts, eztv
sort = size
quality_filter = cam
show_uncached = false

[nyaa]
categories = 1_2
fuzz_threshold = 80

[search]
filter_policy = /etc/stream_resolver/policy.yaml
preferences = {
    "languages": ["English", "Japanese"],
    "recommended_limit": 3,
    "qualities": ["4K", "1080p"]
  }
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)

    token, services, search_config = get_configuration()

    assert token == "RD_TOKEN"
    assert services["debrid"] == {
        "base_url": DEBRID_API_URL,
        "poll_interval": 2.0,
        "timeout": 60.0,
    }
    assert services["torrentio"] == {
        "enabled": True,
        "base_url": TORRENTIO_URL,
        "sort": "size",
        "show_uncached": False,
        "providers": ["yts", "eztv"],
        "quality_filter": ["cam"],
    }
    assert services["nyaa"]["categories"] == ["1_2"]
    assert services["nyaa"]["fuzz_threshold"] == 80
    assert search_config == {
        "filter_policy": "/etc/stream_resolver/policy.yaml",
        "preferences": {
            "languages": ["English", "Japanese"],
            "recommended_limit": 3,
            "qualities": ["4K", "1080p"],
            "filter_languages": [],
        },
    }


def test_get_configuration_defaults(mocker):
    config_data = """
[debrid]
api_token = RD_TOKEN
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)

    _, services, search_config = get_configuration()

    assert services["debrid"]["poll_interval"] == 5.0
    assert services["debrid"]["timeout"] == 120.0
    assert "providers" not in services["torrentio"]
    assert services["torrentio"]["show_uncached"] is True
    assert services["nyaa"] == {
        "enabled": True,
        "base_url": "https://nyaa.si",
        "categories": NYAA_CATEGORIES,
        "fuzz_threshold": 70,
    }
    assert search_config == {
        "preferences": {
            "languages": [],
            "recommended_limit": 2,
            "qualities": [],
            "filter_languages": [],
        }
    }


def test_get_configuration_missing_file(mocker):
    mocker.patch("os.path.exists", return_value=False)
    with pytest.raises(SystemExit):
        get_configuration()


def test_get_configuration_missing_token(mocker):
    config_data = """
[debrid]
api_token = PLACE_TOKEN_HERE
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)
    with pytest.raises(SystemExit):
        get_configuration()


def test_get_configuration_invalid_search_json(mocker):
    config_data = """
[debrid]
api_token = RD_TOKEN

[search]
preferences = {"languages": [
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)
    with pytest.raises(ValueError):
        get_configuration()
