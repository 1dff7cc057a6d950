import pytest

from stream_resolver.models import UNKNOWN_QUALITY, ParsedStreamMetadata
from stream_resolver.services.metadata_parser import (
    parse_audio,
    parse_candidate,
    parse_codec,
    parse_quality,
    parse_stream_metadata,
)


def test_parse_remux_release():
    meta = parse_stream_metadata(
        "Movie.Name.2023.2160p.UHD.BluRay.REMUX.HDR10.HEVC.TrueHD.7.1.Atmos-GROUP"
    )
    assert meta.quality == "2160p"
    assert meta.video_codec == "HEVC"
    assert meta.hdr == "HDR10"
    assert meta.source_type == "REMUX"
    assert meta.audio == "TrueHD 7.1"


def test_parse_web_episode():
    meta = parse_stream_metadata("Show.S01E02.1080p.WEB-DL.DDP5.1.Atmos.H.264-GRP")
    assert meta.quality == "1080p"
    assert meta.video_codec == "AVC"
    assert meta.source_type == "WEB-DL"
    assert meta.audio == "EAC3 5.1"
    assert meta.hdr is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Movie 4K HDR", "2160p"),
        ("Movie.2160p.x265", "2160p"),
        ("movie_720p_x264", "720p"),
        ("Movie 480P", "480p"),
        ("Movie.360p", "360p"),
        ("Movie.DVD", UNKNOWN_QUALITY),
        ("Movie 10800p", UNKNOWN_QUALITY),
    ],
)
def test_parse_quality(text, expected):
    assert parse_quality(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Movie.H.265", "HEVC"),
        ("Movie x265 10bit", "HEVC"),
        ("Movie HEVC", "HEVC"),
        ("Movie H264", "AVC"),
        ("Movie AVC", "AVC"),
        ("Movie.AV1.Opus", "AV1"),
        ("Movie.VC-1", "VC1"),
        ("Movie.1080p", None),
    ],
)
def test_parse_codec(text, expected):
    assert parse_codec(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Movie.DTS-HD.MA.5.1", "DTS-HD MA 5.1"),
        ("Movie DTS", "DTS"),
        ("Movie.AAC2.0", "AAC 2.0"),
        ("Movie.FLAC", "FLAC"),
        ("Movie.DD+.5.1", "EAC3 5.1"),
        ("Movie.AC3", "AC3"),
        ("Movie.1080p", None),
    ],
)
def test_parse_audio(text, expected):
    assert parse_audio(text) == expected


def test_hdr_prefers_dolby_vision_then_hdr10_plus():
    assert parse_stream_metadata("Movie.2160p.DV.HDR10+.mkv").hdr == "DV"
    assert parse_stream_metadata("Movie.2160p.HDR10+.mkv").hdr == "HDR10+"
    assert parse_stream_metadata("Movie.2160p.HDR.mkv").hdr == "HDR"


def test_bit_depth_and_languages():
    meta = parse_stream_metadata("Anime 1080p x265 10bit 🇯🇵 🇬🇧 English")
    assert meta.bit_depth == 10
    assert meta.languages == ("Japanese", "English")


def test_size_found_in_free_text():
    meta = parse_stream_metadata("Movie 1080p\n👤 50 💾 2.5 GB")
    assert meta.size_bytes == 2_500_000_000


@pytest.mark.parametrize("text", [None, "", "!!!", "🎬🎬🎬", "\n\n", "x" * 5000])
def test_parse_never_raises(text):
    meta = parse_stream_metadata(text)
    assert isinstance(meta, ParsedStreamMetadata)
    assert meta.quality == UNKNOWN_QUALITY


def test_parse_candidate_prefers_provider_size(make_candidate):
    candidate = make_candidate(
        "Movie.1080p.x264 1.0 GB", size_bytes=3 * 1024**3, size_text="3 GiB"
    )
    assert parse_candidate(candidate).size_bytes == 3 * 1024**3


def test_parse_candidate_uses_size_text_then_free_text(make_candidate):
    with_text = make_candidate("Movie.1080p", size_text="1.5 GiB")
    assert parse_candidate(with_text).size_bytes == int(1.5 * 1024**3)

    free_text = make_candidate("Movie.1080p", details="💾 700 MB")
    assert parse_candidate(free_text).size_bytes == 700 * 1000**2


def test_parse_candidate_reads_details(make_candidate):
    candidate = make_candidate("Movie.2024", details="4k DV\n👤 10 🇩🇪")
    meta = parse_candidate(candidate)
    assert meta.quality == "2160p"
    assert meta.hdr == "DV"
    assert meta.languages == ("German",)


@pytest.mark.parametrize(
    "title",
    ["The.Italian.Job.2003.1080p.BluRay.x264", "The.French.Connection.1971.720p", "Latino.Bar"],
)
def test_language_names_in_release_title_are_ignored(title):
    assert parse_stream_metadata(title).languages == ()


def test_language_names_in_details_are_read(make_candidate):
    candidate = make_candidate(
        "The.Italian.Job.2003.1080p.ITA", details="Multi Audio: Italian / English"
    )
    assert parse_candidate(candidate).languages == ("Italian", "English")
