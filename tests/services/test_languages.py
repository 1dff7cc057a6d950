import pytest

from stream_resolver.services.languages import detect_languages, normalize_language


@pytest.mark.parametrize(
    "token, expected",
    [
        ("🇫🇷", "French"),
        ("en", "English"),
        ("GER", "German"),
        (" czech ", "Czech"),
        ("klingon", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_language(token, expected):
    assert normalize_language(token) == expected


def test_detect_languages_keeps_first_seen_order():
    text = "Movie.2024.1080p.FRENCH.German 🇬🇧 🇫🇷"
    assert detect_languages(text) == ("French", "German", "English")


def test_two_letter_codes_ignored_in_free_text():
    assert detect_languages("It.Follows.2014.1080p.DE") == ()


def test_detect_languages_empty():
    assert detect_languages("") == ()
    assert detect_languages(None) == ()


def test_names_can_be_excluded():
    text = "The.Italian.Job.2003.1080p.ENG"
    assert detect_languages(text) == ("Italian", "English")
    assert detect_languages(text, names=False) == ("English",)
