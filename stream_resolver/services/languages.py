# stream_resolver/services/languages.py

import re

# Indexes mark audio languages with country flags.
FLAG_TO_LANGUAGE: dict[str, str] = {
    "🇬🇧": "English",
    "🇺🇸": "English",
    "🇩🇪": "German",
    "🇫🇷": "French",
    "🇪🇸": "Spanish",
    "🇲🇽": "Spanish",
    "🇮🇹": "Italian",
    "🇵🇹": "Portuguese",
    "🇧🇷": "Portuguese",
    "🇷🇺": "Russian",
    "🇺🇦": "Ukrainian",
    "🇯🇵": "Japanese",
    "🇰🇷": "Korean",
    "🇨🇳": "Chinese",
    "🇹🇼": "Chinese",
    "🇮🇳": "Hindi",
    "🇳🇱": "Dutch",
    "🇵🇱": "Polish",
    "🇸🇪": "Swedish",
    "🇳🇴": "Norwegian",
    "🇩🇰": "Danish",
    "🇫🇮": "Finnish",
    "🇬🇷": "Greek",
    "🇹🇷": "Turkish",
    "🇮🇱": "Hebrew",
    "🇸🇦": "Arabic",
    "🇦🇪": "Arabic",
    "🇹🇭": "Thai",
    "🇻🇳": "Vietnamese",
    "🇮🇩": "Indonesian",
    "🇲🇾": "Malay",
    "🇵🇭": "Filipino",
    "🇨🇿": "Czech",
    "🇭🇺": "Hungarian",
    "🇷🇴": "Romanian",
    "🇧🇬": "Bulgarian",
}

# ISO 639-1/2 codes and name variants -> canonical English name.
LANGUAGE_ALIASES: dict[str, str] = {
    "en": "English",
    "eng": "English",
    "english": "English",
    "fr": "French",
    "fra": "French",
    "fre": "French",
    "french": "French",
    "vff": "French",
    "vostfr": "French",
    "de": "German",
    "deu": "German",
    "ger": "German",
    "german": "German",
    "es": "Spanish",
    "spa": "Spanish",
    "spanish": "Spanish",
    "castellano": "Spanish",
    "latino": "Spanish",
    "it": "Italian",
    "ita": "Italian",
    "italian": "Italian",
    "pt": "Portuguese",
    "por": "Portuguese",
    "portuguese": "Portuguese",
    "ru": "Russian",
    "rus": "Russian",
    "russian": "Russian",
    "uk": "Ukrainian",
    "ukr": "Ukrainian",
    "ukrainian": "Ukrainian",
    "ja": "Japanese",
    "jpn": "Japanese",
    "japanese": "Japanese",
    "ko": "Korean",
    "kor": "Korean",
    "korean": "Korean",
    "zh": "Chinese",
    "zho": "Chinese",
    "chi": "Chinese",
    "chinese": "Chinese",
    "mandarin": "Chinese",
    "cantonese": "Chinese",
    "hi": "Hindi",
    "hin": "Hindi",
    "hindi": "Hindi",
    "nl": "Dutch",
    "nld": "Dutch",
    "dut": "Dutch",
    "dutch": "Dutch",
    "pl": "Polish",
    "pol": "Polish",
    "polish": "Polish",
    "sv": "Swedish",
    "swe": "Swedish",
    "swedish": "Swedish",
    "no": "Norwegian",
    "nor": "Norwegian",
    "norwegian": "Norwegian",
    "da": "Danish",
    "dan": "Danish",
    "danish": "Danish",
    "fi": "Finnish",
    "fin": "Finnish",
    "finnish": "Finnish",
    "el": "Greek",
    "gre": "Greek",
    "ell": "Greek",
    "greek": "Greek",
    "tr": "Turkish",
    "tur": "Turkish",
    "turkish": "Turkish",
    "he": "Hebrew",
    "heb": "Hebrew",
    "hebrew": "Hebrew",
    "ar": "Arabic",
    "ara": "Arabic",
    "arabic": "Arabic",
    "th": "Thai",
    "tha": "Thai",
    "thai": "Thai",
    "vi": "Vietnamese",
    "vie": "Vietnamese",
    "vietnamese": "Vietnamese",
    "id": "Indonesian",
    "ind": "Indonesian",
    "indonesian": "Indonesian",
    "ms": "Malay",
    "msa": "Malay",
    "may": "Malay",
    "malay": "Malay",
    "tl": "Filipino",
    "fil": "Filipino",
    "filipino": "Filipino",
    "cs": "Czech",
    "cze": "Czech",
    "ces": "Czech",
    "czech": "Czech",
    "hu": "Hungarian",
    "hun": "Hungarian",
    "hungarian": "Hungarian",
    "ro": "Romanian",
    "rum": "Romanian",
    "ron": "Romanian",
    "romanian": "Romanian",
    "bg": "Bulgarian",
    "bul": "Bulgarian",
    "bulgarian": "Bulgarian",
}

_FLAG_PATTERN = re.compile("|".join(re.escape(flag) for flag in FLAG_TO_LANGUAGE))

# Two-letter codes collide with ordinary words ("it", "no", "id") in release
# names, so free text only honours the longer aliases, minus a few that are
# common English words or names.
_AMBIGUOUS_WORDS = {
    "may",
    "nor",
    "dan",
    "fin",
    "ind",
    "chi",
    "rum",
    "fil",
    "tha",
    "vie",
    "ara",
    "hun",
}
_TEXT_ALIASES = {
    alias
    for alias in LANGUAGE_ALIASES
    if len(alias) >= 3 and alias not in _AMBIGUOUS_WORDS
}
# Language names also occur in film titles ("The Italian Job"), so a release
# title only contributes its three-letter codes.
_CODE_ALIASES = {alias for alias in _TEXT_ALIASES if len(alias) == 3}
_WORD_PATTERN = re.compile(r"[^\W\d_]+", re.UNICODE)


def normalize_language(token: str | None) -> str | None:
    """Maps a flag, ISO code or language name to its canonical English name."""
    if not token:
        return None
    token = token.strip()
    if token in FLAG_TO_LANGUAGE:
        return FLAG_TO_LANGUAGE[token]
    return LANGUAGE_ALIASES.get(token.casefold())


def detect_languages(text: str | None, *, names: bool = True) -> tuple[str, ...]:
    """
    Returns languages found in free text, deduplicated in first-seen order.

    With ``names=False`` only flags and three-letter codes count; full language
    names are ignored.
    """
    if not text:
        return ()

    aliases = _TEXT_ALIASES if names else _CODE_ALIASES
    found: list[tuple[int, str]] = []
    for match in _FLAG_PATTERN.finditer(text):
        found.append((match.start(), FLAG_TO_LANGUAGE[match.group(0)]))
    for match in _WORD_PATTERN.finditer(text):
        word = match.group(0).casefold()
        if word in aliases:
            found.append((match.start(), LANGUAGE_ALIASES[word]))

    languages: list[str] = []
    for _, language in sorted(found, key=lambda item: item[0]):
        if language not in languages:
            languages.append(language)
    return tuple(languages)
