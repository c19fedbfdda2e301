"""Language code normalization and display names."""

from typing import Optional

UNDETERMINED = "und"

# ISO 639-1 (2-letter) to ISO 639-2/B (3-letter) mapping
# Matroska and MP4 tags use ISO 639-2, some muxers still write 639-1
ISO_639_1_TO_639_2 = {
    "en": "eng",  # English
    "es": "spa",  # Spanish
    "fr": "fre",  # French
    "de": "ger",  # German
    "it": "ita",  # Italian
    "pt": "por",  # Portuguese
    "ru": "rus",  # Russian
    "ja": "jpn",  # Japanese
    "ko": "kor",  # Korean
    "zh": "chi",  # Chinese
    "ar": "ara",  # Arabic
    "hi": "hin",  # Hindi
    "nl": "dut",  # Dutch
    "pl": "pol",  # Polish
    "tr": "tur",  # Turkish
    "sv": "swe",  # Swedish
    "da": "dan",  # Danish
    "no": "nor",  # Norwegian
    "fi": "fin",  # Finnish
    "cs": "cze",  # Czech
    "hu": "hun",  # Hungarian
    "ro": "rum",  # Romanian
    "th": "tha",  # Thai
    "vi": "vie",  # Vietnamese
    "id": "ind",  # Indonesian
    "he": "heb",  # Hebrew
    "el": "gre",  # Greek
    "uk": "ukr",  # Ukrainian
    "ca": "cat",  # Catalan
    "sk": "slo",  # Slovak
    "hr": "hrv",  # Croatian
    "sr": "srp",  # Serbian
    "bg": "bul",  # Bulgarian
    "lt": "lit",  # Lithuanian
    "lv": "lav",  # Latvian
    "et": "est",  # Estonian
    "sl": "slv",  # Slovenian
    "fa": "per",  # Persian
    "ms": "may",  # Malay
    "ta": "tam",  # Tamil
    "te": "tel",  # Telugu
    "bn": "ben",  # Bengali
    "mr": "mar",  # Marathi
}

# ISO 639-2/T (terminology) to ISO 639-2/B (bibliographic)
# Both forms show up in the wild, grouping needs a single one
TERMINOLOGY_TO_BIBLIOGRAPHIC = {
    "fra": "fre",
    "deu": "ger",
    "zho": "chi",
    "nld": "dut",
    "ces": "cze",
    "ell": "gre",
    "msa": "may",
    "ron": "rum",
    "slk": "slo",
    "fas": "per",
}

# ISO 639-2/B code to display name used in track titles
LANGUAGE_DISPLAY_NAMES = {
    "eng": "English",
    "fre": "French",
    "spa": "Spanish",
    "ger": "German",
    "ita": "Italian",
    "jpn": "Japanese",
    "por": "Portuguese",
    "rus": "Russian",
    "chi": "Chinese",
    "kor": "Korean",
    "dut": "Dutch",
    "ara": "Arabic",
    "hin": "Hindi",
    "pol": "Polish",
    "swe": "Swedish",
    "nor": "Norwegian",
    "dan": "Danish",
    "fin": "Finnish",
    "tha": "Thai",
    "vie": "Vietnamese",
    "tur": "Turkish",
    "heb": "Hebrew",
    "ind": "Indonesian",
    "may": "Malay",
    "hun": "Hungarian",
    "cze": "Czech",
    "gre": "Greek",
    "rum": "Romanian",
    "ukr": "Ukrainian",
    "cat": "Catalan",
    "slo": "Slovak",
    "hrv": "Croatian",
    "srp": "Serbian",
    "bul": "Bulgarian",
    "per": "Persian",
}

# Language name to ISO 639-2/B, accepted in policy files ("English", "Japanese")
LANGUAGE_NAME_TO_639_2 = {
    name.lower(): code for code, name in LANGUAGE_DISPLAY_NAMES.items()
}


def is_undetermined(code: Optional[str]) -> bool:
    """Check whether a language tag is missing or undetermined.

    Args:
        code: Raw language tag

    Returns:
        True for None, empty, "und" and "unk"
    """
    if not code:
        return True
    return code.strip().lower() in ("", "und", "unk")


def normalize_language_code(code: Optional[str]) -> str:
    """Normalize a language tag to its canonical 3-letter ISO 639-2/B form.

    Handles 2-letter codes, terminology aliases and English language names.
    Missing or unknown tags become "und".

    Args:
        code: Language tag (e.g., "en", "fra", "eng", "English")

    Returns:
        Normalized 3-letter code (e.g., "eng", "fre")
    """
    if is_undetermined(code):
        return UNDETERMINED

    code_lower = code.strip().lower()

    if len(code_lower) == 2:
        return ISO_639_1_TO_639_2.get(code_lower, code_lower)

    if len(code_lower) == 3:
        return TERMINOLOGY_TO_BIBLIOGRAPHIC.get(code_lower, code_lower)

    return LANGUAGE_NAME_TO_639_2.get(code_lower, code_lower)


def language_display_name(code: Optional[str], default_language: str = "eng") -> str:
    """Get the display name used in track titles.

    Undetermined tags take the default language's name. Codes without a
    known name are capitalized as-is.

    Args:
        code: Language tag (any form accepted by normalize_language_code)
        default_language: Fallback language for undetermined tags

    Returns:
        Display name (e.g., "English")
    """
    normalized = normalize_language_code(code)
    if normalized == UNDETERMINED:
        fallback = normalize_language_code(default_language)
        return LANGUAGE_DISPLAY_NAMES.get(fallback, "Unknown")

    if normalized in LANGUAGE_DISPLAY_NAMES:
        return LANGUAGE_DISPLAY_NAMES[normalized]

    return code.strip().capitalize()
