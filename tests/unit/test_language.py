"""Unit tests for language utilities."""

import pytest

from audiopass.utils.language import (
    is_undetermined,
    language_display_name,
    normalize_language_code,
)


class TestNormalizeLanguageCode:
    """Test normalize_language_code function."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("en", "eng"),
            ("fr", "fre"),
            ("fra", "fre"),
            ("deu", "ger"),
            ("ENG", "eng"),
            (" jpn ", "jpn"),
            ("English", "eng"),
            ("french", "fre"),
        ],
    )
    def test_normalizes_known_forms(self, raw, expected):
        assert normalize_language_code(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "und", "UND", "unk"])
    def test_undetermined_tags(self, raw):
        assert normalize_language_code(raw) == "und"
        assert is_undetermined(raw)

    def test_unknown_code_passes_through_lowercased(self):
        assert normalize_language_code("XYZ") == "xyz"


class TestLanguageDisplayName:
    """Test language_display_name function."""

    def test_known_codes(self):
        assert language_display_name("eng") == "English"
        assert language_display_name("fr") == "French"
        assert language_display_name("fra") == "French"

    def test_undetermined_uses_default_language(self):
        assert language_display_name("und") == "English"
        assert language_display_name(None, default_language="fre") == "French"

    def test_unknown_code_is_capitalized(self):
        assert language_display_name("xyz") == "Xyz"
