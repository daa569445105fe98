"""Tests for src/rustmods_api/naming.py — version detection and filenames."""

import pytest

from rustmods_api.naming import (
    DEFAULT_VERSION,
    archive_base_name,
    archive_filename,
    detect_version,
    sanitize_source_filename,
    sanitize_text_field,
    source_filename,
    strip_tags,
    strip_version,
)

# -----------------------------------------------------------------------
# detect_version
# -----------------------------------------------------------------------


class TestDetectVersion:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Raid Protection 2.1.0", "2.1.0"),
            ("Simple Base 1.2", "1.2"),
            ("Mod 01.002.3 beta", "01.002.3"),
            ("Loot 3.4 and 5.6.7", "3.4"),
            ("Build 1.2.3.4", "1.2.3"),
            ("(2.0) Teleport", "2.0"),
        ],
    )
    def test_first_match_verbatim(self, title, expected):
        assert detect_version(title) == expected

    @pytest.mark.parametrize(
        "title",
        ["Simple Base", "Version 7", "", "   ", "v12", "Gather x2"],
    )
    def test_default_without_version(self, title):
        assert detect_version(title) == DEFAULT_VERSION

    @pytest.mark.parametrize("title", [None, 42, ["1.2"], b"1.2.3"])
    def test_non_string_input(self, title):
        assert detect_version(title) == DEFAULT_VERSION

    @pytest.mark.parametrize("title", ["Raid ١.٢", "Base १.२.३"])
    def test_non_ascii_digits_ignored(self, title):
        assert detect_version(title) == DEFAULT_VERSION

    def test_ascii_version_after_non_ascii_digits(self):
        assert detect_version("Raid ١.٢ 2.0") == "2.0"

    def test_non_ascii_digits_stay_out_of_filename(self):
        title = "Raid ١.٢"
        assert archive_filename(title, detect_version(title)) == "Raid.zip"


# -----------------------------------------------------------------------
# strip_version
# -----------------------------------------------------------------------


class TestStripVersion:
    def test_trailing_version(self):
        assert strip_version("Raid Protection 2.1.0", "2.1.0") == "Raid Protection"

    def test_middle_version_collapses_whitespace(self):
        assert strip_version("Raid  2.1.0  Protection", "2.1.0") == "Raid Protection"

    def test_only_first_occurrence(self):
        assert strip_version("Mod 1.2 vs 1.2", "1.2") == "Mod vs 1.2"

    def test_default_version_kept(self):
        assert strip_version("Legacy 1.0.0", DEFAULT_VERSION) == "Legacy 1.0.0"

    def test_non_ascii_digits_left_in_name(self):
        assert strip_version("Raid ١.٢ 2.0", "2.0") == "Raid ١.٢"

    def test_word_boundary(self):
        """A version embedded in a longer number is left alone."""
        assert strip_version("Mod 11.2", "1.2") == "Mod 11.2"

    def test_override_version_not_in_title(self):
        assert strip_version("Simple Base", "3.0") == "Simple Base"


# -----------------------------------------------------------------------
# Archive convention
# -----------------------------------------------------------------------


class TestArchiveFilename:
    def test_versioned_title(self):
        assert archive_filename("Raid Protection 2.1.0", "2.1.0") == (
            "Raid-Protection-2.1.0.zip"
        )

    def test_unversioned_title(self):
        assert archive_filename("Simple Base", DEFAULT_VERSION) == "Simple-Base.zip"

    def test_strips_symbols_and_collapses_hyphens(self):
        assert archive_filename("Loot -- Tables! (Pro)", DEFAULT_VERSION) == (
            "Loot-Tables-Pro.zip"
        )

    def test_explicit_version_not_in_title(self):
        assert archive_filename("Simple Base", "3.0") == "Simple-Base-3.0.zip"

    @pytest.mark.parametrize("title", ["", "   ", "!!!", "---", "2.1.0"])
    def test_never_empty(self, title):
        version = detect_version(title)
        assert archive_base_name(title, version) == "product"


# -----------------------------------------------------------------------
# Source convention
# -----------------------------------------------------------------------


class TestSourceFilename:
    def test_versioned_title(self):
        assert source_filename("Raid Protection 2.1.0", "2.1.0") == "RaidProtection.cs"

    def test_unversioned_title(self):
        assert source_filename("Simple Base", DEFAULT_VERSION) == "SimpleBase.cs"

    def test_pascal_case_lowercases_rest(self):
        assert source_filename("AUTO doors PLUS", DEFAULT_VERSION) == "AutoDoorsPlus.cs"

    def test_drops_hyphens_and_symbols(self):
        assert source_filename("Better-Chat & More!", DEFAULT_VERSION) == (
            "BetterchatMore.cs"
        )

    @pytest.mark.parametrize("title", ["", "   ", "@#$%", "1.2.3", None])
    def test_never_empty(self, title):
        assert source_filename(title, detect_version(title)) == "Product.cs"

    def test_no_version_suffix(self):
        assert "2.1.0" not in source_filename("Raid Protection 2.1.0", "2.1.0")


# -----------------------------------------------------------------------
# sanitize_source_filename
# -----------------------------------------------------------------------


class TestSanitizeSourceFilename:
    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("raid_protection.cs", "RaidProtection.cs"),
            ("Raid-Protection.CS", "RaidProtection.cs"),
            ("auto__doors--plus.cs", "AutoDoorsPlus.cs"),
            ("my-mod", "MyMod"),
            ("my-mod v2!.cs", "MyModV2.cs"),
            ("-_.cs", "Product.cs"),
        ],
    )
    def test_separated_names(self, filename, expected):
        assert sanitize_source_filename(filename) == expected

    @pytest.mark.parametrize(
        "filename", ["RaidProtection.cs", "Raid Protection.cs", "mod.zip", ""]
    )
    def test_clean_names_pass_through(self, filename):
        assert sanitize_source_filename(filename) == filename

    @pytest.mark.parametrize(
        "filename",
        [
            "raid_protection.cs",
            "Raid-Protection-2.1.0.zip",
            "a-b_c.cs",
            "--",
            "x_Y-z",
            "RaidProtection.cs",
        ],
    )
    def test_idempotent(self, filename):
        once = sanitize_source_filename(filename)
        assert sanitize_source_filename(once) == once


# -----------------------------------------------------------------------
# Markup stripping
# -----------------------------------------------------------------------


class TestStripTags:
    def test_removes_tags(self):
        assert strip_tags("<b>Raid</b> Protection") == "Raid Protection"

    def test_removes_script_bodies(self):
        assert strip_tags("Mod<script>alert(1)</script>") == "Mod"

    def test_none(self):
        assert strip_tags(None) == ""

    def test_sanitize_text_field(self):
        assert sanitize_text_field("  <i>Some</i>\n  Author%20 ") == "Some Author"
