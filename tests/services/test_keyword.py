"""Tests for keyword derivation and the first-non-empty precedence helpers."""

import pytest

from page_optimizer.services.keyword import (
    derive,
    first_non_empty,
    normalize_phrase,
    resolve_keyword,
    resolve_title,
    slug_phrase,
    strip_title_suffix,
)


class TestFirstNonEmpty:
    def test_skips_none_and_blank(self) -> None:
        assert first_non_empty(None, "   ", "value ", "later") == "value"

    def test_all_empty(self) -> None:
        assert first_non_empty(None, "", " ") == ""


class TestTitleHandling:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Best Hiking Boots | Trail Co", "Best Hiking Boots"),
            ("Best Hiking Boots — Trail Co", "Best Hiking Boots"),
            ("Best Hiking Boots - Reviews | Trail Co", "Best Hiking Boots"),
            ("No separator here", "No separator here"),
        ],
    )
    def test_strip_title_suffix(self, title: str, expected: str) -> None:
        assert strip_title_suffix(title) == expected

    def test_normalize_keeps_internal_joiners(self) -> None:
        assert normalize_phrase("Hello, World -- Test_Case") == "hello world test case"
        assert normalize_phrase("Best E-Bike Buyer's Guide!") == "best e-bike buyer's guide"


class TestDerive:
    def test_uses_title_when_long_enough(self) -> None:
        assert derive("Best Hiking Boots for Beginners | Trail Co", "ignored") == (
            "best hiking boots for beginners"
        )

    def test_short_title_falls_back_to_slug(self) -> None:
        assert derive("Boots — Shop", "best-hiking-boots-2024") == "best hiking boots"

    def test_missing_title_uses_slug(self) -> None:
        assert derive(None, "trail_running_shoes") == "trail running shoes"

    def test_nothing_to_derive_from(self) -> None:
        assert derive("", "") == ""

    def test_deterministic(self) -> None:
        title = "What's New? Really!"
        assert derive(title, "x") == derive(title, "x") == "what's new really"

    def test_slug_phrase_keeps_single_number(self) -> None:
        assert slug_phrase("2024") == "2024"


class TestResolvers:
    def test_explicit_keyword_wins(self) -> None:
        assert resolve_keyword("  custom keyword ", "Some Long Title Here", "slug") == (
            "custom keyword"
        )

    def test_derived_keyword_when_blank(self) -> None:
        assert resolve_keyword("", "Some Long Title Here", "slug") == "some long title here"

    def test_title_precedence(self) -> None:
        assert resolve_title("Fetched", "Stored", "hiking-boots") == "Fetched"
        assert resolve_title(" ", "Stored", "hiking-boots") == "Stored"
        assert resolve_title(None, None, "hiking-boots") == "Hiking Boots"
