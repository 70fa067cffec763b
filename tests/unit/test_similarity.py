"""Tests for the bilingual token similarity heuristic."""

from __future__ import annotations

import pytest

from nomnom.matching.similarity import calculate_similarity, infer_category, tokenize


class TestCalculateSimilarity:
    """calculate_similarity scoring rules."""

    def test_identical_names(self):
        assert calculate_similarity("הפוך גדול", "הפוך גדול") == 1.0

    def test_substring_tokens_count(self):
        # "latte" is contained in "lattes"; one of two tokens matches
        assert calculate_similarity("lattes hot", "latte") == pytest.approx(0.5)

    def test_each_first_token_counts_once(self):
        # "a" would match both "a" and "ab"; still a single count
        assert calculate_similarity("a", "a ab") == pytest.approx(0.5)

    def test_hebrew_english_keyword_bonus(self):
        assert calculate_similarity("הפוך קר", "iced latte") > 0.3

    def test_keyword_bonus_in_reverse_direction(self):
        assert calculate_similarity("chocolate", "שוקולד") == 1.0

    def test_denominator_is_longer_name(self):
        assert calculate_similarity("קפה הפוך גדול", "הפוך גדול") == pytest.approx(2 / 3)

    def test_score_is_clamped(self):
        assert calculate_similarity("קפה קר", "iced coffee") == 1.0

    def test_unrelated_names_score_zero(self):
        assert calculate_similarity("מיץ תפוזים", "chocolate muffin") == 0.0


EDGE_NAMES = ["", " ", "x  y", " leading", "קפה", "קפה הפוך קר", "iced coffee", "a a a a"]


@pytest.mark.parametrize("first", EDGE_NAMES)
@pytest.mark.parametrize("second", EDGE_NAMES)
def test_score_is_always_between_zero_and_one(first, second):
    assert 0.0 <= calculate_similarity(first, second) <= 1.0


class TestTokenize:
    def test_whitespace_runs(self):
        assert tokenize("iced   latte") == ["iced", "latte"]

    def test_leading_space_gives_empty_token(self):
        assert tokenize(" latte") == ["", "latte"]


class TestInferCategory:
    """Keyword-based category inference."""

    @pytest.mark.parametrize(
        ("name", "category"),
        [
            ("קפה שחור", "Coffee"),
            ("Double Espresso", "Coffee"),
            ("מאפין אוכמניות", "Pastries"),
            ("Butter Croissant", "Pastries"),
            ("כריך טונה", "Sandwiches"),
            ("מיץ תפוזים טבעי", "Beverages"),
            ("Sparkling Water", "Beverages"),
            ("סלט ירקות", "Other"),
        ],
    )
    def test_categories(self, name, category):
        assert infer_category(name) == category
