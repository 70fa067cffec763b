"""Bag-of-tokens similarity between report product names and menu item names.

Tokens match when either is a substring of the other, and a Hebrew/English
food-term table awards a bonus when one name uses the Hebrew word and the
other its English equivalent. Scores are clamped to 1.
"""

from __future__ import annotations

import re

# Hebrew keyword -> English equivalents
FOOD_KEYWORDS: dict[str, tuple[str, ...]] = {
    "קפה": ("coffee", "cafe"),
    "קר": ("cold", "iced"),
    "חם": ("hot", "warm"),
    "אמריקנו": ("americano",),
    "אספרסו": ("espresso",),
    "הפוך": ("cappuccino", "latte"),
    "מאפין": ("muffin",),
    "עוגיות": ("cookies", "cookie"),
    "כריך": ("sandwich",),
    "שוקולד": ("chocolate",),
}

KEYWORD_BONUS = 2

_TOKEN_SPLIT = re.compile(r"\s+")


def tokenize(text: str) -> list[str]:
    """Split on whitespace runs; leading/trailing whitespace yields empty tokens."""
    return _TOKEN_SPLIT.split(text)


def calculate_similarity(first: str, second: str) -> float:
    """Score two already-normalized names in [0, 1].

    Args:
        first: Normalized product name from the report
        second: Lowercased catalog item name

    Returns:
        min(common / max(len(tokens1), len(tokens2)), 1)
    """
    words1 = tokenize(first)
    words2 = tokenize(second)

    common = 0
    for word1 in words1:
        for word2 in words2:
            if word2 in word1 or word1 in word2:
                common += 1
                break

    for hebrew, english in FOOD_KEYWORDS.items():
        if hebrew in first and any(eng in second for eng in english):
            common += KEYWORD_BONUS
        if hebrew in second and any(eng in first for eng in english):
            common += KEYWORD_BONUS

    return min(common / max(len(words1), len(words2)), 1.0)


# Category keyword sets, checked in order; first hit wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Coffee",
        ("קפה", "אספרסו", "אמריקנו", "הפוך",
         "coffee", "espresso", "americano", "cappuccino", "latte"),
    ),
    (
        "Pastries",
        ("מאפין", "עוגיות", "קראוסון", "רוגלך",
         "muffin", "cookie", "croissant", "rugelach"),
    ),
    (
        "Sandwiches",
        ("כריך", "בייגל", "בריוש", "sandwich", "bagel", "brioche"),
    ),
    (
        "Beverages",
        ("מיץ", "טבעי", "מים", "סודה", "juice", "natural", "water", "soda"),
    ),
)

DEFAULT_CATEGORY = "Other"


def infer_category(product_name: str) -> str:
    """Guess a menu category from keywords in the product name."""
    lowered = product_name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY
