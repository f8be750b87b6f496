from __future__ import annotations
from feedbackdesk.errors import ValidationFailed

WORDS_PER_UNIT = 500


def price(word_count: int, unit_price: int) -> int:
    """
    Total price in cents: every started block of 500 words costs one unit.
    A 1-word paper costs a full unit, 501 words cost two.
    """
    if word_count <= 0:
        raise ValidationFailed("Word count must be at least 1", field="word_count")
    if unit_price <= 0:
        raise ValidationFailed("Unit price must be positive", field="unit_price")
    units = -(-word_count // WORDS_PER_UNIT)
    return units * unit_price


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def format_price(cents: int) -> str:
    return f"${cents / 100:.2f}"
