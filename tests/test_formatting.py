"""Tests for display formatting helpers."""

import pytest

from src.utils.formatting import format_percentage, format_price, price_trend_emoji


@pytest.mark.parametrize(
    "price,expected",
    [
        (60000, "$60,000.00"),
        (1, "$1.00"),
        (0.5, "$0.5000"),
        (0.01, "$0.0100"),
        (0.00001234, "$0.00001234"),
    ],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


@pytest.mark.parametrize(
    "change,expected",
    [(0.6, "+0.60%"), (0, "+0.00%"), (-1.5, "-1.50%")],
)
def test_format_percentage(change, expected):
    assert format_percentage(change) == expected


@pytest.mark.parametrize(
    "change,expected",
    [(8, "🚀"), (2, "📈"), (0, "➡️"), (-2, "🔻"), (-8, "📉")],
)
def test_price_trend_emoji(change, expected):
    assert price_trend_emoji(change) == expected
