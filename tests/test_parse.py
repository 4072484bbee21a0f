import pytest

from partyledger.money import Money
from partyledger.utils.parse import format_money, parse_amount


@pytest.mark.parametrize(
    "text, expected",
    [
        ("12", 1200),
        ("12.5", 1250),
        ("12,50", 1250),
        (" 1 234,56 ", 123456),
        ("0.005", 1),
        ("-3.10", -310),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == Money(expected)


@pytest.mark.parametrize("text", ["", "abc", "12.3.4", "1e5", "12."])
def test_parse_amount_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_amount(text)


def test_parse_amount_zero_exponent():
    assert parse_amount("150", exponent=0) == Money(150)


def test_format_money():
    assert format_money(Money(123456), "EUR") == "1,234.56 EUR"
    assert format_money(Money(-5), "USD") == "-0.05 USD"
