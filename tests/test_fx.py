import pytest

from wealthscope.fx import Currency, convert_to_reporting_currency


def test_cad_amounts_are_unchanged():
    assert convert_to_reporting_currency(100.0, "CAD", 1.35) == 100.0


def test_usd_amounts_are_multiplied_by_rate():
    assert convert_to_reporting_currency(100.0, "USD", 1.35) == pytest.approx(135.0)


def test_currency_codes_are_case_insensitive():
    assert convert_to_reporting_currency(10.0, "usd", 1.5) == pytest.approx(15.0)


@pytest.mark.parametrize("currency", ["EUR", "", None])
def test_unknown_currencies_pass_through(currency):
    assert convert_to_reporting_currency(42.0, currency, 1.35) == 42.0


def test_currency_parse_rejects_unknown_codes():
    assert Currency.parse("usd") is Currency.USD
    assert Currency.parse("GBP") is None
    assert Currency.parse(None) is None
