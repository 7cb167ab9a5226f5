"""
Tests unitarios para el normalizador de importes.
"""
from __future__ import annotations

from decimal import Decimal

import pytest

from app.infrastructure.external.lead_sync.money import parse_money, parse_money_strict
from app.shared.exceptions.sync import NormalizationAmbiguity


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0,15", Decimal("0.15")),
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("€ 0.15", Decimal("0.15")),
        ("0.15 €", Decimal("0.15")),
        ("EUR 12,50", Decimal("12.50")),
        ("1 234,56", Decimal("1234.56")),
        ("1.234.567", Decimal("1234567.00")),
        ("1,234,567", Decimal("1234567.00")),
        ("-€5", Decimal("-5.00")),
        ("€-5", Decimal("-5.00")),
        ("0,125", Decimal("0.13")),
    ],
)
def test_parse_money_strings(raw: str, expected: Decimal) -> None:
    assert parse_money(raw) == expected


def test_parse_money_native_numbers() -> None:
    assert parse_money(0.15) == Decimal("0.15")
    assert parse_money(3) == Decimal("3.00")
    assert parse_money(Decimal("2.005")) == Decimal("2.01")


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_money_empty_is_null(raw) -> None:
    assert parse_money(raw) is None


@pytest.mark.parametrize(
    "raw",
    [
        "n/a",
        "abc",
        "1.2.3,4,5",
        True,
        float("nan"),
        10**30,
        1e30,
        Decimal("1e30"),
        "1" * 40,
        10**12,
        "1.000.000.000.000,00",
    ],
)
def test_parse_money_never_raises(raw) -> None:
    assert parse_money(raw) is None


def test_parse_money_largest_storable_amount() -> None:
    # NUMERIC(14,2): 12 dígitos enteros
    assert parse_money("999.999.999.999,99") == Decimal("999999999999.99")
    assert parse_money(-999999999999) == Decimal("-999999999999.00")


def test_parse_money_strict_reports_raw_value() -> None:
    with pytest.raises(NormalizationAmbiguity) as exc_info:
        parse_money_strict("doce euros")

    assert exc_info.value.details == {"raw": "doce euros"}
    assert exc_info.value.error_code == "NORMALIZATION_AMBIGUITY"
