"""
Normalización de importes monetarios.

Upstream mezcla formatos: números nativos, "0,15", "1.234,56", "1,234.56", "€ 0.15".
Reglas de separadores:
- Si aparecen ',' y '.', el que aparece ÚLTIMO es el separador decimal.
- Si solo aparece una ',' se toma como decimal.
- En el resto de casos los separadores sobrantes son de miles.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from loguru import logger

from app.shared.exceptions.sync import NormalizationAmbiguity

_CENTS = Decimal("0.01")
# NUMERIC(14,2) en staging y dedupe
_LIMIT = Decimal("1e12")
_CURRENCY_EDGES = re.compile(r"^(?:[€$£¥]|[A-Za-z]{3})|(?:[€$£¥]|[A-Za-z]{3})$")
_NUMERIC = re.compile(r"^[+-]?[\d.,]*\d[\d.,]*$")


def _quantize(value: Decimal, raw: Any) -> Decimal:
    """Redondea a centavos; lo que no entra en NUMERIC(14,2) es ambiguo."""
    try:
        cents = value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise NormalizationAmbiguity(raw) from e
    if abs(cents) >= _LIMIT:
        raise NormalizationAmbiguity(raw)
    return cents


def _strip_decoration(text: str) -> str:
    # \s cubre NBSP / thin space, usados a veces como separador de miles
    s = re.sub(r"\s+", "", text)
    # símbolo o código ISO al inicio y/o al final; el signo puede ir antes del símbolo
    sign = ""
    if s[:1] in ("+", "-"):
        sign, s = s[:1], s[1:]
    s = _CURRENCY_EDGES.sub("", s)
    if s[:1] in ("+", "-") and not sign:
        sign, s = s[:1], s[1:]
    return sign + s


def parse_money_strict(raw: Any) -> Optional[Decimal]:
    """
    Igual que `parse_money` pero levanta NormalizationAmbiguity si el valor
    no vacío no se puede interpretar.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise NormalizationAmbiguity(raw)

    if isinstance(raw, Decimal):
        if not raw.is_finite():
            raise NormalizationAmbiguity(raw)
        return _quantize(raw, raw)

    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            raise NormalizationAmbiguity(raw)
        # str() evita arrastrar el error binario del float (0.15 -> 0.1499...)
        return _quantize(Decimal(str(raw)), raw)

    text = str(raw).strip()
    if not text:
        return None

    s = _strip_decoration(text)
    if not _NUMERIC.match(s):
        raise NormalizationAmbiguity(raw)

    last_comma = s.rfind(",")
    last_dot = s.rfind(".")

    if last_comma >= 0 and last_dot >= 0:
        decimal_sep, thousands_sep = (",", ".") if last_comma > last_dot else (".", ",")
        s = s.replace(thousands_sep, "")
        if s.count(decimal_sep) > 1:
            raise NormalizationAmbiguity(raw)
        s = s.replace(decimal_sep, ".")
    elif last_comma >= 0:
        s = s.replace(",", ".") if s.count(",") == 1 else s.replace(",", "")
    elif s.count(".") > 1:
        s = s.replace(".", "")

    try:
        value = Decimal(s)
    except InvalidOperation as e:
        raise NormalizationAmbiguity(raw) from e
    return _quantize(value, raw)


def parse_money(raw: Any) -> Optional[Decimal]:
    """
    Convierte un importe heterogéneo a Decimal con 2 decimales.

    Nunca levanta: un valor no interpretable se loguea y retorna None.

    >>> parse_money("1.234,56")
    Decimal('1234.56')
    """
    try:
        return parse_money_strict(raw)
    except NormalizationAmbiguity as e:
        logger.warning(f"Importe no interpretable, se guarda NULL: {e.details.get('raw')!r}")
        return None
