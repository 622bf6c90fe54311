from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from jewelquote.settings import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def round_money(value: Any, places: int | None = None) -> Decimal:
    """금액 반올림 (half-up). 기본 자릿수는 settings.money_decimal_places."""
    digits = settings.money_decimal_places if places is None else places
    quantum = Decimal(1).scaleb(-digits)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def percent_of(base: Any, percent: Any) -> Decimal:
    return to_decimal(base) * to_decimal(percent) / HUNDRED


def money_str(value: Any) -> str:
    # JSON 스냅샷에는 float 오차를 피하려고 문자열로 저장
    return str(round_money(value))
