import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from jewelquote.models import MakingChargeDiscount, Product
from jewelquote.services.pricing.utils import HUNDRED, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class AppliedDiscount:
    amount: Decimal = ZERO
    discount_id: int | None = None
    name: str | None = None
    discount_type: str | None = None
    value: Decimal = ZERO
    meta: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "discount_id": self.discount_id,
            "name": self.name,
            "type": self.discount_type,
            "value": str(self.value),
            "amount": str(self.amount),
            "meta": self.meta,
        }


def _aware(value: datetime | None) -> datetime | None:
    # SQLite 는 tz 정보를 잃어버리므로 naive 값은 UTC 로 간주
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def discount_amount(rule: MakingChargeDiscount, making: Decimal) -> Decimal:
    value = max(ZERO, to_decimal(rule.value))
    if value <= 0 or making <= 0:
        return ZERO
    if rule.discount_type == "percentage":
        amount = making * min(value, HUNDRED) / HUNDRED
    else:
        amount = value
    return round_money(min(amount, making))


class DiscountResolver:
    """
    세공비 할인 규칙 선택기.

    조건을 만족하는 규칙 중 할인액이 가장 큰 하나만 적용합니다 (중복 적용 없음).
    동액이면 최근 생성된 규칙, 그 다음 id 가 큰 규칙이 우선.
    """
    def __init__(self, session: Session):
        self.session = session

    def candidates(
        self,
        product: Product,
        customer_type: str | None,
        customer_group_id: int | None,
        line_subtotal: Decimal,
        now: datetime,
        codes: Iterable[str] = (),
    ) -> list[MakingChargeDiscount]:
        requested = {c.strip().lower() for c in codes if c and c.strip()}
        ctype = (customer_type or "").strip().lower() or None
        now = _aware(now)

        rules = self.session.scalars(
            select(MakingChargeDiscount).where(MakingChargeDiscount.is_active.is_(True))
        ).all()

        matched = []
        for rule in rules:
            if not rule.is_auto and (rule.name or "").strip().lower() not in requested:
                continue

            starts_at = _aware(rule.starts_at)
            ends_at = _aware(rule.ends_at)
            if starts_at and starts_at > now:
                continue
            if ends_at and ends_at < now:
                continue

            if rule.brand_id and rule.brand_id != product.brand_id:
                continue
            if rule.category_id and rule.category_id != product.category_id:
                continue

            allowed_types = [str(t).lower() for t in (rule.customer_types or []) if isinstance(t, str)]
            if allowed_types and (ctype is None or ctype not in allowed_types):
                continue

            if rule.customer_group_id and rule.customer_group_id != customer_group_id:
                continue

            if rule.min_cart_total and line_subtotal < to_decimal(rule.min_cart_total):
                continue

            matched.append(rule)
        return matched

    def resolve(
        self,
        product: Product,
        making: Decimal,
        customer_type: str | None,
        customer_group_id: int | None = None,
        line_subtotal: Decimal = ZERO,
        now: datetime | None = None,
        codes: Iterable[str] = (),
    ) -> AppliedDiscount:
        if making <= 0:
            return AppliedDiscount()

        now = now or datetime.now(timezone.utc)
        rules = self.candidates(product, customer_type, customer_group_id, line_subtotal, now, codes)

        best: tuple | None = None
        best_rule = None
        for rule in rules:
            amount = discount_amount(rule, making)
            if amount <= 0:
                continue
            rank = (amount, _aware(rule.created_at) or _EPOCH, rule.id)
            if best is None or rank > best:
                best = rank
                best_rule = rule

        if best_rule is None:
            return AppliedDiscount()

        logger.debug(f"[DiscountResolver] product={product.id} rule={best_rule.id} amount={best[0]}")
        return AppliedDiscount(
            amount=best[0],
            discount_id=best_rule.id,
            name=best_rule.name,
            discount_type=best_rule.discount_type,
            value=round_money(best_rule.value),
            meta={
                "brand_id": best_rule.brand_id,
                "category_id": best_rule.category_id,
                "customer_group_id": best_rule.customer_group_id,
                "customer_types": best_rule.customer_types,
            },
        )
