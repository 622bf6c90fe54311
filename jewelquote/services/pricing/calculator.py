"""
보석 단가 계산기.

metal + diamond + making = subtotal, subtotal - discount + tax = total.
각 구성요소는 독립적으로 반올림(2자리, half-up)하며, 합계는 반올림된 값끼리 더해 재반올림하지 않습니다.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from jewelquote.errors import NotFoundError
from jewelquote.models import Product, ProductDiamond, ProductVariant
from jewelquote.services.inventory_guard import ensure_quantity
from jewelquote.services.pricing.discounts import AppliedDiscount, DiscountResolver
from jewelquote.services.pricing.rate_resolver import RateResolver
from jewelquote.services.pricing.utils import ZERO, money_str, percent_of, round_money, to_decimal
from jewelquote.settings import settings

logger = logging.getLogger(__name__)

_MONEY_FIELDS = ("metal", "diamond", "making", "subtotal", "discount", "tax", "total")


@dataclass(frozen=True)
class PriceBreakdown:
    metal: Decimal
    diamond: Decimal
    making: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal = ZERO
    currency: str = "INR"
    quantity: int = 1
    is_line_total: bool = False
    discount_details: dict | None = None
    components: dict = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        metal,
        diamond,
        making,
        discount,
        tax,
        **kwargs,
    ) -> "PriceBreakdown":
        metal = round_money(metal)
        diamond = round_money(diamond)
        making = round_money(making)
        discount = min(round_money(discount), making)
        tax = round_money(tax)
        subtotal = metal + diamond + making
        total = max(ZERO, subtotal - discount + tax)
        return cls(
            metal=metal,
            diamond=diamond,
            making=making,
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=total,
            **kwargs,
        )

    def as_line_total(self, quantity: int | None = None) -> "PriceBreakdown":
        """수량을 곱한 라인 합계. 단가 기준 breakdown 에만 적용."""
        qty = self.quantity if quantity is None else quantity
        if self.is_line_total:
            return self
        return PriceBreakdown.build(
            metal=self.metal * qty,
            diamond=self.diamond * qty,
            making=self.making * qty,
            discount=self.discount * qty,
            tax=self.tax * qty,
            tax_rate=self.tax_rate,
            currency=self.currency,
            quantity=qty,
            is_line_total=True,
            discount_details=self.discount_details,
            components=self.components,
        )

    def to_dict(self) -> dict:
        data = {name: money_str(getattr(self, name)) for name in _MONEY_FIELDS}
        data.update(
            {
                "tax_rate": str(self.tax_rate),
                "currency": self.currency,
                "quantity": self.quantity,
                "is_line_total": self.is_line_total,
                "discount_details": self.discount_details,
                "components": self.components,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PriceBreakdown":
        return cls(
            **{name: round_money(data.get(name)) for name in _MONEY_FIELDS},
            tax_rate=to_decimal(data.get("tax_rate")),
            currency=data.get("currency") or settings.default_currency,
            quantity=int(data.get("quantity") or 1),
            is_line_total=bool(data.get("is_line_total", False)),
            discount_details=data.get("discount_details"),
            components=data.get("components") or {},
        )


class PriceCalculator:
    """
    상품/variant 구성에 대한 결정적 가격 계산기.

    동일한 입력과 동일한 시세 테이블이면 항상 같은 결과를 냅니다.
    """
    def __init__(self, session: Session, currency: str | None = None):
        self.session = session
        self.rates = RateResolver(session, currency=currency)
        self.discounts = DiscountResolver(session)

    @property
    def currency(self) -> str:
        return self.rates.currency

    def compute_price(
        self,
        product_id: int,
        variant_id: int | None = None,
        quantity: int = 1,
        customer_type: str | None = None,
        customer_group_id: int | None = None,
        discount_codes: Iterable[str] = (),
        now: datetime | None = None,
        as_line_total: bool = False,
    ) -> PriceBreakdown:
        ensure_quantity(quantity)
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        variant = self._resolve_variant(product, variant_id)

        metal, metal_parts = self._metal_cost(variant)
        diamond, diamond_parts = self._diamond_cost(product, variant)
        metal = round_money(metal)
        diamond = round_money(diamond)

        policy = self.rates.resolve_making_charge_policy(product)
        making = ZERO
        if policy.uses_fixed:
            making += policy.amount
        if policy.uses_percentage:
            making += percent_of(metal + diamond, policy.percentage)
        making = round_money(making)

        unit_subtotal = metal + diamond + making
        applied: AppliedDiscount = self.discounts.resolve(
            product,
            making,
            customer_type or settings.default_customer_type,
            customer_group_id=customer_group_id,
            line_subtotal=unit_subtotal * quantity,
            now=now,
            codes=discount_codes,
        )
        discount = min(applied.amount, making)

        tax_rate = self.rates.resolve_tax_rate(product)
        tax = round_money(percent_of(unit_subtotal - discount, tax_rate))

        breakdown = PriceBreakdown.build(
            metal=metal,
            diamond=diamond,
            making=making,
            discount=discount,
            tax=tax,
            tax_rate=tax_rate,
            currency=self.currency,
            quantity=quantity,
            discount_details=applied.to_dict() if applied.discount_id else None,
            components={
                "variant_id": variant.id if variant else None,
                "metals": metal_parts,
                "diamonds": diamond_parts,
                "making_charge_types": list(policy.types),
            },
        )
        logger.debug(f"[PriceCalculator] product={product_id} variant={variant_id} total={breakdown.total}")
        if as_line_total:
            return breakdown.as_line_total()
        return breakdown

    def _resolve_variant(self, product: Product, variant_id: int | None) -> ProductVariant | None:
        if variant_id is None:
            return self.session.scalar(
                select(ProductVariant)
                .where(ProductVariant.product_id == product.id)
                .where(ProductVariant.is_default.is_(True))
                .order_by(ProductVariant.id)
                .limit(1)
            )
        variant = self.session.get(ProductVariant, variant_id)
        if variant is None or variant.product_id != product.id:
            raise NotFoundError("ProductVariant", variant_id, product_id=product.id)
        return variant

    def _metal_cost(self, variant: ProductVariant | None) -> tuple[Decimal, list[dict]]:
        if variant is None:
            return ZERO, []
        total = ZERO
        parts = []
        for component in variant.metals:
            weight = to_decimal(component.weight_grams)
            if weight <= 0:
                continue
            rate = self.rates.resolve_metal_rate(component.metal, component.purity, component.tone)
            cost = weight * rate
            total += cost
            parts.append(
                {
                    "metal": component.metal,
                    "purity": component.purity,
                    "tone": component.tone,
                    "weight_grams": str(weight),
                    "rate": str(rate),
                    "cost": money_str(cost),
                }
            )
        return total, parts

    def _diamond_cost(self, product: Product, variant: ProductVariant | None) -> tuple[Decimal, list[dict]]:
        stmt = select(ProductDiamond).where(ProductDiamond.product_id == product.id)
        if variant is None:
            stmt = stmt.where(ProductDiamond.variant_id.is_(None))
        else:
            stmt = stmt.where((ProductDiamond.variant_id.is_(None)) | (ProductDiamond.variant_id == variant.id))

        total = ZERO
        parts = []
        for stone in self.session.scalars(stmt.order_by(ProductDiamond.id)).all():
            carat = to_decimal(stone.carat)
            if carat <= 0:
                continue
            rate = self.rates.resolve_diamond_rate(stone.diamond_type, stone.shape, stone.color, stone.clarity)
            cost = carat * rate
            total += cost
            parts.append(
                {
                    "diamond_type": stone.diamond_type,
                    "shape": stone.shape,
                    "color": stone.color,
                    "clarity": stone.clarity,
                    "carat": str(carat),
                    "stone_count": stone.stone_count,
                    "rate": str(rate),
                    "cost": money_str(cost),
                }
            )
        return total, parts

