import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from jewelquote.errors import RateUnavailableError
from jewelquote.models import DiamondRate, MetalRate, Product, Tax, TaxGroup
from jewelquote.services.pricing.utils import ZERO, to_decimal
from jewelquote.settings import settings

logger = logging.getLogger(__name__)

FIXED = "fixed"
PERCENTAGE = "percentage"


@dataclass(frozen=True)
class MakingChargePolicy:
    amount: Decimal
    percentage: Decimal
    types: tuple[str, ...]

    @property
    def uses_fixed(self) -> bool:
        return FIXED in self.types

    @property
    def uses_percentage(self) -> bool:
        return PERCENTAGE in self.types


class RateResolver:
    """
    시세 / 세공비 / 세율 조회기 (읽기 전용).

    시세가 없으면 0 으로 대체하지 않고 RateUnavailableError 를 던집니다.
    """
    def __init__(self, session: Session, currency: str | None = None):
        self.session = session
        self.currency = (currency or settings.default_currency).upper()

    def resolve_metal_rate(self, metal: str, purity: str, tone: str | None = None) -> Decimal:
        metal_key = (metal or "").strip().lower()
        stmt = (
            select(MetalRate)
            .where(func.lower(MetalRate.metal) == metal_key)
            .where(MetalRate.purity == purity)
            .where(MetalRate.currency == self.currency)
        )
        if tone:
            stmt = stmt.where((func.lower(MetalRate.tone) == tone.strip().lower()) | (MetalRate.tone.is_(None)))
        else:
            # 톤 미지정 구성요소는 공통(NULL) 시세만 사용
            stmt = stmt.where(MetalRate.tone.is_(None))

        rows = self.session.scalars(stmt.order_by(MetalRate.effective_at.desc(), MetalRate.id.desc())).all()

        # 톤 지정 시 톤 일치 시세 우선
        preferred = [r for r in rows if r.tone is not None] if tone else []
        chosen = preferred[0] if preferred else (rows[0] if rows else None)
        if chosen is None:
            logger.warning(f"[RateResolver] metal rate missing: {metal_key}/{purity}/{tone} {self.currency}")
            raise RateUnavailableError(
                "metal",
                {"metal": metal_key, "purity": purity, "tone": tone, "currency": self.currency},
            )
        return to_decimal(chosen.price_per_gram)

    def resolve_diamond_rate(self, diamond_type: str, shape: str, color: str, clarity: str) -> Decimal:
        stmt = (
            select(DiamondRate.price_per_carat)
            .where(DiamondRate.diamond_type == diamond_type)
            .where(DiamondRate.shape == shape)
            .where(DiamondRate.color == color)
            .where(DiamondRate.clarity == clarity)
            .where(DiamondRate.currency == self.currency)
            .order_by(DiamondRate.effective_at.desc(), DiamondRate.id.desc())
            .limit(1)
        )
        rate = self.session.scalar(stmt)
        if rate is None:
            logger.warning(f"[RateResolver] diamond rate missing: {diamond_type}/{shape}/{color}/{clarity}")
            raise RateUnavailableError(
                "diamond",
                {
                    "diamond_type": diamond_type,
                    "shape": shape,
                    "color": color,
                    "clarity": clarity,
                    "currency": self.currency,
                },
            )
        return to_decimal(rate)

    def resolve_making_charge_policy(self, product: Product) -> MakingChargePolicy:
        amount = max(ZERO, to_decimal(product.making_charge_amount))
        percentage = max(ZERO, to_decimal(product.making_charge_percentage))

        configured = [str(t).strip().lower() for t in (product.making_charge_types or []) if t]
        types = tuple(t for t in (FIXED, PERCENTAGE) if t in configured)
        if not types:
            inferred = []
            if amount > 0:
                inferred.append(FIXED)
            if percentage > 0:
                inferred.append(PERCENTAGE)
            types = tuple(inferred)

        return MakingChargePolicy(amount=amount, percentage=percentage, types=types)

    def resolve_tax_rate(self, product: Product) -> Decimal:
        """상품 세금 그룹의 활성 세율 합계 (%). 그룹이 없으면 기본 그룹, 그것도 없으면 0."""
        group_id = product.tax_group_id
        if group_id is not None:
            group = self.session.get(TaxGroup, group_id)
            if group is None or not group.is_active:
                group_id = None

        if group_id is None:
            group_id = self.session.scalar(
                select(TaxGroup.id)
                .where(TaxGroup.is_default.is_(True))
                .where(TaxGroup.is_active.is_(True))
                .order_by(TaxGroup.id)
                .limit(1)
            )
        if group_id is None:
            return ZERO

        rates = self.session.scalars(
            select(Tax.rate).where(Tax.tax_group_id == group_id).where(Tax.is_active.is_(True))
        ).all()
        return sum((to_decimal(r) for r in rates), ZERO)
