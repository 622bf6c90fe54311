import logging
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from jewelquote.errors import OutOfStockError, ValidationError
from jewelquote.models import ProductVariant

logger = logging.getLogger(__name__)


def ensure_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer", field="quantity", actual_value=quantity)
    return quantity


class InventoryGuard:
    """
    재고 확인기.

    수량을 확정하는 모든 전이(생성, 확인 요청, 고객 확인, 승인)에서 다시 실행됩니다.
    inventory_quantity 가 NULL 인 variant 는 재고를 관리하지 않으므로 항상 통과.
    """
    def __init__(self, session: Session):
        self.session = session

    def check(self, variant_id: int | None, quantity: int) -> None:
        ensure_quantity(quantity)
        if variant_id is None:
            return

        available = self.session.scalar(
            select(ProductVariant.inventory_quantity).where(ProductVariant.id == variant_id)
        )
        if available is None:
            return
        if quantity > available:
            logger.info(f"[InventoryGuard] variant={variant_id} requested={quantity} available={available}")
            raise OutOfStockError(requested=quantity, available=available, variant_id=variant_id)

    def check_totals(self, requests: Iterable[tuple[int | None, int]]) -> None:
        """같은 variant 를 여러 라인이 요청하면 합계 수량으로 한 번만 확인"""
        totals: dict[int, int] = {}
        for variant_id, quantity in requests:
            ensure_quantity(quantity)
            if variant_id is None:
                continue
            totals[variant_id] = totals.get(variant_id, 0) + quantity
        for variant_id, quantity in sorted(totals.items()):
            self.check(variant_id, quantity)

    def consume(self, variant_id: int | None, quantity: int) -> None:
        """
        승인 트랜잭션 안에서 재고 차감.

        UPDATE ... SET inventory_quantity = inventory_quantity - :q WHERE inventory_quantity >= :q
        재고가 부족하면 OutOfStockError 로 트랜잭션 전체를 실패시킵니다.
        """
        ensure_quantity(quantity)
        if variant_id is None:
            return

        result = self.session.execute(
            update(ProductVariant)
            .where(ProductVariant.id == variant_id)
            .where(ProductVariant.inventory_quantity.is_not(None))
            .where(ProductVariant.inventory_quantity >= quantity)
            .values(inventory_quantity=ProductVariant.inventory_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        variant = self.session.get(ProductVariant, variant_id)
        if variant is not None:
            self.session.expire(variant, ["inventory_quantity"])

        if result.rowcount != 1:
            available = self.session.scalar(
                select(ProductVariant.inventory_quantity).where(ProductVariant.id == variant_id)
            )
            if available is None:
                # 재고 미관리 variant
                return
            logger.warning(f"[InventoryGuard] consume failed variant={variant_id} requested={quantity} available={available}")
            raise OutOfStockError(requested=quantity, available=available, variant_id=variant_id)
        logger.debug(f"[InventoryGuard] variant={variant_id} consumed={quantity}")
