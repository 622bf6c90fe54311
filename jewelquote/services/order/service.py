import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from jewelquote.errors import NotFoundError
from jewelquote.models import Order, OrderItem, OrderStatusHistory, Product, ProductVariant, Quotation
from jewelquote.services.authorization import SYSTEM, Actor, ensure_allowed
from jewelquote.services.order.status_catalog import OrderStatusCatalog
from jewelquote.services.pricing.calculator import PriceBreakdown
from jewelquote.services.pricing.utils import ZERO, money_str
from jewelquote.settings import settings

logger = logging.getLogger(__name__)

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_reference(length: int | None = None) -> str:
    size = length or settings.order_reference_length
    return "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(size))


class OrderService:
    """
    승인된 견적을 주문으로 변환합니다.

    주문 라인은 견적의 가격 스냅샷을 그대로 복사하며 다시 계산하지 않습니다.
    """
    def __init__(self, session: Session):
        self.session = session
        self.catalog = OrderStatusCatalog(session)

    def create_from_quotations(
        self,
        lines: list[tuple[Quotation, PriceBreakdown]],
        approved_by: Actor,
    ) -> Order:
        first = lines[0][0]
        currency = lines[0][1].currency or settings.default_currency
        initial_status = self.catalog.default_code()

        order = Order(
            reference=self._unique_reference(),
            customer_id=first.customer_id,
            quotation_group_id=first.quotation_group_id,
            status=initial_status,
            currency=currency,
        )
        self.session.add(order)
        self.session.flush()

        subtotal = discount = tax = total = ZERO
        line_dicts = []
        for quotation, unit in lines:
            line = unit.as_line_total(quotation.quantity)
            product = self.session.get(Product, quotation.product_id)
            variant = self.session.get(ProductVariant, quotation.product_variant_id) if quotation.product_variant_id else None

            item = OrderItem(
                order_id=order.id,
                quotation_id=quotation.id,
                product_id=quotation.product_id,
                product_variant_id=quotation.product_variant_id,
                sku=(variant.sku if variant and variant.sku else product.sku if product else None),
                name=product.name if product else f"Product {quotation.product_id}",
                quantity=quotation.quantity,
                unit_price=unit.total,
                total_price=line.total,
                price_breakdown=dict(quotation.price_breakdown or unit.to_dict()),
                configuration={
                    "variant_label": variant.label if variant else None,
                    "notes": quotation.notes,
                },
            )
            self.session.add(item)

            subtotal += line.subtotal
            discount += line.discount
            tax += line.tax
            total += line.total
            line_dicts.append({"quotation_id": quotation.id, **line.to_dict()})

        order.subtotal_amount = subtotal
        order.discount_amount = discount
        order.tax_amount = tax
        order.total_amount = total
        order.price_breakdown = {
            "subtotal": money_str(subtotal),
            "discount": money_str(discount),
            "tax": money_str(tax),
            "total": money_str(total),
            "currency": currency,
            "lines": line_dicts,
        }

        self.session.add(
            OrderStatusHistory(
                order_id=order.id,
                from_status=None,
                status=initial_status,
                actor_guard=SYSTEM,
                actor_id=None,
                meta={
                    "source": "quotation_approval",
                    "quotation_ids": [q.id for q, _ in lines],
                    "approved_by": approved_by.actor_id,
                },
            )
        )
        self.session.flush()
        logger.info(f"[OrderService] order {order.reference} created from {len(lines)} quotation(s) total={total}")
        return order

    def get(self, order_id: int, actor: Actor) -> Order:
        order = self.session.get(Order, order_id, options=[selectinload(Order.items)])
        if order is None:
            raise NotFoundError("Order", order_id)
        ensure_allowed(actor, "order.view", order)
        return order

    def list_orders(self, actor: Actor, status: str | None = None) -> list[Order]:
        ensure_allowed(actor, "order.list")
        stmt = select(Order).options(selectinload(Order.items)).order_by(Order.id.desc())
        if actor.is_customer:
            stmt = stmt.where(Order.customer_id == actor.actor_id)
        if status:
            stmt = stmt.where(Order.status == status)
        return list(self.session.scalars(stmt).all())

    def _unique_reference(self) -> str:
        for _ in range(5):
            reference = generate_reference()
            exists = self.session.scalar(select(Order.id).where(Order.reference == reference))
            if exists is None:
                return reference
        raise RuntimeError("Could not generate a unique order reference")

