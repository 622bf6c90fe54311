"""
주문 상태 머신 (견적 승인 이후의 생산/배송 추적).

기본 흐름은 앞으로만 이동하며 단계 건너뛰기는 허용합니다.
payment_failed / cancelled / refunded 는 별도 분기입니다.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from jewelquote.errors import IllegalStatusError, IllegalTransitionError, NotFoundError
from jewelquote.models import Order, OrderStatus, OrderStatusHistory
from jewelquote.services.authorization import Actor, ensure_allowed

logger = logging.getLogger(__name__)

PENDING_PAYMENT = "pending_payment"
PAYMENT_FAILED = "payment_failed"
PENDING = "pending"
CANCELLED = "cancelled"
DISPATCHED = "dispatched"
DELIVERED = "delivered"
REFUNDED = "refunded"

FLOW = (
    PENDING_PAYMENT,
    "paid",
    PENDING,
    "approved",
    "awaiting_materials",
    "in_production",
    "quality_check",
    "ready_to_dispatch",
    DISPATCHED,
    DELIVERED,
)
OFF_RAMPS = (PAYMENT_FAILED, CANCELLED, REFUNDED)
BUILT_IN = frozenset(FLOW + OFF_RAMPS)

# 더 이상 일반 전이가 불가능한 상태 (refunded 로만 이동 가능하거나 완전 종료)
CLOSED = frozenset({CANCELLED, DELIVERED, REFUNDED})
CUSTOMER_CANCELLABLE = frozenset({PENDING_PAYMENT, PAYMENT_FAILED, PENDING})


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return False
    if current == REFUNDED:
        return False

    if target == REFUNDED:
        return current in (CANCELLED, DELIVERED)
    if current in CLOSED:
        return False

    if target == CANCELLED:
        return current not in (DISPATCHED,)
    if target == PAYMENT_FAILED:
        return current == PENDING_PAYMENT
    if current == PAYMENT_FAILED:
        return target == PENDING_PAYMENT or target not in BUILT_IN

    if target not in BUILT_IN:
        return True
    if current not in BUILT_IN:
        # 관리자 정의 상태에서는 기본 흐름 어디로든 복귀 가능
        return target in FLOW

    return FLOW.index(target) > FLOW.index(current)


def allowed_targets(current: str, catalog_codes: list[str]) -> list[str]:
    return [code for code in catalog_codes if can_transition(current, code)]


class OrderStatusMachine:
    def __init__(self, session: Session):
        self.session = session

    def transition(self, order_id: int, new_status: str, actor: Actor, meta: dict | None = None) -> OrderStatusHistory:
        order = self.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)

        ensure_allowed(actor, "order.transition", order)
        if actor.is_customer and not (new_status == CANCELLED and order.status in CUSTOMER_CANCELLABLE):
            raise IllegalTransitionError(
                f"Customers may only cancel orders in {sorted(CUSTOMER_CANCELLABLE)}",
                current_status=order.status,
                required_statuses=CUSTOMER_CANCELLABLE,
                event=new_status,
            )

        target = self.session.scalar(select(OrderStatus).where(OrderStatus.code == new_status))
        if target is None or not target.is_active:
            raise IllegalStatusError(new_status, order_id=order_id)

        current = order.status
        if current == new_status:
            raise IllegalTransitionError(
                f"Order {order_id} is already '{current}'",
                current_status=current,
                event=new_status,
            )
        if not can_transition(current, new_status):
            raise IllegalTransitionError(
                f"Cannot move order {order_id} from '{current}' to '{new_status}'",
                current_status=current,
                event=new_status,
            )

        self._compare_and_set(order, current, new_status)
        row = OrderStatusHistory(
            order_id=order.id,
            from_status=current,
            status=new_status,
            actor_guard=actor.guard,
            actor_id=actor.actor_id,
            meta=meta or {},
        )
        self.session.add(row)
        self.session.flush()
        logger.info(f"[OrderStatus] order={order_id} {current} -> {new_status} by {actor.guard}:{actor.actor_id}")
        return row

    def history(self, order_id: int) -> list[OrderStatusHistory]:
        return list(
            self.session.scalars(
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.id)
            ).all()
        )

    def _compare_and_set(self, order: Order, expected: str, new_status: str) -> None:
        result = self.session.execute(
            update(Order)
            .where(Order.id == order.id)
            .where(Order.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IllegalTransitionError(
                f"Status change to '{new_status}' is no longer valid for order {order.id}",
                current_status=expected,
                event=new_status,
            )
        set_committed_value(order, "status", new_status)
