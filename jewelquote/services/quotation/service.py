"""
견적 라이프사이클 서비스.

고객 생성 → 관리자 검토(거절 / 고객 확인 요청 / 승인) → 고객 확인·거절 → 주문 전환.
모든 변경 작업은 호출자의 단일 트랜잭션 안에서 실행되며, 상태 쓰기는 compare-and-set 입니다.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from jewelquote.errors import IllegalTransitionError, NotFoundError, ValidationError
from jewelquote.models import (
    Customer,
    Product,
    ProductVariant,
    Quotation,
    QuotationMessage,
    QuotationStatusHistory,
)
from jewelquote.services.authorization import ADMIN, CUSTOMER, SYSTEM, Actor, ensure_allowed
from jewelquote.services.events import NotificationBus
from jewelquote.services.inventory_guard import InventoryGuard, ensure_quantity
from jewelquote.services.order.service import OrderService
from jewelquote.services.pricing.calculator import PriceBreakdown, PriceCalculator
from jewelquote.services.quotation import history
from jewelquote.services.quotation.notifier import QuotationNotifier
from jewelquote.services.quotation.state_machine import (
    STOCK_VALIDATING_EVENTS,
    QuotationEvent,
    QuotationStatus,
    is_allowed,
    next_status,
    source_statuses,
)

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: int
    quantity: int = 1
    product_variant_id: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CustomerRef:
    """권한 검사용 최소 리소스 (customer_id 만 보유)"""
    customer_id: int


@dataclass
class ApprovalResult:
    order_id: int
    order_reference: str
    quotation_ids: list[int]


class QuotationService:
    def __init__(self, session: Session, bus: NotificationBus | None = None):
        self.session = session
        self.inventory = InventoryGuard(session)
        self.notifier = QuotationNotifier(session, bus=bus)
        self.orders = OrderService(session)

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def get(self, quotation_id: int, actor: Actor) -> Quotation:
        quotation = self._load(quotation_id)
        ensure_allowed(actor, "quotation.view", quotation)
        return quotation

    def list_quotations(
        self,
        actor: Actor,
        status: str | None = None,
        customer_id: int | None = None,
        group_id: str | None = None,
    ) -> list[Quotation]:
        ensure_allowed(actor, "quotation.list")
        stmt = select(Quotation).order_by(Quotation.id.desc())
        if actor.is_customer:
            stmt = stmt.where(Quotation.customer_id == actor.actor_id)
        elif customer_id is not None:
            stmt = stmt.where(Quotation.customer_id == customer_id)
        if status:
            stmt = stmt.where(Quotation.status == status)
        if group_id:
            stmt = stmt.where(Quotation.quotation_group_id == group_id)
        return list(self.session.scalars(stmt).all())

    def messages(self, quotation_id: int, actor: Actor) -> list[QuotationMessage]:
        quotation = self.get(quotation_id, actor)
        return list(
            self.session.scalars(
                select(QuotationMessage)
                .where(QuotationMessage.quotation_id == quotation.id)
                .order_by(QuotationMessage.id)
            ).all()
        )

    def history(self, quotation_id: int, actor: Actor) -> list[QuotationStatusHistory]:
        quotation = self.get(quotation_id, actor)
        return history.list_for(self.session, quotation.id)

    # ------------------------------------------------------------------
    # 생성
    # ------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        customer_id: int,
        product_id: int,
        product_variant_id: int | None = None,
        quantity: int = 1,
        notes: str | None = None,
        quotation_group_id: str | None = None,
    ) -> Quotation:
        line = CartLine(product_id=product_id, quantity=quantity, product_variant_id=product_variant_id, notes=notes)
        customer = self._authorize_create(actor, customer_id)
        self._validate_line(line)
        quotation = self._insert(actor, customer, line, quotation_group_id)
        logger.info(f"[QuotationService] quotation {quotation.id} created by customer {customer_id}")
        return quotation

    def create_from_cart(self, actor: Actor, customer_id: int, lines: list[CartLine]) -> list[Quotation]:
        """
        장바구니 전체를 하나의 견적 그룹으로 생성 (전부 성공 또는 전부 실패).

        모든 라인을 먼저 검증한 뒤에만 INSERT 합니다.
        """
        if not lines:
            raise ValidationError("Cart is empty", field="items")
        customer = self._authorize_create(actor, customer_id)
        for line in lines:
            self._validate_line(line)

        group_id = str(uuid.uuid4())
        created = [self._insert(actor, customer, line, group_id) for line in lines]
        logger.info(f"[QuotationService] group {group_id} created with {len(created)} line(s)")
        return created

    # ------------------------------------------------------------------
    # 관리자 액션
    # ------------------------------------------------------------------

    def reject(self, quotation_id: int, actor: Actor, message: str | None = None) -> Quotation:
        return self._reject(self._load(quotation_id), actor, message)

    def reject_group(self, group_id: str, actor: Actor, message: str | None = None) -> list[Quotation]:
        return self._for_group(group_id, QuotationEvent.REJECT, lambda q: self._reject(q, actor, message))

    def request_confirmation(
        self,
        quotation_id: int,
        actor: Actor,
        quantity: int | None = None,
        notes: str | None = None,
        message: str | None = None,
    ) -> Quotation:
        return self._request_confirmation(self._load(quotation_id), actor, quantity, notes, message)

    def request_confirmation_group(self, group_id: str, actor: Actor, message: str | None = None) -> list[Quotation]:
        return self._for_group(
            group_id,
            QuotationEvent.REQUEST_CONFIRMATION,
            lambda q: self._request_confirmation(q, actor, None, None, message),
        )

    def approve(self, quotation_id: int, actor: Actor, admin_notes: str | None = None) -> ApprovalResult:
        return self._approve([self._load(quotation_id)], actor, admin_notes)

    def approve_group(self, group_id: str, actor: Actor, admin_notes: str | None = None) -> ApprovalResult:
        lines = self._group_lines(group_id)
        eligible = [q for q in lines if is_allowed(q.status, QuotationEvent.APPROVE)]
        if not eligible:
            raise self._no_eligible_lines(group_id, QuotationEvent.APPROVE, lines)
        return self._approve(eligible, actor, admin_notes)

    def update_admin_notes(self, quotation_id: int, actor: Actor, admin_notes: str | None) -> Quotation:
        quotation = self._load(quotation_id)
        ensure_allowed(actor, "quotation.update_notes", quotation)
        quotation.admin_notes = admin_notes
        self.session.flush()
        return quotation

    # ------------------------------------------------------------------
    # 고객 액션
    # ------------------------------------------------------------------

    def confirm(self, quotation_id: int, actor: Actor, message: str | None = None) -> Quotation:
        return self._customer_decision(self._load(quotation_id), actor, QuotationEvent.CONFIRM, message)

    def confirm_group(self, group_id: str, actor: Actor, message: str | None = None) -> list[Quotation]:
        return self._for_group(
            group_id, QuotationEvent.CONFIRM, lambda q: self._customer_decision(q, actor, QuotationEvent.CONFIRM, message)
        )

    def decline(self, quotation_id: int, actor: Actor, message: str | None = None) -> Quotation:
        return self._customer_decision(self._load(quotation_id), actor, QuotationEvent.DECLINE, message)

    def decline_group(self, group_id: str, actor: Actor, message: str | None = None) -> list[Quotation]:
        return self._for_group(
            group_id, QuotationEvent.DECLINE, lambda q: self._customer_decision(q, actor, QuotationEvent.DECLINE, message)
        )

    def delete(self, quotation_id: int, actor: Actor) -> None:
        quotation = self._load(quotation_id)
        ensure_allowed(actor, "quotation.delete", quotation)
        next_status(quotation.status, QuotationEvent.DELETE)

        self.session.execute(delete(QuotationMessage).where(QuotationMessage.quotation_id == quotation.id))
        self.session.execute(
            delete(QuotationStatusHistory).where(QuotationStatusHistory.quotation_id == quotation.id)
        )
        result = self.session.execute(
            delete(Quotation)
            .where(Quotation.id == quotation.id)
            .where(Quotation.status == QuotationStatus.PENDING.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IllegalTransitionError(
                f"Quotation {quotation.id} can no longer be deleted",
                current_status=quotation.status,
                required_statuses=source_statuses(QuotationEvent.DELETE),
                event=QuotationEvent.DELETE.value,
            )
        self.session.expunge(quotation)
        logger.info(f"[QuotationService] quotation {quotation_id} deleted by customer {actor.actor_id}")

    def add_message(self, quotation_id: int, actor: Actor, body: str) -> QuotationMessage:
        quotation = self._load(quotation_id)
        ensure_allowed(actor, "quotation.message", quotation)
        text = (body or "").strip()
        if not text:
            raise ValidationError("message body is required", field="body")
        message = QuotationMessage(
            quotation_id=quotation.id,
            quotation_group_id=quotation.quotation_group_id,
            sender=ADMIN if actor.is_admin else CUSTOMER,
            author_id=actor.actor_id,
            body=text,
        )
        self.session.add(message)
        self.session.flush()
        return message

    # ------------------------------------------------------------------
    # 이벤트 디스패처
    # ------------------------------------------------------------------

    def transition(self, quotation_id: int, event: str, actor: Actor, payload: dict | None = None) -> Quotation:
        """이벤트 이름으로 전이를 실행. approve 는 주문이 연결된 견적을 반환."""
        payload = payload or {}
        try:
            event = QuotationEvent(event)
        except ValueError:
            raise IllegalTransitionError(f"Unknown quotation event '{event}'", event=str(event))

        message = payload.get("message")
        if event == QuotationEvent.REJECT:
            return self.reject(quotation_id, actor, message)
        if event == QuotationEvent.REQUEST_CONFIRMATION:
            return self.request_confirmation(
                quotation_id, actor, payload.get("quantity"), payload.get("notes"), message
            )
        if event == QuotationEvent.CONFIRM:
            return self.confirm(quotation_id, actor, message)
        if event == QuotationEvent.DECLINE:
            return self.decline(quotation_id, actor, message)
        if event == QuotationEvent.APPROVE:
            self.approve(quotation_id, actor, payload.get("admin_notes"))
            return self._load(quotation_id)
        raise IllegalTransitionError(
            f"Event '{event.value}' cannot be issued through transition()",
            event=event.value,
        )

    # ------------------------------------------------------------------
    # 내부 구현
    # ------------------------------------------------------------------

    def _load(self, quotation_id: int) -> Quotation:
        quotation = self.session.get(Quotation, quotation_id)
        if quotation is None:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    def _group_lines(self, group_id: str) -> list[Quotation]:
        lines = list(
            self.session.scalars(
                select(Quotation).where(Quotation.quotation_group_id == group_id).order_by(Quotation.id)
            ).all()
        )
        if not lines:
            raise NotFoundError("QuotationGroup", group_id)
        return lines

    def _for_group(
        self,
        group_id: str,
        event: QuotationEvent,
        action: Callable[[Quotation], Quotation],
    ) -> list[Quotation]:
        lines = self._group_lines(group_id)
        eligible = [q for q in lines if is_allowed(q.status, event)]
        if not eligible:
            raise self._no_eligible_lines(group_id, event, lines)
        return [action(q) for q in eligible]

    @staticmethod
    def _no_eligible_lines(group_id: str, event: QuotationEvent, lines: list[Quotation]) -> IllegalTransitionError:
        return IllegalTransitionError(
            f"No quotation in group {group_id} can {event.value}",
            current_status=",".join(sorted({q.status for q in lines})),
            required_statuses=source_statuses(event),
            event=event.value,
            quotation_group_id=group_id,
        )

    def _authorize_create(self, actor: Actor, customer_id: int) -> Customer:
        customer = self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        ensure_allowed(actor, "quotation.create", CustomerRef(customer_id))
        return customer

    def _validate_line(self, line: CartLine) -> None:
        ensure_quantity(line.quantity)
        product = self.session.get(Product, line.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product", line.product_id)
        if line.product_variant_id is not None:
            variant = self.session.get(ProductVariant, line.product_variant_id)
            if variant is None or variant.product_id != product.id:
                raise NotFoundError("ProductVariant", line.product_variant_id, product_id=product.id)
        self.inventory.check(line.product_variant_id, line.quantity)

    def _insert(self, actor: Actor, customer: Customer, line: CartLine, group_id: str | None) -> Quotation:
        quotation = Quotation(
            quotation_group_id=group_id,
            customer_id=customer.id,
            product_id=line.product_id,
            product_variant_id=line.product_variant_id,
            quantity=line.quantity,
            notes=line.notes,
            status=QuotationStatus.PENDING.value,
        )
        self.session.add(quotation)
        self.session.flush()

        history.record(
            self.session, quotation, QuotationEvent.CREATE.value, None, QuotationStatus.PENDING.value, actor
        )
        self.notifier.post_message(quotation, CUSTOMER, line.notes, author_id=actor.actor_id)
        self.notifier.notify(quotation, QuotationEvent.CREATE.value, None, actor.guard)
        return quotation

    def _price(self, quotation: Quotation, quantity: int | None = None) -> PriceBreakdown:
        customer = self.session.get(Customer, quotation.customer_id)
        calculator = PriceCalculator(self.session)
        return calculator.compute_price(
            quotation.product_id,
            quotation.product_variant_id,
            quantity=quantity or quotation.quantity,
            customer_type=customer.customer_type if customer else None,
            customer_group_id=customer.customer_group_id if customer else None,
        )

    def _apply(
        self,
        quotation: Quotation,
        event: QuotationEvent,
        actor: Actor,
        meta: dict[str, Any] | None = None,
        **values,
    ) -> str:
        """상태 검증 → compare-and-set → 이력 기록. 이전 상태를 반환."""
        from_status = quotation.status
        target = next_status(from_status, event)
        if event in STOCK_VALIDATING_EVENTS:
            self.inventory.check(quotation.product_variant_id, values.get("quantity", quotation.quantity))
        history.compare_and_set_status(self.session, quotation, from_status, target, event.value, **values)
        history.record(self.session, quotation, event.value, from_status, target, actor, meta)
        return from_status

    def _reject(self, quotation: Quotation, actor: Actor, message: str | None) -> Quotation:
        ensure_allowed(actor, "quotation.reject", quotation)
        from_status = self._apply(quotation, QuotationEvent.REJECT, actor)
        self.notifier.post_message(quotation, ADMIN, message, author_id=actor.actor_id)
        self.notifier.notify(quotation, QuotationEvent.REJECT.value, from_status, actor.guard)
        return quotation

    def _request_confirmation(
        self,
        quotation: Quotation,
        actor: Actor,
        quantity: int | None,
        notes: str | None,
        message: str | None,
    ) -> Quotation:
        ensure_allowed(actor, "quotation.request_confirmation", quotation)
        next_status(quotation.status, QuotationEvent.REQUEST_CONFIRMATION)

        values: dict[str, Any] = {}
        previous_quantity = quotation.quantity
        if quantity is not None:
            values["quantity"] = ensure_quantity(quantity)
        if notes is not None:
            values["notes"] = notes

        # 새 수량으로 재계산한 단가 스냅샷
        priced_quantity = values.get("quantity", quotation.quantity)
        breakdown = self._price(quotation, priced_quantity)
        values["price_breakdown"] = breakdown.to_dict()

        from_status = self._apply(
            quotation,
            QuotationEvent.REQUEST_CONFIRMATION,
            actor,
            meta={"quantity": priced_quantity, "previous_quantity": previous_quantity, "total": str(breakdown.total)},
            **values,
        )
        self.notifier.post_message(quotation, ADMIN, message, author_id=actor.actor_id)
        self.notifier.notify(quotation, QuotationEvent.REQUEST_CONFIRMATION.value, from_status, actor.guard)
        return quotation

    def _customer_decision(
        self,
        quotation: Quotation,
        actor: Actor,
        event: QuotationEvent,
        message: str | None,
    ) -> Quotation:
        ensure_allowed(actor, f"quotation.{event.value}", quotation)
        from_status = self._apply(quotation, event, actor)

        verb = "confirmed" if event == QuotationEvent.CONFIRM else "declined"
        self.notifier.post_message(quotation, SYSTEM, f"Customer {verb} the updated quotation.")
        self.notifier.post_message(quotation, CUSTOMER, message, author_id=actor.actor_id)
        self.notifier.notify(quotation, event.value, from_status, actor.guard)
        return quotation

    def _approve(self, quotations: list[Quotation], actor: Actor, admin_notes: str | None) -> ApprovalResult:
        """
        승인 = 상태 변경 + 주문 생성 + 재고 차감 + 이력.
        하나라도 실패하면 호출자의 트랜잭션 전체가 롤백됩니다.
        """
        now = datetime.now(timezone.utc)
        lines: list[tuple[Quotation, PriceBreakdown, str]] = []
        for quotation in quotations:
            ensure_allowed(actor, "quotation.approve", quotation)
            next_status(quotation.status, QuotationEvent.APPROVE)
        # 같은 variant 를 공유하는 라인은 합계 수량으로 확인 (CAS 이전)
        self.inventory.check_totals((q.product_variant_id, q.quantity) for q in quotations)

        for quotation in quotations:
            if quotation.price_breakdown:
                breakdown = PriceBreakdown.from_dict(quotation.price_breakdown)
            else:
                breakdown = self._price(quotation)
                quotation.price_breakdown = breakdown.to_dict()

            values: dict[str, Any] = {"approved_at": now}
            if admin_notes is not None:
                values["admin_notes"] = admin_notes
            from_status = quotation.status
            history.compare_and_set_status(
                self.session, quotation, from_status, QuotationStatus.APPROVED.value, QuotationEvent.APPROVE.value, **values
            )
            lines.append((quotation, breakdown, from_status))

        order = self.orders.create_from_quotations([(q, b) for q, b, _ in lines], approved_by=actor)

        for quotation, _, from_status in lines:
            quotation.order_id = order.id
            history.record(
                self.session,
                quotation,
                QuotationEvent.APPROVE.value,
                from_status,
                QuotationStatus.APPROVED.value,
                actor,
                meta={"order_id": order.id, "order_reference": order.reference},
            )
            self.inventory.consume(quotation.product_variant_id, quotation.quantity)
        self.session.flush()

        for quotation, _, from_status in lines:
            self.notifier.notify(quotation, QuotationEvent.APPROVE.value, from_status, actor.guard)

        logger.info(f"[QuotationService] approved {[q.id for q, _, _ in lines]} -> order {order.reference}")
        return ApprovalResult(
            order_id=order.id,
            order_reference=order.reference,
            quotation_ids=[q.id for q, _, _ in lines],
        )
