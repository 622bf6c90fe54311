"""
견적 승인 → 주문 생성 통합 테스트

승인은 상태 변경, 주문 생성, 재고 차감, 이력 기록이 하나의 트랜잭션입니다.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from jewelquote.db import unit_of_work
from jewelquote.errors import IllegalTransitionError, OutOfStockError
from jewelquote.models import MetalRate, Order, OrderStatusHistory, ProductVariant, Quotation
from jewelquote.services.inventory_guard import InventoryGuard
from jewelquote.services.order.service import OrderService
from jewelquote.services.quotation import history
from jewelquote.services.quotation.service import CartLine, QuotationService
from jewelquote.settings import settings


pytestmark = pytest.mark.integration


@pytest.fixture
def service(catalog, order_statuses, bus):
    return QuotationService(catalog.session, bus=bus)


def _create(service, catalog, quantity=2):
    return service.create(
        catalog.owner_actor,
        customer_id=catalog.owner.id,
        product_id=catalog.product.id,
        product_variant_id=catalog.variant.id,
        quantity=quantity,
    )


def _order_count(session):
    return session.scalar(select(func.count()).select_from(Order))


def test_approve_pending_creates_order(service, catalog, admin):
    quotation = _create(service, catalog)

    result = service.approve(quotation.id, admin, admin_notes="Priority customer")

    assert quotation.status == "approved"
    assert quotation.order_id == result.order_id
    assert quotation.approved_at is not None
    assert quotation.admin_notes == "Priority customer"
    assert quotation.price_breakdown["total"] == "67465.00"

    order = catalog.session.get(Order, result.order_id)
    assert order.reference == result.order_reference
    assert len(order.reference) == settings.order_reference_length
    assert order.reference.isupper() or order.reference.isdigit()
    assert order.status == "pending_payment"
    assert order.customer_id == catalog.owner.id
    assert order.total_amount == Decimal("134930.00")

    [item] = order.items
    assert item.quantity == 2
    assert item.unit_price == Decimal("67465.00")
    assert item.total_price == Decimal("134930.00")
    assert item.price_breakdown["total"] == "67465.00"
    assert item.sku == "RING-22K-001-Y"


def test_approval_consumes_inventory(service, catalog, admin):
    quotation = _create(service, catalog)
    service.approve(quotation.id, admin)

    assert catalog.variant.inventory_quantity == 8


def test_approval_writes_both_histories(service, catalog, admin):
    quotation = _create(service, catalog)
    result = service.approve(quotation.id, admin)

    last = history.latest(catalog.session, quotation.id)
    assert (last.event, last.from_status, last.status) == ("approve", "pending", "approved")
    assert last.meta["order_reference"] == result.order_reference

    [row] = catalog.session.scalars(
        select(OrderStatusHistory).where(OrderStatusHistory.order_id == result.order_id)
    ).all()
    assert row.from_status is None
    assert row.status == "pending_payment"
    assert row.actor_guard == "system"
    assert row.meta["source"] == "quotation_approval"
    assert row.meta["quotation_ids"] == [quotation.id]


def test_confirmed_snapshot_is_not_repriced(service, catalog, admin):
    quotation = _create(service, catalog, quantity=1)
    service.request_confirmation(quotation.id, admin)
    service.confirm(quotation.id, catalog.owner_actor)

    catalog.session.add(
        MetalRate(
            metal="gold",
            purity="22K",
            tone=None,
            currency="INR",
            price_per_gram=Decimal("7000"),
            effective_at=datetime(2026, 9, 1, tzinfo=timezone.utc),
        )
    )
    catalog.session.flush()

    result = service.approve(quotation.id, admin)

    order = catalog.session.get(Order, result.order_id)
    assert order.items[0].unit_price == Decimal("67465.00")
    assert order.total_amount == Decimal("67465.00")


def test_approve_twice_is_illegal(service, catalog, admin):
    quotation = _create(service, catalog)
    service.approve(quotation.id, admin)

    with pytest.raises(IllegalTransitionError):
        service.approve(quotation.id, admin)
    assert _order_count(catalog.session) == 1
    assert catalog.variant.inventory_quantity == 8


def test_approve_from_declined_is_illegal(service, catalog, admin):
    quotation = _create(service, catalog)
    service.request_confirmation(quotation.id, admin)
    service.decline(quotation.id, catalog.owner_actor)

    with pytest.raises(IllegalTransitionError):
        service.approve(quotation.id, admin)
    assert _order_count(catalog.session) == 0


def test_stale_status_loses_the_race(service, catalog, admin):
    quotation = _create(service, catalog)
    # 다른 트랜잭션이 먼저 거절한 상황
    catalog.session.execute(
        update(Quotation)
        .where(Quotation.id == quotation.id)
        .values(status="rejected")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(IllegalTransitionError):
        service.approve(quotation.id, admin)
    assert _order_count(catalog.session) == 0


def test_second_session_approval_loses_the_race(catalog, order_statuses, session_factory, admin):
    """두 세션이 같은 견적을 승인하면 주문은 하나만 생성"""
    quotation_id = _create(QuotationService(catalog.session), catalog).id
    catalog.session.commit()

    # 승인 전 상태(pending)를 들고 있는 두 번째 세션
    stale = session_factory()
    assert stale.get(Quotation, quotation_id).status == "pending"
    stale.commit()

    with unit_of_work(session_factory) as session:
        QuotationService(session).approve(quotation_id, admin)

    try:
        with pytest.raises(IllegalTransitionError):
            with stale.begin():
                QuotationService(stale).approve(quotation_id, admin)
    finally:
        stale.close()

    session = catalog.session
    session.expire_all()
    assert _order_count(session) == 1
    assert session.get(ProductVariant, catalog.variant.id).inventory_quantity == 8
    assert [row.status for row in history.list_for(session, quotation_id)] == ["pending", "approved"]


def test_consume_refuses_to_oversell(catalog):
    guard = InventoryGuard(catalog.session)

    with pytest.raises(OutOfStockError) as exc:
        guard.consume(catalog.variant.id, 11)

    assert exc.value.context["available"] == 10
    assert catalog.variant.inventory_quantity == 10


def test_consume_decrements_in_place(catalog):
    guard = InventoryGuard(catalog.session)

    guard.consume(catalog.variant.id, 4)
    guard.consume(catalog.variant.id, 6)

    assert catalog.variant.inventory_quantity == 0
    with pytest.raises(OutOfStockError):
        guard.consume(catalog.variant.id, 1)


def test_consume_skips_untracked_variant(catalog):
    catalog.variant.inventory_quantity = None
    catalog.session.flush()

    InventoryGuard(catalog.session).consume(catalog.variant.id, 50)

    assert catalog.variant.inventory_quantity is None


def test_approve_rechecks_stock(service, catalog, admin):
    quotation = _create(service, catalog)
    catalog.variant.inventory_quantity = 1
    catalog.session.flush()

    with pytest.raises(OutOfStockError):
        service.approve(quotation.id, admin)
    assert quotation.status == "pending"


def test_customer_cannot_approve(service, catalog):
    from jewelquote.errors import ForbiddenError

    quotation = _create(service, catalog)
    with pytest.raises(ForbiddenError):
        service.approve(quotation.id, catalog.owner_actor)


def test_failed_order_creation_rolls_back_everything(catalog, order_statuses, session_factory, admin, monkeypatch):
    quotation_id = _create(QuotationService(catalog.session), catalog).id
    catalog.session.commit()

    def _boom(self, lines, approved_by):
        raise RuntimeError("order table unavailable")

    monkeypatch.setattr(OrderService, "create_from_quotations", _boom)

    with pytest.raises(RuntimeError):
        with unit_of_work(session_factory) as session:
            QuotationService(session).approve(quotation_id, admin)

    session = catalog.session
    session.expire_all()
    assert session.get(Quotation, quotation_id).status == "pending"
    assert [row.status for row in history.list_for(session, quotation_id)] == ["pending"]
    assert session.get(ProductVariant, catalog.variant.id).inventory_quantity == 10
    assert _order_count(session) == 0


def test_group_approval_creates_single_order(service, catalog, admin):
    lines = service.create_from_cart(
        catalog.owner_actor,
        catalog.owner.id,
        [
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=1),
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=2),
        ],
    )
    group_id = lines[0].quotation_group_id

    result = service.approve_group(group_id, admin)

    assert sorted(result.quotation_ids) == sorted(q.id for q in lines)
    assert _order_count(catalog.session) == 1
    order = catalog.session.get(Order, result.order_id)
    assert order.quotation_group_id == group_id
    assert len(order.items) == 2
    assert order.total_amount == Decimal("202395.00")
    assert order.price_breakdown["total"] == "202395.00"
    assert catalog.variant.inventory_quantity == 7
    assert {q.order_id for q in lines} == {order.id}


def test_group_approval_checks_combined_stock(service, catalog, admin):
    """라인별로는 재고 안이지만 합계가 재고를 넘으면 그룹 승인 실패"""
    lines = service.create_from_cart(
        catalog.owner_actor,
        catalog.owner.id,
        [
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=6),
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=6),
        ],
    )

    with pytest.raises(OutOfStockError) as exc:
        service.approve_group(lines[0].quotation_group_id, admin)

    assert exc.value.context["requested"] == 12
    assert exc.value.context["available"] == 10
    assert _order_count(catalog.session) == 0
    assert [q.status for q in lines] == ["pending", "pending"]
    assert catalog.variant.inventory_quantity == 10


def test_group_approval_skips_rejected_lines(service, catalog, admin):
    first, second = service.create_from_cart(
        catalog.owner_actor,
        catalog.owner.id,
        [
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=1),
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=1),
        ],
    )
    service.reject(first.id, admin)

    result = service.approve_group(first.quotation_group_id, admin)

    assert result.quotation_ids == [second.id]
    assert first.order_id is None
    assert first.status == "rejected"


def test_order_uses_settings_default_without_catalog(catalog, bus, admin):
    """상태 카탈로그가 비어 있으면 설정의 기본 상태를 사용"""
    service = QuotationService(catalog.session, bus=bus)
    quotation = _create(service, catalog, quantity=1)

    result = service.approve(quotation.id, admin)
    assert catalog.session.get(Order, result.order_id).status == "pending_payment"
