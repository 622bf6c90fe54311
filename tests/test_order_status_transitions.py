"""
주문 상태 전이 통합 테스트
"""
import pytest

from jewelquote.errors import ForbiddenError, IllegalStatusError, IllegalTransitionError, NotFoundError
from jewelquote.models import Order
from jewelquote.services.authorization import SYSTEM_ACTOR
from jewelquote.services.order.status_catalog import OrderStatusCatalog
from jewelquote.services.order.status_machine import OrderStatusMachine
from jewelquote.services.quotation.service import QuotationService


pytestmark = pytest.mark.integration


@pytest.fixture
def order(catalog, order_statuses, bus, admin) -> Order:
    service = QuotationService(catalog.session, bus=bus)
    quotation = service.create(
        catalog.owner_actor,
        customer_id=catalog.owner.id,
        product_id=catalog.product.id,
        product_variant_id=catalog.variant.id,
    )
    result = service.approve(quotation.id, admin)
    return catalog.session.get(Order, result.order_id)


@pytest.fixture
def machine(catalog) -> OrderStatusMachine:
    return OrderStatusMachine(catalog.session)


def test_admin_moves_order_forward(machine, order, admin):
    row = machine.transition(order.id, "paid", admin, meta={"payment_ref": "UTR-1"})

    assert order.status == "paid"
    assert (row.from_status, row.status, row.actor_guard) == ("pending_payment", "paid", "admin")
    assert row.meta == {"payment_ref": "UTR-1"}


def test_skipping_ahead_is_allowed(machine, order, admin):
    machine.transition(order.id, "in_production", admin)
    machine.transition(order.id, "dispatched", admin)
    machine.transition(order.id, "delivered", admin)

    statuses = [row.status for row in machine.history(order.id)]
    assert statuses == ["pending_payment", "in_production", "dispatched", "delivered"]


def test_moving_backwards_is_illegal(machine, order, admin):
    machine.transition(order.id, "in_production", admin)
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "paid", admin)
    assert order.status == "in_production"


def test_same_status_is_illegal(machine, order, admin):
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "pending_payment", admin)


def test_unknown_status_code(machine, order, admin):
    with pytest.raises(IllegalStatusError) as exc:
        machine.transition(order.id, "teleported", admin)
    assert exc.value.http_status == 400


def test_inactive_status_is_rejected(catalog, machine, order, admin):
    paid = OrderStatusCatalog(catalog.session).get_by_code("paid")
    paid.is_active = False
    catalog.session.flush()

    with pytest.raises(IllegalStatusError):
        machine.transition(order.id, "paid", admin)


def test_payment_failure_and_retry(machine, order, admin):
    machine.transition(order.id, "payment_failed", SYSTEM_ACTOR)
    machine.transition(order.id, "pending_payment", SYSTEM_ACTOR)
    assert order.status == "pending_payment"


def test_refund_after_cancel(machine, order, admin):
    machine.transition(order.id, "cancelled", admin)
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "in_production", admin)
    machine.transition(order.id, "refunded", admin)

    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "pending", admin)


def test_custom_status_in_the_middle_of_the_flow(catalog, machine, order, admin):
    OrderStatusCatalog(catalog.session).create("Stone Setting", color="#123ABC")

    machine.transition(order.id, "in_production", admin)
    machine.transition(order.id, "stone_setting", admin)
    machine.transition(order.id, "quality_check", admin)
    assert order.status == "quality_check"


def test_owner_can_cancel_unpaid_order(catalog, machine, order):
    row = machine.transition(order.id, "cancelled", catalog.owner_actor)
    assert row.actor_guard == "customer"
    assert row.actor_id == catalog.owner.id


def test_owner_cannot_cancel_in_production(catalog, machine, order, admin):
    machine.transition(order.id, "in_production", admin)
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "cancelled", catalog.owner_actor)


def test_owner_cannot_mark_paid(catalog, machine, order):
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "paid", catalog.owner_actor)


def test_other_customer_is_forbidden(catalog, machine, order):
    with pytest.raises(ForbiddenError):
        machine.transition(order.id, "cancelled", catalog.other_actor)


def test_missing_order(machine, order_statuses, admin):
    with pytest.raises(NotFoundError):
        machine.transition(404404, "paid", admin)


def test_history_never_repeats_a_status(machine, order, admin):
    machine.transition(order.id, "paid", admin)
    with pytest.raises(IllegalTransitionError):
        machine.transition(order.id, "paid", admin)

    statuses = [row.status for row in machine.history(order.id)]
    assert all(a != b for a, b in zip(statuses, statuses[1:]))
