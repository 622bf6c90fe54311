"""
견적 라이프사이클 통합 테스트

생성 → 확인 요청 → 고객 확인/거절, 거절, 삭제, 장바구니 그룹 생성.
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from jewelquote.errors import ForbiddenError, IllegalTransitionError, NotFoundError, OutOfStockError
from jewelquote.models import Product, ProductVariant, Quotation, QuotationMessage, QuotationStatusHistory
from jewelquote.services.quotation import history
from jewelquote.services.quotation.service import CartLine, QuotationService


pytestmark = pytest.mark.integration


@pytest.fixture
def service(catalog, bus):
    return QuotationService(catalog.session, bus=bus)


@pytest.fixture
def quotation(service, catalog):
    return service.create(
        catalog.owner_actor,
        customer_id=catalog.owner.id,
        product_id=catalog.product.id,
        product_variant_id=catalog.variant.id,
        quantity=2,
        notes="Need it before the wedding season",
    )


def _statuses(session, quotation_id):
    return [row.status for row in history.list_for(session, quotation_id)]


def test_create_writes_first_history_row(service, catalog, quotation):
    assert quotation.status == "pending"
    assert quotation.price_breakdown is None

    rows = history.list_for(catalog.session, quotation.id)
    assert [(r.event, r.from_status, r.status, r.actor_guard) for r in rows] == [("create", None, "pending", "customer")]
    assert history.latest(catalog.session, quotation.id).status == quotation.status

    messages = service.messages(quotation.id, catalog.owner_actor)
    assert [m.body for m in messages] == ["Need it before the wedding season"]


def test_create_more_than_stock_is_rejected(service, catalog):
    with pytest.raises(OutOfStockError) as exc:
        service.create(
            catalog.owner_actor,
            customer_id=catalog.owner.id,
            product_id=catalog.product.id,
            product_variant_id=catalog.variant.id,
            quantity=20,
        )
    assert exc.value.requested == 20
    assert exc.value.available == 10


def test_create_for_another_customer_is_forbidden(service, catalog):
    with pytest.raises(ForbiddenError):
        service.create(catalog.other_actor, customer_id=catalog.owner.id, product_id=catalog.product.id)


def test_create_for_inactive_product(service, catalog):
    catalog.product.is_active = False
    catalog.session.flush()
    with pytest.raises(NotFoundError):
        service.create(catalog.owner_actor, customer_id=catalog.owner.id, product_id=catalog.product.id)


def test_create_with_foreign_variant(service, catalog):
    other = Product(sku="OTHER-1", name="Other", is_active=True)
    catalog.session.add(other)
    catalog.session.flush()
    stray = ProductVariant(product_id=other.id, is_default=True)
    catalog.session.add(stray)
    catalog.session.flush()

    with pytest.raises(NotFoundError):
        service.create(
            catalog.owner_actor,
            customer_id=catalog.owner.id,
            product_id=catalog.product.id,
            product_variant_id=stray.id,
        )


def test_untracked_inventory_has_no_limit(service, catalog):
    catalog.variant.inventory_quantity = None
    catalog.session.flush()

    q = service.create(
        catalog.owner_actor,
        customer_id=catalog.owner.id,
        product_id=catalog.product.id,
        product_variant_id=catalog.variant.id,
        quantity=500,
    )
    assert q.quantity == 500


def test_request_confirmation_reprices_and_snapshots(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin, quantity=3, message="Updated for 3 pieces")

    assert quotation.status == "pending_customer_confirmation"
    assert quotation.quantity == 3
    assert quotation.price_breakdown["total"] == "67465.00"
    assert quotation.price_breakdown["quantity"] == 3

    rows = history.list_for(catalog.session, quotation.id)
    assert rows[-1].event == "request_confirmation"
    assert rows[-1].actor_guard == "admin"
    assert rows[-1].meta["previous_quantity"] == 2

    senders = [m.sender for m in service.messages(quotation.id, admin)]
    assert senders == ["customer", "admin"]


def test_request_confirmation_revalidates_stock(service, catalog, quotation, admin):
    with pytest.raises(OutOfStockError):
        service.request_confirmation(quotation.id, admin, quantity=20)

    assert quotation.status == "pending"
    assert _statuses(catalog.session, quotation.id) == ["pending"]


def test_customer_confirms(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin)
    service.confirm(quotation.id, catalog.owner_actor)

    assert quotation.status == "customer_confirmed"
    assert _statuses(catalog.session, quotation.id) == ["pending", "pending_customer_confirmation", "customer_confirmed"]
    assert any(m.sender == "system" for m in service.messages(quotation.id, catalog.owner_actor))


def test_confirm_revalidates_stock(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin)
    catalog.variant.inventory_quantity = 1
    catalog.session.flush()

    with pytest.raises(OutOfStockError):
        service.confirm(quotation.id, catalog.owner_actor)
    assert quotation.status == "pending_customer_confirmation"


def test_customer_declines_and_cannot_confirm_afterwards(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin)
    service.decline(quotation.id, catalog.owner_actor, message="Too expensive")

    assert quotation.status == "customer_declined"
    with pytest.raises(IllegalTransitionError):
        service.confirm(quotation.id, catalog.owner_actor)


def test_confirm_outside_pending_customer_confirmation(service, catalog, quotation):
    with pytest.raises(IllegalTransitionError) as exc:
        service.confirm(quotation.id, catalog.owner_actor)
    assert exc.value.http_status == 400
    assert exc.value.required_statuses == ["pending_customer_confirmation"]


def test_non_owner_cannot_confirm(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin)
    with pytest.raises(ForbiddenError):
        service.confirm(quotation.id, catalog.other_actor)


def test_admin_rejects_once(service, catalog, quotation, admin):
    service.reject(quotation.id, admin, message="Design discontinued")
    assert quotation.status == "rejected"

    with pytest.raises(IllegalTransitionError):
        service.reject(quotation.id, admin)

    statuses = _statuses(catalog.session, quotation.id)
    assert statuses == ["pending", "rejected"]
    assert all(a != b for a, b in zip(statuses, statuses[1:]))


def test_customer_cannot_reject(service, catalog, quotation):
    with pytest.raises(ForbiddenError):
        service.reject(quotation.id, catalog.owner_actor)


def test_transition_dispatcher(service, catalog, quotation, admin):
    service.transition(quotation.id, "request_confirmation", admin, {"quantity": 1})
    result = service.transition(quotation.id, "confirm", catalog.owner_actor)
    assert result.status == "customer_confirmed"

    with pytest.raises(IllegalTransitionError):
        service.transition(quotation.id, "teleport", admin)


def test_owner_deletes_pending_quotation(service, catalog, quotation):
    quotation_id = quotation.id
    service.delete(quotation_id, catalog.owner_actor)
    catalog.session.flush()

    with pytest.raises(NotFoundError):
        service.get(quotation_id, catalog.owner_actor)
    assert catalog.session.scalar(
        select(func.count()).select_from(QuotationMessage).where(QuotationMessage.quotation_id == quotation_id)
    ) == 0
    assert catalog.session.scalar(
        select(func.count()).select_from(QuotationStatusHistory).where(QuotationStatusHistory.quotation_id == quotation_id)
    ) == 0


def test_delete_only_while_pending(service, catalog, quotation, admin):
    service.reject(quotation.id, admin)
    with pytest.raises(IllegalTransitionError):
        service.delete(quotation.id, catalog.owner_actor)


def test_non_owner_cannot_delete_or_view(service, catalog, quotation):
    with pytest.raises(ForbiddenError):
        service.delete(quotation.id, catalog.other_actor)
    with pytest.raises(ForbiddenError):
        service.get(quotation.id, catalog.other_actor)


def test_missing_quotation(service, admin):
    with pytest.raises(NotFoundError):
        service.reject(424242, admin)


def test_messages_from_owner_and_admin(service, catalog, quotation, admin):
    service.add_message(quotation.id, catalog.owner_actor, "Can you do rose gold?")
    service.add_message(quotation.id, admin, "Yes, same price.")

    with pytest.raises(ForbiddenError):
        service.add_message(quotation.id, catalog.other_actor, "hello")

    bodies = [m.body for m in service.messages(quotation.id, admin)]
    assert bodies[-2:] == ["Can you do rose gold?", "Yes, same price."]


def test_listing_is_scoped_to_customer(service, catalog, quotation, admin):
    service.create(catalog.other_actor, customer_id=catalog.other.id, product_id=catalog.product.id)

    own = service.list_quotations(catalog.owner_actor)
    assert {q.customer_id for q in own} == {catalog.owner.id}
    assert len(service.list_quotations(admin)) == 2
    assert len(service.list_quotations(admin, status="rejected")) == 0


def test_cart_creates_one_group(service, catalog):
    created = service.create_from_cart(
        catalog.owner_actor,
        catalog.owner.id,
        [
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=1, notes="Line one"),
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=2),
        ],
    )

    assert len(created) == 2
    group_ids = {q.quotation_group_id for q in created}
    assert len(group_ids) == 1 and None not in group_ids

    first_messages = service.messages(created[0].id, catalog.owner_actor)
    assert first_messages[0].body == "Line one"
    assert first_messages[0].quotation_group_id == created[0].quotation_group_id


def test_cart_is_all_or_nothing(service, catalog):
    with pytest.raises(OutOfStockError):
        service.create_from_cart(
            catalog.owner_actor,
            catalog.owner.id,
            [
                CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=1),
                CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id, quantity=20),
            ],
        )
    assert catalog.session.scalar(select(func.count()).select_from(Quotation)) == 0


def test_group_action_skips_ineligible_lines(service, catalog, admin):
    first, second = service.create_from_cart(
        catalog.owner_actor,
        catalog.owner.id,
        [
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id),
            CartLine(product_id=catalog.product.id, product_variant_id=catalog.variant.id),
        ],
    )
    service.reject(first.id, admin)

    touched = service.request_confirmation_group(first.quotation_group_id, admin)
    assert [q.id for q in touched] == [second.id]
    assert second.status == "pending_customer_confirmation"

    confirmed = service.confirm_group(first.quotation_group_id, catalog.owner_actor)
    assert [q.status for q in confirmed] == ["customer_confirmed"]

    with pytest.raises(IllegalTransitionError):
        service.reject_group(first.quotation_group_id, admin)


def test_unknown_group(service, admin):
    with pytest.raises(NotFoundError):
        service.reject_group("no-such-group", admin)


def test_breakdown_totals_hold_invariants(service, catalog, quotation, admin):
    service.request_confirmation(quotation.id, admin)
    snap = quotation.price_breakdown
    total = Decimal(snap["subtotal"]) - Decimal(snap["discount"]) + Decimal(snap["tax"])
    assert Decimal(snap["total"]) == total
    assert Decimal(snap["discount"]) <= Decimal(snap["making"])
