"""
세공비 할인 규칙 선택 테스트

catalog 기본 상품: 세공비 500, 단가 소계 65500, 세금 3%.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from jewelquote.models import MakingChargeDiscount
from jewelquote.services.pricing.calculator import PriceCalculator
from jewelquote.services.pricing.discounts import discount_amount


pytestmark = pytest.mark.integration

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _rule(session, name, value, discount_type="percentage", **kwargs):
    rule = MakingChargeDiscount(
        name=name,
        discount_type=discount_type,
        value=Decimal(str(value)),
        is_active=kwargs.pop("is_active", True),
        is_auto=kwargs.pop("is_auto", True),
        created_at=kwargs.pop("created_at", datetime(2026, 1, 1, tzinfo=timezone.utc)),
        **kwargs,
    )
    session.add(rule)
    session.flush()
    return rule


def _price(catalog, **kwargs):
    kwargs.setdefault("now", NOW)
    return PriceCalculator(catalog.session).compute_price(catalog.product.id, **kwargs)


def test_percentage_discount_reduces_tax_base(catalog):
    _rule(catalog.session, "Festive 10%", 10)

    result = _price(catalog)

    assert result.discount == Decimal("50.00")
    assert result.tax == Decimal("1963.50")
    assert result.total == Decimal("67413.50")
    assert result.discount_details["name"] == "Festive 10%"


def test_best_single_rule_wins_without_stacking(catalog):
    _rule(catalog.session, "Festive 10%", 10)
    best = _rule(catalog.session, "Flat 80", 80, discount_type="fixed")

    result = _price(catalog)

    assert result.discount == Decimal("80.00")
    assert result.discount_details["discount_id"] == best.id


def test_fixed_discount_is_capped_at_making(catalog):
    _rule(catalog.session, "Flat 800", 800, discount_type="fixed")

    result = _price(catalog)

    assert result.discount == result.making == Decimal("500.00")
    assert result.total >= 0


def test_percentage_value_is_capped_at_hundred(catalog):
    _rule(catalog.session, "Broken 150%", 150)
    assert _price(catalog).discount == Decimal("500.00")


def test_tie_goes_to_most_recently_created(catalog):
    _rule(catalog.session, "Old 50", 50, discount_type="fixed", created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    newer = _rule(catalog.session, "New 10%", 10, created_at=datetime(2026, 3, 1, tzinfo=timezone.utc))

    result = _price(catalog)

    assert result.discount == Decimal("50.00")
    assert result.discount_details["discount_id"] == newer.id


def test_customer_type_restriction(catalog):
    _rule(catalog.session, "Wholesale 20%", 20, customer_types=["wholesaler"])

    assert _price(catalog, customer_type="retailer").discount == Decimal("0.00")
    assert _price(catalog, customer_type="Wholesaler").discount == Decimal("100.00")


def test_customer_group_restriction(catalog):
    _rule(catalog.session, "VIP group", 20, customer_group_id=5)

    assert _price(catalog).discount == Decimal("0.00")
    assert _price(catalog, customer_group_id=5).discount == Decimal("100.00")


def test_brand_and_category_must_match(catalog):
    _rule(catalog.session, "Other brand", 30, brand_id=99)
    _rule(catalog.session, "Other category", 30, category_id=99)
    assert _price(catalog).discount == Decimal("0.00")

    _rule(catalog.session, "Our brand", 20, brand_id=catalog.product.brand_id, category_id=catalog.product.category_id)
    assert _price(catalog).discount == Decimal("100.00")


def test_rule_outside_its_window_is_ignored(catalog):
    _rule(catalog.session, "Future", 40, starts_at=NOW + timedelta(days=1))
    _rule(catalog.session, "Expired", 40, ends_at=NOW - timedelta(days=1))
    _rule(catalog.session, "Inactive", 40, is_active=False)

    assert _price(catalog).discount == Decimal("0.00")


def test_rule_inside_window_applies(catalog):
    _rule(catalog.session, "Diwali", 40, starts_at=NOW - timedelta(days=2), ends_at=NOW + timedelta(days=2))
    assert _price(catalog).discount == Decimal("200.00")


def test_min_cart_total_uses_line_subtotal(catalog):
    _rule(catalog.session, "Big basket", 10, min_cart_total=Decimal("100000"))

    assert _price(catalog, quantity=1).discount == Decimal("0.00")
    assert _price(catalog, quantity=2).discount == Decimal("50.00")


def test_manual_rule_requires_code(catalog):
    _rule(catalog.session, "VIPCODE", 30, is_auto=False)

    assert _price(catalog).discount == Decimal("0.00")
    assert _price(catalog, discount_codes=["vipcode"]).discount == Decimal("150.00")


@pytest.mark.unit
def test_discount_amount_with_zero_making():
    rule = MakingChargeDiscount(name="x", discount_type="fixed", value=Decimal("100"))
    assert discount_amount(rule, Decimal("0")) == Decimal("0")
