from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from jewelquote.api.deps import get_actor
from jewelquote.db import get_session
from jewelquote.models import Customer
from jewelquote.schemas.pricing import PriceBreakdownResponse, PriceRequestIn
from jewelquote.services.authorization import Actor, ensure_allowed
from jewelquote.services.pricing.calculator import PriceCalculator

router = APIRouter()


@router.post("", response_model=PriceBreakdownResponse)
def compute_price(
    payload: PriceRequestIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """
    상품/variant 구성의 표시용 가격을 계산합니다 (저장하지 않음).
    고객이 호출하면 본인의 고객 유형/그룹이 적용됩니다.
    """
    ensure_allowed(actor, "pricing.compute")

    customer_type = payload.customer_type
    customer_group_id = payload.customer_group_id
    if actor.is_customer:
        customer = session.get(Customer, actor.actor_id)
        if customer is not None:
            customer_type = customer.customer_type
            customer_group_id = customer.customer_group_id

    breakdown = PriceCalculator(session).compute_price(
        payload.product_id,
        payload.product_variant_id,
        quantity=payload.quantity,
        customer_type=customer_type,
        customer_group_id=customer_group_id,
        discount_codes=payload.discount_codes,
        as_line_total=payload.as_line_total,
    )
    return PriceBreakdownResponse(
        metal=breakdown.metal,
        diamond=breakdown.diamond,
        making=breakdown.making,
        subtotal=breakdown.subtotal,
        discount=breakdown.discount,
        tax=breakdown.tax,
        total=breakdown.total,
        tax_rate=breakdown.tax_rate,
        currency=breakdown.currency,
        quantity=breakdown.quantity,
        is_line_total=breakdown.is_line_total,
        discount_details=breakdown.discount_details,
        components=breakdown.components,
    )
