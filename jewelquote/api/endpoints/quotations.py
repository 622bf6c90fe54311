"""
고객용 견적 API (/api/quotations).
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from jewelquote.api.deps import get_actor
from jewelquote.db import get_session
from jewelquote.schemas.quotation import (
    CartQuotationIn,
    MessageCreateIn,
    MessageIn,
    QuotationCreateIn,
    QuotationHistoryResponse,
    QuotationMessageResponse,
    QuotationResponse,
)
from jewelquote.services.authorization import Actor
from jewelquote.services.quotation.service import CartLine, QuotationService

router = APIRouter()


@router.get("", response_model=List[QuotationResponse])
def list_quotations(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
    status_filter: str | None = Query(default=None, alias="status"),
):
    return QuotationService(session).list_quotations(actor, status=status_filter)


@router.post("", response_model=QuotationResponse, status_code=status.HTTP_201_CREATED)
def create_quotation(
    payload: QuotationCreateIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).create(
        actor,
        customer_id=actor.actor_id,
        product_id=payload.product_id,
        product_variant_id=payload.product_variant_id,
        quantity=payload.quantity,
        notes=payload.notes,
    )


@router.post("/cart", response_model=List[QuotationResponse], status_code=status.HTTP_201_CREATED)
def create_quotations_from_cart(
    payload: CartQuotationIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    lines = [
        CartLine(
            product_id=item.product_id,
            product_variant_id=item.product_variant_id,
            quantity=item.quantity,
            notes=item.notes,
        )
        for item in payload.items
    ]
    return QuotationService(session).create_from_cart(actor, actor.actor_id, lines)


@router.get("/{quotation_id}", response_model=QuotationResponse)
def get_quotation(quotation_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return QuotationService(session).get(quotation_id, actor)


@router.delete("/{quotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quotation(quotation_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    QuotationService(session).delete(quotation_id, actor)


@router.post("/{quotation_id}/confirm", response_model=QuotationResponse)
def confirm_quotation(
    quotation_id: int,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).confirm(quotation_id, actor, payload.message if payload else None)


@router.post("/{quotation_id}/decline", response_model=QuotationResponse)
def decline_quotation(
    quotation_id: int,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).decline(quotation_id, actor, payload.message if payload else None)


@router.post("/groups/{group_id}/confirm", response_model=List[QuotationResponse])
def confirm_group(
    group_id: str,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).confirm_group(group_id, actor, payload.message if payload else None)


@router.post("/groups/{group_id}/decline", response_model=List[QuotationResponse])
def decline_group(
    group_id: str,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).decline_group(group_id, actor, payload.message if payload else None)


@router.get("/{quotation_id}/messages", response_model=List[QuotationMessageResponse])
def list_messages(quotation_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return QuotationService(session).messages(quotation_id, actor)


@router.post("/{quotation_id}/messages", response_model=QuotationMessageResponse, status_code=status.HTTP_201_CREATED)
def post_message(
    quotation_id: int,
    payload: MessageCreateIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    return QuotationService(session).add_message(quotation_id, actor, payload.body)


@router.get("/{quotation_id}/history", response_model=List[QuotationHistoryResponse])
def list_history(quotation_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return QuotationService(session).history(quotation_id, actor)
