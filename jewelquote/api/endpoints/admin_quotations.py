"""
관리자용 견적 API (/api/admin/quotations).
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from jewelquote.api.deps import get_admin_actor
from jewelquote.db import get_session
from jewelquote.schemas.quotation import (
    AdminNotesIn,
    ApprovalResponse,
    ApproveIn,
    MessageIn,
    QuotationResponse,
    RequestConfirmationIn,
)
from jewelquote.services.authorization import Actor
from jewelquote.services.quotation.service import ApprovalResult, QuotationService

router = APIRouter()


def _approval_response(result: ApprovalResult) -> ApprovalResponse:
    return ApprovalResponse(
        order_id=result.order_id,
        order_reference=result.order_reference,
        quotation_ids=result.quotation_ids,
    )


@router.get("", response_model=List[QuotationResponse])
def list_quotations(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
    status: str | None = Query(default=None),
    customer_id: int | None = Query(default=None),
    group_id: str | None = Query(default=None),
):
    return QuotationService(session).list_quotations(actor, status=status, customer_id=customer_id, group_id=group_id)


@router.get("/{quotation_id}", response_model=QuotationResponse)
def get_quotation(quotation_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_admin_actor)):
    return QuotationService(session).get(quotation_id, actor)


@router.post("/{quotation_id}/reject", response_model=QuotationResponse)
def reject_quotation(
    quotation_id: int,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    return QuotationService(session).reject(quotation_id, actor, payload.message if payload else None)


@router.post("/{quotation_id}/request-confirmation", response_model=QuotationResponse)
def request_confirmation(
    quotation_id: int,
    payload: RequestConfirmationIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    return QuotationService(session).request_confirmation(
        quotation_id,
        actor,
        quantity=payload.quantity,
        notes=payload.notes,
        message=payload.message,
    )


@router.post("/{quotation_id}/approve", response_model=ApprovalResponse)
def approve_quotation(
    quotation_id: int,
    payload: ApproveIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    result = QuotationService(session).approve(quotation_id, actor, payload.admin_notes if payload else None)
    return _approval_response(result)


@router.put("/{quotation_id}/notes", response_model=QuotationResponse)
def update_notes(
    quotation_id: int,
    payload: AdminNotesIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    return QuotationService(session).update_admin_notes(quotation_id, actor, payload.admin_notes)


@router.post("/groups/{group_id}/reject", response_model=List[QuotationResponse])
def reject_group(
    group_id: str,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    return QuotationService(session).reject_group(group_id, actor, payload.message if payload else None)


@router.post("/groups/{group_id}/request-confirmation", response_model=List[QuotationResponse])
def request_confirmation_group(
    group_id: str,
    payload: MessageIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    return QuotationService(session).request_confirmation_group(group_id, actor, payload.message if payload else None)


@router.post("/groups/{group_id}/approve", response_model=ApprovalResponse)
def approve_group(
    group_id: str,
    payload: ApproveIn | None = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    result = QuotationService(session).approve_group(group_id, actor, payload.admin_notes if payload else None)
    return _approval_response(result)
