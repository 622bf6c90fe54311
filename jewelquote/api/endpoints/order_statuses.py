from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from jewelquote.api.deps import get_admin_actor
from jewelquote.db import get_session
from jewelquote.schemas.order import (
    OrderStatusBulkDeleteIn,
    OrderStatusIn,
    OrderStatusResponse,
    OrderStatusUpdateIn,
)
from jewelquote.services.authorization import Actor, ensure_allowed
from jewelquote.services.order.status_catalog import OrderStatusCatalog

router = APIRouter()


@router.get("", response_model=List[OrderStatusResponse])
def list_statuses(session: Session = Depends(get_session), actor: Actor = Depends(get_admin_actor)):
    ensure_allowed(actor, "order_status.list")
    return OrderStatusCatalog(session).list_statuses()


@router.post("", response_model=OrderStatusResponse, status_code=status.HTTP_201_CREATED)
def create_status(
    payload: OrderStatusIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    ensure_allowed(actor, "order_status.manage")
    return OrderStatusCatalog(session).create(**payload.model_dump())


@router.put("/{status_id}", response_model=OrderStatusResponse)
def update_status(
    status_id: int,
    payload: OrderStatusUpdateIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
):
    ensure_allowed(actor, "order_status.manage")
    return OrderStatusCatalog(session).update(status_id, **payload.model_dump(exclude_unset=True))


@router.delete("/{status_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_status(status_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_admin_actor)):
    ensure_allowed(actor, "order_status.manage")
    OrderStatusCatalog(session).delete(status_id)


@router.post("/bulk-delete")
def bulk_delete_statuses(
    payload: OrderStatusBulkDeleteIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_admin_actor),
) -> dict:
    ensure_allowed(actor, "order_status.manage")
    deleted = OrderStatusCatalog(session).bulk_delete(payload.ids)
    return {"deleted": deleted}


@router.post("/seed")
def seed_statuses(session: Session = Depends(get_session), actor: Actor = Depends(get_admin_actor)) -> dict:
    ensure_allowed(actor, "order_status.manage")
    return {"seeded": OrderStatusCatalog(session).seed_default_statuses()}
