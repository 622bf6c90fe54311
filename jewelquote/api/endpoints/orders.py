from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from jewelquote.api.deps import get_actor
from jewelquote.db import get_session
from jewelquote.schemas.order import OrderResponse, OrderStatusHistoryResponse, OrderTransitionIn
from jewelquote.services.authorization import Actor
from jewelquote.services.order.service import OrderService
from jewelquote.services.order.status_machine import OrderStatusMachine

router = APIRouter()


@router.get("", response_model=List[OrderResponse])
def list_orders(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
    status: str | None = Query(default=None),
):
    return OrderService(session).list_orders(actor, status=status)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    return OrderService(session).get(order_id, actor)


@router.get("/{order_id}/history", response_model=List[OrderStatusHistoryResponse])
def get_order_history(order_id: int, session: Session = Depends(get_session), actor: Actor = Depends(get_actor)):
    OrderService(session).get(order_id, actor)
    return OrderStatusMachine(session).history(order_id)


@router.post("/{order_id}/status", response_model=OrderStatusHistoryResponse)
def transition_order_status(
    order_id: int,
    payload: OrderTransitionIn,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
):
    """관리자: 합법적인 모든 전이 / 고객: 본인 주문 취소만 가능"""
    return OrderStatusMachine(session).transition(order_id, payload.status, actor, payload.meta)
