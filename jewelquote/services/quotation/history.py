import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from jewelquote.errors import IllegalTransitionError
from jewelquote.models import Quotation, QuotationStatusHistory
from jewelquote.services.authorization import Actor

logger = logging.getLogger(__name__)


def record(
    session: Session,
    quotation: Quotation,
    event: str,
    from_status: str | None,
    status: str,
    actor: Actor,
    meta: dict | None = None,
) -> QuotationStatusHistory:
    row = QuotationStatusHistory(
        quotation_id=quotation.id,
        event=event,
        from_status=from_status,
        status=status,
        actor_guard=actor.guard,
        actor_id=actor.actor_id,
        meta=meta or {},
    )
    session.add(row)
    session.flush()
    return row


def compare_and_set_status(session: Session, quotation: Quotation, expected: str, new_status: str, event: str, **values) -> None:
    """
    UPDATE ... WHERE id = :id AND status = :expected.
    다른 트랜잭션이 먼저 상태를 바꿨다면 0 행 → IllegalTransitionError.
    """
    result = session.execute(
        update(Quotation)
        .where(Quotation.id == quotation.id)
        .where(Quotation.status == expected)
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"[QuotationHistory] stale transition quotation={quotation.id} expected={expected} event={event}")
        raise IllegalTransitionError(
            f"Transition '{event}' is no longer valid for quotation {quotation.id}",
            current_status=expected,
            required_statuses=[expected],
            event=event,
            quotation_id=quotation.id,
        )
    # 이미 DB 에 반영된 값이므로 dirty 로 표시하지 않음
    set_committed_value(quotation, "status", new_status)
    for key, value in values.items():
        set_committed_value(quotation, key, value)


def latest(session: Session, quotation_id: int) -> QuotationStatusHistory | None:
    return session.scalar(
        select(QuotationStatusHistory)
        .where(QuotationStatusHistory.quotation_id == quotation_id)
        .order_by(QuotationStatusHistory.id.desc())
        .limit(1)
    )


def list_for(session: Session, quotation_id: int) -> list[QuotationStatusHistory]:
    return list(
        session.scalars(
            select(QuotationStatusHistory)
            .where(QuotationStatusHistory.quotation_id == quotation_id)
            .order_by(QuotationStatusHistory.id)
        ).all()
    )
