"""
견적 상태 전이 표.

(현재 상태, 이벤트) -> 다음 상태. 표에 없는 조합은 IllegalTransitionError.
"""
from enum import Enum

from jewelquote.errors import IllegalTransitionError


class QuotationStatus(str, Enum):
    PENDING = "pending"
    PENDING_CUSTOMER_CONFIRMATION = "pending_customer_confirmation"
    CUSTOMER_CONFIRMED = "customer_confirmed"
    CUSTOMER_DECLINED = "customer_declined"
    REJECTED = "rejected"
    APPROVED = "approved"


class QuotationEvent(str, Enum):
    CREATE = "create"
    REJECT = "reject"
    REQUEST_CONFIRMATION = "request_confirmation"
    CONFIRM = "confirm"
    DECLINE = "decline"
    APPROVE = "approve"
    DELETE = "delete"


TRANSITIONS: dict[QuotationEvent, dict[QuotationStatus, QuotationStatus | None]] = {
    QuotationEvent.REJECT: {
        QuotationStatus.PENDING: QuotationStatus.REJECTED,
    },
    QuotationEvent.REQUEST_CONFIRMATION: {
        QuotationStatus.PENDING: QuotationStatus.PENDING_CUSTOMER_CONFIRMATION,
    },
    QuotationEvent.CONFIRM: {
        QuotationStatus.PENDING_CUSTOMER_CONFIRMATION: QuotationStatus.CUSTOMER_CONFIRMED,
    },
    QuotationEvent.DECLINE: {
        QuotationStatus.PENDING_CUSTOMER_CONFIRMATION: QuotationStatus.CUSTOMER_DECLINED,
    },
    QuotationEvent.APPROVE: {
        QuotationStatus.PENDING: QuotationStatus.APPROVED,
        QuotationStatus.CUSTOMER_CONFIRMED: QuotationStatus.APPROVED,
    },
    # 삭제는 상태가 아니라 행 자체를 제거
    QuotationEvent.DELETE: {
        QuotationStatus.PENDING: None,
    },
}

# 재고를 다시 확인해야 하는 이벤트
STOCK_VALIDATING_EVENTS = frozenset(
    {
        QuotationEvent.REQUEST_CONFIRMATION,
        QuotationEvent.CONFIRM,
        QuotationEvent.APPROVE,
    }
)


def source_statuses(event: QuotationEvent | str) -> set[str]:
    event = QuotationEvent(event)
    return {s.value for s in TRANSITIONS.get(event, {})}


def is_allowed(status: str, event: QuotationEvent | str) -> bool:
    return status in source_statuses(event)


def next_status(status: str, event: QuotationEvent | str) -> str | None:
    try:
        event = QuotationEvent(event)
    except ValueError:
        raise IllegalTransitionError(f"Unknown quotation event '{event}'", current_status=status, event=str(event))

    table = TRANSITIONS.get(event, {})
    try:
        current = QuotationStatus(status)
    except ValueError:
        current = None

    if current is None or current not in table:
        raise IllegalTransitionError(
            f"Cannot {event.value} a quotation in status '{status}'",
            current_status=status,
            required_statuses=source_statuses(event),
            event=event.value,
        )
    target = table[current]
    return target.value if target is not None else None
