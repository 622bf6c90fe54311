import logging

from sqlalchemy.orm import Session

from jewelquote.models import Quotation, QuotationMessage
from jewelquote.services.events import NotificationBus, bus as default_bus

logger = logging.getLogger(__name__)

QUOTATION_EVENT = "quotation.transition"


class QuotationNotifier:
    """
    견적 스레드 메시지 + 상태 변경 통지.

    fire-and-forget: 메시지 저장/통지 실패는 로그만 남기고 전이를 롤백시키지 않습니다.
    메시지 INSERT 는 SAVEPOINT 안에서 실행되어 실패해도 바깥 트랜잭션은 유지됩니다.
    """
    def __init__(self, session: Session, bus: NotificationBus | None = None):
        self.session = session
        self.bus = bus or default_bus

    def post_message(
        self,
        quotation: Quotation,
        sender: str,
        body: str | None,
        author_id: int | None = None,
    ) -> QuotationMessage | None:
        text = (body or "").strip()
        if not text:
            return None
        try:
            with self.session.begin_nested():
                message = QuotationMessage(
                    quotation_id=quotation.id,
                    quotation_group_id=quotation.quotation_group_id,
                    sender=sender,
                    author_id=author_id,
                    body=text,
                )
                self.session.add(message)
            return message
        except Exception as e:
            logger.error(f"[QuotationNotifier] failed to store message for quotation {quotation.id}: {e}")
            return None

    def notify(self, quotation: Quotation, event: str, from_status: str | None, actor_guard: str) -> None:
        payload = {
            "quotation_id": quotation.id,
            "quotation_group_id": quotation.quotation_group_id,
            "customer_id": quotation.customer_id,
            "event": event,
            "from_status": from_status,
            "status": quotation.status,
            "actor_guard": actor_guard,
        }
        try:
            self.bus.publish(QUOTATION_EVENT, payload)
        except Exception as e:
            logger.error(f"[QuotationNotifier] publish failed for quotation {quotation.id}: {e}")
