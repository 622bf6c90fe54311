import logging
from typing import Any, Callable, Dict, List

from jewelquote.settings import settings

logger = logging.getLogger(__name__)


class NotificationBus:
    """
    상태 변경 통지를 위한 경량 이벤트 버스.
    발행은 fire-and-forget: 핸들러 예외는 로그만 남기고 호출자에게 전파하지 않습니다.
    """
    def __init__(self):
        self._handlers: Dict[str, List[Callable[[Any], None]]] = {}
        self.enabled = True

    def subscribe(self, event_type: str, handler: Callable[[Any], None]):
        """이벤트 구독 등록"""
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"[EVENT] Subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable[[Any], None]):
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self):
        self._handlers.clear()

    def publish(self, event_type: str, data: Any) -> int:
        """이벤트 발행. 정상 처리된 핸들러 수를 반환."""
        if not self.enabled:
            return 0
        logger.info(f"[EVENT] Publishing {event_type}")
        delivered = 0
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(data)
                delivered += 1
            except Exception as e:
                logger.error(f"[EVENT] Exception in handler for {event_type}: {e}")
        return delivered


# 싱글톤 인스턴스
bus = NotificationBus()
bus.enabled = settings.notifications_enabled
