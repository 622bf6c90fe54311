"""
Pricing / Quotation Exception Classes

구조화된 에러 처리를 위한 예외 클래스 정의.
API 레이어는 http_status 와 to_dict() 만 보고 응답을 만듭니다.
"""
from typing import Any, Dict, Iterable, Optional


class PricingEngineError(Exception):
    """
    Base exception for all engine errors

    Attributes:
        message: 에러 메시지
        error_code: 에러 코드
        context: 추가 컨텍스트 정보
        http_status: API 응답 코드
    """

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """에러 정보를 딕셔너리로 변환"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class NotFoundError(PricingEngineError):
    http_status = 404

    def __init__(self, entity: str, entity_id: Any, **kwargs):
        context = {"entity": entity, "id": entity_id}
        context.update(kwargs)
        super().__init__(
            message=f"{entity} {entity_id} not found",
            error_code="NOT_FOUND",
            context=context,
        )
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(PricingEngineError):
    http_status = 403

    def __init__(self, message: str, action: Optional[str] = None, role: Optional[str] = None, **kwargs):
        context = {"action": action, "role": role}
        context.update(kwargs)
        super().__init__(message=message, error_code="FORBIDDEN", context=context)
        self.action = action
        self.role = role


class IllegalTransitionError(PricingEngineError):
    """
    현재 상태에서 허용되지 않는 전이

    Attributes:
        current_status: 현재 상태
        required_statuses: 이벤트가 허용되는 상태 목록
        event: 요청된 이벤트
    """

    http_status = 400

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        required_statuses: Optional[Iterable[str]] = None,
        event: Optional[str] = None,
        **kwargs,
    ):
        required = sorted(required_statuses or [])
        context = {
            "current_status": current_status,
            "required_statuses": required,
            "event": event,
        }
        context.update(kwargs)
        super().__init__(message=message, error_code="ILLEGAL_TRANSITION", context=context)
        self.current_status = current_status
        self.required_statuses = required
        self.event = event


class OutOfStockError(PricingEngineError):
    http_status = 400

    def __init__(self, requested: int, available: int, variant_id: Optional[int] = None, **kwargs):
        context = {"requested": requested, "available": available, "variant_id": variant_id}
        context.update(kwargs)
        super().__init__(
            message=f"Requested quantity {requested} exceeds available stock {available}",
            error_code="OUT_OF_STOCK",
            context=context,
        )
        self.requested = requested
        self.available = available
        self.variant_id = variant_id


class RateUnavailableError(PricingEngineError):
    """
    가격 산정에 필요한 시세가 없음.
    0 으로 대체하지 않고 반드시 실패시킵니다.
    """

    http_status = 422

    def __init__(self, kind: str, key: Dict[str, Any]):
        super().__init__(
            message=f"No {kind} rate available for {key}",
            error_code="RATE_UNAVAILABLE",
            context={"kind": kind, "key": key},
        )
        self.kind = kind
        self.key = key


class ConflictError(PricingEngineError):
    http_status = 409

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="CONFLICT", context=dict(kwargs))


class IllegalStatusError(PricingEngineError):
    http_status = 400

    def __init__(self, status: str, **kwargs):
        context = {"status": status}
        context.update(kwargs)
        super().__init__(
            message=f"Order status '{status}' is not defined or inactive",
            error_code="ILLEGAL_STATUS",
            context=context,
        )
        self.status = status


class ValidationError(PricingEngineError):
    """
    Input validation failures

    Attributes:
        field: 실패한 필드 이름
        actual_value: 실제 값
    """

    http_status = 422

    def __init__(self, message: str, field: Optional[str] = None, actual_value: Optional[Any] = None, **kwargs):
        context = {
            "field": field,
            "actual_value": str(actual_value) if actual_value is not None else None,
        }
        context.update(kwargs)
        super().__init__(message=message, error_code="VALIDATION_ERROR", context=context)
        self.field = field
        self.actual_value = actual_value
