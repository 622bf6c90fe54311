"""
행위자(Actor) 권한 검사.

모든 변경 작업은 맨 앞에서 ensure_allowed() 를 명시적으로 호출합니다.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jewelquote.errors import ForbiddenError

ADMIN = "admin"
CUSTOMER = "customer"
SYSTEM = "system"

ROLES = (ADMIN, CUSTOMER, SYSTEM)

# action -> 허용 역할. "owner" 는 리소스 소유 고객만 허용.
_RULES: dict[str, set[str]] = {
    "quotation.create": {"owner"},
    "quotation.view": {ADMIN, SYSTEM, "owner"},
    "quotation.list": {ADMIN, SYSTEM, CUSTOMER},
    "quotation.delete": {"owner"},
    "quotation.message": {ADMIN, "owner"},
    "quotation.reject": {ADMIN},
    "quotation.request_confirmation": {ADMIN},
    "quotation.approve": {ADMIN, SYSTEM},
    "quotation.update_notes": {ADMIN},
    "quotation.confirm": {"owner"},
    "quotation.decline": {"owner"},
    "order.view": {ADMIN, SYSTEM, "owner"},
    "order.list": {ADMIN, SYSTEM, CUSTOMER},
    "order.transition": {ADMIN, SYSTEM, "owner"},
    "order_status.manage": {ADMIN, SYSTEM},
    "order_status.list": {ADMIN, SYSTEM, CUSTOMER},
    "pricing.compute": {ADMIN, SYSTEM, CUSTOMER},
}


@dataclass(frozen=True)
class Actor:
    actor_id: int | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == CUSTOMER

    @property
    def is_system(self) -> bool:
        return self.role == SYSTEM

    @property
    def guard(self) -> str:
        """이력 행에 기록되는 actor_guard 값"""
        return self.role

    def owns(self, resource: Any) -> bool:
        customer_id = getattr(resource, "customer_id", None)
        return self.is_customer and customer_id is not None and customer_id == self.actor_id


SYSTEM_ACTOR = Actor(actor_id=None, role=SYSTEM)


def ensure_allowed(actor: Actor, action: str, resource: Any = None) -> None:
    """
    actor 가 resource 에 대해 action 을 수행할 수 있는지 검사.
    허용되지 않으면 ForbiddenError.
    """
    if actor.role not in ROLES:
        raise ForbiddenError(f"Unknown role '{actor.role}'", action=action, role=actor.role)

    allowed = _RULES.get(action)
    if allowed is None:
        raise ForbiddenError(f"Unknown action '{action}'", action=action, role=actor.role)

    if actor.role in allowed:
        return
    if "owner" in allowed and resource is not None and actor.owns(resource):
        return

    raise ForbiddenError(
        f"{actor.role} {actor.actor_id} is not allowed to perform {action}",
        action=action,
        role=actor.role,
    )
