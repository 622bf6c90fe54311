from fastapi import Header

from jewelquote.errors import ForbiddenError
from jewelquote.services.authorization import ADMIN, ROLES, Actor


def get_actor(
    x_actor_role: str | None = Header(default=None),
    x_actor_id: int | None = Header(default=None),
) -> Actor:
    """
    신뢰된 게이트웨이가 넣어주는 헤더로 행위자를 구성합니다.
    (인증 자체는 이 서비스 범위 밖)
    """
    role = (x_actor_role or "").strip().lower()
    if role not in ROLES:
        raise ForbiddenError("Missing or unknown X-Actor-Role header", role=role or None)
    if role != "system" and x_actor_id is None:
        raise ForbiddenError("Missing X-Actor-Id header", role=role)
    return Actor(actor_id=x_actor_id, role=role)


def get_admin_actor(x_actor_role: str | None = Header(default=None), x_actor_id: int | None = Header(default=None)) -> Actor:
    actor = get_actor(x_actor_role=x_actor_role, x_actor_id=x_actor_id)
    if actor.role != ADMIN:
        raise ForbiddenError("Admin access required", role=actor.role)
    return actor
