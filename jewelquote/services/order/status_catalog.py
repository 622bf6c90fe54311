import logging
import re
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from jewelquote.errors import ConflictError, NotFoundError, ValidationError
from jewelquote.models import Order, OrderStatus, OrderStatusHistory
from jewelquote.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_STATUSES: list[dict[str, Any]] = [
    {"name": "Pending Payment", "code": "pending_payment", "color": "#F59E0B", "is_default": True, "display_order": 0},
    {"name": "Pending", "code": "pending", "color": "#F59E0B", "is_default": False, "display_order": 1},
    {"name": "Payment Failed", "code": "payment_failed", "color": "#EF4444", "is_default": False, "display_order": 2},
    {"name": "Approved", "code": "approved", "color": "#10B981", "is_default": False, "display_order": 3},
    {"name": "Awaiting Materials", "code": "awaiting_materials", "color": "#6366F1", "is_default": False, "display_order": 4},
    {"name": "In Production", "code": "in_production", "color": "#6366F1", "is_default": False, "display_order": 5},
    {"name": "Quality Check", "code": "quality_check", "color": "#3B82F6", "is_default": False, "display_order": 6},
    {"name": "Ready to Dispatch", "code": "ready_to_dispatch", "color": "#8B5CF6", "is_default": False, "display_order": 7},
    {"name": "Dispatched", "code": "dispatched", "color": "#0E244D", "is_default": False, "display_order": 8},
    {"name": "Delivered", "code": "delivered", "color": "#10B981", "is_default": False, "display_order": 9},
    {"name": "Cancelled", "code": "cancelled", "color": "#EF4444", "is_default": False, "display_order": 10},
    {"name": "Paid", "code": "paid", "color": "#10B981", "is_default": False, "display_order": 11},
    {"name": "Refunded", "code": "refunded", "color": "#64748B", "is_default": False, "display_order": 12},
]

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def slugify_code(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", (name or "").strip().lower()).strip("_")


class OrderStatusCatalog:
    """
    주문 상태 카탈로그 관리.

    is_default 는 최대 1개. 새 기본값을 지정하면 같은 트랜잭션 안에서 이전 기본값을 해제합니다.
    """
    def __init__(self, session: Session):
        self.session = session

    def list_statuses(self, include_inactive: bool = True) -> list[OrderStatus]:
        stmt = select(OrderStatus).order_by(OrderStatus.display_order, OrderStatus.id)
        if not include_inactive:
            stmt = stmt.where(OrderStatus.is_active.is_(True))
        return list(self.session.scalars(stmt).all())

    def get(self, status_id: int) -> OrderStatus:
        status = self.session.get(OrderStatus, status_id)
        if status is None:
            raise NotFoundError("OrderStatus", status_id)
        return status

    def get_by_code(self, code: str) -> OrderStatus | None:
        return self.session.scalar(select(OrderStatus).where(OrderStatus.code == code))

    def default_code(self) -> str:
        code = self.session.scalar(
            select(OrderStatus.code)
            .where(OrderStatus.is_default.is_(True))
            .where(OrderStatus.is_active.is_(True))
            .limit(1)
        )
        return code or settings.default_order_status

    def create(
        self,
        name: str,
        code: str | None = None,
        color: str = "#64748b",
        is_default: bool = False,
        is_active: bool = True,
        display_order: int | None = None,
    ) -> OrderStatus:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name is required", field="name")
        code = slugify_code(code or name)
        if not code:
            raise ValidationError("code is required", field="code")
        self._validate_color(color)
        self._ensure_unique(name, code)

        if display_order is None:
            display_order = (self.session.scalar(select(func.max(OrderStatus.display_order))) or 0) + 1

        if is_default:
            self._clear_default()

        status = OrderStatus(
            name=name,
            code=code,
            color=color,
            is_default=is_default,
            is_active=is_active,
            display_order=display_order,
        )
        self.session.add(status)
        self.session.flush()
        logger.info(f"[OrderStatusCatalog] created {code} (default={is_default})")
        return status

    def update(self, status_id: int, **changes) -> OrderStatus:
        status = self.get(status_id)

        name = changes.get("name")
        code = changes.get("code")
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("name is required", field="name")
        if code is not None:
            code = slugify_code(code)
            if not code:
                raise ValidationError("code is required", field="code")
        if name is not None or code is not None:
            self._ensure_unique(name or status.name, code or status.code, exclude_id=status.id)

        if code is not None and code != status.code and self._in_use(status.code):
            raise ConflictError(f"Order status '{status.code}' is in use and its code cannot change", code=status.code)

        if changes.get("color") is not None:
            self._validate_color(changes["color"])
            status.color = changes["color"]
        if name is not None:
            status.name = name
        if code is not None:
            status.code = code
        if changes.get("display_order") is not None:
            status.display_order = changes["display_order"]
        if changes.get("is_active") is not None:
            status.is_active = changes["is_active"]

        if changes.get("is_default") is True and not status.is_default:
            self._clear_default(exclude_id=status.id)
            status.is_default = True
        elif changes.get("is_default") is False:
            status.is_default = False

        self.session.flush()
        return status

    def delete(self, status_id: int) -> None:
        status = self.get(status_id)
        if status.is_default:
            others = self.session.scalar(
                select(func.count(OrderStatus.id)).where(OrderStatus.id != status.id)
            )
            if others:
                raise ConflictError("Cannot delete the default order status while other statuses exist", code=status.code)
        if self._in_use(status.code):
            raise ConflictError(f"Order status '{status.code}' is in use", code=status.code)

        self.session.delete(status)
        self.session.flush()
        logger.info(f"[OrderStatusCatalog] deleted {status.code}")

    def bulk_delete(self, status_ids: list[int]) -> int:
        ids = sorted(set(status_ids))
        if not ids:
            return 0
        statuses = list(self.session.scalars(select(OrderStatus).where(OrderStatus.id.in_(ids))).all())
        missing = set(ids) - {s.id for s in statuses}
        if missing:
            raise NotFoundError("OrderStatus", sorted(missing)[0])

        if any(s.is_default for s in statuses):
            raise ConflictError("Bulk delete cannot include the default order status", ids=ids)
        used = [s.code for s in statuses if self._in_use(s.code)]
        if used:
            raise ConflictError(f"Order statuses in use: {', '.join(used)}", codes=used)

        for status in statuses:
            self.session.delete(status)
        self.session.flush()
        logger.info(f"[OrderStatusCatalog] bulk deleted {len(statuses)} statuses")
        return len(statuses)

    def seed_default_statuses(self) -> int:
        """기본 상태 upsert. pending_payment 가 기본값."""
        count = 0
        for entry in DEFAULT_STATUSES:
            if entry["is_default"]:
                self._clear_default(exclude_code=entry["code"])
            existing = self.get_by_code(entry["code"])
            if existing is None:
                self.session.add(OrderStatus(is_active=True, **entry))
            else:
                existing.name = entry["name"]
                existing.color = entry["color"]
                existing.is_default = entry["is_default"]
                existing.is_active = True
                existing.display_order = entry["display_order"]
            count += 1
        self.session.flush()
        logger.info(f"[OrderStatusCatalog] seeded {count} order statuses")
        return count

    def _clear_default(self, exclude_id: int | None = None, exclude_code: str | None = None) -> None:
        stmt = update(OrderStatus).where(OrderStatus.is_default.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(OrderStatus.id != exclude_id)
        if exclude_code is not None:
            stmt = stmt.where(OrderStatus.code != exclude_code)
        self.session.execute(stmt.values(is_default=False))

    def _ensure_unique(self, name: str, code: str, exclude_id: int | None = None) -> None:
        stmt = select(OrderStatus).where(or_(OrderStatus.name == name, OrderStatus.code == code))
        if exclude_id is not None:
            stmt = stmt.where(OrderStatus.id != exclude_id)
        clash = self.session.scalars(stmt).first()
        if clash is not None:
            field = "name" if clash.name == name else "code"
            raise ConflictError(f"Order status {field} already exists", field=field, name=name, code=code)

    def _in_use(self, code: str) -> bool:
        order_ref = self.session.scalar(select(Order.id).where(Order.status == code).limit(1))
        if order_ref is not None:
            return True
        history_ref = self.session.scalar(
            select(OrderStatusHistory.id)
            .where(or_(OrderStatusHistory.status == code, OrderStatusHistory.from_status == code))
            .limit(1)
        )
        return history_ref is not None

    @staticmethod
    def _validate_color(color: str) -> None:
        if not color or not _COLOR_RE.match(color):
            raise ValidationError("color must be a hex value like #1A2B3C", field="color", actual_value=color)
