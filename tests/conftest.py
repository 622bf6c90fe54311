"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import JSON, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jewelquote.models import (
    Base,
    Customer,
    MetalRate,
    Product,
    ProductVariant,
    Tax,
    TaxGroup,
    VariantMetal,
)
from jewelquote.services.authorization import Actor
from jewelquote.services.events import NotificationBus
from jewelquote.services.order.status_catalog import OrderStatusCatalog


# 테스트용 메모리 SQLite 엔진 (모든 세션이 같은 커넥션을 공유)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False  # 테스트 로그 줄이기
)


# pysqlite 의 트랜잭션 처리를 끄고 직접 BEGIN 을 내보내야 SAVEPOINT 가 정상 동작
@event.listens_for(test_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = sessionmaker(
    bind=test_engine,
    autoflush=False,
    expire_on_commit=False,
)


def _patch_jsonb_to_json(base):
    """
    SQLite에서 JSONB를 JSON으로 변경하여 컴파일 오류 방지.
    테스트용으로만 사용.
    """
    from sqlalchemy.dialects.postgresql import JSONB

    for table in base.metadata.sorted_tables:
        for column in table.columns:
            if isinstance(column.type, JSONB):
                # JSONB → JSON으로 변경 (SQLite 호환)
                column.type = JSON()


@pytest.fixture(scope="function")
def test_session() -> Session:
    """
    테스트용 데이터베이스 세션 fixture.
    각 테스트마다 새로운 메모리 DB 생성.
    """
    _patch_jsonb_to_json(Base)
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
        session.commit()  # 테스트 성공 시 commit
    except Exception:
        session.rollback()  # 실패 시 rollback
        raise
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db_session(test_session: Session):
    """
    test_session alias.
    """
    yield test_session


@pytest.fixture
def session_factory():
    """별도 트랜잭션이 필요한 테스트용 (같은 메모리 DB 공유)"""
    return TestSessionLocal


@pytest.fixture
def bus() -> NotificationBus:
    """테스트마다 독립적인 이벤트 버스"""
    return NotificationBus()


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id=900, role="admin")


@pytest.fixture
def order_statuses(test_session: Session):
    OrderStatusCatalog(test_session).seed_default_statuses()
    test_session.flush()
    return test_session


@pytest.fixture
def catalog(test_session: Session) -> SimpleNamespace:
    """
    기본 카탈로그:
    - 22K 옐로골드 10g 반지 (재고 10개), 골드 시세 6500/g
    - 세공비 정액 500, 기본 세금 그룹 GST 3%
    - 소매 고객 2명
    """
    gst = TaxGroup(name="GST", is_default=True, is_active=True)
    test_session.add(gst)
    test_session.flush()
    test_session.add(Tax(tax_group_id=gst.id, name="GST 3%", rate=Decimal("3"), is_active=True))

    owner = Customer(name="Aarav Jewellers", email="aarav@example.com", customer_type="retailer")
    other = Customer(name="Meera Gold House", email="meera@example.com", customer_type="retailer")
    test_session.add_all([owner, other])

    ring = Product(
        sku="RING-22K-001",
        name="Classic 22K Band",
        brand_id=1,
        category_id=10,
        is_active=True,
        making_charge_amount=Decimal("500"),
        making_charge_types=["fixed"],
    )
    test_session.add(ring)
    test_session.flush()

    variant = ProductVariant(
        product_id=ring.id,
        sku="RING-22K-001-Y",
        label="Yellow / size 12",
        is_default=True,
        inventory_quantity=10,
    )
    test_session.add(variant)
    test_session.flush()
    test_session.add(
        VariantMetal(variant_id=variant.id, metal="Gold", purity="22K", tone="yellow", weight_grams=Decimal("10"))
    )
    test_session.add(
        MetalRate(
            metal="gold",
            purity="22K",
            tone=None,
            currency="INR",
            price_per_gram=Decimal("6500"),
            effective_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    )
    test_session.flush()

    return SimpleNamespace(
        session=test_session,
        tax_group=gst,
        owner=owner,
        other=other,
        product=ring,
        variant=variant,
        owner_actor=Actor(actor_id=owner.id, role="customer"),
        other_actor=Actor(actor_id=other.id, role="customer"),
    )


# 테스트 마커 정의
def pytest_configure(config):
    """Pytest 마커 등록."""
    config.addinivalue_line("markers", "unit: 단위 테스트 (DB 불필요)")
    config.addinivalue_line("markers", "integration: 통합 테스트 (SQLite 메모리 DB)")
