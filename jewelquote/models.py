from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# 카탈로그 / 설정 (외부 관리 화면이 소유, 이 엔진은 읽기만 함)
# ---------------------------------------------------------------------------


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    customer_type: Mapped[str] = mapped_column(Text, nullable=False, default="retailer") # retailer, wholesaler
    customer_group_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class TaxGroup(Base):
    __tablename__ = "tax_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    taxes: Mapped[list["Tax"]] = relationship(back_populates="tax_group")


class Tax(Base):
    __tablename__ = "taxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tax_group_id: Mapped[int] = mapped_column(Integer, ForeignKey("tax_groups.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False) # percent, 3 == 3%
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    tax_group: Mapped[TaxGroup] = relationship(back_populates="taxes")


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    brand_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # 세공비 정책: fixed(정액), percentage(소재비 대비 %), 또는 둘 다 합산
    making_charge_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    making_charge_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 3), nullable=True)
    making_charge_types: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)

    tax_group_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("tax_groups.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tax_group: Mapped[TaxGroup | None] = relationship()
    variants: Mapped[list["ProductVariant"]] = relationship(back_populates="product", order_by="ProductVariant.id")
    diamonds: Mapped[list["ProductDiamond"]] = relationship(back_populates="product", order_by="ProductDiamond.id")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    sku: Mapped[str | None] = mapped_column(Text, nullable=True)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    # NULL 이면 재고 미관리 (수량 제한 없음)
    inventory_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    product: Mapped[Product] = relationship(back_populates="variants")
    metals: Mapped[list["VariantMetal"]] = relationship(back_populates="variant", order_by="VariantMetal.id")


class VariantMetal(Base):
    __tablename__ = "variant_metals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    variant_id: Mapped[int] = mapped_column(Integer, ForeignKey("product_variants.id"), nullable=False)
    metal: Mapped[str] = mapped_column(Text, nullable=False) # gold, silver, platinum
    purity: Mapped[str] = mapped_column(Text, nullable=False) # 22K, 18K, 925 ...
    tone: Mapped[str | None] = mapped_column(Text, nullable=True) # yellow, rose, white
    weight_grams: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=0)

    variant: Mapped[ProductVariant] = relationship(back_populates="metals")


class ProductDiamond(Base):
    __tablename__ = "product_diamonds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    # NULL 이면 모든 variant 에 공통 적용
    variant_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("product_variants.id"), nullable=True)
    diamond_type: Mapped[str] = mapped_column(Text, nullable=False) # natural, lab_grown
    shape: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str] = mapped_column(Text, nullable=False)
    clarity: Mapped[str] = mapped_column(Text, nullable=False)
    carat: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False, default=0) # 라인 전체 캐럿
    stone_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    product: Mapped[Product] = relationship(back_populates="diamonds")


class MetalRate(Base):
    __tablename__ = "metal_rates"
    __table_args__ = (
        Index("ix_metal_rates_lookup", "metal", "purity", "currency", "effective_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    metal: Mapped[str] = mapped_column(Text, nullable=False)
    purity: Mapped[str] = mapped_column(Text, nullable=False)
    tone: Mapped[str | None] = mapped_column(Text, nullable=True) # NULL == 모든 톤
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="INR")
    price_per_gram: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    effective_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DiamondRate(Base):
    __tablename__ = "diamond_rates"
    __table_args__ = (
        Index("ix_diamond_rates_lookup", "diamond_type", "shape", "color", "clarity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    diamond_type: Mapped[str] = mapped_column(Text, nullable=False)
    shape: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str] = mapped_column(Text, nullable=False)
    clarity: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="INR")
    price_per_carat: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    effective_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MakingChargeDiscount(Base):
    __tablename__ = "making_charge_discounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    discount_type: Mapped[str] = mapped_column(Text, nullable=False, default="percentage") # percentage, fixed
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    brand_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    customer_types: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    customer_group_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_cart_total: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    is_auto: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# 견적 (Quotation)
# ---------------------------------------------------------------------------


class Quotation(Base):
    __tablename__ = "quotations"
    __table_args__ = (
        Index("ix_quotations_group", "quotation_group_id"),
        Index("ix_quotations_customer_status", "customer_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quotation_group_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("customers.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False)
    product_variant_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("product_variants.id"), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 관리자가 가격을 확정한 시점의 단가 스냅샷
    price_breakdown: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # 최신 이력 행의 캐시
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    order_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("orders.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product: Mapped[Product] = relationship()
    variant: Mapped[ProductVariant | None] = relationship()
    customer: Mapped[Customer] = relationship()
    messages: Mapped[list["QuotationMessage"]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuotationMessage.id",
    )
    history: Mapped[list["QuotationStatusHistory"]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuotationStatusHistory.id",
    )


class QuotationMessage(Base):
    __tablename__ = "quotation_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False)
    quotation_group_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    sender: Mapped[str] = mapped_column(Text, nullable=False) # customer, admin, system
    author_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    quotation: Mapped[Quotation] = relationship(back_populates="messages")


class QuotationStatusHistory(Base):
    __tablename__ = "quotation_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quotation_id: Mapped[int] = mapped_column(Integer, ForeignKey("quotations.id", ondelete="CASCADE"), nullable=False)
    event: Mapped[str] = mapped_column(Text, nullable=False)
    from_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    actor_guard: Mapped[str] = mapped_column(Text, nullable=False) # admin, customer, system
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    quotation: Mapped[Quotation] = relationship(back_populates="history")


# ---------------------------------------------------------------------------
# 주문 (Order)
# ---------------------------------------------------------------------------


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    reference: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("customers.id"), nullable=False)
    quotation_group_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending_payment")
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="INR")

    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    price_breakdown: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items: Mapped[list["OrderItem"]] = relationship(back_populates="order", order_by="OrderItem.id")
    history: Mapped[list["OrderStatusHistory"]] = relationship(back_populates="order", order_by="OrderStatusHistory.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False)
    quotation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_variant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    sku: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    # 견적 승인 시점의 단가 스냅샷을 그대로 복사 (재계산 금지)
    price_breakdown: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    configuration: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    order: Mapped[Order] = relationship(back_populates="items")


class OrderStatus(Base):
    __tablename__ = "order_statuses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    color: Mapped[str] = mapped_column(Text, nullable=False, default="#64748b")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"
    __table_args__ = (
        UniqueConstraint("order_id", "id", name="uq_order_status_history_order_row"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(Integer, ForeignKey("orders.id"), nullable=False)
    from_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    actor_guard: Mapped[str] = mapped_column(Text, nullable=False) # admin, customer, system
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meta: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    order: Mapped[Order] = relationship(back_populates="history")
