from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderItemResponse(BaseModel):
    id: int
    quotation_id: Optional[int] = None
    product_id: int
    product_variant_id: Optional[int] = None
    sku: Optional[str] = None
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    price_breakdown: dict = {}
    configuration: Optional[dict] = None

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: int
    reference: str
    customer_id: int
    quotation_group_id: Optional[str] = None
    status: str
    currency: str
    subtotal_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []

    model_config = ConfigDict(from_attributes=True)


class OrderStatusHistoryResponse(BaseModel):
    id: int
    order_id: int
    from_status: Optional[str] = None
    status: str
    actor_guard: str
    actor_id: Optional[int] = None
    meta: dict = {}
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderTransitionIn(BaseModel):
    status: str = Field(min_length=1)
    meta: Optional[dict] = None


class OrderStatusIn(BaseModel):
    name: str = Field(min_length=1)
    code: Optional[str] = None
    color: str = "#64748b"
    is_default: bool = False
    is_active: bool = True
    display_order: Optional[int] = None


class OrderStatusUpdateIn(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    color: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None


class OrderStatusBulkDeleteIn(BaseModel):
    ids: List[int] = Field(min_length=1)


class OrderStatusResponse(BaseModel):
    id: int
    name: str
    code: str
    color: str
    is_default: bool
    is_active: bool
    display_order: int

    model_config = ConfigDict(from_attributes=True)
