from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuotationCreateIn(BaseModel):
    product_id: int
    product_variant_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None


class CartLineIn(BaseModel):
    product_id: int
    product_variant_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None


class CartQuotationIn(BaseModel):
    items: List[CartLineIn] = Field(min_length=1)


class MessageIn(BaseModel):
    message: Optional[str] = None


class MessageCreateIn(BaseModel):
    body: str = Field(min_length=1)


class RequestConfirmationIn(BaseModel):
    quantity: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None
    message: Optional[str] = None


class ApproveIn(BaseModel):
    admin_notes: Optional[str] = None


class AdminNotesIn(BaseModel):
    admin_notes: Optional[str] = None


class QuotationResponse(BaseModel):
    id: int
    quotation_group_id: Optional[str] = None
    customer_id: int
    product_id: int
    product_variant_id: Optional[int] = None
    quantity: int
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    price_breakdown: Optional[dict] = None
    status: str
    order_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QuotationMessageResponse(BaseModel):
    id: int
    quotation_id: int
    quotation_group_id: Optional[str] = None
    sender: str
    author_id: Optional[int] = None
    body: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QuotationHistoryResponse(BaseModel):
    id: int
    quotation_id: int
    event: str
    from_status: Optional[str] = None
    status: str
    actor_guard: str
    actor_id: Optional[int] = None
    meta: dict = {}
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApprovalResponse(BaseModel):
    order_id: int
    order_reference: str
    quotation_ids: List[int]
