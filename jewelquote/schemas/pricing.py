from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class PriceRequestIn(BaseModel):
    product_id: int
    product_variant_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1)
    customer_type: Optional[str] = None
    customer_group_id: Optional[int] = None
    discount_codes: List[str] = []
    as_line_total: bool = False


class PriceBreakdownResponse(BaseModel):
    metal: Decimal
    diamond: Decimal
    making: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    currency: str
    quantity: int
    is_line_total: bool = False
    discount_details: Optional[dict] = None
    components: dict = {}
