# orderdesk/models.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List

class OrderLineOut(BaseModel):
    id: int
    product_id: int
    qty: int
    unit_price_cents: int

class OrderSummaryOut(BaseModel):
    id: int
    user_id: int
    status: str = Field(pattern="^(Created|Paid)$")
    ts: datetime

class OrderOut(OrderSummaryOut):
    products: List[OrderLineOut] = []

class CheckoutIn(BaseModel):
    paymentId: int
