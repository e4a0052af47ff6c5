# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional

PAYMENT_COD = "cod"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


@dataclass(frozen=True)
class Principal:
    """Authenticated identity supplied by the identity provider."""

    user_id: str
    email: Optional[str]
    role: Optional[str] = None  # "admin" or None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class User:
    external_id: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserSummary:
    """Admin customer listing row."""

    external_id: str
    email: str
    created_at: datetime
    order_count: int


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category: str
    price: Decimal
    stock: int
    description: str
    image_url: str


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderItem:
    order_id: int
    product_id: int
    quantity: int
    price: Decimal  # unit price at time of order
    name: Optional[str] = None  # display join, None once the product is gone
    image_url: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class Order:
    id: int
    user_id: str
    user_email: str
    total_amount: Decimal
    status: OrderStatus
    address: str
    payment_method: str
    created_at: datetime
    items: List[OrderItem] = field(default_factory=list)


@dataclass(frozen=True)
class OrderSummary:
    """Admin listing row."""

    id: int
    user_email: str
    total_amount: Decimal
    status: OrderStatus
    payment_method: str
    address: str
    created_at: datetime
    item_count: int


@dataclass(frozen=True)
class PlacedOrder:
    order_id: int
    email: str
    subtotal: Decimal
    tax_rate: Decimal
    total_amount: Decimal
    status: OrderStatus
    payment_method: str


@dataclass(frozen=True)
class AdminStats:
    total_products: int
    total_orders: int
    total_revenue: Decimal
    pending_orders: int

    @property
    def average_order_value(self) -> Decimal:
        if self.total_orders <= 0:
            return Decimal("0.00")
        return (self.total_revenue / self.total_orders).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
