"""Pydantic request/response schemas for the storefront API.

Checkout, status and stats responses use camelCase keys; product and order
rows keep their column names, as the web client reads them.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from db import models


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class PlaceOrderRequest(ApiModel):
    # item shapes are checked by checkout so the errors read the same everywhere
    items: Any = None
    address: Any = None
    payment_method: Any = Field(default=None, alias="paymentMethod")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "items": [{"id": 5, "quantity": 2}],
                    "address": "12 Market St, Springfield",
                    "paymentMethod": "cod",
                }
            ]
        },
    )


class UpdateStatusRequest(BaseModel):
    status: Any = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class ProductResponse(ApiModel):
    id: int
    name: str
    category: str
    price: float
    stock: int
    description: str
    image_url: str

    @classmethod
    def from_model(cls, product: models.Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            category=product.category,
            price=float(product.price),
            stock=product.stock,
            description=product.description,
            image_url=product.image_url,
        )


class PlaceOrderResponse(ApiModel):
    order_id: int = Field(serialization_alias="orderId")
    email: str
    subtotal: float
    tax_rate: float = Field(serialization_alias="taxRate")
    total_amount: float = Field(serialization_alias="totalAmount")
    status: str
    payment_method: str = Field(serialization_alias="paymentMethod")

    @classmethod
    def from_model(cls, placed: models.PlacedOrder) -> "PlaceOrderResponse":
        return cls(
            order_id=placed.order_id,
            email=placed.email,
            subtotal=float(placed.subtotal),
            tax_rate=float(placed.tax_rate),
            total_amount=float(placed.total_amount),
            status=placed.status.value,
            payment_method=placed.payment_method,
        )


class OrderItemResponse(ApiModel):
    product_id: int
    name: Optional[str]
    quantity: int
    price: float
    image_url: Optional[str]


class OrderResponse(ApiModel):
    id: int
    total_amount: float
    status: str
    payment_method: str
    address: str
    created_at: datetime
    items: List[OrderItemResponse]

    @classmethod
    def from_model(cls, order: models.Order) -> "OrderResponse":
        return cls(
            id=order.id,
            total_amount=float(order.total_amount),
            status=order.status.value,
            payment_method=order.payment_method,
            address=order.address,
            created_at=order.created_at,
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    price=float(item.price),
                    image_url=item.image_url,
                )
                for item in order.items
            ],
        )


class OrderSummaryResponse(ApiModel):
    id: int
    user_email: str
    total_amount: float
    status: str
    payment_method: str
    address: str
    created_at: datetime
    item_count: int

    @classmethod
    def from_model(cls, summary: models.OrderSummary) -> "OrderSummaryResponse":
        return cls(
            id=summary.id,
            user_email=summary.user_email,
            total_amount=float(summary.total_amount),
            status=summary.status.value,
            payment_method=summary.payment_method,
            address=summary.address,
            created_at=summary.created_at,
            item_count=summary.item_count,
        )


class StatusUpdatedResponse(ApiModel):
    message: str = "Order status updated successfully"
    order_id: int = Field(serialization_alias="orderId")
    status: str


class AdminStatsResponse(ApiModel):
    total_products: int = Field(serialization_alias="totalProducts")
    total_orders: int = Field(serialization_alias="totalOrders")
    total_revenue: float = Field(serialization_alias="totalRevenue")
    pending_orders: int = Field(serialization_alias="pendingOrders")
    average_order_value: float = Field(serialization_alias="averageOrderValue")

    @classmethod
    def from_model(cls, stats: models.AdminStats) -> "AdminStatsResponse":
        return cls(
            total_products=stats.total_products,
            total_orders=stats.total_orders,
            total_revenue=float(stats.total_revenue),
            pending_orders=stats.pending_orders,
            average_order_value=float(stats.average_order_value),
        )


class SyncResponse(ApiModel):
    user_id: str = Field(serialization_alias="userId")
    email: str


class UserResponse(ApiModel):
    user_id: str = Field(serialization_alias="userId")
    email: str
    created_at: datetime = Field(serialization_alias="createdAt")
    order_count: int = Field(serialization_alias="orderCount")

    @classmethod
    def from_model(cls, user: models.UserSummary) -> "UserResponse":
        return cls(
            user_id=user.external_id,
            email=user.email,
            created_at=user.created_at,
            order_count=user.order_count,
        )


class UserDeletedResponse(ApiModel):
    message: str = "User and their orders deleted successfully"
    user_id: str = Field(serialization_alias="userId")
    deleted_orders: int = Field(serialization_alias="deletedOrders")
