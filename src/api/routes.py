"""FastAPI routes: catalog read path, checkout, own orders, admin and health."""

from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

import db.crud as crud
from api.auth import current_principal, require_admin
from api.schemas import (
    AdminStatsResponse,
    OrderResponse,
    OrderSummaryResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    ProductResponse,
    StatusUpdatedResponse,
    SyncResponse,
    UpdateStatusRequest,
    UserDeletedResponse,
    UserResponse,
)
from db.checkout import place_order
from db.database import ping
from db.models import Principal
from utils.errors import (
    NotFoundError,
    TransientStoreError,
    UnauthenticatedOrIncompleteIdentity,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.get("", response_model=List[ProductResponse])
async def list_products() -> List[ProductResponse]:
    return [ProductResponse.from_model(p) for p in await crud.list_products()]


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int) -> ProductResponse:
    product = await crud.get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return ProductResponse.from_model(product)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
async def create_order(
    body: PlaceOrderRequest, principal: Principal = Depends(current_principal)
) -> PlaceOrderResponse:
    placed = await place_order(
        principal,
        cart_lines=body.items,
        delivery_address=body.address,
        payment_method=body.payment_method,
    )
    return PlaceOrderResponse.from_model(placed)


# ---------------------------------------------------------------------------
# Signed-in customer
# ---------------------------------------------------------------------------
me_router = APIRouter(prefix="/api", tags=["me"])


@me_router.get("/orders/me", response_model=List[OrderResponse])
async def my_orders(principal: Principal = Depends(current_principal)) -> List[OrderResponse]:
    orders = await crud.list_orders_for_user(principal.user_id)
    return [OrderResponse.from_model(o) for o in orders]


@me_router.post("/me/sync", response_model=SyncResponse)
async def sync_me(principal: Principal = Depends(current_principal)) -> SyncResponse:
    if not principal.email:
        raise UnauthenticatedOrIncompleteIdentity(
            "Authenticated identity has no email address."
        )
    await crud.upsert_user(principal.user_id, principal.email)
    return SyncResponse(user_id=principal.user_id, email=principal.email)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
admin_router = APIRouter(
    prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)]
)


@admin_router.get("/orders", response_model=List[OrderSummaryResponse])
async def list_orders() -> List[OrderSummaryResponse]:
    return [OrderSummaryResponse.from_model(o) for o in await crud.list_all_orders()]


@admin_router.patch("/orders/{order_id}/status", response_model=StatusUpdatedResponse)
async def update_order_status(order_id: int, body: UpdateStatusRequest) -> StatusUpdatedResponse:
    status = await crud.update_order_status(order_id, body.status)
    _logger.info(f"Order {order_id} set to {status.value}")
    return StatusUpdatedResponse(order_id=order_id, status=status.value)


@admin_router.get("/users", response_model=List[UserResponse])
async def list_users() -> List[UserResponse]:
    return [UserResponse.from_model(u) for u in await crud.list_users()]


@admin_router.delete("/users/{user_id}", response_model=UserDeletedResponse)
async def delete_user(user_id: str) -> UserDeletedResponse:
    deleted = await crud.delete_user(user_id)
    _logger.info(f"User {user_id} deleted with {deleted} order(s)")
    return UserDeletedResponse(user_id=user_id, deleted_orders=deleted)


@admin_router.get("/stats", response_model=AdminStatsResponse)
async def stats() -> AdminStatsResponse:
    return AdminStatsResponse.from_model(await crud.get_admin_stats())


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
health_router = APIRouter(prefix="/api", tags=["health"])


@health_router.get("/health")
async def health():
    try:
        await ping()
    except TransientStoreError as e:
        return JSONResponse(
            status_code=500,
            content={"status": "Error", "database": "Disconnected", "error": e.message},
        )
    return {"status": "OK", "database": "Connected"}
