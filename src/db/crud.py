# src/db/crud.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from db import models
from db.database import connect, transaction
from utils.errors import InvalidStatus, OrderNotFound, UserNotFound
from utils.pure import from_cents, storable_id, to_cents

PRODUCT_COLUMNS = "id, name, category, price_cents, stock, description, image_url"
ORDER_COLUMNS = (
    "id, user_id, user_email, total_amount_cents, status, address, "
    "payment_method, created_at"
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_datetime(val) -> datetime:
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(str(val))


def _row_to_product(row) -> models.Product:
    return models.Product(
        id=int(row[0]),
        name=row[1],
        category=row[2],
        price=from_cents(row[3]),
        stock=int(row[4]),
        description=row[5],
        image_url=row[6],
    )


def _row_to_order(row, items: Optional[List[models.OrderItem]] = None) -> models.Order:
    return models.Order(
        id=int(row[0]),
        user_id=row[1],
        user_email=row[2],
        total_amount=from_cents(row[3]),
        status=models.OrderStatus(row[4]),
        address=row[5],
        payment_method=row[6],
        created_at=_to_datetime(row[7]),
        items=items or [],
    )


def _row_to_item(row) -> models.OrderItem:
    return models.OrderItem(
        order_id=int(row[0]),
        product_id=int(row[1]),
        quantity=int(row[2]),
        price=from_cents(row[3]),
        name=row[4],
        image_url=row[5],
    )


def parse_status(status) -> models.OrderStatus:
    """Return the OrderStatus for a raw value, or raise InvalidStatus."""
    try:
        return models.OrderStatus(status)
    except ValueError:
        valid = ", ".join(s.value for s in models.OrderStatus)
        raise InvalidStatus(f"Invalid status. Must be one of: {valid}")


# ---------------------------
# Users
# ---------------------------


UPSERT_USER_SQL = """
    INSERT INTO users(external_id, email, created_at, updated_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(external_id) DO UPDATE SET
        email = excluded.email,
        updated_at = excluded.updated_at;
"""


async def upsert_user(external_id: str, email: str) -> None:
    """Insert the user or refresh its email. Idempotent."""
    now = utc_now()
    async with connect() as conn:
        await conn.execute(UPSERT_USER_SQL, (external_id, email, now, now))
        await conn.commit()


async def get_user(external_id: str) -> Optional[models.User]:
    """Return the registry entry for an external identity, or None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT external_id, email, created_at, updated_at FROM users WHERE external_id = ?;",
            (external_id,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.User(
        external_id=row[0],
        email=row[1],
        created_at=_to_datetime(row[2]),
        updated_at=_to_datetime(row[3]),
    )


async def list_users() -> List[models.UserSummary]:
    """Registered customers, newest first, with how many orders each holds."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT u.external_id, u.email, u.created_at, COUNT(o.id) AS order_count
            FROM users u
            LEFT JOIN orders o ON o.user_id = u.external_id
            GROUP BY u.external_id
            ORDER BY u.created_at DESC, u.external_id;
            """
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.UserSummary(
            external_id=row[0],
            email=row[1],
            created_at=_to_datetime(row[2]),
            order_count=int(row[3]),
        )
        for row in rows
    ]


async def delete_user(external_id: str) -> int:
    """
    Remove a customer: their order items, their orders and their registry
    entry, in one transaction. Stock is not given back.
    Return the number of orders deleted; raise UserNotFound if the user has
    neither orders nor a registry entry.
    """
    async with transaction() as conn:
        cur = await conn.execute(
            """
            DELETE FROM order_items
            WHERE order_id IN (SELECT id FROM orders WHERE user_id = ?);
            """,
            (external_id,),
        )
        await cur.close()
        cur = await conn.execute("DELETE FROM orders WHERE user_id = ?;", (external_id,))
        orders_deleted = cur.rowcount
        await cur.close()
        cur = await conn.execute("DELETE FROM users WHERE external_id = ?;", (external_id,))
        users_deleted = cur.rowcount
        await cur.close()
        if orders_deleted == 0 and users_deleted == 0:
            raise UserNotFound(external_id)
    return orders_deleted


# ---------------------------
# Products (catalog read path, seed helpers)
# ---------------------------


async def list_products() -> List[models.Product]:
    """All products, newest first."""
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {PRODUCT_COLUMNS} FROM products ORDER BY id DESC;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def get_product(product_id: int) -> Optional[models.Product]:
    """Fetch a product by id."""
    if not storable_id(product_id):
        return None
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = ?;", (product_id,)
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return _row_to_product(row)


async def create_product(
    name: str,
    price: Union[Decimal, int, float, str],
    stock: int = 0,
    category: str = "",
    description: str = "",
    image_url: str = "",
) -> int:
    """Insert a product and return its id."""
    if stock < 0:
        raise ValueError("Stock cannot be negative.")
    price_cents = to_cents(price)
    if price_cents < 0:
        raise ValueError("Price cannot be negative.")
    async with connect() as conn:
        cur = await conn.execute(
            """
            INSERT INTO products(name, category, price_cents, stock, description, image_url)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (name, category, price_cents, stock, description, image_url),
        )
        product_id = cur.lastrowid
        await cur.close()
        await conn.commit()
    return int(product_id)


async def update_product_price_stock(
    product_id: int,
    new_price: Optional[Union[Decimal, int, float, str]],
    new_stock: Optional[int],
) -> bool:
    """
    Update price and/or stock (only provided fields). Return True if a row was updated.
    """
    if new_price is None and new_stock is None:
        return False
    if new_stock is not None and new_stock < 0:
        raise ValueError("Stock cannot be negative.")
    if not storable_id(product_id):
        return False
    sets: List[str] = []
    params: List[int] = []
    if new_price is not None:
        sets.append("price_cents = ?")
        params.append(to_cents(new_price))
    if new_stock is not None:
        sets.append("stock = ?")
        params.append(int(new_stock))
    async with connect() as conn:
        cur = await conn.execute(
            f"UPDATE products SET {', '.join(sets)} WHERE id = ?;",
            (*params, product_id),
        )
        updated = cur.rowcount
        await cur.close()
        await conn.commit()
    return updated > 0


async def delete_product(product_id: int) -> bool:
    """Delete a product. Past order items keep their snapshot."""
    if not storable_id(product_id):
        return False
    async with connect() as conn:
        cur = await conn.execute("DELETE FROM products WHERE id = ?;", (product_id,))
        deleted = cur.rowcount
        await cur.close()
        await conn.commit()
    return deleted > 0


async def product_stock(product_id: int) -> Optional[int]:
    if not storable_id(product_id):
        return None
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT stock FROM products WHERE id = ?;", (product_id,)
        )
        row = await cur.fetchone()
        await cur.close()
        return int(row[0]) if row else None


# ---------------------------
# Order ledger
# ---------------------------


ITEMS_FOR_ORDERS_SQL = """
    SELECT oi.order_id, oi.product_id, oi.quantity, oi.price_cents, p.name, p.image_url
    FROM order_items oi
    LEFT JOIN products p ON p.id = oi.product_id
    WHERE oi.order_id IN ({placeholders})
    ORDER BY oi.order_id, oi.id;
"""


async def _items_for_orders(conn, order_ids: Sequence[int]) -> Dict[int, List[models.OrderItem]]:
    by_order: Dict[int, List[models.OrderItem]] = {oid: [] for oid in order_ids}
    if not order_ids:
        return by_order
    cur = await conn.execute(
        ITEMS_FOR_ORDERS_SQL.format(placeholders=", ".join("?" * len(order_ids))),
        tuple(order_ids),
    )
    rows = await cur.fetchall()
    await cur.close()
    for row in rows:
        item = _row_to_item(row)
        by_order[item.order_id].append(item)
    return by_order


async def list_orders_for_user(user_id: str) -> List[models.Order]:
    """
    The user's orders, newest first, each with its items.
    Item price and quantity come from the snapshot; name/image from the live product.
    """
    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {ORDER_COLUMNS}
            FROM orders
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC;
            """,
            (user_id,),
        )
        rows = await cur.fetchall()
        await cur.close()
        items = await _items_for_orders(conn, [int(row[0]) for row in rows])
    return [_row_to_order(row, items[int(row[0])]) for row in rows]


async def get_order_detail(order_id: int) -> Optional[models.Order]:
    """Return the order with its items, or None."""
    if not storable_id(order_id):
        return None
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?;", (order_id,)
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return None
        items = await _items_for_orders(conn, [order_id])
    return _row_to_order(row, items[order_id])


async def list_all_orders() -> List[models.OrderSummary]:
    """Admin listing: every order, newest first, with its line count."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT o.id, o.user_email, o.total_amount_cents, o.status,
                   o.payment_method, o.address, o.created_at,
                   COUNT(oi.id) AS item_count
            FROM orders o
            LEFT JOIN order_items oi ON oi.order_id = o.id
            GROUP BY o.id
            ORDER BY o.created_at DESC, o.id DESC;
            """
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.OrderSummary(
            id=int(row[0]),
            user_email=row[1],
            total_amount=from_cents(row[2]),
            status=models.OrderStatus(row[3]),
            payment_method=row[4],
            address=row[5],
            created_at=_to_datetime(row[6]),
            item_count=int(row[7]),
        )
        for row in rows
    ]


async def update_order_status(order_id: int, status) -> models.OrderStatus:
    """
    Set an order's status. Any known status may follow any other; only the
    value itself is checked.
    Raises InvalidStatus for unknown values and OrderNotFound for unknown ids.
    """
    new_status = parse_status(status)
    if not storable_id(order_id):
        raise OrderNotFound(order_id)
    async with connect() as conn:
        cur = await conn.execute(
            "UPDATE orders SET status = ? WHERE id = ?;",
            (new_status.value, order_id),
        )
        updated = cur.rowcount
        await cur.close()
        await conn.commit()
    if updated == 0:
        raise OrderNotFound(order_id)
    return new_status


# ---------------------------
# Admin statistics
# ---------------------------


async def get_admin_stats() -> models.AdminStats:
    """Counts and revenue over the whole ledger. Revenue includes every status."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM products) AS total_products,
                (SELECT COUNT(*) FROM orders) AS total_orders,
                (SELECT COALESCE(SUM(total_amount_cents), 0) FROM orders) AS revenue_cents,
                (SELECT COUNT(*) FROM orders WHERE status = 'pending') AS pending_orders;
            """
        )
        row = await cur.fetchone()
        await cur.close()
    return models.AdminStats(
        total_products=int(row[0] or 0),
        total_orders=int(row[1] or 0),
        total_revenue=from_cents(row[2]),
        pending_orders=int(row[3] or 0),
    )
