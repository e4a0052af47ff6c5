"""
Order placement: validate a cart, lock the referenced products, price the
order from the locked rows, write the order with its items and take the stock,
all in one transaction.

Two checkouts touching the same products serialize on the database write
lock, so the stock check and the decrement can never interleave.
"""

from __future__ import annotations

from collections import abc
from typing import Dict, Iterable, List, Mapping, Union

from db import models
from db.crud import UPSERT_USER_SQL, utc_now
from db.database import transaction
from utils.errors import (
    InsufficientStock,
    InvalidCartLine,
    MissingAddress,
    UnauthenticatedOrIncompleteIdentity,
    UnknownProduct,
    UnsupportedPaymentMethod,
)
from utils.logger import get_logger
from utils.pure import (
    TAX_RATE,
    compute_totals,
    from_cents,
    merge_cart_lines,
    parse_cart_line,
    storable_id,
    to_cents,
)

_logger = get_logger(__name__)

RawCartLine = Union[models.CartLine, Mapping]


def validate_cart_lines(cart_lines: Iterable[RawCartLine]) -> List[models.CartLine]:
    """Parse and merge submitted lines; raises InvalidCartLine."""
    if cart_lines is None:
        raise InvalidCartLine("Cart is empty")
    if isinstance(cart_lines, (str, bytes, Mapping)) or not isinstance(
        cart_lines, abc.Iterable
    ):
        raise InvalidCartLine("Cart items must be a list")
    lines: List[models.CartLine] = []
    for pos, raw in enumerate(cart_lines, start=1):
        line = parse_cart_line(raw)
        if line is None:
            raise InvalidCartLine(
                f"Invalid cart line {pos}: product id and quantity must be positive integers"
            )
        lines.append(line)
    if not lines:
        raise InvalidCartLine("Cart is empty")
    return merge_cart_lines(lines)


def validate_principal(principal) -> models.Principal:
    if principal is None or not str(principal.user_id or "").strip():
        raise UnauthenticatedOrIncompleteIdentity()
    if not str(principal.email or "").strip():
        raise UnauthenticatedOrIncompleteIdentity(
            "Authenticated identity has no email address."
        )
    return principal


async def _lock_products(conn, product_ids: List[int]) -> Dict[int, tuple]:
    """Read every referenced product in one statement, inside the write lock."""
    product_ids = [pid for pid in product_ids if storable_id(pid)]
    if not product_ids:
        return {}
    cur = await conn.execute(
        f"""
        SELECT id, name, price_cents, stock
        FROM products
        WHERE id IN ({", ".join("?" * len(product_ids))});
        """,
        tuple(product_ids),
    )
    rows = await cur.fetchall()
    await cur.close()
    return {int(row[0]): (row[1], int(row[2]), int(row[3])) for row in rows}


async def place_order(
    principal: models.Principal,
    cart_lines: Iterable[RawCartLine],
    delivery_address: str,
    payment_method: str,
) -> models.PlacedOrder:
    """
    Place an order for the principal. Either everything is written (order,
    items, stock decrements, user registry entry) or nothing is.

    Raises:
        UnsupportedPaymentMethod, InvalidCartLine, MissingAddress,
        UnauthenticatedOrIncompleteIdentity: before touching the database.
        UnknownProduct, InsufficientStock: from inside the transaction,
        after a full rollback.
    """
    if payment_method != models.PAYMENT_COD:
        raise UnsupportedPaymentMethod(payment_method)
    lines = validate_cart_lines(cart_lines)
    address = delivery_address.strip() if isinstance(delivery_address, str) else ""
    if not address:
        raise MissingAddress()
    principal = validate_principal(principal)
    user_id, email = str(principal.user_id).strip(), str(principal.email).strip()

    try:
        async with transaction() as conn:
            now = utc_now()
            await conn.execute(UPSERT_USER_SQL, (user_id, email, now, now))

            locked = await _lock_products(conn, [line.product_id for line in lines])

            priced = []
            for line in lines:
                if line.product_id not in locked:
                    raise UnknownProduct(line.product_id)
                name, price_cents, stock = locked[line.product_id]
                if stock < line.quantity:
                    raise InsufficientStock(line.product_id, name, stock, line.quantity)
                priced.append((line, price_cents))

            subtotal, total = compute_totals(
                (from_cents(price_cents), line.quantity) for line, price_cents in priced
            )

            cur = await conn.execute(
                """
                INSERT INTO orders(user_id, user_email, total_amount_cents, status,
                                   address, payment_method, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    user_id,
                    email,
                    to_cents(total),
                    models.OrderStatus.PENDING.value,
                    address,
                    payment_method,
                    now,
                ),
            )
            order_id = int(cur.lastrowid)
            await cur.close()

            await conn.executemany(
                """
                INSERT INTO order_items(order_id, product_id, quantity, price_cents)
                VALUES (?, ?, ?, ?);
                """,
                [
                    (order_id, line.product_id, line.quantity, price_cents)
                    for line, price_cents in priced
                ],
            )
            await conn.executemany(
                "UPDATE products SET stock = stock - ? WHERE id = ?;",
                [(line.quantity, line.product_id) for line, _ in priced],
            )
    except (UnknownProduct, InsufficientStock) as e:
        _logger.info(f"Checkout by {user_id} rolled back: {e.message}")
        raise

    _logger.info(
        f"Order {order_id} placed by {user_id}: {len(priced)} line(s), total {total}"
    )
    return models.PlacedOrder(
        order_id=order_id,
        email=email,
        subtotal=subtotal,
        tax_rate=TAX_RATE,
        total_amount=total,
        status=models.OrderStatus.PENDING,
        payment_method=payment_method,
    )
