from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from db.models import CartLine, Product


@dataclass
class CartEntry:
    product_id: int
    name: str
    price: Decimal  # display price, never trusted by checkout
    stock: Optional[int]  # last known stock, used to cap quantities
    quantity: int


@dataclass
class CartState:
    """
    Client-side staging of a prospective order.

    Optimistic only: quantities are capped by the last known stock, but the
    server re-validates every line at checkout. Pass it explicitly to
    whatever submits the order.

    Fields:
      - entries: product id -> CartEntry, in insertion order
    """

    entries: Dict[int, CartEntry] = field(default_factory=dict)

    def add(self, product: Product, quantity: int = 1) -> None:
        """Add quantity of product; silently stops at the known stock."""
        if quantity <= 0:
            return
        entry = self.entries.get(product.id)
        if entry is None:
            if product.stock is not None and product.stock <= 0:
                return
            entry = CartEntry(
                product_id=product.id,
                name=product.name,
                price=Decimal(product.price),
                stock=product.stock,
                quantity=0,
            )
            self.entries[product.id] = entry
        else:
            entry.price = Decimal(product.price)
            entry.stock = product.stock
        entry.quantity = self._capped(entry, entry.quantity + quantity)

    def update_quantity(self, product_id: int, quantity: int) -> None:
        """Set the quantity; 0 or less removes the product."""
        entry = self.entries.get(product_id)
        if entry is None:
            return
        if quantity <= 0:
            self.remove(product_id)
            return
        entry.quantity = self._capped(entry, quantity)

    def remove(self, product_id: int) -> None:
        self.entries.pop(product_id, None)

    def clear(self) -> None:
        self.entries.clear()

    @staticmethod
    def _capped(entry: CartEntry, quantity: int) -> int:
        if entry.stock is None:
            return quantity
        return min(quantity, entry.stock)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def total_items(self) -> int:
        return sum(e.quantity for e in self.entries.values())

    @property
    def total_price(self) -> Decimal:
        return sum(
            (e.price * e.quantity for e in self.entries.values()), Decimal("0.00")
        )

    def lines(self) -> List[CartLine]:
        """The cart as submitted to checkout: ids and quantities only."""
        return [
            CartLine(product_id=e.product_id, quantity=e.quantity)
            for e in self.entries.values()
            if e.quantity > 0
        ]

    def to_dict(self) -> dict:
        return {
            "items": [
                {
                    "id": e.product_id,
                    "name": e.name,
                    "price": str(e.price),
                    "stock": e.stock,
                    "quantity": e.quantity,
                }
                for e in self.entries.values()
            ]
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartState":
        cart = cls()
        for item in data.get("items", []):
            entry = CartEntry(
                product_id=int(item["id"]),
                name=str(item.get("name", "")),
                price=Decimal(str(item.get("price", "0"))),
                stock=item.get("stock"),
                quantity=int(item.get("quantity", 0)),
            )
            if entry.quantity > 0:
                cart.entries[entry.product_id] = entry
        return cart


class JsonCartStore:
    """Keeps one cart per scope (e.g. user id) in a JSON file."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path) or os.path.getsize(self.path) == 0:
            return {}
        with open(self.path, "r") as f:
            return json.load(f)

    def load(self, scope: str) -> CartState:
        data = self._read_all().get(scope)
        return CartState.from_dict(data) if data else CartState()

    def save(self, scope: str, cart: CartState) -> None:
        data = self._read_all()
        if cart.is_empty:
            data.pop(scope, None)
        else:
            data[scope] = cart.to_dict()
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)
