"""
Rewards Item Primitive - Cart Line Item
========================================
Engine: Core Primitives

A LineItem is one cart row: a product reference, its unit price,
the quantity held, and the classification used by voucher eligibility.
Used by: Promotion Engine (eligibility), Retail Engine (totals, session).

RULES (NON-NEGOTIABLE):
- Line items are immutable snapshots; quantity changes produce a new item
- Prices in integer minor units (Money), never negative
- Quantity is an int >= 1
- Category and subcategory are references, not embedded catalog logic

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.primitives.money import Money


@dataclass(frozen=True)
class LineItem:
    """
    One cart entry.

    id:             Cart row identifier (opaque).
    product_id:     Catalog product reference used for eligibility matching.
    unit_price:     Money >= 0 per unit.
    quantity:       Units held, >= 1.
    category_id:    Optional catalog category reference.
    subcategory_id: Optional catalog subcategory reference.
    """
    id: str
    product_id: str
    unit_price: Money
    quantity: int
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    name: str = ""

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("id must be a non-empty string.")
        if not self.product_id or not isinstance(self.product_id, str):
            raise ValueError("product_id must be a non-empty string.")
        if not isinstance(self.unit_price, Money):
            raise TypeError("unit_price must be Money.")
        if self.unit_price.is_negative():
            raise ValueError("unit_price cannot be negative.")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError("quantity must be int.")
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1.")

    @property
    def currency(self) -> str:
        return self.unit_price.currency

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)

    def with_quantity(self, quantity: int) -> LineItem:
        return LineItem(
            id=self.id,
            product_id=self.product_id,
            unit_price=self.unit_price,
            quantity=quantity,
            category_id=self.category_id,
            subcategory_id=self.subcategory_id,
            name=self.name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "unit_price": self.unit_price.to_dict(),
            "quantity": self.quantity,
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LineItem:
        return cls(
            id=data["id"],
            product_id=data["product_id"],
            unit_price=Money.from_dict(data["unit_price"]),
            quantity=data["quantity"],
            category_id=data.get("category_id"),
            subcategory_id=data.get("subcategory_id"),
            name=data.get("name", ""),
        )


def cart_subtotal(items, currency: str) -> Money:
    """Σ unit_price × quantity over all line items."""
    total = Money.zero(currency)
    for item in items:
        total = total + item.line_total
    return total
