"""
Order and invoice pricing and lifecycle rules
"""

import secrets
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

# Allowed order status changes made by the seller
ORDER_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}

INVOICE_TRANSITIONS = {
    "draft": {"sent", "cancelled"},
    "sent": {"paid", "overdue", "cancelled"},
    "overdue": {"paid", "cancelled"},
    "paid": set(),
    "cancelled": set(),
}

CENT = Decimal("0.01")


def can_transition(current: str, new: str, transitions: dict = ORDER_TRANSITIONS) -> bool:
    return new in transitions.get(current, set())


def line_subtotal(unit_price: Decimal, quantity: Decimal) -> Decimal:
    return (Decimal(unit_price) * Decimal(quantity)).quantize(CENT, rounding=ROUND_HALF_UP)


def order_total(lines: Iterable[Tuple[Decimal, Decimal]]) -> Decimal:
    """Sum of line subtotals for (unit_price, quantity) pairs"""
    return sum((line_subtotal(price, qty) for price, qty in lines), Decimal("0.00"))


def generate_order_number() -> str:
    """ORD-<milliseconds>-<random suffix>"""
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"
