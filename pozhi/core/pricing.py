"""
Server-side order pricing.

Prices always come from catalog rows; nothing here trusts an amount sent by a client.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from pozhi.core.errors import InvalidRequest

FREE_SHIPPING_THRESHOLD = Decimal("2000.00")
SHIPPING_COST = Decimal("150.00")
TAX_RATE = Decimal("0.18")  # GST
MIN_ORDER_VALUE = Decimal("100.00")
MAX_ORDER_VALUE = Decimal("500000.00")

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_pricing(subtotal: Decimal) -> PriceBreakdown:
    """
    Shipping is free from FREE_SHIPPING_THRESHOLD upwards; tax applies to subtotal plus shipping.
    """
    subtotal = round_money(subtotal)
    if subtotal < MIN_ORDER_VALUE:
        raise InvalidRequest(f"Minimum order value is {MIN_ORDER_VALUE}")
    if subtotal > MAX_ORDER_VALUE:
        raise InvalidRequest(f"Maximum order value is {MAX_ORDER_VALUE}")

    shipping_cost = Decimal("0.00") if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_COST
    tax_amount = round_money((subtotal + shipping_cost) * TAX_RATE)
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax_amount=tax_amount,
        total_amount=subtotal + shipping_cost + tax_amount,
    )


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount (rupees) to the processor's smallest unit (paisa)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
