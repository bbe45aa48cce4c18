"""Integer minor-unit money arithmetic and GST.

Amounts are cents; tax rates are basis points (``1000`` = 10%). Each line's
tax is rounded half-up on its own and the order tax is the sum of line taxes.
"""

from decimal import ROUND_HALF_UP, Decimal

GST_RATE = 1000
CURRENCY = "AUD"

_BASIS_POINTS = Decimal(10000)


def line_subtotal(quantity: int, unit_price: int) -> int:
    return quantity * unit_price


def line_tax(quantity: int, unit_price: int, tax_rate: int) -> int:
    """Tax for one line, rounded half-up to the nearest cent."""
    raw = Decimal(line_subtotal(quantity, unit_price)) * Decimal(tax_rate) / _BASIS_POINTS
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def calculate_totals(lines) -> dict:
    """Sum subtotal, tax and total over ``(quantity, unit_price, tax_rate)`` triples."""
    subtotal = 0
    tax = 0
    for quantity, unit_price, tax_rate in lines:
        subtotal += line_subtotal(quantity, unit_price)
        tax += line_tax(quantity, unit_price, tax_rate)
    return {"subtotal": subtotal, "tax": tax, "total": subtotal + tax}


def format_money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}${cents // 100:,}.{cents % 100:02d}"
