"""
Order price computation and display-currency conversion.

Prices are stored in USD. The storefront shows them converted to the display
currency (INR by default) and rounded to whole units.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Mapping, Optional

import config


def _round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calc_prices(items: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    """Compute items, shipping, tax and total prices for a list of order items.

    Each item needs ``price`` and ``quantity``. Shipping is free once the
    items total passes the free-shipping threshold.
    """
    items_price = sum(Decimal(str(item["price"])) * int(item["quantity"]) for item in items)
    items_price = float(items_price)
    shipping_price = 0.0 if items_price > config.FREE_SHIPPING_THRESHOLD else config.SHIPPING_PRICE
    tax_price = _round2(items_price * config.TAX_RATE)
    total_price = _round2(items_price + shipping_price + tax_price)
    return {
        "items_price": _round2(items_price),
        "shipping_price": _round2(shipping_price),
        "tax_price": tax_price,
        "total_price": total_price,
    }


def to_display(amount: float, rate: Optional[float] = None) -> int:
    """Convert a USD amount to whole display-currency units, rounding half up."""
    if rate is None:
        rate = config.USD_TO_INR
    converted = Decimal(str(amount)) * Decimal(str(rate))
    return int(converted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def order_display_summary(order: Mapping[str, Any], rate: Optional[float] = None) -> Dict[str, Any]:
    if rate is None:
        rate = config.USD_TO_INR
    items = []
    for item in order.get("order_items", []):
        items.append({
            "product_id": item["product_id"],
            "name": item["name"],
            "image": item.get("image"),
            "quantity": item["quantity"],
            "unit_price": to_display(item["price"], rate),
            # multiply before rounding so the line total is exact
            "total": to_display(Decimal(str(item["price"])) * int(item["quantity"]), rate),
        })
    return {
        "rate": rate,
        "items": items,
        "items_price": to_display(order.get("items_price", 0), rate),
        "shipping_price": to_display(order.get("shipping_price", 0), rate),
        "tax_price": to_display(order.get("tax_price", 0), rate),
        "total_price": to_display(order.get("total_price", 0), rate),
    }
