"""Line item price arithmetic shared by the cart and checkout"""

from typing import Iterable, Optional


def normalize_options(options: Optional[Iterable]) -> list[dict]:
    """Options as plain {name, price} dicts with float prices, order preserved"""
    normalized = []
    for opt in options or []:
        if hasattr(opt, "model_dump"):
            opt = opt.model_dump()
        if not isinstance(opt, dict):
            continue
        try:
            price = float(opt.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        normalized.append({"name": str(opt.get("name") or ""), "price": price})
    return normalized


def options_total(options: Optional[Iterable]) -> float:
    return sum(opt["price"] for opt in normalize_options(options))


def item_unit_price(base_price, options: Optional[Iterable]) -> float:
    """Base service price plus every selected add-on"""
    return round(float(base_price or 0) + options_total(options), 2)


def unit_amount_cents(base_price, options: Optional[Iterable]) -> int:
    """Unit price in the smallest currency unit, as the payment processor expects"""
    return int(round((float(base_price or 0) + options_total(options)) * 100))


def same_options(a: Optional[Iterable], b: Optional[Iterable]) -> bool:
    return normalize_options(a) == normalize_options(b)


def cart_subtotal(items: Iterable[dict]) -> float:
    return round(sum(float(i.get("price") or 0) * int(i.get("quantity") or 1) for i in items), 2)
