# shop/cart.py — per-session cart (snapshot consumed by the order service)
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from .models import Product
from .services.orders import CartLine

SESSION_KEY = "cart"


class SessionCart:
    """
    Stored in the Django session as {"items": [{product_id, quantity, price}]}.
    price is the unit price the customer saw when adding (string, Decimal-safe for JSON).
    """

    def __init__(self, session):
        self.session = session

    def _raw(self) -> List[Dict[str, Any]]:
        data = self.session.get(SESSION_KEY)
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            return []
        return data["items"]

    def _save(self, items: List[Dict[str, Any]]) -> None:
        self.session[SESSION_KEY] = {"items": items}
        self.session.modified = True

    def lines(self) -> List[Dict[str, Any]]:
        """Drops malformed entries and products that no longer exist or were deactivated."""
        out: List[Dict[str, Any]] = []
        for it in self._raw():
            try:
                pid = int(it.get("product_id"))
                qty = int(it.get("quantity") or 0)
                price = Decimal(str(it.get("price")))
            except (TypeError, ValueError, InvalidOperation):
                continue
            if qty > 0:
                out.append({"product_id": pid, "quantity": qty, "price": price})
        if not out:
            return []
        active = set(Product.objects.active().filter(id__in=[it["product_id"] for it in out])
                     .values_list("id", flat=True))
        return [it for it in out if it["product_id"] in active]

    def add(self, product: Product, quantity: int = 1) -> None:
        items = self.lines()
        for it in items:
            if it["product_id"] == product.id:
                it["quantity"] += quantity
                break
        else:
            items.append({"product_id": product.id, "quantity": quantity, "price": product.price})
        self._store(items)

    def update(self, product_id: int, quantity: int) -> None:
        items = [it for it in self.lines() if it["product_id"] != product_id or quantity > 0]
        for it in items:
            if it["product_id"] == product_id:
                it["quantity"] = quantity
        self._store(items)

    def clear(self) -> None:
        self._save([])

    def _store(self, items: List[Dict[str, Any]]) -> None:
        self._save([
            {"product_id": it["product_id"], "quantity": it["quantity"], "price": str(it["price"])}
            for it in items
        ])

    def total(self) -> Decimal:
        return sum((it["price"] * it["quantity"] for it in self.lines()), Decimal("0.00"))

    def snapshot(self) -> List[CartLine]:
        return [CartLine(it["product_id"], it["quantity"], it["price"]) for it in self.lines()]

    def to_dict(self) -> Dict[str, Any]:
        lines = self.lines()
        products = Product.objects.in_bulk([it["product_id"] for it in lines])
        view_items = []
        for it in lines:
            p = products[it["product_id"]]
            view_items.append({
                "product_id": p.id,
                "product_code": p.product_code,
                "name": p.name,
                "image": p.image,
                "price": str(it["price"]),
                "current_price": str(p.price),
                "quantity": it["quantity"],
                "line_total": str(it["price"] * it["quantity"]),
            })
        total = sum((it["price"] * it["quantity"] for it in lines), Decimal("0.00"))
        return {
            "items": view_items,
            "total_items": sum(it["quantity"] for it in lines),
            "total": str(total),
        }
