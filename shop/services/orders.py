# shop/services/orders.py — checkout (order + items + stock) and the order status machine
"""
Order creation runs as one transaction:

  1. validate input (nothing touches the database before this passes)
  2. lock the ordered products (select_for_update, fixed pk order)
  3. insert the order header (order number retried once on collision)
  4. per line: conditional decrement  stock = stock - q  WHERE stock >= q
  5. bulk insert the line items (name and unit price denormalised)

Any failure rolls back header, items and stock together. Stock is only ever changed by
conditional UPDATEs, so two checkouts racing for the last unit cannot both win.
"""
from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Prefetch, QuerySet
from django.utils import timezone

from ..exceptions import (
    AuthError,
    ConflictError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    OrderValidationError,
    PermissionDeniedError,
    PriceMismatchError,
    StorageError,
)
from ..identity import Actor
from ..models import Order, OrderItem, Product

logger = logging.getLogger(__name__)

# first attempt + one retry when the generated number already exists
ORDER_NUMBER_ATTEMPTS = 2
TOTAL_TOLERANCE = Decimal("0.01")

TRANSITIONS = {
    Order.PENDING: {Order.PROCESSING, Order.COMPLETED, Order.CANCELLED},
    Order.PROCESSING: {Order.COMPLETED, Order.CANCELLED},
    Order.COMPLETED: set(),
    Order.CANCELLED: set(),
}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    price: Decimal


LineInput = Union[CartLine, Mapping[str, Any]]


def generate_order_number() -> str:
    """ORD + UTC timestamp + 6 random hex chars, e.g. ORD20261019101500A3F09C."""
    return f"ORD{timezone.now():%Y%m%d%H%M%S}{secrets.token_hex(3).upper()}"


@contextmanager
def _storage_guard(action: str):
    try:
        yield
    except DatabaseError as exc:
        logger.exception("Storage failure while trying to %s", action)
        raise StorageError() from exc


def _require_auth(actor: Actor) -> None:
    if actor is None or not actor.is_authenticated:
        raise AuthError("Login required.")


def _require_admin(actor: Actor) -> None:
    _require_auth(actor)
    if not actor.is_admin:
        raise PermissionDeniedError()


# ---------------------------
# Validation
# ---------------------------
def _to_decimal(value, field: str) -> Decimal:
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise OrderValidationError(f"{field} must be a number.", field=field)
    if not dec.is_finite():
        raise OrderValidationError(f"{field} must be a number.", field=field)
    return dec


def _clean_line(idx: int, raw: LineInput) -> CartLine:
    if isinstance(raw, CartLine):
        pid, qty, price = raw.product_id, raw.quantity, raw.price
    elif isinstance(raw, Mapping):
        pid = raw.get("product_id", raw.get("productId"))
        qty = raw.get("quantity")
        price = raw.get("price")
    else:
        raise OrderValidationError(f"Item {idx} is malformed.", field="items", index=idx)

    if pid in (None, "") or qty in (None, "") or price in (None, ""):
        raise OrderValidationError(
            f"Item {idx} needs productId, quantity and price.", field="items", index=idx
        )
    try:
        pid = int(pid)
        qty = int(qty)
    except (TypeError, ValueError):
        raise OrderValidationError(f"Item {idx} has an invalid product or quantity.", field="items", index=idx)
    if qty < 1:
        raise OrderValidationError(f"Item {idx} quantity must be at least 1.", field="items", index=idx)
    price = _to_decimal(price, f"items[{idx}].price")
    if price < 0:
        raise OrderValidationError(f"Item {idx} price cannot be negative.", field="items", index=idx)
    return CartLine(pid, qty, price)


def _blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not value
    return False


def validate_checkout(lines, total, shipping_name, shipping_phone, shipping_address):
    """Returns (clean lines, total, shipping dict) or raises OrderValidationError."""
    fields = (
        ("items", lines),
        ("total", total),
        ("shippingName", shipping_name),
        ("shippingPhone", shipping_phone),
        ("shippingAddress", shipping_address),
    )
    missing = [name for name, value in fields if _blank(value)]
    if missing:
        raise OrderValidationError(f"Missing required fields: {', '.join(missing)}.", missing=missing)
    if not isinstance(lines, (list, tuple)):
        raise OrderValidationError("items must be a list.", field="items")

    clean = [_clean_line(idx, raw) for idx, raw in enumerate(lines)]
    total = _to_decimal(total, "total")
    expected = sum((ln.price * ln.quantity for ln in clean), Decimal("0"))
    if abs(expected - total) > TOTAL_TOLERANCE:
        raise OrderValidationError(
            f"Total {total} does not match the items ({expected}).",
            field="total",
            expected=str(expected),
        )
    shipping = {
        "shipping_name": str(shipping_name).strip(),
        "shipping_phone": str(shipping_phone).strip(),
        "shipping_address": str(shipping_address).strip(),
    }
    return clean, total, shipping


# ---------------------------
# Create
# ---------------------------
def _insert_header(**fields) -> Order:
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        number = generate_order_number()
        try:
            with transaction.atomic():
                return Order.objects.create(order_number=number, **fields)
        except IntegrityError:
            if not Order.objects.filter(order_number=number).exists():
                raise
            logger.warning("Order number %s already taken (attempt %d)", number, attempt)
    raise ConflictError("Could not allocate a unique order number, try again.")


def _lock_products(lines: Sequence[CartLine]) -> Dict[int, Product]:
    ids = sorted({ln.product_id for ln in lines})
    locked = Product.objects.select_for_update().filter(pk__in=ids, is_active=True).order_by("pk")
    return {p.pk: p for p in locked}


def _reserve_stock(idx: int, line: CartLine, product: Product) -> None:
    updated = (
        Product.objects
        .filter(pk=product.pk, is_active=True, stock__gte=line.quantity)
        .update(stock=F("stock") - line.quantity)
    )
    if not updated:
        available = Product.objects.filter(pk=product.pk).values_list("stock", flat=True).first() or 0
        logger.info(
            "Rejected order line %d: product %s has %s, %s requested",
            idx, product.pk, available, line.quantity,
        )
        raise InsufficientStockError(
            f"Not enough stock for {product.name}.",
            product_id=product.pk,
            requested=line.quantity,
            available=max(int(available), 0),
        )


def create_order(
    actor: Actor,
    lines,
    total,
    shipping_name,
    shipping_phone,
    shipping_address,
    proof_reference: str = "",
    cart=None,
) -> Order:
    _require_auth(actor)
    clean, total, shipping = validate_checkout(
        lines, total, shipping_name, shipping_phone, shipping_address
    )

    with _storage_guard("create an order"):
        with transaction.atomic():
            products = _lock_products(clean)
            for idx, line in enumerate(clean):
                product = products.get(line.product_id)
                if product is None:
                    raise OrderValidationError(
                        f"Product {line.product_id} does not exist or is no longer sold.",
                        field="items",
                        index=idx,
                    )
                if product.price != line.price:
                    raise PriceMismatchError(
                        f"Price of {product.name} is now {product.price}.",
                        product_id=product.pk,
                        current_price=str(product.price),
                        submitted_price=str(line.price),
                    )

            order = _insert_header(
                user_id=actor.user_id,
                total=total,
                status=Order.PENDING,
                payment_proof=proof_reference or "",
                **shipping,
            )

            for idx, line in enumerate(clean):
                _reserve_stock(idx, line, products[line.product_id])

            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product_id=line.product_id,
                    product_name=products[line.product_id].name,
                    price=line.price,
                    quantity=line.quantity,
                )
                for line in clean
            ])

    if cart is not None:
        cart.clear()
    logger.info(
        "Order %s created by user %s: %d items, total %s",
        order.order_number, actor.user_id, len(clean), total,
    )
    return order


# ---------------------------
# Query
# ---------------------------
def _orders_queryset() -> QuerySet:
    return (
        Order.objects
        .select_related("user", "user__profile")
        .prefetch_related(Prefetch("items", queryset=OrderItem.objects.select_related("product")))
    )


def list_orders(actor: Actor, status: Optional[str] = None) -> QuerySet:
    _require_auth(actor)
    qs = _orders_queryset()
    if not actor.is_admin:
        qs = qs.filter(user_id=actor.user_id)
    if status:
        if status not in TRANSITIONS:
            raise OrderValidationError(f"Unknown status {status!r}.", field="status")
        qs = qs.filter(status=status)
    return qs


def get_order(actor: Actor, order_id) -> Order:
    order = list_orders(actor).filter(pk=order_id).first()
    if order is None:
        raise NotFoundError("Order not found.")
    return order


# ---------------------------
# Status / delete
# ---------------------------
def _release_stock(order: Order) -> None:
    for item in order.items.all():
        Product.objects.filter(pk=item.product_id).update(stock=F("stock") + item.quantity)


def _locked_order(order_id) -> Order:
    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None:
        raise NotFoundError("Order not found.")
    return order


def transition_status(actor: Actor, order_id, new_status: str) -> Order:
    _require_admin(actor)
    new_status = (new_status or "").strip().lower()
    if new_status not in TRANSITIONS:
        raise OrderValidationError(
            f"status must be one of: {', '.join(TRANSITIONS)}.", field="status"
        )

    with _storage_guard("change an order status"):
        with transaction.atomic():
            order = _locked_order(order_id)
            previous = order.status
            if new_status not in TRANSITIONS[previous]:
                raise InvalidTransitionError(
                    f"Cannot move an order from {previous} to {new_status}.",
                    current=previous,
                    requested=new_status,
                )
            if new_status == Order.CANCELLED:
                _release_stock(order)
            order.status = new_status
            order.save(update_fields=["status", "updated_at"])

    logger.info("Order %s: %s -> %s (by %s)", order.order_number, previous, new_status, actor.user_id)
    return order


def delete_order(actor: Actor, order_id) -> None:
    _require_admin(actor)
    with _storage_guard("delete an order"):
        with transaction.atomic():
            order = _locked_order(order_id)
            if order.status in Order.OPEN_STATUSES:
                _release_stock(order)
            OrderItem.objects.filter(order_id=order.pk).delete()
            order.delete()
    logger.info("Order %s deleted by %s", order.order_number, actor.user_id)
