# shop/cart_views.py — session cart endpoints + checkout from the session cart
from __future__ import annotations

from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import uploads
from .cart import SessionCart
from .exceptions import AuthError, NotFoundError, OrderValidationError
from .identity import resolve_actor
from .models import Product
from .serializers import CartCheckoutSerializer
from .services import orders


def _int_param(data, name: str, default=None) -> int:
    raw = data.get(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise OrderValidationError(f"{name} must be an integer.", field=name)


# ---------- Cart endpoints ----------
@api_view(["GET"])
@permission_classes([AllowAny])
def cart_detail(request):
    return Response(SessionCart(request.session).to_dict())


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_add(request):
    data = request.data or {}
    pid = _int_param(data, "product_id")
    qty = _int_param(data, "quantity", 1)
    if qty < 1:
        raise OrderValidationError("quantity must be >= 1.", field="quantity")

    product = Product.objects.active().filter(pk=pid).first()
    if product is None:
        raise NotFoundError("Product not found.")

    cart = SessionCart(request.session)
    cart.add(product, qty)
    return Response(cart.to_dict())


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_update(request):
    """Body: {product_id, quantity}; quantity <= 0 removes the line."""
    data = request.data or {}
    cart = SessionCart(request.session)
    cart.update(_int_param(data, "product_id"), _int_param(data, "quantity", 0))
    return Response(cart.to_dict())


@api_view(["POST"])
@permission_classes([AllowAny])
def cart_clear(request):
    cart = SessionCart(request.session)
    cart.clear()
    return Response(cart.to_dict())


# ======================================================================
# Session cart -> Order
# ======================================================================
@api_view(["POST"])
@permission_classes([AllowAny])
@parser_classes([JSONParser, MultiPartParser, FormParser])
def cart_checkout(request):
    """
    POST /api/cart/checkout/
    Body: {shippingName, shippingPhone, shippingAddress} + optional file "proof".
    Items and total come from the session cart.
    """
    actor = resolve_actor(request)
    if not actor.is_authenticated:
        raise AuthError("Login required.")

    ser = CartCheckoutSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    data = ser.validated_data

    cart = SessionCart(request.session)
    lines = cart.snapshot()
    if not lines:
        raise OrderValidationError("Cart is empty.", field="items")

    orders.validate_checkout(
        lines, cart.total(), data["shippingName"], data["shippingPhone"], data["shippingAddress"]
    )

    proof_ref = ""
    if data.get("proof") is not None:
        proof_ref = uploads.store(data["proof"], uploads.PAYMENT_PROOFS)
    try:
        order = orders.create_order(
            actor,
            lines,
            cart.total(),
            data["shippingName"],
            data["shippingPhone"],
            data["shippingAddress"],
            proof_reference=proof_ref,
            cart=cart,
        )
    except Exception:
        uploads.discard(proof_ref)
        raise
    return Response({"orderId": order.id, "orderNumber": order.order_number}, status=201)
