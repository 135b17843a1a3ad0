from decimal import Decimal

import pytest
from django.contrib.sessions.backends.db import SessionStore

from shop.cart import SESSION_KEY, SessionCart
from shop.models import Order, Product

pytestmark = pytest.mark.django_db


def test_session_cart_add_merges_lines(product):
    session = SessionStore()
    cart = SessionCart(session)
    cart.add(product, 1)
    cart.add(product, 2)

    assert session[SESSION_KEY] == {"items": [{"product_id": product.pk, "quantity": 3, "price": "100.00"}]}
    assert cart.total() == Decimal("300.00")


def test_session_cart_drops_inactive_and_malformed(product, cheap_product):
    session = SessionStore()
    session[SESSION_KEY] = {"items": [
        {"product_id": product.pk, "quantity": 1, "price": "100.00"},
        {"product_id": cheap_product.pk, "quantity": 2, "price": "15.50"},
        {"product_id": "x", "quantity": 1, "price": "1"},
        {"product_id": product.pk, "quantity": 1, "price": "not-a-number"},
    ]}
    Product.objects.filter(pk=cheap_product.pk).update(is_active=False)

    lines = SessionCart(session).snapshot()
    assert [(ln.product_id, ln.quantity) for ln in lines] == [(product.pk, 1)]


def test_session_cart_update_and_remove(product, cheap_product):
    session = SessionStore()
    cart = SessionCart(session)
    cart.add(product, 1)
    cart.add(cheap_product, 1)

    cart.update(product.pk, 4)
    assert {ln.product_id: ln.quantity for ln in cart.snapshot()} == {product.pk: 4, cheap_product.pk: 1}

    cart.update(cheap_product.pk, 0)
    assert [ln.product_id for ln in cart.snapshot()] == [product.pk]


def test_cart_endpoints(api_client, product):
    resp = api_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": 2}, format="json")
    assert resp.status_code == 200
    assert resp.data["total_items"] == 2
    assert resp.data["total"] == "200.00"

    resp = api_client.post("/api/cart/update/", {"product_id": product.pk, "quantity": 1}, format="json")
    assert resp.data["items"][0]["quantity"] == 1

    resp = api_client.get("/api/cart/")
    assert resp.data["items"][0]["name"] == "Massage Oil"

    resp = api_client.post("/api/cart/clear/")
    assert resp.data == {"items": [], "total_items": 0, "total": "0.00"}


def test_cart_add_rejects_unknown_product(api_client):
    resp = api_client.post("/api/cart/add/", {"product_id": 999, "quantity": 1}, format="json")
    assert resp.status_code == 404


def test_cart_add_rejects_bad_quantity(api_client, product):
    resp = api_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": 0}, format="json")
    assert resp.status_code == 400
    resp = api_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": "many"}, format="json")
    assert resp.status_code == 400


def test_cart_checkout_creates_order_and_empties_cart(customer_client, product):
    customer_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": 3}, format="json")

    resp = customer_client.post("/api/cart/checkout/", {
        "shippingName": "Ana Souza",
        "shippingPhone": "11 99999-0000",
        "shippingAddress": "Rua A, 1",
    }, format="json")

    assert resp.status_code == 201, resp.data
    order = Order.objects.get(pk=resp.data["orderId"])
    assert order.total == Decimal("300.00")
    assert Product.objects.get(pk=product.pk).stock == 7
    assert customer_client.get("/api/cart/").data["total_items"] == 0


def test_cart_checkout_keeps_cart_on_failure(customer_client, product):
    customer_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": 3}, format="json")
    Product.objects.filter(pk=product.pk).update(stock=1)

    resp = customer_client.post("/api/cart/checkout/", {
        "shippingName": "Ana", "shippingPhone": "1", "shippingAddress": "Rua",
    }, format="json")

    assert resp.status_code == 409
    assert customer_client.get("/api/cart/").data["total_items"] == 3


def test_cart_checkout_empty_cart(customer_client):
    resp = customer_client.post("/api/cart/checkout/", {
        "shippingName": "Ana", "shippingPhone": "1", "shippingAddress": "Rua",
    }, format="json")
    assert resp.status_code == 400
    assert resp.data["field"] == "items"


def test_cart_checkout_requires_login(api_client, product):
    api_client.post("/api/cart/add/", {"product_id": product.pk, "quantity": 1}, format="json")
    resp = api_client.post("/api/cart/checkout/", {
        "shippingName": "Ana", "shippingPhone": "1", "shippingAddress": "Rua",
    }, format="json")
    assert resp.status_code == 401
    assert Order.objects.count() == 0
