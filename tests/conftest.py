from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from shop.identity import Actor
from shop.models import Category, Product


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    return tmp_path / "media"


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def customer(db):
    return get_user_model().objects.create_user("ana@example.com", "ana@example.com", "secret123")


@pytest.fixture
def other_customer(db):
    return get_user_model().objects.create_user("bia@example.com", "bia@example.com", "secret123")


@pytest.fixture
def admin_user(db):
    return get_user_model().objects.create_user(
        "admin@example.com", "admin@example.com", "secret123", is_staff=True
    )


@pytest.fixture
def customer_actor(customer):
    return Actor.for_user(customer)


@pytest.fixture
def admin_actor(admin_user):
    return Actor.for_user(admin_user)


@pytest.fixture
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer)
    return client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def category(db):
    return Category.objects.create(name="Oils", slug="oils")


@pytest.fixture
def product(category):
    return Product.objects.create(
        name="Massage Oil", price=Decimal("100.00"), stock=10, category=category, product_code="OIL-1"
    )


@pytest.fixture
def cheap_product(category):
    return Product.objects.create(name="Candle", price=Decimal("15.50"), stock=3, category=category)


def checkout_payload(*lines, total=None, **overrides):
    """lines: (product, quantity) pairs priced at the product's current price."""
    items = [{"productId": p.pk, "quantity": q, "price": str(p.price)} for p, q in lines]
    if total is None:
        total = sum((p.price * q for p, q in lines), Decimal("0"))
    data = {
        "items": items,
        "total": str(total),
        "shippingName": "Ana Souza",
        "shippingPhone": "+55 11 99999-0000",
        "shippingAddress": "Rua A, 1",
    }
    data.update(overrides)
    return data
