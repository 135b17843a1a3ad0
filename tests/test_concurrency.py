import threading
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import connection, connections

from shop.exceptions import InsufficientStockError
from shop.identity import Actor
from shop.models import Order, Product
from shop.services import orders

pytestmark = [
    pytest.mark.django_db(transaction=True),
    pytest.mark.skipif(
        connection.vendor == "sqlite" and not connection.settings_dict.get("TEST", {}).get("NAME"),
        reason="threads cannot share an in-memory SQLite test database",
    ),
]

ROUNDS = 5


def _race(actors, product):
    items = [{"productId": product.pk, "quantity": 1, "price": "50.00"}]
    barrier = threading.Barrier(len(actors))
    outcomes = []

    def checkout(actor):
        try:
            barrier.wait()
            orders.create_order(actor, items, "50.00", "Racer", "1", "Rua")
            outcomes.append("ok")
        except InsufficientStockError:
            outcomes.append("sold_out")
        except Exception as exc:
            outcomes.append(type(exc).__name__)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=checkout, args=(a,)) for a in actors]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return sorted(outcomes)


def test_two_checkouts_race_for_the_last_unit():
    User = get_user_model()
    actors = [
        Actor.for_user(User.objects.create_user(f"racer{i}@example.com", f"racer{i}@example.com", "pw123456"))
        for i in range(2)
    ]

    for n in range(ROUNDS):
        product = Product.objects.create(name=f"Last One {n}", price=Decimal("50.00"), stock=1)

        assert _race(actors, product) == ["ok", "sold_out"]
        assert Product.objects.get(pk=product.pk).stock == 0
        assert Order.objects.filter(items__product=product).count() == 1
