from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured

from conftest import checkout_payload
from shop.backends import POOLED_CONN_MAX_AGE, SQLITE_LOCK_TIMEOUT, database_config, normalize_database_url
from shop.exceptions import StorageError
from shop.storage import Storage, storage


# ---------- backend profiles ----------
def test_sqlite_profile(tmp_path):
    cfg = database_config("sqlite", f"sqlite:///{tmp_path / 'shop.db'}")
    assert cfg["ENGINE"] == "django.db.backends.sqlite3"
    assert cfg["NAME"].endswith("shop.db")
    assert cfg["OPTIONS"]["transaction_mode"] == "IMMEDIATE"
    assert cfg["OPTIONS"]["timeout"] == SQLITE_LOCK_TIMEOUT
    assert cfg["TEST"]["NAME"].endswith("shop_test.db")


def test_sqlite_memory_profile_has_no_test_file():
    cfg = database_config("sqlite", "sqlite://:memory:")
    assert "TEST" not in cfg


def test_postgres_profile_keeps_connections():
    cfg = database_config("postgres", "postgres://shop:pw@db.internal:5432/shop")
    assert cfg["ENGINE"] == "django.db.backends.postgresql"
    assert cfg["HOST"] == "db.internal"
    assert cfg["CONN_MAX_AGE"] == POOLED_CONN_MAX_AGE
    assert cfg["CONN_HEALTH_CHECKS"] is True


def test_serverless_profile_requires_ssl_and_no_pooling():
    cfg = database_config("serverless", "postgresql://u:p@ep-cool-1.neon.tech/shop")
    assert cfg["CONN_MAX_AGE"] == 0
    assert cfg["OPTIONS"]["sslmode"] == "require"

    cfg = database_config("serverless", "postgresql://u:p@ep-cool-1.neon.tech/shop?sslmode=verify-full")
    assert cfg["OPTIONS"]["sslmode"] == "verify-full"


@pytest.mark.parametrize("backend,url", [
    ("mysql", "mysql://u:p@h/db"),
    ("sqlite", ""),
    ("sqlite", "postgresql://u:p@h/db"),
    ("postgres", "sqlite:///db.sqlite3"),
])
def test_bad_backend_config(backend, url):
    with pytest.raises(ImproperlyConfigured):
        database_config(backend, url)


def test_normalize_database_url():
    assert normalize_database_url(" postgres://a/b ") == "postgresql://a/b"
    assert normalize_database_url("sqlite:///x") == "sqlite:///x"


# ---------- adapter ----------
@pytest.mark.django_db
def test_fetch_uses_placeholders(product):
    hostile = "x' OR '1'='1"
    assert storage.fetch_all("SELECT id FROM products WHERE name = %s", [hostile]) == []

    row = storage.fetch_one("SELECT id, name, stock FROM products WHERE id = %s", [product.pk])
    assert row == {"id": product.pk, "name": "Massage Oil", "stock": 10}


@pytest.mark.django_db
def test_execute_reports_rowcount(product):
    result = storage.execute("UPDATE products SET stock = stock - %s WHERE id = %s AND stock >= %s", [3, product.pk, 3])
    assert result.rowcount == 1
    result = storage.execute("UPDATE products SET stock = stock - %s WHERE id = %s AND stock >= %s", [30, product.pk, 30])
    assert result.rowcount == 0
    product.refresh_from_db()
    assert product.stock == 7


@pytest.mark.django_db
def test_atomic_rolls_back(product):
    with pytest.raises(RuntimeError):
        with storage.atomic():
            storage.execute("UPDATE products SET stock = %s WHERE id = %s", [0, product.pk])
            raise RuntimeError("abort")
    product.refresh_from_db()
    assert product.stock == 10


def test_params_must_be_a_collection():
    with pytest.raises(TypeError):
        Storage().fetch_all("SELECT 1", "1")


@pytest.mark.django_db
def test_database_errors_become_storage_errors():
    with pytest.raises(StorageError):
        storage.fetch_all("SELECT * FROM no_such_table", [])


# ---------- admin stats (raw aggregates through the adapter) ----------
@pytest.mark.django_db
def test_admin_stats(admin_client, customer_client, product, cheap_product, settings):
    settings.LOW_STOCK_THRESHOLD = 5
    customer_client.post("/api/orders/", checkout_payload((product, 2)), format="json")
    created = customer_client.post("/api/orders/", checkout_payload((cheap_product, 1)), format="json")
    admin_client.put(f"/api/orders/{created.data['orderId']}/status/", {"status": "cancelled"}, format="json")

    resp = admin_client.get("/api/admin/stats")
    assert resp.status_code == 200
    assert resp.data["orders"] == 2
    assert resp.data["revenue"] == "200.00"
    assert resp.data["avg_ticket"] == "200.00"
    assert resp.data["by_status"] == {"cancelled": 1, "pending": 1}
    assert resp.data["products"] == 2
    assert [p["id"] for p in resp.data["low_stock"]] == [cheap_product.pk]
    assert Decimal(resp.data["revenue"]) == Decimal("200")


@pytest.mark.django_db
def test_admin_stats_forbidden_for_customers(customer_client):
    assert customer_client.get("/api/admin/stats").status_code == 403


@pytest.mark.django_db
def test_health(api_client):
    assert api_client.get("/api/health").json()["status"] == "healthy"
