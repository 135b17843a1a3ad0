# shop/backends.py — storage backend profiles -> Django DATABASES entry
"""
Three interchangeable relational backends share one schema:

  sqlite      embedded file-backed database (dev, small installs)
  postgres    long-lived Postgres server, persistent (pooled) connections
  serverless  serverless Postgres (Neon & co): no persistent connections, SSL required

Kept free of DRF/app imports because settings.py imports it.
"""
import os
from typing import Any, Dict

import dj_database_url
from django.core.exceptions import ImproperlyConfigured

BACKENDS = ("sqlite", "postgres", "serverless")

POOLED_CONN_MAX_AGE = 600

# seconds a writer waits for the database lock before "database is locked"
SQLITE_LOCK_TIMEOUT = 20


def normalize_database_url(url: str) -> str:
    """Accepts postgres:// as well as postgresql://."""
    url = (url or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def _require_ssl(url: str) -> str:
    if "sslmode=" in url:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}sslmode=require"


def _sqlite_config(url: str) -> Dict[str, Any]:
    """
    select_for_update is a no-op on SQLite: BEGIN IMMEDIATE takes the write lock when the
    transaction starts, so concurrent checkouts queue on it and the later one sees the
    decremented stock.
    """
    cfg = dj_database_url.parse(url)
    cfg["OPTIONS"] = {
        **cfg.get("OPTIONS", {}),
        "transaction_mode": "IMMEDIATE",
        "timeout": SQLITE_LOCK_TIMEOUT,
    }
    name = str(cfg.get("NAME") or "")
    if name and name != ":memory:":
        # file-backed test database, so threads in tests share it
        root, ext = os.path.splitext(name)
        cfg["TEST"] = {"NAME": f"{root}_test{ext or '.sqlite3'}"}
    return cfg


def database_config(backend: str = "sqlite", url: str = "") -> Dict[str, Any]:
    backend = (backend or "sqlite").strip().lower()
    if backend not in BACKENDS:
        raise ImproperlyConfigured(
            f"STORAGE_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}"
        )
    if not url:
        raise ImproperlyConfigured("DATABASE_URL is required")

    url = normalize_database_url(url)

    if backend == "sqlite":
        if not url.startswith("sqlite:"):
            raise ImproperlyConfigured("sqlite backend needs a sqlite:/// DATABASE_URL")
        return _sqlite_config(url)

    if not url.startswith("postgresql://"):
        raise ImproperlyConfigured(f"{backend} backend needs a postgresql:// DATABASE_URL")

    if backend == "postgres":
        return dj_database_url.parse(
            url,
            conn_max_age=POOLED_CONN_MAX_AGE,
            conn_health_checks=True,
        )

    # serverless: every request opens and closes its own connection
    return dj_database_url.parse(_require_ssl(url), conn_max_age=0)
