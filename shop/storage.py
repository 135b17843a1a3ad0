# shop/storage.py — parameterized-query adapter over whichever backend DATABASES points at
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from django.db import DEFAULT_DB_ALIAS, DatabaseError, connections, transaction

from .exceptions import StorageError

logger = logging.getLogger(__name__)

Params = Union[Sequence[Any], Mapping[str, Any]]


@dataclass(frozen=True)
class ExecResult:
    rowcount: int
    lastrowid: Optional[int] = None


class Storage:
    """
    Thin wrapper on a Django connection alias. Same API for sqlite, pooled Postgres and
    serverless Postgres; the backend profile lives in shop.backends.

    Values always travel as params (placeholder "%s"), SQL text is fixed by the caller.
    """

    def __init__(self, alias: str = DEFAULT_DB_ALIAS):
        self.alias = alias

    @property
    def vendor(self) -> str:
        return connections[self.alias].vendor

    @staticmethod
    def _check_params(params: Params) -> Params:
        if isinstance(params, (str, bytes)) or not isinstance(params, (list, tuple, Mapping)):
            raise TypeError("params must be a list, tuple or mapping of values")
        return params

    @contextmanager
    def _cursor(self):
        try:
            with connections[self.alias].cursor() as cursor:
                yield cursor
        except DatabaseError as exc:
            logger.exception("Query failed on %s", self.alias)
            raise StorageError() from exc

    def fetch_all(self, sql: str, params: Params = ()) -> List[Dict[str, Any]]:
        params = self._check_params(params)
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            columns = [col[0] for col in cursor.description or ()]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def fetch_one(self, sql: str, params: Params = ()) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Params = ()) -> ExecResult:
        params = self._check_params(params)
        with self._cursor() as cursor:
            cursor.execute(sql, params)
            return ExecResult(rowcount=cursor.rowcount, lastrowid=getattr(cursor, "lastrowid", None))

    def atomic(self):
        return transaction.atomic(using=self.alias)


storage = Storage()
