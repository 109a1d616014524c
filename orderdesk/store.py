# orderdesk/store.py
"""Persistence contract the order workflows run against.

Records are plain dicts keyed by column name. Writes are only legal inside
``atomic()``; everything issued in that block commits together or not at all.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager

import psycopg
from psycopg import sql

from .db import execute, fetch_all, fetch_one
from .errors import Conflict
from .pagination import SortSpec

log = logging.getLogger(__name__)


class OrderStore(ABC):
    @abstractmethod
    def count_orders(self, user_id: int) -> int: ...

    @abstractmethod
    def list_orders(self, user_id: int, sort: SortSpec, offset: int, limit: int) -> list: ...

    @abstractmethod
    def find_order(self, order_id: int): ...

    @abstractmethod
    def find_user_order(self, user_id: int, order_id: int): ...

    @abstractmethod
    def find_payment(self, user_id: int, payment_id: int): ...

    @abstractmethod
    def order_lines(self, order_id: int) -> list: ...

    @abstractmethod
    def atomic(self):
        """Context manager wrapping one all-or-nothing unit of writes."""

    @abstractmethod
    def lock_order(self, order_id: int):
        """Re-read an order inside ``atomic()``, holding it against concurrent writers."""

    @abstractmethod
    def add_transaction(self, order_id: int, payment_id: int): ...

    @abstractmethod
    def set_order_status(self, order_id: int, status: str): ...

    @abstractmethod
    def save_products(self, user_id: int, product_ids) -> int: ...

    @abstractmethod
    def remove_order_lines(self, order_id: int) -> int: ...


ORDER_COLUMNS = "id, user_id, status, ts"


class PostgresStore(OrderStore):
    def __init__(self, conn):
        self.conn = conn

    def count_orders(self, user_id):
        row = fetch_one(self.conn,
            "SELECT COUNT(*)::int AS n FROM orders WHERE user_id = %s",
            (user_id,)
        )
        return row["n"]

    def list_orders(self, user_id, sort, offset, limit):
        query = sql.SQL(
            "SELECT " + ORDER_COLUMNS + " FROM orders WHERE user_id = %s "
            "ORDER BY {col} {direction}, {tiebreak} {direction} LIMIT %s OFFSET %s"
        ).format(
            col=sql.Identifier(sort.column),
            tiebreak=sql.Identifier(sort.tiebreak_column),
            direction=sql.SQL(sort.direction),
        )
        return fetch_all(self.conn, query, (user_id, limit, offset))

    def find_order(self, order_id):
        return fetch_one(self.conn,
            "SELECT " + ORDER_COLUMNS + " FROM orders WHERE id = %s",
            (order_id,)
        )

    def find_user_order(self, user_id, order_id):
        return fetch_one(self.conn,
            "SELECT " + ORDER_COLUMNS + " FROM orders WHERE id = %s AND user_id = %s",
            (order_id, user_id)
        )

    def find_payment(self, user_id, payment_id):
        return fetch_one(self.conn,
            "SELECT id, user_id, method FROM payments WHERE id = %s AND user_id = %s",
            (payment_id, user_id)
        )

    def order_lines(self, order_id):
        return fetch_all(self.conn, """
            SELECT id, order_id, product_id, qty, unit_price_cents
            FROM orders_have_products
            WHERE order_id = %s
            ORDER BY id
        """, (order_id,))

    @contextmanager
    def atomic(self):
        try:
            yield self
            self.conn.commit()
        except BaseException:
            self.conn.rollback()
            raise

    def lock_order(self, order_id):
        return fetch_one(self.conn,
            "SELECT " + ORDER_COLUMNS + " FROM orders WHERE id = %s FOR UPDATE",
            (order_id,)
        )

    def add_transaction(self, order_id, payment_id):
        try:
            return fetch_one(self.conn, """
                INSERT INTO transactions(order_id, payment_id, ts)
                VALUES (%s, %s, NOW())
                RETURNING *
            """, (order_id, payment_id))
        except psycopg.errors.UniqueViolation:
            log.warning("[order=%s] transaction already recorded", order_id)
            raise Conflict(f"order {order_id} is already paid")

    def set_order_status(self, order_id, status):
        return fetch_one(self.conn,
            "UPDATE orders SET status = %s WHERE id = %s RETURNING " + ORDER_COLUMNS,
            (status, order_id)
        )

    def save_products(self, user_id, product_ids):
        product_ids = list(product_ids)
        if not product_ids:
            return 0
        with self.conn.cursor() as cur:
            cur.executemany(
                "INSERT INTO users_have_products(user_id, product_id) VALUES (%s, %s)",
                [(user_id, product_id) for product_id in product_ids]
            )
        return len(product_ids)

    def remove_order_lines(self, order_id):
        return execute(self.conn,
            "DELETE FROM orders_have_products WHERE order_id = %s",
            (order_id,)
        )
