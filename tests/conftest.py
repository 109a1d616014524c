"""Pytest fixtures: an in-memory order store and an API client bound to it."""
import copy
import itertools
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from orderdesk.app import app, get_store
from orderdesk.errors import Conflict
from orderdesk.store import OrderStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class MemoryStore(OrderStore):
    """
    Dict-backed store with the same contract as PostgresStore.

    ``atomic()`` holds one lock for the whole block (standing in for row
    locks) and restores a snapshot of every table on error. Setting
    ``fail_on`` to a method name makes that method raise inside the block.
    """

    TABLES = ("orders", "payments", "lines", "saved", "transactions")

    def __init__(self) -> None:
        self.orders = {}
        self.payments = {}
        self.lines = {}
        self.saved = {}
        self.transactions = {}

        self.fail_on = None
        self.calls = []

        self._ids = itertools.count(1000)
        self._lock = threading.RLock()
        self._local = threading.local()

    # Seed helpers
    def add_order(self, user_id, order_id=None, status="Created", ts=None, products=()):
        order_id = order_id or next(self._ids)
        self.orders[order_id] = {
            "id": order_id,
            "user_id": user_id,
            "status": status,
            "ts": ts or T0,
        }
        for product_id in products:
            line_id = next(self._ids)
            self.lines[line_id] = {
                "id": line_id,
                "order_id": order_id,
                "product_id": product_id,
                "qty": 1,
                "unit_price_cents": 1000,
            }
        return order_id

    def add_payment(self, user_id, payment_id=None, method="card"):
        payment_id = payment_id or next(self._ids)
        self.payments[payment_id] = {"id": payment_id, "user_id": user_id, "method": method}
        return payment_id

    def saved_pairs(self, user_id=None):
        return sorted(
            (row["user_id"], row["product_id"])
            for row in self.saved.values()
            if user_id is None or row["user_id"] == user_id
        )

    def line_products(self, order_id):
        return sorted(row["product_id"] for row in self.lines.values() if row["order_id"] == order_id)

    # OrderStore
    def _call(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"simulated failure in {name}")

    def _writable(self):
        if not getattr(self._local, "active", False):
            raise AssertionError("write outside atomic()")

    def count_orders(self, user_id):
        self._call("count_orders")
        return sum(1 for o in self.orders.values() if o["user_id"] == user_id)

    def list_orders(self, user_id, sort, offset, limit):
        self._call("list_orders")
        rows = [dict(o) for o in self.orders.values() if o["user_id"] == user_id]
        return sort.apply(rows)[offset:offset + limit]

    def find_order(self, order_id):
        self._call("find_order")
        order = self.orders.get(order_id)
        return dict(order) if order else None

    def find_user_order(self, user_id, order_id):
        self._call("find_user_order")
        order = self.orders.get(order_id)
        return dict(order) if order and order["user_id"] == user_id else None

    def find_payment(self, user_id, payment_id):
        self._call("find_payment")
        payment = self.payments.get(payment_id)
        return dict(payment) if payment and payment["user_id"] == user_id else None

    def order_lines(self, order_id):
        self._call("order_lines")
        return [dict(row) for _, row in sorted(self.lines.items()) if row["order_id"] == order_id]

    @contextmanager
    def atomic(self):
        with self._lock:
            snapshot = {name: copy.deepcopy(getattr(self, name)) for name in self.TABLES}
            self._local.active = True
            try:
                yield self
            except BaseException:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                raise
            finally:
                self._local.active = False

    def lock_order(self, order_id):
        self._writable()
        return self.find_order(order_id)

    def add_transaction(self, order_id, payment_id):
        self._writable()
        self._call("add_transaction")
        if any(t["order_id"] == order_id for t in self.transactions.values()):
            raise Conflict(f"order {order_id} is already paid")
        tr_id = next(self._ids)
        self.transactions[tr_id] = {
            "id": tr_id,
            "order_id": order_id,
            "payment_id": payment_id,
            "ts": datetime.now(timezone.utc),
        }
        return dict(self.transactions[tr_id])

    def set_order_status(self, order_id, status):
        self._writable()
        self._call("set_order_status")
        self.orders[order_id]["status"] = status
        return dict(self.orders[order_id])

    def save_products(self, user_id, product_ids):
        self._writable()
        self._call("save_products")
        count = 0
        for product_id in product_ids:
            row_id = next(self._ids)
            self.saved[row_id] = {"id": row_id, "user_id": user_id, "product_id": product_id}
            count += 1
        return count

    def remove_order_lines(self, order_id):
        self._writable()
        self._call("remove_order_lines")
        doomed = [line_id for line_id, row in self.lines.items() if row["order_id"] == order_id]
        for line_id in doomed:
            del self.lines[line_id]
        return len(doomed)


@pytest.fixture
def store() -> MemoryStore:
    store = MemoryStore()

    # user 42: five orders with increasing timestamps, order 7 has two lines
    for offset, order_id in enumerate((5, 6, 7, 8, 9)):
        store.add_order(42, order_id=order_id, ts=T0 + timedelta(hours=offset),
                        products=(10, 11) if order_id == 7 else ())
    store.add_payment(42, payment_id=3)

    # user 43 owns one order and one payment
    store.add_order(43, order_id=20, products=(12,))
    store.add_payment(43, payment_id=4)

    return store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
