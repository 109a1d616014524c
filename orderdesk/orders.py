# orderdesk/orders.py
"""Order listing, checkout and cancellation.

Every function takes the caller's user id explicitly and raises one of the
``orderdesk.errors`` types on failure. Mutations happen inside a single
``store.atomic()`` block: a taxonomy error raised there is re-raised after
rollback, anything else becomes ``InternalError``.
"""
import logging
from contextlib import contextmanager

from .errors import (
    Conflict,
    InternalError,
    InvalidArgument,
    NotFound,
    OrderDeskError,
    Unauthorized,
)
from .pagination import ORDER_SORTS, PaginationRequest, PaginationResult, paginate

log = logging.getLogger(__name__)

CREATED = "Created"
PAID = "Paid"


def _require_positive(**ids):
    for name, value in ids.items():
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidArgument(f"{name} must be a positive integer")


@contextmanager
def _atomic(store, action, order_id):
    try:
        with store.atomic():
            yield
    except OrderDeskError:
        raise
    except Exception as e:
        log.exception("[order=%s] %s failed, rolled back", order_id, action)
        raise InternalError() from e


def _with_lines(store, order):
    order = dict(order)
    order["products"] = store.order_lines(order["id"])
    return order


def list_orders(store, user_id: int, request: PaginationRequest) -> PaginationResult:
    sort = ORDER_SORTS.resolve(request.sort_field, request.descending)
    log.debug("[user=%s] list orders page=%s size=%s sort=%s %s",
              user_id, request.page, request.page_size, sort.field, sort.direction)

    total = store.count_orders(user_id)
    window = paginate(request, total)
    items = store.list_orders(user_id, sort, window.offset, window.limit) if total else []
    return PaginationResult.from_window(items, window)


def get_order(store, user_id: int, order_id: int):
    _require_positive(order_id=order_id)
    log.debug("[user=%s] get order %s", user_id, order_id)

    order = store.find_user_order(user_id, order_id)
    if order is None:
        raise NotFound("order")
    return _with_lines(store, order)


def checkout(store, user_id: int, order_id: int, payment_id: int):
    """Pay ``order_id`` with ``payment_id``; both must belong to ``user_id``.

    Both lookups run before either miss is reported; a missing payment is
    reported ahead of a missing order. The status is re-read under a row lock
    so concurrent checkouts of one order record a single transaction.
    """
    _require_positive(order_id=order_id, payment_id=payment_id)
    log.debug("[user=%s] checkout order %s with payment %s", user_id, order_id, payment_id)

    payment = store.find_payment(user_id, payment_id)
    order = store.find_user_order(user_id, order_id)
    if payment is None:
        raise NotFound("payment")
    if order is None:
        raise NotFound("order")

    with _atomic(store, "checkout", order_id):
        locked = store.lock_order(order_id)
        if locked is None:
            raise NotFound("order")
        if locked["status"] == PAID:
            log.warning("[order=%s] checkout rejected: already paid", order_id)
            raise Conflict(f"order {order_id} is already paid")
        transaction = store.add_transaction(order_id, payment_id)
        updated = store.set_order_status(order_id, PAID)

    log.info("[order=%s] paid with payment %s (transaction %s)",
             order_id, payment_id, transaction["id"])
    return _with_lines(store, updated)


def cancel(store, user_id: int, order_id: int) -> int:
    """Move every line of the order to the caller's saved products.

    Returns the number of lines moved. The order row itself is kept.
    """
    _require_positive(order_id=order_id)

    order = store.find_order(order_id)
    if order is None:
        raise NotFound("order")
    if order["user_id"] != user_id:
        log.warning("[order=%s] cancel denied for user %s", order_id, user_id)
        raise Unauthorized()

    log.debug("[user=%s] cancel order %s", user_id, order_id)
    with _atomic(store, "cancel", order_id):
        if store.lock_order(order_id) is None:
            raise NotFound("order")
        lines = store.order_lines(order_id)
        store.save_products(user_id, [line["product_id"] for line in lines])
        store.remove_order_lines(order_id)

    log.info("[order=%s] cancelled, %s products saved for user %s",
             order_id, len(lines), user_id)
    return len(lines)
