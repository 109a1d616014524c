# orderdesk/app.py
import json
import logging
from typing import List, Optional
from fastapi import FastAPI, Depends, Header, Query, Response
from fastapi.responses import JSONResponse

from . import orders
from .db import get_conn, fetch_one, get_pool, close_pool
from .errors import OrderDeskError, Unauthorized
from .logging_config import setup_logging
from .models import CheckoutIn, OrderOut, OrderSummaryOut
from .pagination import DEFAULT_PAGE_SIZE, PaginationRequest
from .store import PostgresStore

setup_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="Orderdesk API", version="0.1.0")

@app.on_event("startup")
def startup():
    # touch the pool so it initializes eagerly
    with get_pool().connection():
        pass

@app.on_event("shutdown")
def shutdown():
    close_pool()

@app.exception_handler(OrderDeskError)
async def order_desk_error(request, exc: OrderDeskError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

# Dependencies

def current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    # set by the auth gateway in front of this service
    try:
        user_id = int(x_user_id)
    except (TypeError, ValueError):
        raise Unauthorized("missing or invalid caller identity")
    if user_id <= 0:
        raise Unauthorized("missing or invalid caller identity")
    return user_id

def pagination_params(
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    sort_field: str = Query("id", alias="sortField"),
    descending: bool = Query(False),
) -> PaginationRequest:
    return PaginationRequest(page=page, page_size=page_size,
                             sort_field=sort_field, descending=descending)

def get_store():
    with get_conn() as conn:
        yield PostgresStore(conn)

# Health

@app.get("/health/db")
def health_db():
    try:
        with get_conn() as conn:
            row = fetch_one(conn, "SELECT 1 AS ok")
            return {"db_ok": row["ok"] == 1}
    except Exception as e:
        log.error("database health check failed: %s", e)
        return JSONResponse(status_code=500, content={"db_ok": False, "error": str(e)})

# Orders

@app.get("/orders", response_model=List[OrderSummaryOut])
def list_my_orders(response: Response,
                   params: PaginationRequest = Depends(pagination_params),
                   user_id: int = Depends(current_user_id),
                   store=Depends(get_store)):
    result = orders.list_orders(store, user_id, params)
    pagination = json.dumps(result.metadata())
    if not result.items:
        return JSONResponse(status_code=404, content={"detail": "orders not found"},
                            headers={"X-Pagination": pagination})
    response.headers["X-Pagination"] = pagination
    return result.items

@app.get("/orders/{order_id}", response_model=OrderOut)
def get_my_order(order_id: int, user_id: int = Depends(current_user_id), store=Depends(get_store)):
    return orders.get_order(store, user_id, order_id)

@app.post("/orders/{order_id}/buy", response_model=OrderOut)
def buy_order(order_id: int, body: CheckoutIn,
              user_id: int = Depends(current_user_id), store=Depends(get_store)):
    return orders.checkout(store, user_id, order_id, body.paymentId)

@app.delete("/orders/{order_id}", status_code=204)
def cancel_order(order_id: int, user_id: int = Depends(current_user_id), store=Depends(get_store)):
    orders.cancel(store, user_id, order_id)
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
