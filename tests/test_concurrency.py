"""Concurrent order creation against one SQLite file, one session per thread."""

import threading

from inventory_api.exceptions import InsufficientStockError
from inventory_api.models.order import Order, OrderType
from inventory_api.schemas.order import OrderCreate, OrderItemCreate
from inventory_api.services import ledger_service, order_service


def run_concurrently(session_factory, payloads):
    """Create one order per payload in parallel threads; return (orders, errors)."""
    barrier = threading.Barrier(len(payloads))
    lock = threading.Lock()
    numbers, errors = [], []

    def worker(payload):
        session = session_factory()
        try:
            barrier.wait()
            order = order_service.create_order(session, payload)
            with lock:
                numbers.append(order.order_number)
        except Exception as exc:
            with lock:
                errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(p,)) for p in payloads]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return numbers, errors


def test_two_sales_cannot_oversell(session_factory, make_product):
    product_id = make_product("RACE-1", quantity=5).id
    payload = OrderCreate(
        type=OrderType.SALE, items=[OrderItemCreate(product_id=product_id, quantity=3, price=1)]
    )

    numbers, errors = run_concurrently(session_factory, [payload, payload])

    assert len(numbers) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)

    session = session_factory()
    try:
        assert ledger_service.get_quantity(session, product_id) == 2
        assert session.query(Order).count() == 1
    finally:
        session.close()


def test_concurrent_creates_get_distinct_numbers(session_factory, make_product):
    product_id = make_product("RACE-2", quantity=100).id
    payload = OrderCreate(
        type=OrderType.SALE, items=[OrderItemCreate(product_id=product_id, quantity=1, price=1)]
    )

    numbers, errors = run_concurrently(session_factory, [payload] * 20)

    assert errors == []
    assert len(numbers) == 20
    assert len(set(numbers)) == 20

    session = session_factory()
    try:
        assert ledger_service.get_quantity(session, product_id) == 80
    finally:
        session.close()


def test_many_sellers_share_limited_stock(session_factory, make_product):
    product_id = make_product("RACE-3", quantity=10).id
    payload = OrderCreate(
        type=OrderType.SALE, items=[OrderItemCreate(product_id=product_id, quantity=1, price=1)]
    )

    numbers, errors = run_concurrently(session_factory, [payload] * 15)

    assert len(numbers) == 10
    assert len(errors) == 5
    assert all(isinstance(e, InsufficientStockError) for e in errors)

    session = session_factory()
    try:
        assert ledger_service.get_quantity(session, product_id) == 0
    finally:
        session.close()
