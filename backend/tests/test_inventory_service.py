"""
Inventory store: conditional decrement, restore, receive, movement audit.
"""

import pytest
from sqlalchemy import func

from posapi.extensions import db
from posapi.models import InventoryTransaction
from posapi.services import inventory_service
from posapi.services.inventory_service import (
    InsufficientStockError,
    InventoryError,
    ProductInactiveError,
    ProductNotFoundError,
)


def _movement_sum(product_id: int) -> int:
    return db.session.query(func.coalesce(func.sum(InventoryTransaction.quantity_delta), 0)).filter(
        InventoryTransaction.product_id == product_id
    ).scalar()


def test_opening_stock_recorded_as_receive(make_product):
    product = make_product("INV-1", stock=25)

    assert inventory_service.get_available(product.id) == 25
    movements = inventory_service.list_movements(product.id)
    assert [(m.type, m.quantity_delta) for m in movements] == [("RECEIVE", 25)]


def test_try_reserve_decrements_and_records_sale_movement(db_session, make_product):
    product = make_product("INV-2", stock=10)

    movement = inventory_service.try_reserve(product.id, 4)
    db_session.commit()

    assert movement.type == "SALE"
    assert movement.quantity_delta == -4
    assert inventory_service.get_available(product.id) == 6
    assert product.quantity_on_hand == 6


def test_try_reserve_exact_remaining_stock(db_session, make_product):
    product = make_product("INV-3", stock=3)

    inventory_service.try_reserve(product.id, 3)
    db_session.commit()

    assert inventory_service.get_available(product.id) == 0


def test_try_reserve_insufficient_stock_leaves_quantity(db_session, make_product):
    product = make_product("INV-4", stock=2)

    with pytest.raises(InsufficientStockError) as exc_info:
        inventory_service.try_reserve(product.id, 3)
    db_session.rollback()

    err = exc_info.value
    assert err.code == "INSUFFICIENT_STOCK"
    assert err.details == {"product_id": product.id, "requested": 3, "available": 2}
    assert inventory_service.get_available(product.id) == 2


def test_try_reserve_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError) as exc_info:
        inventory_service.try_reserve(999_999, 1)
    assert exc_info.value.details["product_id"] == 999_999


def test_try_reserve_inactive_product(db_session, make_product):
    product = make_product("INV-5", stock=10, is_active=False)

    with pytest.raises(ProductInactiveError):
        inventory_service.try_reserve(product.id, 1)
    db_session.rollback()
    assert inventory_service.get_available(product.id) == 10


@pytest.mark.parametrize("quantity", [0, -1, True, 1.5, "2"])
def test_quantity_must_be_positive_integer(db_session, make_product, quantity):
    product = make_product("INV-6", stock=10)

    with pytest.raises(InventoryError):
        inventory_service.try_reserve(product.id, quantity)
    with pytest.raises(InventoryError):
        inventory_service.restore(product.id, quantity)


def test_uncommitted_reservation_rolls_back(db_session, make_product):
    product = make_product("INV-7", stock=10)

    inventory_service.try_reserve(product.id, 7)
    db_session.rollback()

    assert inventory_service.get_available(product.id) == 10


def test_restore_adds_back_and_records_restore_movement(db_session, make_product):
    product = make_product("INV-8", stock=10)
    inventory_service.try_reserve(product.id, 5)
    db_session.commit()

    movement = inventory_service.restore(product.id, 5, note="Cancelled")
    db_session.commit()

    assert movement.type == "RESTORE"
    assert movement.quantity_delta == 5
    assert inventory_service.get_available(product.id) == 10


def test_restore_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError):
        inventory_service.restore(999_999, 1)


def test_receive_commits(db_session, make_product):
    product = make_product("INV-9", stock=0)

    movement = inventory_service.receive(product.id, 12, note="Delivery")

    assert movement.type == "RECEIVE"
    assert movement.note == "Delivery"
    assert inventory_service.get_available(product.id) == 12


def test_receive_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError):
        inventory_service.receive(999_999, 1)


def test_movements_always_sum_to_quantity_on_hand(db_session, make_product):
    product = make_product("INV-10", stock=20)

    inventory_service.try_reserve(product.id, 8)
    db_session.commit()
    inventory_service.restore(product.id, 3)
    db_session.commit()
    inventory_service.receive(product.id, 5)
    with pytest.raises(InsufficientStockError):
        inventory_service.try_reserve(product.id, 100)
    db_session.rollback()

    assert inventory_service.get_available(product.id) == 20
    assert _movement_sum(product.id) == 20
