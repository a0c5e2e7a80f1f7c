"""
Loyalty awards: idempotent per sale, never raised into the caller.
"""

import pytest

from posapi.models import Customer, CustomerRewardTransaction
from posapi.services import loyalty_service, sales_service


def _completed_sale(user, product):
    return sales_service.create_sale(
        user_id=user.id,
        items=[{"product_id": product.id, "quantity": 1}],
        payment_method="cash",
    )


def test_award_is_idempotent_per_sale(db_session, cashier_user, make_product, customer):
    sale = _completed_sale(cashier_user, make_product("LOY-A"))

    first = loyalty_service.award_points(customer.id, sale.id, 10)
    second = loyalty_service.award_points(customer.id, sale.id, 10)

    assert first is not None
    assert second is None
    db_session.expire_all()
    assert db_session.get(Customer, customer.id).loyalty_points == 10
    assert db_session.query(CustomerRewardTransaction).filter_by(sale_id=sale.id).count() == 1


def test_non_positive_points_award_nothing(db_session, cashier_user, make_product, customer):
    sale = _completed_sale(cashier_user, make_product("LOY-B"))

    assert loyalty_service.award_points(customer.id, sale.id, 0) is None
    assert db_session.query(CustomerRewardTransaction).count() == 0


def test_unknown_customer_raises_and_records_nothing(db_session, cashier_user, make_product):
    sale = _completed_sale(cashier_user, make_product("LOY-C"))

    with pytest.raises(LookupError):
        loyalty_service.award_points(999_999, sale.id, 10)
    assert db_session.query(CustomerRewardTransaction).count() == 0


def test_dispatch_swallows_failures(db_session, cashier_user, make_product):
    sale = _completed_sale(cashier_user, make_product("LOY-D"))

    loyalty_service.dispatch_award(999_999, sale.id)

    assert db_session.query(CustomerRewardTransaction).count() == 0


def test_dispatch_uses_configured_points(app, db_session, cashier_user, make_product, customer, monkeypatch):
    monkeypatch.setitem(app.config, "LOYALTY_POINTS_PER_SALE", 25)
    sale = _completed_sale(cashier_user, make_product("LOY-E"))

    loyalty_service.dispatch_award(customer.id, sale.id)

    db_session.expire_all()
    assert db_session.get(Customer, customer.id).loyalty_points == 25


def test_drain_with_nothing_pending():
    assert loyalty_service.drain(timeout=0.1)
