# Overview: Service-layer loyalty point crediting; runs detached from the sale transaction.

"""
Loyalty Rewards

A completed checkout with a customer earns LOYALTY_POINTS_PER_SALE points.
The award is a side effect of the sale, never part of it:

- It runs after the sale has committed, on a small worker pool with its own
  app context and DB session (or inline when LOYALTY_ASYNC is False).
- Failures are logged and dropped; they never fail or roll back the sale.
- It is idempotent per sale: the (customer_id, sale_id, EARN) unique
  constraint means a repeated award credits nothing.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, CustomerRewardTransaction
from ..models.customers import REWARD_EARN
from .concurrency import run_with_retry

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="loyalty")
_pending: set[Future] = set()
_pending_lock = threading.Lock()


def award_points(customer_id: int, sale_id: int, points: int) -> CustomerRewardTransaction | None:
    """
    Credit points to a customer for a sale and commit.

    Returns the ledger row, or None when the sale was already credited.
    """
    if points <= 0:
        return None

    def _op():
        existing = (
            db.session.query(CustomerRewardTransaction)
            .filter_by(customer_id=customer_id, sale_id=sale_id, transaction_type=REWARD_EARN)
            .first()
        )
        if existing:
            return None

        reward = CustomerRewardTransaction(
            customer_id=customer_id,
            sale_id=sale_id,
            transaction_type=REWARD_EARN,
            points=points,
        )
        db.session.add(reward)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            return None

        result = db.session.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(
                loyalty_points=Customer.loyalty_points + points,
                version_id=Customer.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            raise LookupError(f"Customer {customer_id} not found")

        db.session.commit()
        return reward

    return run_with_retry(_op)


def _award_best_effort(app, customer_id: int, sale_id: int, points: int) -> None:
    with app.app_context():
        try:
            award_points(customer_id, sale_id, points)
            app.logger.info(
                "Awarded %s loyalty points to customer %s for sale %s", points, customer_id, sale_id
            )
        except Exception:
            app.logger.warning(
                "Loyalty award failed for customer %s sale %s", customer_id, sale_id, exc_info=True
            )
        finally:
            db.session.remove()


def _forget(future: Future) -> None:
    with _pending_lock:
        _pending.discard(future)


def dispatch_award(customer_id: int, sale_id: int, points: int | None = None) -> None:
    """
    Fire-and-forget loyalty award for a committed sale.

    Runs inline when LOYALTY_ASYNC is False. Never raises.
    """
    app = current_app._get_current_object()
    if points is None:
        points = int(app.config.get("LOYALTY_POINTS_PER_SALE", 10))

    if not app.config.get("LOYALTY_ASYNC", True):
        try:
            award_points(customer_id, sale_id, points)
        except Exception:
            app.logger.warning(
                "Loyalty award failed for customer %s sale %s", customer_id, sale_id, exc_info=True
            )
        return

    try:
        future = _executor.submit(_award_best_effort, app, customer_id, sale_id, points)
    except RuntimeError:
        app.logger.warning("Loyalty worker unavailable; sale %s not credited", sale_id, exc_info=True)
        return

    with _pending_lock:
        _pending.add(future)
    future.add_done_callback(_forget)


def drain(timeout: float | None = None) -> bool:
    """Wait for outstanding awards. Returns True when none are left running."""
    with _pending_lock:
        futures = list(_pending)
    if not futures:
        return True
    _, not_done = wait(futures, timeout=timeout)
    return not not_done
