"""
Flask CLI bootstrap commands.
"""

from posapi.models import Customer, Product, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "PASS Created user: admin@pos.local" in result.output

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "WARN  User 'admin@pos.local' already exists" in result.output

    roles = sorted(u.role for u in db_session.query(User).all())
    assert roles == ["admin", "cashier", "manager"]


def test_users_create(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--email", "new.cashier@pos.local",
        "--name", "New Cashier",
        "--password", "Password123!",
        "--role", "cashier",
    ])

    assert result.exit_code == 0
    assert "PASS Created user: new.cashier@pos.local" in result.output


def test_users_create_rejects_weak_password(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--email", "weak@pos.local",
        "--name", "Weak",
        "--password", "short",
        "--role", "cashier",
    ])

    assert "FAIL Password validation failed" in result.output
    assert db_session.query(User).filter_by(email="weak@pos.local").count() == 0


def test_seed_demo(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["products", "seed-demo"])
    assert result.exit_code == 0

    products = db_session.query(Product).order_by(Product.sku).all()
    assert [p.sku for p in products] == ["COF-001", "FLT-001", "MUG-001", "TEA-001"]
    assert db_session.query(Customer).filter_by(email="demo.customer@pos.local").count() == 1

    result = runner.invoke(args=["products", "seed-demo"])
    assert "WARN  Product 'COF-001' already exists" in result.output
    assert db_session.query(Product).count() == 4
