import os

# Set test environment before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from warehouse_service.app.database import Base, SessionLocal, engine, get_db
from warehouse_service.app.main import app
from warehouse_service.app.models import Order, Product, Warehouse

T0 = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory database."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def seeded(db):
    """Product 1 at 10.00, warehouse 1, and order 5 for 3 units created at T0."""
    db.add_all([
        Product(id=1, name="Widget", description="Blue widget", price=Decimal("10.00")),
        Warehouse(id=1, name="Main", address="Dock 1"),
        Order(id=5, product_id=1, amount=3, created_at=T0),
    ])
    db.commit()
    return db


def payload(**overrides):
    body = {
        "idProduct": 1,
        "idWarehouse": 1,
        "amount": 3,
        "createdAt": "2024-01-02T08:00:00",
    }
    body.update(overrides)
    return body
