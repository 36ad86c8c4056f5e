"""Shared test fixtures.

Tests run against a private in-memory SQLite database: tables are created
before each test and dropped afterwards, so tests never see each other's rows.
"""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from backend.app.api.deps import get_file_storage
from backend.app.core.database import Base, SessionLocal, engine, get_db, init_db
from backend.app.main import app
from backend.app.models.customer import Customer, CustomerAddress
from backend.app.models.inventory import LocationType, Product, Stock, StockLocation
from backend.app.models.user import RoleEnum, User
from backend.app.services.file_service import FileStorageService


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a session on a freshly created schema."""
    init_db()
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def storage(tmp_path) -> FileStorageService:
    return FileStorageService(root=tmp_path)


@pytest.fixture()
def client(db: Session, storage: FileStorageService) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session and a temp file store."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Customers ────────────────────────────────────────────────────────────────


@pytest.fixture()
def customer(db: Session) -> Customer:
    c = Customer(name="Sharma Textiles", email="accounts@sharmatex.in", phone="9810012345")
    c.addresses.append(
        CustomerAddress(
            position=1,
            address="Plot 12, Industrial Area Phase II",
            district="Gurugram",
            state="Haryana",
            pincode="122001",
            gst_number="06AAACS1234F1Z5",
            is_primary=True,
        )
    )
    db.add(c)
    db.commit()
    return c


# ─── Inventory ────────────────────────────────────────────────────────────────


@pytest.fixture()
def location(db: Session) -> StockLocation:
    loc = StockLocation(name="Main Office", type=LocationType.MAIN_OFFICE)
    db.add(loc)
    db.commit()
    return loc


@pytest.fixture()
def warehouse(db: Session) -> StockLocation:
    loc = StockLocation(name="Faridabad Warehouse", type=LocationType.WAREHOUSE)
    db.add(loc)
    db.commit()
    return loc


@pytest.fixture()
def filter_product(db: Session) -> Product:
    p = Product(
        name="Fuel Filter",
        part_no="FF-5052",
        category="Filters",
        brand="Cummins",
        hsn_number="84212300",
        uom="nos",
        price=Decimal("100.0000"),
        gst_rate=Decimal("18.0000"),
        min_stock_level=5,
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def battery_product(db: Session) -> Product:
    p = Product(
        name="Starter Battery 12V 150Ah",
        part_no="BAT-150",
        category="Batteries",
        brand="Exide",
        hsn_number="85071000",
        uom="nos",
        price=Decimal("9500.0000"),
        gst_rate=Decimal("28.0000"),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def stocked(
    db: Session, location: StockLocation, filter_product: Product, battery_product: Product
) -> list[Stock]:
    """Ten filters and two batteries at the main office."""
    rows = [
        Stock(
            product_id=filter_product.id,
            location_id=location.id,
            quantity=10,
            available_quantity=10,
        ),
        Stock(
            product_id=battery_product.id,
            location_id=location.id,
            quantity=2,
            available_quantity=2,
        ),
    ]
    db.add_all(rows)
    db.commit()
    return rows


# ─── Staff ────────────────────────────────────────────────────────────────────


@pytest.fixture()
def engineer(db: Session) -> User:
    u = User(
        first_name="Ravi",
        last_name="Kumar",
        email="ravi.kumar@powergen.test",
        role=RoleEnum.FIELD_ENGINEER,
    )
    db.add(u)
    db.commit()
    return u


# ─── Payload helpers ──────────────────────────────────────────────────────────


@pytest.fixture()
def address_payload() -> dict:
    return {
        "address": "Plot 12, Industrial Area Phase II",
        "district": "Gurugram",
        "state": "Haryana",
        "pincode": "122001",
    }
