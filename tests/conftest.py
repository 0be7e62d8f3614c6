"""Shared fixtures: a throwaway SQLite database per test and domain builders."""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.security import get_password_hash
from app.db import session as db_session
from app.db.base import Base
from app.main import app
from app.models import DeliveryPricingConfig, DeliveryZone, Product, Promotion, User, Vendor
from app.services.user_service import create_user


def _build_test_engine(db_file: Path) -> Engine:
    return create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )


@pytest.fixture()
def session_factory(tmp_path: Path, monkeypatch) -> Iterator[sessionmaker]:
    engine = _build_test_engine(tmp_path / "test.db")
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)
    yield testing_session_local
    engine.dispose()


@pytest.fixture()
def db(session_factory: sessionmaker) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture()
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db: Session) -> Callable[..., User]:
    def _make_user(role: str = "CUSTOMER", email: str | None = None, business_name: str | None = None) -> User:
        username = email or f"{role.lower()}-{db.query(User).count() + 1}@example.com"
        return create_user(
            db=db,
            username=username,
            hashed_password="not-a-real-hash",
            role=role,
            email=username,
            business_name=business_name,
        )

    return _make_user


@pytest.fixture()
def make_product(db: Session) -> Callable[..., Product]:
    def _make_product(vendor: Vendor, name: str = "Jollof Rice", price: str = "1000.00", is_active: bool = True) -> Product:
        product = Product(vendor_id=vendor.id, name=name, price=Decimal(price), is_active=is_active)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture()
def standard_zones(db: Session) -> list[DeliveryZone]:
    """Zones 0-3 km for 500 and 3-10 km for 1000."""
    zones = [
        DeliveryZone(name="Near", min_distance_km=Decimal("0"), max_distance_km=Decimal("3"), price=Decimal("500")),
        DeliveryZone(name="Far", min_distance_km=Decimal("3"), max_distance_km=Decimal("10"), price=Decimal("1000")),
    ]
    db.add_all(zones)
    db.add(DeliveryPricingConfig(id=1))
    db.commit()
    return zones


@pytest.fixture()
def make_promotion(db: Session) -> Callable[..., Promotion]:
    def _make_promotion(
        code: str = "SAVE10",
        discount_type: str = "percentage",
        discount_value: str = "10",
        min_order_amount: str = "1000",
        usage_limit: int | None = None,
        max_discount_amount: str | None = None,
    ) -> Promotion:
        now = datetime.now(timezone.utc)
        promotion = Promotion(
            code=code,
            name=f"{code} promo",
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            min_order_amount=Decimal(min_order_amount),
            max_discount_amount=None if max_discount_amount is None else Decimal(max_discount_amount),
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
            usage_limit=usage_limit,
        )
        db.add(promotion)
        db.commit()
        db.refresh(promotion)
        return promotion

    return _make_promotion


def auth_headers(client: TestClient, email: str, password: str = "secret123", role: str = "CUSTOMER", **extra) -> dict[str, str]:
    """Register (if needed) and log in through the API; return bearer headers."""
    client.post("/api/v1/auth/register", json={"email": email, "password": password, "role": role, **extra})
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def login() -> Callable[..., dict[str, str]]:
    return auth_headers


@pytest.fixture()
def admin_headers(client: TestClient, session_factory: sessionmaker) -> dict[str, str]:
    """Create an ADMIN directly (registration refuses the role) and log it in."""
    with session_factory() as db:
        create_user(
            db=db,
            username="ops@example.com",
            email="ops@example.com",
            hashed_password=get_password_hash("Admin123!"),
            role="ADMIN",
        )
    response = client.post("/api/v1/auth/login", json={"email": "ops@example.com", "password": "Admin123!"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
