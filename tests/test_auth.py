"""Authentication endpoint tests."""

from sqlalchemy import select

from app.models import User, Vendor


def test_register_creates_user(client, session_factory) -> None:
    """Register should create a user and return identity fields."""
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "User@Example.com", "password": "secret123", "role": "customer"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["id"] > 0
    assert body["email"] == "user@example.com"
    assert body["role"] == "CUSTOMER"


def test_register_vendor_creates_vendor_profile(client, session_factory) -> None:
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "shop@example.com", "password": "secret123", "role": "vendor", "business_name": "Shop"},
    )
    assert response.status_code == 201

    with session_factory() as db:
        vendor = db.scalar(select(Vendor).where(Vendor.user_id == int(response.json()["id"])).limit(1))
        assert vendor is not None
        assert vendor.business_name == "Shop"


def test_register_rejects_admin_and_duplicates(client) -> None:
    admin = client.post(
        "/api/v1/auth/register",
        json={"email": "boss@example.com", "password": "secret123", "role": "admin"},
    )
    assert admin.status_code == 400

    first = client.post("/api/v1/auth/register", json={"email": "dup@example.com", "password": "secret123"})
    assert first.status_code == 201
    second = client.post("/api/v1/auth/register", json={"email": "dup@example.com", "password": "secret123"})
    assert second.status_code == 400


def test_login_returns_token_and_me(client) -> None:
    """Login should return a bearer access token for valid credentials."""
    client.post("/api/v1/auth/register", json={"email": "login@example.com", "password": "secret123"})

    login_response = client.post("/api/v1/auth/login", json={"email": "login@example.com", "password": "secret123"})
    assert login_response.status_code == 200
    token = login_response.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "login@example.com"


def test_login_rejects_bad_password(client) -> None:
    client.post("/api/v1/auth/register", json={"email": "wrong@example.com", "password": "secret123"})
    response = client.post("/api/v1/auth/login", json={"email": "wrong@example.com", "password": "nope"})
    assert response.status_code == 401


def test_invalid_token_is_rejected(client) -> None:
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_inactive_user_cannot_use_token(client, session_factory) -> None:
    client.post("/api/v1/auth/register", json={"email": "gone@example.com", "password": "secret123"})
    token = client.post("/api/v1/auth/login", json={"email": "gone@example.com", "password": "secret123"}).json()[
        "access_token"
    ]
    with session_factory() as db:
        user = db.scalar(select(User).where(User.email == "gone@example.com"))
        user.is_active = False
        db.commit()

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_token_issued_for_old_role_is_rejected(client, session_factory) -> None:
    client.post("/api/v1/auth/register", json={"email": "demoted@example.com", "password": "secret123", "role": "vendor"})
    token = client.post(
        "/api/v1/auth/login", json={"email": "demoted@example.com", "password": "secret123"}
    ).json()["access_token"]
    with session_factory() as db:
        user = db.scalar(select(User).where(User.email == "demoted@example.com"))
        user.role = "CUSTOMER"
        db.commit()

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
