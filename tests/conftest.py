# tests/conftest.py
import os
import time
import uuid
from decimal import Decimal

# Settings are read at import time; point them at test values first.
TEST_JWT_SECRET = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "anon-test-key"
os.environ["SUPABASE_JWT_SECRET"] = TEST_JWT_SECRET

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from shopflow.database import get_session
from shopflow.main import app
from shopflow.models.product import Product
from shopflow.models.profile import Profile

API = "/api/v1"


def make_token(
    user_id: uuid.UUID,
    full_name: str = "",
    expires_in: int = 3600,
    **extra,
) -> str:
    claims = {
        "sub": str(user_id),
        "email": f"{user_id.hex[:8]}@example.com",
        "user_metadata": {"full_name": full_name},
        "exp": int(time.time()) + expires_in,
    }
    claims.update(extra)
    return jwt.encode(claims, TEST_JWT_SECRET, algorithm="HS256")


def bearer(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(profile.id)}"}


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session: Session):
    app.dependency_overrides[get_session] = lambda: session
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def _add_profile(session: Session, role: str, full_name: str) -> Profile:
    profile = Profile(id=uuid.uuid4(), full_name=full_name, role=role)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


@pytest.fixture
def user(session: Session) -> Profile:
    return _add_profile(session, "user", "Jane Doe")


@pytest.fixture
def other_user(session: Session) -> Profile:
    return _add_profile(session, "user", "John Roe")


@pytest.fixture
def admin(session: Session) -> Profile:
    return _add_profile(session, "admin", "Shop Admin")


@pytest.fixture
def make_product(session: Session):
    def _make(
        name: str = "Wireless Headphones",
        price: str = "100.00",
        stock: int = 5,
        category: str = "Electronics",
        **fields,
    ) -> Product:
        product = Product(
            name=name,
            price=Decimal(price),
            stock=stock,
            category=category,
            **fields,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make
