from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.db import Base, get_db
from core import config as core_config
from services import email as email_service
from services.highlights import seed_default_highlight_configuration
from models.product import Product
from models.promotion import Promotion
from models.store import Store
from models.user import User
from security.password import hash_password
from security import jwt as jwt_utils


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.REFRESH_SECRET = "test-refresh"
    core_config.settings.TESTING = True
    core_config.settings.EMAIL_USE_CELERY = False
    yield


@pytest.fixture()
def db():
    """Fresh in-memory database per test, shared with the app through get_db."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(autouse=True)
def mock_email_send(monkeypatch):
    sent = []

    def _fake_send(to_email: str, subject: str, body: str) -> None:
        sent.append({"to": to_email, "subject": subject, "body": body})

    monkeypatch.setattr(email_service, "send_email", _fake_send)
    return sent


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def highlight_config(db):
    seed_default_highlight_configuration(db)


@pytest.fixture
def seller(db):
    user = User(
        first_name="Maria",
        last_name="Silva",
        email="maria@example.com",
        password_hash=hash_password("testpass123"),
        is_superadmin=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    user = User(
        first_name="Admin",
        last_name="Root",
        email="admin@example.com",
        password_hash=hash_password("adminpass123"),
        is_superadmin=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def store(db, seller):
    """A freemium store that has never been in trial."""
    store = Store(owner_id=seller.id, name="Padaria Central", category="food")
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture
def make_store(db):
    def _make(owner, name="Loja", plan="freemium", weight=1, **fields):
        store = Store(owner_id=owner.id, name=name, subscription_plan=plan, highlight_weight=weight, **fields)
        db.add(store)
        db.commit()
        db.refresh(store)
        return store

    return _make


@pytest.fixture
def make_product(db):
    def _make(store, name="Produto", category="food", price=10, created_at=None, **fields):
        product = Product(
            store_id=store.id,
            name=name,
            category=category,
            price=price,
            created_at=created_at or datetime.utcnow(),
            **fields,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_promotion(db):
    def _make(product, discount=20, type="regular", start=None, end=None):
        now = datetime.utcnow()
        promotion = Promotion(
            product_id=product.id,
            type=type,
            discount_percentage=discount,
            start_time=start or now - timedelta(days=1),
            end_time=end or now + timedelta(days=1),
        )
        db.add(promotion)
        db.commit()
        db.refresh(promotion)
        return promotion

    return _make


@pytest.fixture
def auth_headers(seller):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(seller.id)}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(admin.id, is_admin=True)}"}
