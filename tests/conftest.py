import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.database import get_db
from app.models import Base, Product
from app.schemas.webhooks import CheckoutSessionPayload


@pytest.fixture
def mock_db():
    """Mock database session"""
    db = MagicMock()
    db.query.return_value = db
    db.filter.return_value = db
    db.first.return_value = None
    db.all.return_value = []
    db.count.return_value = 0
    return db


@pytest.fixture
def unauthenticated_client(mock_db):
    """TestClient with mocked DB (webhooks authenticate by signature, not user)"""
    app.dependency_overrides[get_db] = lambda: mock_db
    client = TestClient(app)
    yield client, mock_db
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    """Real session on in-memory SQLite, for behavior that depends on unique constraints"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(tmp_path):
    """Sessionmaker on a file-backed SQLite database, so each thread can hold its own connection"""
    engine = create_engine(
        f"sqlite:///{tmp_path}/fulfillment.db",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_product(db):
    def _make(slug="robot-kit", name="Robot Arm Kit", track_inventory=True, stock_quantity=10):
        product = Product(
            slug=slug,
            name=name,
            track_inventory=track_inventory,
            stock_quantity=stock_quantity,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def line_item():
    """Factory for Stripe line item JSON with price.product expanded"""
    def _make(line_item_id, slug, quantity=1):
        return {
            "id": line_item_id,
            "object": "item",
            "quantity": quantity,
            "price": {"product": {"id": f"prod_{slug}", "metadata": {"slug": slug}}},
        }
    return _make


@pytest.fixture
def checkout_session():
    """Factory for a parsed checkout.session.completed object"""
    def _make(session_id="sess_A", email="buyer@example.com", name="Ada Lovelace", amount_total=19800):
        return CheckoutSessionPayload.model_validate({
            "id": session_id,
            "customer_details": {"email": email, "name": name},
            "amount_total": amount_total,
            "currency": "usd",
        })
    return _make
