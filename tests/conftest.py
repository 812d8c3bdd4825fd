import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from inventory_api.database import build_engine, get_db, init_db
from inventory_api.main import app
from inventory_api.models.category import Category
from inventory_api.models.product import Product
from inventory_api.models.supplier import Supplier
from inventory_api.models.user import UserRole
from inventory_api.services import auth_service, notification_service


@pytest.fixture
def engine(tmp_path):
    # File-backed so threads in the concurrency tests get separate connections
    engine = build_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def category(db):
    cat = Category(name="Hardware")
    db.add(cat)
    db.commit()
    return cat


@pytest.fixture
def supplier(db):
    sup = Supplier(name="Acme Supply", email="orders@acme.test")
    db.add(sup)
    db.commit()
    return sup


@pytest.fixture
def manager(db):
    return auth_service.create_user(
        db, "manager", "secret", name="Mia Manager", email="manager@example.test", role=UserRole.MANAGER.value
    )


@pytest.fixture
def staff(db):
    return auth_service.create_user(db, "staff", "secret", name="Sam Staff", email="staff@example.test")


@pytest.fixture
def make_product(db, category):
    def _make(sku, quantity=10, price=9.99, cost_price=5.00, min_stock_level=10, name=None):
        product = Product(
            sku=sku,
            name=name or f"Product {sku}",
            category_id=category.id,
            price=price,
            cost_price=cost_price,
            quantity=quantity,
            min_stock_level=min_stock_level,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def widget(make_product):
    return make_product("WID-1", quantity=10, price=9.99, cost_price=5.00, name="Widget")


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of talking to an SMTP server."""
    sent = []

    def fake_send_email(message, smtp_config=None):
        sent.append(message)
        return True

    monkeypatch.setattr(notification_service, "send_email", fake_send_email)
    return sent


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    return {"Authorization": f"Bearer {auth_service.create_access_token(user.id, user.username)}"}


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture
def staff_headers(staff):
    return auth_headers(staff)
