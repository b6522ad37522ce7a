import pytest
from fastapi.testclient import TestClient

from storefront.adapters.mock_payment import MockPaymentAdapter
from storefront.api.deps import get_payment_gateway
from storefront.config import settings
from storefront.db import get_db, init_db, make_engine, make_session_factory
from storefront.main import app
from storefront.models.address import Address
from storefront.seed import seed_catalog

CATALOG = [
    {
        "sku": "TEA-100",
        "name": "Assam Tea 100g",
        "price_cents": 30000,
        "original_price_cents": 35000,
        "available_quantity": 5,
    },
    {
        "sku": "SHIRT-1",
        "name": "Cotton Shirt",
        "price_cents": 20000,
        "available_quantity": 10,
        "variants": [
            {"name": "Size", "value": "M", "additional_price_cents": 0, "available_quantity": 3},
            {"name": "Size", "value": "XL", "additional_price_cents": 5000, "available_quantity": 8},
        ],
    },
    {
        "sku": "MUG-1",
        "name": "Clay Mug",
        "price_cents": 10000,
        "available_quantity": 1,
    },
    {
        "sku": "GONE-1",
        "name": "Sold Out Jar",
        "price_cents": 5000,
        "available_quantity": 0,
    },
]


@pytest.fixture
def engine(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "LOCKS_DIR", str(tmp_path / "locks"))
    monkeypatch.setattr(settings, "PAYMENT_MOCK_DELAY_MS", 0)
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(reset=True, bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def catalog(session_factory):
    """Seed the test catalog and return ids keyed by sku (variants as 'SKU/VALUE')."""
    from storefront.models.product import Product

    with session_factory() as s:
        seed_catalog(s, CATALOG)
    ids = {}
    with session_factory() as s:
        for p in s.query(Product).all():
            ids[p.sku] = p.id
            for v in p.variants:
                ids[f"{p.sku}/{v.value}"] = v.id
    return ids


@pytest.fixture
def address_id(session_factory):
    """An address owned by user 'u1'."""
    with session_factory() as s:
        a = Address(
            user_id="u1",
            line_one="12 MG Road",
            city="Bengaluru",
            state="KA",
            postal_code="560001",
            country="IN",
        )
        s.add(a)
        s.commit()
        return a.id


@pytest.fixture
def api_app(session_factory):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: MockPaymentAdapter(delay_ms=0)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    return TestClient(api_app)
