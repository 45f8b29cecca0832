import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="cafe-uploads-"))
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cafe_pos.db import Base
from cafe_pos.main import app, get_db


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def menu(client) -> dict:
    """One drink that uses 2 units of tea and 1 cup per sale, plus one add-on."""
    ingredient = client.post(
        "/ingredients",
        json={
            "name": "Tea Leaves",
            "measurement_unit": "g",
            "purchase_unit": "pack",
            "units_per_purchase": 500,
            "price_per_purchase": 250,
            "stock_quantity": 100,
        },
    ).json()["data"]
    material = client.post(
        "/materials",
        json={
            "name": "Cup",
            "is_package": True,
            "package_price": 100,
            "units_per_package": 4,
            "stock_quantity": 50,
        },
    ).json()["data"]
    addon = client.post("/addons", json={"name": "Pearls", "price": 15, "stock_quantity": 20}).json()["data"]
    product = client.post(
        "/products",
        json={
            "name": "Milk Tea",
            "category": "InsideBeverages",
            "variants": [
                {
                    "name": "large",
                    "price": 12,
                    "ingredients": [{"id": ingredient["ingredient_id"], "quantity": 2}],
                    "materials": [{"id": material["material_id"], "quantity": 1}],
                }
            ],
        },
    ).json()["data"]
    return {
        "ingredient_id": ingredient["ingredient_id"],
        "material_id": material["material_id"],
        "addon_id": addon["addon_id"],
        "product_id": product["product_id"],
        "variant_id": product["variants"][0]["variant_id"],
    }
