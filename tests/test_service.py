from unittest.mock import MagicMock

from fastapi.testclient import TestClient

import config
import database
import main
from main import app, seed_products_if_empty


def test_root(client):
    assert client.get("/").json() == {"message": "Storefront API is running"}


def test_database_diagnostics(client, db, monkeypatch, products):
    monkeypatch.setattr(database, "db", db)
    body = client.get("/test").json()
    assert body["connection_status"] == "Connected"
    assert "product" in body["collections"]


def test_database_diagnostics_without_connection(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    body = client.get("/test").json()
    assert body["connection_status"] == "Not Connected"


def test_schema_lists_collections(client):
    body = client.get("/schema").json()
    assert set(body) == {"user", "product", "order"}
    assert "count_in_stock" in body["product"]["properties"]


def test_seed_only_fills_empty_catalog(db):
    seed_products_if_empty(db)
    count = db["product"].count_documents({})
    assert count > 0

    seed_products_if_empty(db)
    assert db["product"].count_documents({}) == count


def test_lifespan_connects_and_creates_indexes(monkeypatch):
    fake_db = MagicMock()
    closed = MagicMock()
    monkeypatch.setattr(main, "connect_db", MagicMock(return_value=fake_db))
    monkeypatch.setattr(main, "close_db", closed)
    monkeypatch.setattr(config, "SEED_SAMPLE_PRODUCTS", False)

    with TestClient(app):
        main.connect_db.assert_called_once()
        fake_db["order"].create_index.assert_any_call(
            "payment_result.id",
            unique=True,
            partialFilterExpression={"payment_result.id": {"$type": "string"}},
        )
        fake_db["user"].create_index.assert_any_call("email", unique=True)
    closed.assert_called_once()
