import config
from database import create_document
from schemas import Product


def test_list_products_shape(client, products):
    res = client.get("/api/products")

    assert res.status_code == 200
    body = res.json()
    assert body["page"] == 1
    assert body["pages"] == 1
    assert body["has_more"] is False
    assert len(body["products"]) == 2
    product = body["products"][0]
    assert set(product) >= {"_id", "name", "image", "price", "count_in_stock"}
    assert isinstance(product["_id"], str)


def test_list_products_keyword_is_case_insensitive(client, products):
    res = client.get("/api/products", params={"keyword": "usb-c"})
    names = [p["name"] for p in res.json()["products"]]
    assert names == ["USB-C Cable"]


def test_list_products_keyword_is_literal(client, products):
    res = client.get("/api/products", params={"keyword": ".*"})
    assert res.json()["products"] == []


def test_list_products_pages(client, db, monkeypatch):
    monkeypatch.setattr(config, "PAGE_SIZE", 2)
    for i in range(5):
        create_document(db, "product", Product(name=f"Item {i}", price=1.0 + i, count_in_stock=1))

    first = client.get("/api/products").json()
    last = client.get("/api/products", params={"page": 3}).json()

    assert first["pages"] == 3
    assert first["has_more"] is True
    assert len(first["products"]) == 2
    assert last["has_more"] is False
    assert [p["name"] for p in last["products"]] == ["Item 4"]


def test_get_product(client, products):
    res = client.get(f"/api/products/{products['cable']}")
    assert res.status_code == 200
    assert res.json()["name"] == "USB-C Cable"


def test_get_product_invalid_and_missing(client):
    assert client.get("/api/products/not-an-id").status_code == 404
    assert client.get("/api/products/5f1d7f1c2a8b3c4d5e6f7a8b").status_code == 404


def test_admin_manages_products(client, admin):
    created = client.post("/api/products", headers=admin["headers"], json={
        "name": "Desk Lamp", "image": "/images/lamp.jpg", "price": 25.0, "count_in_stock": 4,
    })
    assert created.status_code == 201
    product_id = created.json()["_id"]

    updated = client.put(f"/api/products/{product_id}", headers=admin["headers"], json={"price": 22.5})
    assert updated.status_code == 200
    assert updated.json()["price"] == 22.5
    assert updated.json()["name"] == "Desk Lamp"

    deleted = client.delete(f"/api/products/{product_id}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/products/{product_id}").status_code == 404


def test_product_writes_require_admin(client, user, products):
    payload = {"name": "Desk Lamp", "price": 25.0, "count_in_stock": 4}
    assert client.post("/api/products", json=payload).status_code == 401
    assert client.post("/api/products", headers=user["headers"], json=payload).status_code == 403
    assert client.delete(f"/api/products/{products['cable']}", headers=user["headers"]).status_code == 403


def test_create_product_validates_price(client, admin):
    res = client.post("/api/products", headers=admin["headers"], json={"name": "Bad", "price": -1})
    assert res.status_code == 422
