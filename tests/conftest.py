import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import create_document, get_db
from main import app
from paypal import get_paypal_client
from schemas import Product, User


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_paypal_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, username, email, password="secret123", is_admin=False):
    user_id = create_document(db, "user", User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        is_admin=is_admin,
    ))
    token = create_token(user_id)
    return {
        "_id": user_id,
        "email": email,
        "password": password,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }


@pytest.fixture
def user(db):
    return make_user(db, "jane", "jane@example.com")


@pytest.fixture
def other_user(db):
    return make_user(db, "bob", "bob@example.com")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", "admin@example.com", is_admin=True)


@pytest.fixture
def products(db):
    """One headphones (40.00) and two cables (20.00 each) come to 80.00."""
    headphones = create_document(db, "product", Product(
        name="Wireless Headphones", image="/images/headphones.jpg", price=40.0, count_in_stock=5,
    ))
    cable = create_document(db, "product", Product(
        name="USB-C Cable", image="/images/cable.jpg", price=20.0, count_in_stock=2,
    ))
    return {"headphones": headphones, "cable": cable}
