import logging
import math
import re
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field, field_validator
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
import database
from auth import (
    COOKIE_NAME,
    MAX_PASSWORD_BYTES,
    create_token,
    get_current_user,
    hash_password,
    public_user,
    require_admin,
    verify_password,
)
from database import close_db, connect_db, create_document, get_db, get_documents, parse_object_id, serialize_doc
from paypal import (
    CaptureError,
    PayPalClient,
    PayPalError,
    PaymentDetails,
    check_capture,
    get_paypal_client,
    payment_result,
)
from pricing import calc_prices, order_display_summary
from schemas import (
    Order as OrderSchema,
    OrderItem as OrderItemSchema,
    Product as ProductSchema,
    ShippingAddress,
    User as UserSchema,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def ensure_indexes(db: Database) -> None:
    db["user"].create_index("email", unique=True)
    # one PayPal capture settles one order; unpaid orders carry no payment_result.id
    db["order"].create_index(
        "payment_result.id",
        unique=True,
        partialFilterExpression={"payment_result.id": {"$type": "string"}},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = connect_db()
    ensure_indexes(db)
    if config.SEED_SAMPLE_PRODUCTS:
        seed_products_if_empty(db)
    yield
    close_db()


app = FastAPI(title=config.APP_NAME, version=config.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Storefront API is running"}


@app.get("/test")
def test_database():
    """Test endpoint to check if database is available and accessible"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": []
    }

    db = database.db
    if db is None:
        return response

    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
    return response


# ---------- Schemas for requests ----------
def bcrypt_sized(password: Optional[str]) -> Optional[str]:
    if password is not None and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return password

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)

    check_password_size = field_validator("password")(bcrypt_sized)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)

    check_password_size = field_validator("password")(bcrypt_sized)

class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    count_in_stock: Optional[int] = Field(None, ge=0)

class CreateOrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)

class PreviewOrderRequest(BaseModel):
    order_items: List[CreateOrderItem]

class CreateOrderRequest(BaseModel):
    order_items: List[CreateOrderItem]
    shipping_address: ShippingAddress
    payment_method: str = "PayPal"


# ---------- Seed sample products if empty ----------
def seed_products_if_empty(db: Database) -> None:
    count = db["product"].count_documents({})
    if count > 0:
        return
    sample_products: List[Dict[str, Any]] = [
        {
            "name": "Wireless Headphones",
            "image": "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?q=80&w=1200&auto=format&fit=crop",
            "description": "Over-ear Bluetooth headphones with 30 hours of battery.",
            "price": 89.99,
            "count_in_stock": 10,
        },
        {
            "name": "Smart Watch",
            "image": "https://images.unsplash.com/photo-1523275335684-37898b6baf30?q=80&w=1200&auto=format&fit=crop",
            "description": "Fitness tracking, notifications and a week-long battery.",
            "price": 149.0,
            "count_in_stock": 7,
        },
        {
            "name": "Mechanical Keyboard",
            "image": "https://images.unsplash.com/photo-1511467687858-23d96c32e4ae?q=80&w=1200&auto=format&fit=crop",
            "description": "Hot-swappable switches and RGB backlight.",
            "price": 64.5,
            "count_in_stock": 15,
        },
        {
            "name": "Canvas Backpack",
            "image": "https://images.unsplash.com/photo-1553062407-98eeb64c6a62?q=80&w=1200&auto=format&fit=crop",
            "description": "Water-resistant backpack with a padded laptop sleeve.",
            "price": 39.99,
            "count_in_stock": 0,
        },
    ]
    for product in sample_products:
        create_document(db, "product", ProductSchema(**product))
    logger.info("Seeded %d sample products", len(sample_products))


# ---------- Helpers ----------
def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite="strict",
        max_age=config.JWT_EXPIRE_DAYS * 24 * 60 * 60,
    )


def load_order(db: Database, order_id: str) -> Dict[str, Any]:
    order = db["order"].find_one({"_id": parse_object_id(order_id, "order")})
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_doc(order)


def ensure_order_access(order: Dict[str, Any], user: Dict[str, Any]) -> None:
    if order["user_id"] != user["_id"] and not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Not authorized to access this order")


def attach_user(db: Database, order: Dict[str, Any]) -> Dict[str, Any]:
    """Populate ``order["user"]`` with the owner's name and email."""
    owner = None
    user_id = order.get("user_id")
    if user_id and ObjectId.is_valid(user_id):
        owner = db["user"].find_one({"_id": ObjectId(user_id)}, {"username": 1, "email": 1})
    order["user"] = serialize_doc(owner)
    return order


def build_order_items(db: Database, lines: List[CreateOrderItem]) -> List[OrderItemSchema]:
    """Snapshot current product data for each cart line, merging repeated products."""
    if not lines:
        raise HTTPException(status_code=400, detail="No order items")

    quantities: Dict[str, int] = {}
    for line in lines:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

    order_items: List[OrderItemSchema] = []
    for product_id, quantity in quantities.items():
        prod = db["product"].find_one({"_id": parse_object_id(product_id, "product")})
        if not prod:
            raise HTTPException(status_code=404, detail=f"Product not found: {product_id}")
        if quantity > prod.get("count_in_stock", 0):
            raise HTTPException(status_code=400, detail=f"Not enough stock for {prod['name']}")
        order_items.append(OrderItemSchema(
            product_id=str(prod["_id"]),
            name=prod["name"],
            image=prod.get("image"),
            quantity=quantity,
            price=float(prod["price"]),
        ))
    return order_items


# ---------- Config ----------
@app.get("/api/config/paypal")
def get_paypal_config():
    if not config.PAYPAL_CLIENT_ID:
        raise HTTPException(status_code=503, detail="PayPal is not configured")
    return {"clientId": config.PAYPAL_CLIENT_ID, "currency": config.PAYPAL_CURRENCY}


# ---------- Users ----------
@app.post("/api/users", status_code=201)
def register_user(payload: RegisterRequest, response: Response, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")

    user_doc = UserSchema(
        username=payload.username,
        email=email,
        password_hash=hash_password(payload.password),
    )
    try:
        user_id = create_document(db, "user", user_doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    token = create_token(user_id)
    set_token_cookie(response, token)
    logger.info("Registered user %s", user_id)
    return {**public_user({"_id": user_id, **user_doc.model_dump()}), "token": token}


@app.post("/api/users/auth")
def login_user(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_token(str(user["_id"]))
    set_token_cookie(response, token)
    return {**public_user(user), "token": token}


@app.post("/api/users/logout")
def logout_user(response: Response):
    response.delete_cookie(COOKIE_NAME)
    return {"message": "Logged out successfully"}


@app.get("/api/users/profile")
def get_profile(user: Dict[str, Any] = Depends(get_current_user)):
    return public_user(user)


@app.put("/api/users/profile")
def update_profile(payload: ProfileUpdateRequest, user: Dict[str, Any] = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    changes: Dict[str, Any] = {}
    if payload.username:
        changes["username"] = payload.username
    if payload.email:
        email = payload.email.lower()
        other = db["user"].find_one({"email": email})
        if other and str(other["_id"]) != user["_id"]:
            raise HTTPException(status_code=400, detail="Email already in use")
        changes["email"] = email
    if payload.password:
        changes["password_hash"] = hash_password(payload.password)
    changes["updated_at"] = datetime.now(timezone.utc)

    updated = db["user"].find_one_and_update(
        {"_id": parse_object_id(user["_id"], "user")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return public_user(updated)


@app.get("/api/users")
def list_users(_: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return [public_user(u) for u in get_documents(db, "user")]


# ---------- Products ----------
@app.get("/api/products")
def list_products(keyword: Optional[str] = None, page: int = Query(1, ge=1), db: Database = Depends(get_db)):
    filter_dict: Dict[str, Any] = {}
    if keyword:
        filter_dict["name"] = {"$regex": re.escape(keyword), "$options": "i"}

    page_size = config.PAGE_SIZE
    count = db["product"].count_documents(filter_dict)
    pages = max(1, math.ceil(count / page_size))

    cursor = db["product"].find(filter_dict).skip(page_size * (page - 1)).limit(page_size)
    products = [serialize_doc(p) for p in cursor]
    return {"products": products, "page": page, "pages": pages, "has_more": page < pages}


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db["product"].find_one({"_id": parse_object_id(product_id, "product")})
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_doc(product)


@app.post("/api/products", status_code=201)
def create_product(payload: ProductSchema, _: Dict[str, Any] = Depends(require_admin),
                   db: Database = Depends(get_db)):
    product_id = create_document(db, "product", payload)
    return serialize_doc(db["product"].find_one({"_id": parse_object_id(product_id)}))


@app.put("/api/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdateRequest, _: Dict[str, Any] = Depends(require_admin),
                   db: Database = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    changes["updated_at"] = datetime.now(timezone.utc)
    updated = db["product"].find_one_and_update(
        {"_id": parse_object_id(product_id, "product")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize_doc(updated)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, _: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    result = db["product"].delete_one({"_id": parse_object_id(product_id, "product")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product removed"}


# ---------- Orders ----------
@app.post("/api/orders/preview")
def preview_order(payload: PreviewOrderRequest, db: Database = Depends(get_db)):
    items = [item.model_dump() for item in build_order_items(db, payload.order_items)]
    return {"order_items": items, **calc_prices(items)}


@app.post("/api/orders", status_code=201)
def create_order(payload: CreateOrderRequest, user: Dict[str, Any] = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    order_items = build_order_items(db, payload.order_items)
    prices = calc_prices(item.model_dump() for item in order_items)

    order_doc = OrderSchema(
        user_id=user["_id"],
        order_items=order_items,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        **prices,
    )

    try:
        order_id = create_document(db, "order", order_doc)
    except PyMongoError as e:
        logger.error("Order creation failed for user %s: %s", user["_id"], e)
        raise HTTPException(status_code=500, detail=f"Failed to create order: {str(e)}")

    logger.info("Order %s created for user %s, total %.2f", order_id, user["_id"], prices["total_price"])
    return load_order(db, order_id)


@app.get("/api/orders/mine")
def list_my_orders(user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    cursor = db["order"].find({"user_id": user["_id"]}).sort("created_at", -1)
    return [serialize_doc(o) for o in cursor]


@app.get("/api/orders")
def list_orders(_: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    cursor = db["order"].find({}).sort("created_at", -1)
    return [attach_user(db, serialize_doc(o)) for o in cursor]


@app.get("/api/orders/total-orders")
def count_total_orders(_: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    return {"total_orders": db["order"].count_documents({})}


@app.get("/api/orders/total-sales")
def calculate_total_sales(_: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    result = list(db["order"].aggregate([
        {"$match": {"is_paid": True}},
        {"$group": {"_id": None, "total_sales": {"$sum": "$total_price"}}},
    ]))
    total = result[0]["total_sales"] if result else 0
    return {"total_sales": round(total, 2)}


@app.get("/api/orders/total-sales-by-date")
def calculate_total_sales_by_date(_: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    totals: Dict[str, float] = defaultdict(float)
    for order in db["order"].find({"is_paid": True}, {"paid_at": 1, "total_price": 1}):
        if order.get("paid_at") is None:
            continue
        totals[order["paid_at"].strftime("%Y-%m-%d")] += order["total_price"]
    return [{"_id": day, "total_sales": round(totals[day], 2)} for day in sorted(totals)]


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    order = load_order(db, order_id)
    ensure_order_access(order, user)
    return attach_user(db, order)


@app.get("/api/orders/{order_id}/summary")
def get_order_summary(order_id: str, rate: Optional[float] = Query(None, gt=0),
                      user: Dict[str, Any] = Depends(get_current_user), db: Database = Depends(get_db)):
    order = load_order(db, order_id)
    ensure_order_access(order, user)
    return {"_id": order["_id"], **order_display_summary(order, rate)}


@app.put("/api/orders/{order_id}/pay")
def pay_order(order_id: str, details: PaymentDetails, user: Dict[str, Any] = Depends(get_current_user),
              db: Database = Depends(get_db), client: Optional[PayPalClient] = Depends(get_paypal_client)):
    order = load_order(db, order_id)
    ensure_order_access(order, user)
    if order["is_paid"]:
        raise HTTPException(status_code=400, detail="Order is already paid")

    try:
        if client is not None:
            captured = client.verify_capture(details.id, order)
        else:
            captured = details.model_dump()
            check_capture(captured, order)
    except CaptureError as e:
        logger.warning("Rejected capture %s for order %s: %s", details.id, order_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    except PayPalError as e:
        raise HTTPException(status_code=502, detail=str(e))

    result = payment_result(captured)
    if db["order"].find_one({"payment_result.id": result["id"]}, {"_id": 1}):
        logger.warning("Capture %s replayed against order %s", result["id"], order_id)
        raise HTTPException(status_code=400, detail="Payment has already been used for another order")

    now = datetime.now(timezone.utc)
    try:
        updated = db["order"].find_one_and_update(
            {"_id": parse_object_id(order_id, "order"), "is_paid": False},
            {"$set": {"is_paid": True, "paid_at": now, "payment_result": result, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Payment has already been used for another order")
    if updated is None:
        raise HTTPException(status_code=400, detail="Order is already paid")

    logger.info("Order %s paid with PayPal capture %s", order_id, result["id"])
    return serialize_doc(updated)


@app.put("/api/orders/{order_id}/deliver")
def deliver_order(order_id: str, admin: Dict[str, Any] = Depends(require_admin), db: Database = Depends(get_db)):
    order = load_order(db, order_id)
    if not order["is_paid"]:
        raise HTTPException(status_code=400, detail="Order is not paid")
    if order["is_delivered"]:
        raise HTTPException(status_code=400, detail="Order is already delivered")

    now = datetime.now(timezone.utc)
    updated = db["order"].find_one_and_update(
        {"_id": parse_object_id(order_id, "order"), "is_paid": True, "is_delivered": False},
        {"$set": {"is_delivered": True, "delivered_at": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=400, detail="Order is already delivered")

    logger.info("Order %s marked delivered by %s", order_id, admin["_id"])
    return serialize_doc(updated)


@app.get("/schema")
def get_schema_definitions():
    """Expose Pydantic schema models for tooling."""
    return {
        "user": UserSchema.model_json_schema(),
        "product": ProductSchema.model_json_schema(),
        "order": OrderSchema.model_json_schema(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
