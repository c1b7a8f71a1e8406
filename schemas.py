"""
Database Schemas

MongoDB collection schemas for the storefront, defined as Pydantic models.

Each Pydantic model represents a collection in your database.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Product -> "product" collection
- Order -> "order" collection
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    username: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt password hash")
    is_admin: bool = Field(False, description="Whether the user may manage orders and products")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    image: Optional[str] = Field(None, description="Image URL")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Unit price in USD")
    count_in_stock: int = Field(0, ge=0, description="Units available")


class OrderItem(BaseModel):
    product_id: str = Field(..., description="Referenced product id as string")
    name: str = Field(..., description="Snapshot of product name")
    image: Optional[str] = Field(None, description="Snapshot of product image")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    price: float = Field(..., ge=0, description="Snapshot of unit price")


class ShippingAddress(BaseModel):
    address: str
    city: str
    postal_code: str
    country: str


class PaymentResult(BaseModel):
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str = Field(..., description="Owning user id as string")
    order_items: List[OrderItem] = Field(..., description="Line items")
    shipping_address: ShippingAddress
    payment_method: str = Field("PayPal", description="Payment method chosen at checkout")
    items_price: float = Field(0.0, ge=0)
    shipping_price: float = Field(0.0, ge=0)
    tax_price: float = Field(0.0, ge=0)
    total_price: float = Field(0.0, ge=0)
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
