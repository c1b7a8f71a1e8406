"""
Application settings read from the environment (and a local .env file).
"""
import os

from dotenv import load_dotenv

load_dotenv()

APP_NAME = os.getenv("APP_NAME", "Storefront API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Mongo
DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storefront")
SEED_SAMPLE_PRODUCTS = os.getenv("SEED_SAMPLE_PRODUCTS", "false").lower() in ("1", "true", "yes")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-storefront-jwt-secret")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 30))

# PayPal
PAYPAL_CLIENT_ID = os.getenv("PAYPAL_CLIENT_ID")
PAYPAL_CLIENT_SECRET = os.getenv("PAYPAL_CLIENT_SECRET")
PAYPAL_API_BASE = os.getenv("PAYPAL_API_BASE", "https://api-m.sandbox.paypal.com")
PAYPAL_CURRENCY = os.getenv("PAYPAL_CURRENCY", "USD")

# Pricing
USD_TO_INR = float(os.getenv("USD_TO_INR", 83))
TAX_RATE = float(os.getenv("TAX_RATE", 0.15))
SHIPPING_PRICE = float(os.getenv("SHIPPING_PRICE", 10))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", 100))
PAGE_SIZE = int(os.getenv("PAGE_SIZE", 6))
