"""
PayPal integration.

The browser loads the PayPal buttons with the client id served by
``/api/config/paypal``, captures the payment and posts the capture details to
``/api/orders/{id}/pay``. ``check_capture`` validates those details against the
stored order. When a client secret is configured, ``PayPalClient`` re-reads the
PayPal order server-side instead of trusting the browser's copy.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

import requests
from pydantic import BaseModel, ConfigDict

import config

logger = logging.getLogger(__name__)


class CaptureError(ValueError):
    """The capture does not settle the order."""


class PayPalError(RuntimeError):
    """PayPal could not be reached or answered with an error."""


class Payer(BaseModel):
    model_config = ConfigDict(extra="allow")

    email_address: Optional[str] = None


class PaymentDetails(BaseModel):
    """Capture details as returned by ``actions.order.capture()``."""
    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    update_time: Optional[str] = None
    payer: Optional[Payer] = None
    purchase_units: List[Dict[str, Any]] = []


def captured_money(details: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """Return the captured ``{value, currency_code}`` from capture details, if present."""
    units = details.get("purchase_units") or []
    if not units:
        return None
    unit = units[0]
    captures = (unit.get("payments") or {}).get("captures") or []
    if captures and captures[0].get("amount"):
        return captures[0]["amount"]
    return unit.get("amount")


def captured_amount(details: Mapping[str, Any]) -> Optional[str]:
    money = captured_money(details)
    return money.get("value") if money else None


def check_capture(details: Mapping[str, Any], order: Mapping[str, Any]) -> None:
    if details.get("status") != "COMPLETED":
        raise CaptureError(f"Payment not completed (status: {details.get('status')})")

    money = captured_money(details)
    if not money or money.get("value") is None:
        raise CaptureError("Capture carries no amount")
    currency = money.get("currency_code")
    if currency != config.PAYPAL_CURRENCY:
        raise CaptureError(f"Captured currency {currency} does not match {config.PAYPAL_CURRENCY}")

    value = money["value"]
    try:
        paid = Decimal(str(value))
    except InvalidOperation:
        raise CaptureError(f"Invalid captured amount: {value}")
    expected = Decimal(str(order["total_price"])).quantize(Decimal("0.01"))
    if paid.quantize(Decimal("0.01")) != expected:
        raise CaptureError(f"Captured amount {paid} does not match order total {expected}")


def payment_result(details: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick the fields stored on the order from a capture response."""
    payer = details.get("payer") or {}
    return {
        "id": details.get("id"),
        "status": details.get("status"),
        "update_time": details.get("update_time"),
        "email_address": payer.get("email_address"),
    }


class PayPalClient:
    """Minimal REST client for the PayPal Orders v2 API."""

    def __init__(self, client_id: str, client_secret: str, api_base: str = config.PAYPAL_API_BASE,
                 timeout: float = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def get_access_token(self) -> str:
        try:
            resp = self.session.post(
                f"{self.api_base}/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()["access_token"]
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.error("PayPal token request failed: %s", e)
            raise PayPalError("Could not authenticate with PayPal") from e

    def get_order(self, paypal_order_id: str) -> Dict[str, Any]:
        token = self.get_access_token()
        try:
            resp = self.session.get(
                f"{self.api_base}/v2/checkout/orders/{paypal_order_id}",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("PayPal order lookup failed for %s: %s", paypal_order_id, e)
            raise PayPalError("Could not confirm payment with PayPal") from e

    def verify_capture(self, paypal_order_id: str, order: Mapping[str, Any]) -> Dict[str, Any]:
        remote = self.get_order(paypal_order_id)
        check_capture(remote, order)
        return remote


def get_paypal_client() -> Optional[PayPalClient]:
    """FastAPI dependency: a client when server-side verification is configured."""
    if config.PAYPAL_CLIENT_ID and config.PAYPAL_CLIENT_SECRET:
        return PayPalClient(config.PAYPAL_CLIENT_ID, config.PAYPAL_CLIENT_SECRET, config.PAYPAL_API_BASE)
    return None
