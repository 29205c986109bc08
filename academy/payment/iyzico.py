"""
iyzico checkout-form client
Talks to the iyzipay REST API directly over httpx using IYZWSv2 request signing
"""

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Optional

import httpx

from academy import config
from academy.errors import PaymentProviderError

logger = logging.getLogger(__name__)

INITIALIZE_PATH = "/payment/iyzipos/checkoutform/initialize/auth/ecom"
RETRIEVE_PATH = "/payment/iyzipos/checkoutform/auth/ecom/detail"

# iyzico sandbox buyer placeholders; the platform does not collect these
DEFAULT_GSM_NUMBER = "+905350000000"
DEFAULT_IDENTITY_NUMBER = "74300864791"
DEFAULT_ADDRESS = {
    "city": "Istanbul",
    "country": "Turkey",
    "address": "Nidakule Göztepe, Merdivenköy Mah. Bora Sok. No:1",
    "zipCode": "34732",
}

SANDBOX_CARD = {
    "cardHolderName": "TEST NAME",
    "cardNumber": "4000000000000001",
    "expireMonth": "12",
    "expireYear": "2030",
    "cvc": "123",
    "cardAlias": "test_card_alias",
}


def format_price(amount: float) -> str:
    return f"{amount:.2f}"


def split_name(full_name: Optional[str]):
    parts = (full_name or "unknown").split()
    if len(parts) == 1:
        return parts[0], parts[0]
    return " ".join(parts[:-1]), parts[-1]


def build_checkout_request(
    buyer: dict,
    amount: float,
    conversation_id: str,
    basket_id: str,
    item_name: str = "Course",
    item_id: str = "COURSE",
    buyer_ip: str = "127.0.0.1",
    include_test_card: bool = False
) -> dict:
    """
    Checkout-form initialize payload for a single virtual basket item

    Args:
        buyer: user document (user_id, name, email)
        include_test_card: attach the sandbox card (never in production)
    """
    price = format_price(amount)
    name, surname = split_name(buyer.get("name"))
    contact_name = buyer.get("name") or "unknown"

    request = {
        "locale": "tr",
        "conversationId": conversation_id,
        "price": price,
        "paidPrice": price,
        "currency": "TRY",
        "basketId": basket_id,
        "paymentGroup": "PRODUCT",
        "paymentChannel": "WEB",
        "enabledInstallments": [1],
        "callbackUrl": config.PAYMENT_CALLBACK_URL,
        "buyer": {
            "id": buyer.get("user_id", "unknown"),
            "name": name,
            "surname": surname,
            "gsmNumber": DEFAULT_GSM_NUMBER,
            "email": buyer.get("email") or "unknown@example.com",
            "identityNumber": DEFAULT_IDENTITY_NUMBER,
            "registrationAddress": DEFAULT_ADDRESS["address"],
            "ip": buyer_ip,
            "city": DEFAULT_ADDRESS["city"],
            "country": DEFAULT_ADDRESS["country"],
            "zipCode": DEFAULT_ADDRESS["zipCode"],
        },
        "shippingAddress": {"contactName": contact_name, **DEFAULT_ADDRESS},
        "billingAddress": {"contactName": contact_name, **DEFAULT_ADDRESS},
        "basketItems": [
            {
                "id": item_id,
                "name": item_name,
                "category1": "Education",
                "itemType": "VIRTUAL",
                "price": price,
            }
        ],
    }
    if include_test_card:
        request["paymentCard"] = dict(SANDBOX_CARD)
    return request


class IyzicoClient:
    """Minimal async client for the two checkout-form calls the platform uses"""

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def auth_headers(self, uri_path: str, body: str, random_key: Optional[str] = None) -> dict:
        """IYZWSv2: HMAC-SHA256 over randomKey + path + body"""
        random_key = random_key or f"{int(time.time() * 1000)}{secrets.token_hex(4)}"
        signature = hmac.new(
            self.secret_key.encode(),
            f"{random_key}{uri_path}{body}".encode(),
            hashlib.sha256
        ).hexdigest()
        authorization = f"apiKey:{self.api_key}&randomKey:{random_key}&signature:{signature}"
        return {
            "Authorization": "IYZWSv2 " + base64.b64encode(authorization.encode()).decode(),
            "x-iyzi-rnd": random_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _post(self, uri_path: str, payload: dict) -> dict:
        body = json.dumps(payload)
        headers = self.auth_headers(uri_path, body)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(uri_path, content=body, headers=headers)
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("iyzico request to %s failed: %s", uri_path, e)
            raise PaymentProviderError(f"Could not reach payment provider: {e}")

    async def create_checkout_form(self, request: dict) -> dict:
        """Returns the provider result with token and checkoutFormContent"""
        result = await self._post(INITIALIZE_PATH, request)
        if result.get("status") != "success":
            message = result.get("errorMessage") or "unknown error"
            logger.warning("iyzico checkout form rejected: %s", message)
            raise PaymentProviderError(f"Error creating payment form: {message}")
        logger.info("iyzico checkout form created (conversation %s)", result.get("conversationId"))
        return result

    async def retrieve_checkout_form(self, token: str, conversation_id: Optional[str] = None) -> dict:
        """Provider verdict for a checkout token; failures are returned, not raised"""
        request = {
            "locale": "tr",
            "conversationId": conversation_id or str(secrets.randbelow(100000000)),
            "token": token,
        }
        return await self._post(RETRIEVE_PATH, request)


def is_successful_payment(result: dict) -> bool:
    return result.get("status") == "success" and result.get("paymentStatus") == "SUCCESS"


def get_payment_provider() -> IyzicoClient:
    """Dependency: provider client built from configuration"""
    return IyzicoClient(
        api_key=config.IYZICO_API_KEY,
        secret_key=config.IYZICO_SECRET_KEY,
        base_url=config.IYZICO_API_BASE_URL,
        timeout=config.PAYMENT_TIMEOUT_SECONDS
    )
