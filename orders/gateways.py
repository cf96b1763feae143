"""
Payment gateway client.

The gateway receives the amount to charge and the customer's contact details
and answers with a checkout URL and a transaction id. Payment confirmation
arrives later through the gateway's webhook and is not handled here.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when a payment cannot be initiated."""


@dataclass
class PaymentRequest:
    amount: Decimal
    currency: str
    description: str
    customer_email: str
    customer_name: str = ''
    customer_phone: str = ''
    return_url: str = ''
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentSession:
    checkout_url: str
    transaction_id: str


class PaymentGateway:
    """Interface of a payment gateway."""

    def initiate_payment(self, request: PaymentRequest) -> PaymentSession:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    """Gateway reached over its REST API."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _payload(self, request: PaymentRequest) -> Dict[str, Any]:
        first_name, _, last_name = (request.customer_name or request.customer_email.split('@')[0]).partition(' ')
        return {
            "amount": int(request.amount),
            "currency": request.currency,
            "description": request.description,
            "return_url": request.return_url,
            "customer": {
                "email": request.customer_email,
                "first_name": first_name,
                "last_name": last_name,
                "phone": request.customer_phone or None,
            },
            "metadata": {key: str(value) for key, value in request.metadata.items()},
        }

    def initiate_payment(self, request: PaymentRequest) -> PaymentSession:
        """
        Create a checkout session.

        Raises:
            PaymentGatewayError: If the gateway is unreachable or refuses the payment
        """
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.base_url}/payments/initialize",
                    headers=self.headers,
                    json=self._payload(request),
                )
                response.raise_for_status()
                data = response.json().get("data") or {}
        except httpx.HTTPStatusError as e:
            raise PaymentGatewayError(
                f"Payment gateway refused the payment ({e.response.status_code})"
            ) from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e
        except ValueError as e:
            raise PaymentGatewayError("Payment gateway sent an unreadable response") from e

        checkout_url = data.get("checkout_url")
        transaction_id = data.get("id")
        if not checkout_url or not transaction_id:
            raise PaymentGatewayError("Payment gateway response has no checkout URL")

        logger.debug("Payment %s initiated", transaction_id)
        return PaymentSession(checkout_url=checkout_url, transaction_id=str(transaction_id))


def get_payment_gateway(gateway: Optional[PaymentGateway] = None) -> PaymentGateway:
    """Gateway configured in settings, unless one is given."""
    if gateway is not None:
        return gateway
    return HttpPaymentGateway(
        base_url=settings.PAYMENT_GATEWAY_URL,
        api_key=settings.PAYMENT_GATEWAY_API_KEY,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
    )
