"""
Payment Collaborator

Produces the URL the customer is redirected to for payment. The gateway is
opaque: it receives the order reference, amount and customer contact and
answers with {"paymentUrl": ...}.
"""
import logging
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode

import httpx

from storefront.config import settings


logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Custom exception for payment gateway errors."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PaymentService:
    def __init__(
        self,
        gateway_url: Optional[str] = None,
        public_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.gateway_url = gateway_url if gateway_url is not None else settings.PAYMENT_GATEWAY_URL
        self.public_url = (public_url or settings.PUBLIC_URL).rstrip("/")
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS

    async def create_payment_redirect(
        self,
        order_id: str,
        amount: Decimal,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
    ) -> str:
        if not self.gateway_url:
            # No gateway configured: send the customer straight to the success page
            return f"{self.public_url}/payment-success?{urlencode({'orderId': order_id})}"

        payload = {
            "orderId": order_id,
            "amount": str(amount),
            "customerName": customer_name,
            "customerEmail": customer_email,
            "customerPhone": customer_phone,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(self.gateway_url, json=payload)
                response.raise_for_status()
                result = response.json()
            except httpx.HTTPStatusError as e:
                raise PaymentGatewayError(
                    f"Payment gateway HTTP error: {e.response.status_code}",
                    details={"response": e.response.text},
                )
            except httpx.HTTPError as e:
                raise PaymentGatewayError(f"Payment gateway unreachable: {e}")
            except ValueError as e:
                raise PaymentGatewayError(
                    f"Payment gateway returned invalid JSON: {e}",
                    details={"response": response.text[:500]},
                )

        if not isinstance(result, dict):
            raise PaymentGatewayError("Payment gateway response is not an object", details={"response": result})

        payment_url = result.get("paymentUrl")
        if not payment_url:
            raise PaymentGatewayError("Payment gateway response has no paymentUrl", details=result)

        logger.info(f"Payment redirect created for order {order_id}")
        return payment_url
