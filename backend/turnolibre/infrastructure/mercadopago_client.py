"""
MercadoPago REST client.

Each call builds its own HTTP client with the access token it was given,
so one club's credential never leaks into another club's request.
"""

from typing import Optional

import httpx

from turnolibre.core.config import get_settings
from turnolibre.core.logging import get_logger
from turnolibre.services.interfaces.payment_processor import (
    PaymentInfo,
    PaymentProcessor,
    PaymentProcessorError,
)

logger = get_logger(__name__)
settings = get_settings()


class MercadoPagoProcessor(PaymentProcessor):
    def __init__(self, base_url: str = "", timeout: float = 15.0):
        self.base_url = base_url or settings.MERCADOPAGO_API_URL
        self.timeout = timeout

    def _client(self, access_token: str) -> httpx.AsyncClient:
        if not access_token:
            raise PaymentProcessorError("Missing MercadoPago access token")
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self.timeout,
        )

    async def create_checkout(
        self,
        access_token: str,
        items: list[dict],
        external_reference: str,
        notification_url: str,
        back_urls: Optional[dict] = None,
    ) -> str:
        preference = {
            "items": items,
            "external_reference": external_reference,
            "notification_url": notification_url,
        }
        if back_urls:
            preference["back_urls"] = back_urls
            preference["auto_return"] = "approved"

        try:
            async with self._client(access_token) as client:
                response = await client.post("/checkout/preferences", json=preference)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error("checkout_create_failed", external_reference=external_reference, error=str(e))
            raise PaymentProcessorError(str(e)) from e

        init_point = data.get("init_point")
        if not init_point:
            raise PaymentProcessorError("Preference created without init_point")

        logger.info("checkout_created", external_reference=external_reference, preference_id=data.get("id"))
        return init_point

    async def fetch_payment(self, access_token: str, payment_id: str) -> PaymentInfo:
        try:
            async with self._client(access_token) as client:
                response = await client.get(f"/v1/payments/{payment_id}")
                response.raise_for_status()
                payment = response.json()
        except httpx.HTTPError as e:
            logger.error("payment_fetch_failed", payment_id=payment_id, error=str(e))
            raise PaymentProcessorError(str(e)) from e

        method = (payment.get("payment_method") or {}).get("type") or payment.get("payment_type_id")
        reference = payment.get("external_reference")
        return PaymentInfo(
            payment_id=str(payment_id),
            status=payment.get("status"),
            external_reference=str(reference) if reference is not None else None,
            method=method,
        )
