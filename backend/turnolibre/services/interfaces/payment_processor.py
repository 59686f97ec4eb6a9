"""
Payment processor interface.

Credentials are passed on every call; implementations keep no per-club
state between calls.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class PaymentProcessorError(Exception):
    """The processor could not be reached or rejected the request."""


@dataclass(frozen=True)
class PaymentInfo:
    payment_id: str
    status: Optional[str]
    external_reference: Optional[str]
    method: Optional[str]

    @property
    def approved(self) -> bool:
        return self.status == "approved"


class PaymentProcessor(ABC):
    @abstractmethod
    async def create_checkout(
        self,
        access_token: str,
        items: list[dict],
        external_reference: str,
        notification_url: str,
        back_urls: Optional[dict] = None,
    ) -> str:
        """
        Create a checkout preference.

        Returns:
            The URL the payer is redirected to
        """
        pass

    @abstractmethod
    async def fetch_payment(self, access_token: str, payment_id: str) -> PaymentInfo:
        pass
