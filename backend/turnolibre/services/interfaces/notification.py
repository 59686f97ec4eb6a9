"""
Outbound notification interface.
"""

from abc import ABC, abstractmethod


class NotificationSender(ABC):
    """
    Sends an HTML message to an address.

    Implementations must not raise on delivery failure: they log it and
    return False. Callers never roll back a state change because a
    notification could not be sent.
    """

    @abstractmethod
    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        pass
