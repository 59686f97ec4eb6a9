"""
Strategy and collaborator factory.
Configures which slot contention policy and which external adapters to use.
Each getter doubles as a FastAPI dependency so tests can override it.
"""

from turnolibre.core.config import get_settings
from turnolibre.infrastructure.brevo_client import BrevoEmailSender
from turnolibre.infrastructure.mercadopago_client import MercadoPagoProcessor
from turnolibre.services.interfaces.contention import (
    OverwritePolicy,
    RejectPolicy,
    SlotContentionPolicy,
)
from turnolibre.services.interfaces.notification import NotificationSender
from turnolibre.services.interfaces.payment_processor import PaymentProcessor


def build_contention_policy(name: str) -> SlotContentionPolicy:
    """
    Policy selection via SLOT_CONFLICT_POLICY:
    - overwrite (default): last write wins on an existing slot row
    - reject: an occupied slot refuses new reservations
    """
    if name == "reject":
        return RejectPolicy()
    return OverwritePolicy()


def get_contention_policy() -> SlotContentionPolicy:
    return build_contention_policy(get_settings().SLOT_CONFLICT_POLICY)


_notification_sender: NotificationSender = None
_payment_processor: PaymentProcessor = None


def get_notification_sender() -> NotificationSender:
    global _notification_sender
    if _notification_sender is None:
        _notification_sender = BrevoEmailSender()
    return _notification_sender


def get_payment_processor() -> PaymentProcessor:
    """Stateless: credentials travel with each call."""
    global _payment_processor
    if _payment_processor is None:
        _payment_processor = MercadoPagoProcessor()
    return _payment_processor
