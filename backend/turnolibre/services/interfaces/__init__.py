"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .contention import SlotContentionPolicy, OverwritePolicy, RejectPolicy
from .notification import NotificationSender
from .payment_processor import PaymentProcessor, PaymentProcessorError, PaymentInfo

__all__ = [
    'SlotContentionPolicy', 'OverwritePolicy', 'RejectPolicy',
    'NotificationSender',
    'PaymentProcessor', 'PaymentProcessorError', 'PaymentInfo',
]
