"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .brevo_client import BrevoEmailSender
from .mercadopago_client import MercadoPagoProcessor

__all__ = ['BrevoEmailSender', 'MercadoPagoProcessor']
