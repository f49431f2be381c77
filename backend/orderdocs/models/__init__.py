"""Models package.

Exposes Base and the model classes for simplified imports.
"""
from .database import (  # noqa: F401
    Base,
    Product,
    Addon,
    Order,
    OrderItem,
    OrderAddon,
    OrderDocument,
    OrderCommunication,
    WebhookEvent,
    DocumentType,
    DocumentStatus,
    OrderStatus,
)
