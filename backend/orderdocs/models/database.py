"""
Database models for the order document pipeline.
"""

from datetime import datetime, UTC
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean, DateTime, Integer, String, Text, Numeric, JSON,
    ForeignKey, Column, Index, CheckConstraint, inspect
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship, validates


Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class ProductType(str, Enum):
    """Product type enumeration."""
    STARTER = "starter"
    PREMIUM = "premium"


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DocumentType(str, Enum):
    """Document type enumeration."""
    RECEIPT = "receipt"
    PICK_SLIP = "pick_slip"


class DocumentStatus(str, Enum):
    """Tracking row lifecycle."""
    PENDING = "pending"
    GENERATED = "generated"
    FAILED = "failed"


class CommunicationType(str, Enum):
    CONFIRMATION = "confirmation"
    PICKUP_READY = "pickup_ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class CommunicationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"


class WebhookStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _in_clause(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class _SerializableMixin:
    """Column-to-dict serialization shared by all models."""

    def to_dict(self) -> dict:
        data = {}
        # Mapper attrs, since `metadata` is mapped as `metadata_`
        for attr in inspect(self).mapper.column_attrs:
            value = getattr(self, attr.key)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Decimal):
                value = float(value)
            data[attr.columns[0].name] = value
        return data


class Product(_SerializableMixin, Base):
    """Catalog product sold in bundles."""
    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, default=ProductType.STARTER.value)
    price_per_bundle = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text)
    features = Column(JSONType, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        CheckConstraint(_in_clause("type", ProductType), name='check_valid_product_type'),
    )


class Addon(_SerializableMixin, Base):
    """Optional service attached to an order (delivery, setup...)."""
    __tablename__ = 'addons'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    requirements = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)


class Order(_SerializableMixin, Base):
    """Purchase order placed through the intake form."""
    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=_uuid)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    company_name = Column(String(200), nullable=False)
    contact_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    business_address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(20), nullable=False)
    po_number = Column(String(100))
    requested_fulfillment_date = Column(DateTime(timezone=True))
    special_instructions = Column(Text)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    addon_total = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    # Relationships
    items = relationship("OrderItem", back_populates="order",
                         cascade="all, delete-orphan", passive_deletes=True)
    addons = relationship("OrderAddon", back_populates="order",
                          cascade="all, delete-orphan", passive_deletes=True)
    documents = relationship("OrderDocument", back_populates="order",
                             cascade="all, delete-orphan", passive_deletes=True)
    communications = relationship("OrderCommunication", back_populates="order",
                                  cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        CheckConstraint('subtotal >= 0', name='check_order_subtotal_positive'),
        CheckConstraint('addon_total >= 0', name='check_order_addon_total_positive'),
        CheckConstraint('total >= 0', name='check_order_total_positive'),
        CheckConstraint(_in_clause("status", OrderStatus), name='check_valid_order_status'),
        Index('idx_orders_status', 'status'),
        Index('idx_orders_created_at', 'created_at'),
    )

    @validates('status')
    def validate_status(self, key, status):
        value = status.value if isinstance(status, OrderStatus) else status
        if value not in {s.value for s in OrderStatus}:
            raise ValueError(f"Invalid order status: {status}")
        return value


class OrderItem(_SerializableMixin, Base):
    """Line item on an order; immutable once created."""
    __tablename__ = 'order_items'

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='SET NULL'))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    custom_description = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="joined")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_item_quantity_positive'),
    )


class OrderAddon(_SerializableMixin, Base):
    """Addon attached to an order with its price snapshot."""
    __tablename__ = 'order_addons'

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    addon_id = Column(String(36), ForeignKey('addons.id', ondelete='SET NULL'))
    price = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    order = relationship("Order", back_populates="addons")
    addon = relationship("Addon", lazy="joined")


class WebhookEvent(_SerializableMixin, Base):
    """Audit log of an inbound trigger."""
    __tablename__ = 'webhook_events'

    id = Column(String(36), primary_key=True, default=_uuid)
    event_type = Column(String(50), nullable=False)
    table_name = Column(String(100), nullable=False)
    record_id = Column(String(36), nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    processed_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, default=WebhookStatus.PENDING.value)
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)
    processing_duration_ms = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        CheckConstraint(_in_clause("status", WebhookStatus), name='check_valid_webhook_status'),
        CheckConstraint('retry_count >= 0', name='check_webhook_retry_count_positive'),
        Index('idx_webhook_events_record', 'table_name', 'record_id'),
    )


class OrderDocument(_SerializableMixin, Base):
    """Tracking row for one generated artifact."""
    __tablename__ = 'order_documents'

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    document_type = Column(String(20), nullable=False)
    file_url = Column(Text)
    file_path = Column(Text)
    generated_at = Column(DateTime(timezone=True))
    webhook_event_id = Column(String(36), ForeignKey('webhook_events.id', ondelete='SET NULL'))
    status = Column(String(20), nullable=False, default=DocumentStatus.PENDING.value)
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    order = relationship("Order", back_populates="documents")

    __table_args__ = (
        CheckConstraint(_in_clause("document_type", DocumentType), name='check_valid_document_type'),
        CheckConstraint(_in_clause("status", DocumentStatus), name='check_valid_document_status'),
        CheckConstraint('retry_count >= 0', name='check_document_retry_count_positive'),
        Index('idx_order_documents_order_created', 'order_id', 'created_at'),
    )


class OrderCommunication(_SerializableMixin, Base):
    """Tracking row for an outbound email (contract only, no sender here)."""
    __tablename__ = 'order_communications'

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    communication_type = Column(String(30), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    sent_at = Column(DateTime(timezone=True))
    webhook_event_id = Column(String(36), ForeignKey('webhook_events.id', ondelete='SET NULL'))
    status = Column(String(20), nullable=False, default=CommunicationStatus.PENDING.value)
    provider_message_id = Column(String(255))
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    order = relationship("Order", back_populates="communications")

    __table_args__ = (
        CheckConstraint(_in_clause("communication_type", CommunicationType),
                        name='check_valid_communication_type'),
        CheckConstraint(_in_clause("status", CommunicationStatus),
                        name='check_valid_communication_status'),
        CheckConstraint('retry_count >= 0', name='check_communication_retry_count_positive'),
    )
