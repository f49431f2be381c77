"""Plain data shapes passed between the orchestrator, the facade and the templates.

Templates never see ORM instances: the orchestrator snapshots the order graph
into these dataclasses inside the session, so rendering can run in a worker
thread without touching the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class CompanyInfo:
    name: str
    address: str
    city: str
    state: str
    zip_code: str
    phone: str
    email: str
    website: str


DEFAULT_COMPANY_INFO = CompanyInfo(
    name="Boots & Honey",
    address="123 Business Street",
    city="San Diego",
    state="CA",
    zip_code="92003",
    phone="(555) 123-4567",
    email="orders@bootsandhoney.com",
    website="www.bootsandhoney.com",
)


@dataclass
class ProductInfo:
    name: str
    type: Optional[str] = None
    description: Optional[str] = None


@dataclass
class AddonInfo:
    name: str
    description: Optional[str] = None
    requirements: Optional[str] = None


@dataclass
class ItemData:
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    custom_description: Optional[str] = None
    product: Optional[ProductInfo] = None
    id: Optional[str] = None

    @property
    def description(self) -> str:
        if self.product is not None:
            return self.product.name
        return self.custom_description or "Custom Item"


@dataclass
class AddonData:
    price: Decimal
    addon: Optional[AddonInfo] = None
    id: Optional[str] = None

    @property
    def name(self) -> str:
        return self.addon.name if self.addon is not None else "Add-on"


@dataclass
class OrderSnapshot:
    id: str
    order_number: str
    company_name: str
    contact_name: str
    email: str
    phone: str
    business_address: str
    city: str
    state: str
    zip_code: str
    subtotal: Decimal
    addon_total: Decimal
    total: Decimal
    status: str
    created_at: datetime
    po_number: Optional[str] = None
    requested_fulfillment_date: Optional[datetime] = None
    special_instructions: Optional[str] = None


@dataclass
class OrderWithDetails:
    order: OrderSnapshot
    items: List[ItemData] = field(default_factory=list)
    addons: List[AddonData] = field(default_factory=list)

    @classmethod
    def from_model(cls, order) -> "OrderWithDetails":
        """Snapshot an ORM Order with eagerly loaded items/addons."""
        snapshot = OrderSnapshot(
            id=order.id,
            order_number=order.order_number,
            company_name=order.company_name,
            contact_name=order.contact_name,
            email=order.email,
            phone=order.phone,
            business_address=order.business_address,
            city=order.city,
            state=order.state,
            zip_code=order.zip_code,
            subtotal=order.subtotal,
            addon_total=order.addon_total,
            total=order.total,
            status=order.status,
            created_at=order.created_at,
            po_number=order.po_number,
            requested_fulfillment_date=order.requested_fulfillment_date,
            special_instructions=order.special_instructions,
        )
        items = [
            ItemData(
                id=item.id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                custom_description=item.custom_description,
                product=ProductInfo(
                    name=item.product.name,
                    type=item.product.type,
                    description=item.product.description,
                ) if item.product is not None else None,
            )
            for item in order.items
        ]
        addons = [
            AddonData(
                id=order_addon.id,
                price=order_addon.price,
                addon=AddonInfo(
                    name=order_addon.addon.name,
                    description=order_addon.addon.description,
                    requirements=order_addon.addon.requirements,
                ) if order_addon.addon is not None else None,
            )
            for order_addon in order.addons
        ]
        return cls(order=snapshot, items=items, addons=addons)


@dataclass
class DocumentTemplateData:
    order: OrderSnapshot
    items: List[ItemData]
    addons: List[AddonData]
    generated_at: datetime
    document_type: str
    company_info: CompanyInfo = DEFAULT_COMPANY_INFO


@dataclass
class DocumentGenerationOptions:
    filename: Optional[str] = None
    # Page stream compression; disabled in tests so drawn text stays greppable
    compress: bool = True


@dataclass
class DocumentMetadata:
    file_size: int = 0
    generation_time_ms: int = 0
    page_count: int = 0


@dataclass
class DocumentGenerationResult:
    success: bool
    file_path: Optional[str] = None
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    error: Optional[str] = None


@dataclass
class UploadedDocument:
    file_url: str
    file_path: str


__all__ = [
    "CompanyInfo",
    "DEFAULT_COMPANY_INFO",
    "ProductInfo",
    "AddonInfo",
    "ItemData",
    "AddonData",
    "OrderSnapshot",
    "OrderWithDetails",
    "DocumentTemplateData",
    "DocumentGenerationOptions",
    "DocumentMetadata",
    "DocumentGenerationResult",
    "UploadedDocument",
]
