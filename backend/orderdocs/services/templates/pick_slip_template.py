"""Warehouse pick slip layout (A4 portrait, 20mm margins)."""
from __future__ import annotations

from ..document_types import DocumentTemplateData
from ...utils.formatting import format_date, format_time
from .base import BLACK, RED, PdfPage

HEADER_FILL = (220, 220, 220)
ROW_FILL = (248, 248, 248)
DELIVERY_FILL = (255, 255, 0)
CALLOUT_FILL = (255, 255, 200)
CALLOUT_BORDER = (200, 200, 0)
# Qty, Description, Type, Picked
COLUMNS = (15, 70, 20, 30)
ROW_HEIGHT = 8

RUSH_KEYWORDS = ("rush", "urgent")

FULFILLMENT_CHECKLIST = (
    "All items picked and verified",
    "Quantities confirmed correct",
    "Quality check completed",
    "Special instructions followed",
    "Packaging prepared",
    "Delivery scheduled (if applicable)",
)


def is_rush_order(special_instructions) -> bool:
    if not special_instructions:
        return False
    lowered = special_instructions.lower()
    return any(keyword in lowered for keyword in RUSH_KEYWORDS)


def requires_delivery(data: DocumentTemplateData) -> bool:
    return any(
        addon.addon is not None and "delivery" in addon.addon.name.lower()
        for addon in data.addons
    )


def _header(page: PdfPage, data: DocumentTemplateData) -> None:
    page.font(18, bold=True)
    page.text(data.company_info.name, page.margin, page.y)

    page.font(10)
    printed = f"Printed: {format_date(data.generated_at)} {format_time(data.generated_at)}"
    page.text_right(printed, page.right, page.y)
    page.y += 8

    page.font(24, bold=True)
    page.text_center("PICK SLIP", page.y)
    page.y += 15

    page.line(page.margin, page.y, page.right, page.y, width=1)
    page.y += 10


def _order_summary(page: PdfPage, data: DocumentTemplateData) -> None:
    order = data.order
    box_height = 25
    box_width = (page.width - 3 * page.margin) / 2
    top = page.y

    left_x = page.margin
    page.rect(left_x, top, box_width, box_height)
    page.font(12, bold=True)
    page.text("ORDER INFORMATION", left_x + 3, top + 6)
    page.font(10)
    page.text(f"Order #: {order.order_number}", left_x + 3, top + 12)
    page.text(f"PO #: {order.po_number or 'N/A'}", left_x + 3, top + 17)
    page.text(f"Status: {order.status.upper()}", left_x + 3, top + 22)

    right_x = page.margin + box_width + page.margin
    page.rect(right_x, top, box_width, box_height)
    page.font(12, bold=True)
    page.text("FULFILLMENT", right_x + 3, top + 6)
    page.font(10)
    page.text(f"Order Date: {format_date(order.created_at)}", right_x + 3, top + 12)
    if order.requested_fulfillment_date:
        page.text(f"Requested: {format_date(order.requested_fulfillment_date)}", right_x + 3, top + 17)
    else:
        page.text("Requested: Standard", right_x + 3, top + 17)

    if is_rush_order(order.special_instructions):
        page.font(12, bold=True)
        page.text_color(RED)
        page.text("RUSH ORDER", right_x + 3, top + 22)
        page.text_color(BLACK)

    page.y = top + box_height + 10


def _customer_delivery(page: PdfPage, data: DocumentTemplateData) -> None:
    order = data.order
    box_height = 35
    top = page.y
    page.rect(page.margin, top, page.content_width, box_height)

    page.font(12, bold=True)
    page.text("CUSTOMER & DELIVERY INFORMATION", page.margin + 3, top + 6)

    page.font(10, bold=True)
    page.text("Customer:", page.margin + 3, top + 12)
    page.font(10)
    page.text(order.company_name, page.margin + 25, top + 12)
    page.text(f"Contact: {order.contact_name}", page.margin + 3, top + 17)
    page.text(f"Phone: {order.phone}", page.margin + 3, top + 22)

    right_x = page.width / 2 + 10
    page.font(10, bold=True)
    page.text("Delivery Address:", right_x, top + 12)
    page.font(10)
    page.text(order.business_address, right_x, top + 17)
    page.text(f"{order.city}, {order.state} {order.zip_code}", right_x, top + 22)

    if requires_delivery(data):
        page.font(11, bold=True)
        banner = "DELIVERY REQUIRED"
        page.rect(right_x, top + 25, page.text_width(banner) + 4, 6, fill=DELIVERY_FILL, stroke=None)
        page.text(banner, right_x + 2, top + 29.5)

    page.y = top + box_height + 10


def _pick_row(page: PdfPage, index: int, qty: str, description: str, kind: str) -> None:
    # Alternate shading by index parity
    if index % 2 == 1:
        page.rect(page.margin, page.y, page.content_width, ROW_HEIGHT, fill=ROW_FILL, stroke=None)
    x = page.margin + 2
    page.font(12, bold=True)
    page.text(qty, x, page.y + 5)
    x += COLUMNS[0]
    page.font(10)
    page.text(description, x, page.y + 5)
    x += COLUMNS[1]
    if kind:
        page.text(kind, x, page.y + 5)
    x += COLUMNS[2]
    page.checkbox(x + 5, page.y + 1)
    page.y += ROW_HEIGHT


def _continued(data: DocumentTemplateData) -> str:
    return f"Pick Slip {data.order.order_number} (continued)"


def _table_header(page: PdfPage) -> None:
    page.rect(page.margin, page.y, page.content_width, ROW_HEIGHT, fill=HEADER_FILL, stroke=None)
    page.font(10, bold=True)
    x = page.margin + 2
    for header, width in zip(("QTY", "DESCRIPTION", "TYPE", "PICKED"), COLUMNS):
        page.text(header, x, page.y + 5)
        x += width
    page.y += ROW_HEIGHT


def _pick_list(page: PdfPage, data: DocumentTemplateData) -> None:
    page.ensure_space(8 + 2 * ROW_HEIGHT, _continued(data))
    page.font(14, bold=True)
    page.text("PICK LIST", page.margin, page.y)
    page.y += 8

    table_top = page.y
    _table_header(page)

    def break_if_needed(height: float) -> None:
        nonlocal table_top
        if page.y + height <= page.bottom:
            return
        # Close this page's part of the table and repeat the header on the next
        page.rect(page.margin, table_top, page.content_width, page.y - table_top)
        page.new_page(_continued(data))
        table_top = page.y
        _table_header(page)

    def row(index: int, qty: str, description: str, kind: str) -> None:
        break_if_needed(ROW_HEIGHT)
        _pick_row(page, index, qty, description, kind)

    for index, item in enumerate(data.items):
        product_type = item.product.type if item.product is not None else None
        row(index, str(item.quantity), item.description, product_type.upper() if product_type else "")

    if data.addons:
        # Keep the sub-heading with its first row
        break_if_needed(11 + ROW_HEIGHT)
        page.y += 5
        page.font(12, bold=True)
        page.text("ADD-ONS & SERVICES", page.margin, page.y)
        page.y += 6
        for index, addon in enumerate(data.addons):
            name = addon.addon.name if addon.addon is not None else "Custom Add-on"
            row(index, "1", name, "SERVICE")

    page.rect(page.margin, table_top, page.content_width, page.y - table_top)
    page.y += 10


def _special_instructions(page: PdfPage, data: DocumentTemplateData) -> None:
    instructions = data.order.special_instructions
    if not instructions:
        return
    page.font(10)
    lines = page.wrap(instructions, page.content_width - 6)
    box_height = max(20, len(lines) * 4 + 6)
    page.ensure_space(6 + box_height, _continued(data))

    page.font(12, bold=True)
    page.text("SPECIAL INSTRUCTIONS", page.margin, page.y)
    page.y += 6

    page.font(10)
    page.rect(page.margin, page.y, page.content_width, box_height, fill=CALLOUT_FILL, stroke=CALLOUT_BORDER)
    page.text_color(BLACK)
    page.text_lines(lines, page.margin + 3, page.y + 6)
    page.y += box_height + 10


def _checklist(page: PdfPage, data: DocumentTemplateData) -> None:
    page.ensure_space(8 + 6 * len(FULFILLMENT_CHECKLIST), _continued(data))
    page.font(12, bold=True)
    page.text("FULFILLMENT CHECKLIST", page.margin, page.y)
    page.y += 8

    page.font(10)
    for entry in FULFILLMENT_CHECKLIST:
        page.checkbox(page.margin, page.y)
        page.text(entry, page.margin + 8, page.y + 3)
        page.y += 6
    page.y += 5


def _footer(page: PdfPage, data: DocumentTemplateData) -> None:
    # Signatures are pinned to the page bottom
    page.ensure_space(0, _continued(data), limit=page.height - 40)
    page.y = max(page.y, page.height - 40)
    m = page.margin
    page.font(10)

    page.text("Picked by:", m, page.y)
    page.line(m + 25, page.y, m + 80, page.y)
    page.text("Date:", m + 85, page.y)
    page.line(m + 95, page.y, m + 130, page.y)
    page.y += 10

    page.text("Quality Check:", m, page.y)
    page.line(m + 30, page.y, m + 85, page.y)
    page.text("Date:", m + 90, page.y)
    page.line(m + 100, page.y, m + 135, page.y)
    page.y += 15

    page.font(8)
    page.text(f"Order: {data.order.order_number}", m, page.y)
    # Drawn on the last page, so the current page number is the total
    page.text_right(f"Page {page.page_number} of {page.page_number}", page.right, page.y)


def render_pick_slip(data: DocumentTemplateData, compress: bool = True) -> bytes:
    """Render the pick slip for `data` and return the PDF bytes."""
    page = PdfPage(f"Pick Slip {data.order.order_number}", compress=compress)
    _header(page, data)
    _order_summary(page, data)
    _customer_delivery(page, data)
    _pick_list(page, data)
    _special_instructions(page, data)
    _checklist(page, data)
    _footer(page, data)
    return page.finish()


__all__ = ["render_pick_slip", "is_rush_order", "requires_delivery", "FULFILLMENT_CHECKLIST"]
