"""Customer receipt layout (A4 portrait, 20mm margins)."""
from __future__ import annotations

from ..document_types import DocumentTemplateData
from ...utils.formatting import capitalize_label, format_currency, format_date, to_float
from .base import BLACK, MUTED, PdfPage

HEADER_FILL = (230, 230, 230)
BOX_FILL = (248, 248, 248)
BOX_BORDER = (200, 200, 200)
# Description, Qty, Unit Price, Total
COLUMNS = (60, 20, 25, 30)
ROW_HEIGHT = 6
TOTALS_HEIGHT = 30
# Distance of the thank-you line from the page bottom
FOOTER_OFFSET = 30


def _header(page: PdfPage, data: DocumentTemplateData) -> None:
    company = data.company_info
    top = page.y

    page.font(24, bold=True)
    page.text(company.name, page.margin, page.y)
    page.y += 10

    page.font(10)
    page.text(company.address, page.margin, page.y)
    page.y += 4
    page.text(f"{company.city}, {company.state} {company.zip_code}", page.margin, page.y)
    page.y += 4
    page.text(f"Phone: {company.phone} | Email: {company.email}", page.margin, page.y)
    if company.website:
        page.y += 4
        page.text(f"Website: {company.website}", page.margin, page.y)

    page.font(20, bold=True)
    page.text_right("RECEIPT", page.right, top)
    page.font(10)
    page.text_right(f"Date: {format_date(data.generated_at)}", page.right, top + 7)

    page.y += 15
    page.line(page.margin, page.y, page.right, page.y, width=0.5)
    page.y += 10


def _bill_to(page: PdfPage, data: DocumentTemplateData) -> None:
    order = data.order
    page.font(12, bold=True)
    page.text("BILL TO:", page.margin, page.y)
    page.y += 6

    page.font(12)
    for line in (
        order.company_name,
        f"Attn: {order.contact_name}",
        order.business_address,
        f"{order.city}, {order.state} {order.zip_code}",
        f"Phone: {order.phone}",
        f"Email: {order.email}",
    ):
        page.text(line, page.margin, page.y)
        page.y += 4
    page.y += 11


def _order_info(page: PdfPage, data: DocumentTemplateData) -> None:
    order = data.order
    box_y = page.y
    box_height = 20
    page.rect(page.margin, box_y, page.content_width, box_height, fill=BOX_FILL, stroke=BOX_BORDER)

    def field(label: str, value: str, x: float, y: float, offset: float) -> None:
        page.font(10, bold=True)
        page.text(label, x, y)
        page.font(10)
        page.text(value, x + offset, y)

    left = page.margin + 5
    field("Order Number:", order.order_number, left, box_y + 8, 30)
    if order.po_number:
        field("PO Number:", order.po_number, left, box_y + 15, 30)

    right_x = page.right - 60
    field("Order Date:", format_date(order.created_at), right_x, box_y + 8, 25)
    if order.requested_fulfillment_date:
        field("Requested:", format_date(order.requested_fulfillment_date), right_x, box_y + 15, 25)

    page.y = box_y + box_height + 10


def _item_row(page: PdfPage, description: str, note: str, qty: str, unit: str, total: str) -> None:
    x = page.margin + 2
    page.font(9)
    page.text(description, x, page.y + 4)
    if note:
        page.font(8)
        page.text_color(MUTED)
        page.text(note, x, page.y + 8)
        page.font(9)
        page.text_color(BLACK)
    x += COLUMNS[0]
    page.text(qty, x, page.y + 4)
    x += COLUMNS[1]
    page.text(unit, x, page.y + 4)
    x += COLUMNS[2]
    page.text(total, x, page.y + 4)
    page.y += ROW_HEIGHT + 3 if note else ROW_HEIGHT


def _continued(data: DocumentTemplateData) -> str:
    return f"Receipt {data.order.order_number} (continued)"


def _table_header(page: PdfPage) -> None:
    page.rect(page.margin, page.y, page.content_width, ROW_HEIGHT, fill=HEADER_FILL, stroke=None)
    page.font(9, bold=True)
    x = page.margin + 2
    for header, width in zip(("Description", "Qty", "Unit Price", "Total"), COLUMNS):
        page.text(header, x, page.y + 4)
        x += width
    page.y += ROW_HEIGHT


def _items_table(page: PdfPage, data: DocumentTemplateData) -> None:
    rows = []
    for item in data.items:
        product_type = item.product.type if item.product is not None else None
        rows.append((
            item.description,
            f"({capitalize_label(product_type)})" if product_type else "",
            str(item.quantity),
            format_currency(item.unit_price),
            format_currency(item.total_price),
        ))
    for addon in data.addons:
        info = addon.addon
        rows.append((
            info.name if info is not None else "Custom Add-on",
            f"({info.description})" if info is not None and info.description else "",
            "1",
            format_currency(addon.price),
            format_currency(addon.price),
        ))

    page.ensure_space(2 * ROW_HEIGHT, _continued(data))
    table_top = page.y
    _table_header(page)
    for row in rows:
        height = ROW_HEIGHT + 3 if row[1] else ROW_HEIGHT
        if page.y + height > page.bottom:
            # Close this page's part of the table and repeat the header on the next
            page.rect(page.margin, table_top, page.content_width, page.y - table_top, stroke=BOX_BORDER)
            page.new_page(_continued(data))
            table_top = page.y
            _table_header(page)
        _item_row(page, *row)

    page.rect(page.margin, table_top, page.content_width, page.y - table_top, stroke=BOX_BORDER)
    page.y += 10


def _totals(page: PdfPage, data: DocumentTemplateData) -> None:
    order = data.order
    page.ensure_space(TOTALS_HEIGHT, _continued(data), limit=page.height - FOOTER_OFFSET - 5)
    x = page.right - 60

    page.font(10)
    page.text("Subtotal:", x, page.y)
    page.text(format_currency(order.subtotal), x + 30, page.y)
    page.y += 5

    if to_float(order.addon_total) > 0:
        page.text("Add-ons:", x, page.y)
        page.text(format_currency(order.addon_total), x + 30, page.y)
        page.y += 5

    page.line(x, page.y, x + 50, page.y, width=0.5)
    page.y += 5

    page.font(12, bold=True)
    page.text("TOTAL:", x, page.y)
    page.text(format_currency(order.total), x + 30, page.y)
    page.y += 15


def _footer(page: PdfPage, data: DocumentTemplateData) -> None:
    footer_y = page.height - FOOTER_OFFSET
    instructions = data.order.special_instructions
    if instructions:
        page.font(10)
        lines = page.wrap(instructions, page.content_width)
        page.ensure_space(5 + 4 * len(lines), _continued(data), limit=footer_y - 5)
        page.font(10, bold=True)
        page.text("Special Instructions:", page.margin, page.y)
        page.y += 5
        page.font(10)
        page.y = page.text_lines(lines, page.margin, page.y) + 10
    page.ensure_space(0, _continued(data), limit=footer_y + 5)

    page.font(12, bold=True)
    page.text_center("Thank you for your business!", footer_y)
    page.line(page.margin, footer_y + 5, page.right, footer_y + 5, width=0.3)


def render_receipt(data: DocumentTemplateData, compress: bool = True) -> bytes:
    """Render the receipt for `data` and return the PDF bytes."""
    page = PdfPage(f"Receipt {data.order.order_number}", compress=compress)
    _header(page, data)
    _bill_to(page, data)
    _order_info(page, data)
    _items_table(page, data)
    _totals(page, data)
    _footer(page, data)
    return page.finish()


__all__ = ["render_receipt"]
