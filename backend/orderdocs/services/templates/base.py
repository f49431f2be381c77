"""Shared drawing surface for the document templates.

`PdfPage` wraps a ReportLab canvas so templates can lay out in millimetres
from the top-left corner, the way the paper forms are measured, instead of
ReportLab's points-from-bottom-left.
"""
from __future__ import annotations

import io
import re
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

RGB = Tuple[int, int, int]

BLACK: RGB = (0, 0, 0)
MUTED: RGB = (100, 100, 100)
RED: RGB = (255, 0, 0)

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

_PAGE_OBJECT = re.compile(rb"/Type\s*/Page(?![A-Za-z])")


def rgb(value: RGB) -> colors.Color:
    r, g, b = value
    return colors.Color(r / 255.0, g / 255.0, b / 255.0)


class PdfPage:
    """Canvas addressed in mm from the top-left corner of the current page."""

    def __init__(self, title: str, margin: float = 20, pagesize=A4, compress: bool = True):
        self._buffer = io.BytesIO()
        self.canvas = canvas.Canvas(self._buffer, pagesize=pagesize, pageCompression=1 if compress else 0)
        self.canvas.setTitle(title)
        self.width = pagesize[0] / mm
        self.height = pagesize[1] / mm
        self.margin = margin
        self.y = margin
        self.page_number = 1
        self._font = FONT_REGULAR
        self._size = 10.0
        self.font(10)

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def right(self) -> float:
        return self.width - self.margin

    @property
    def bottom(self) -> float:
        return self.height - self.margin

    def _point(self, x: float, y: float) -> Tuple[float, float]:
        return x * mm, (self.height - y) * mm

    # -- text ----------------------------------------------------------- #

    def font(self, size: float, bold: bool = False) -> None:
        self._font = FONT_BOLD if bold else FONT_REGULAR
        self._size = size
        self.canvas.setFont(self._font, size)

    def text_color(self, color: RGB = BLACK) -> None:
        self.canvas.setFillColor(rgb(color))

    def text_width(self, value: str) -> float:
        return stringWidth(value, self._font, self._size) / mm

    def text(self, value: str, x: float, y: float) -> None:
        px, py = self._point(x, y)
        self.canvas.drawString(px, py, value)

    def text_right(self, value: str, right_x: float, y: float) -> None:
        px, py = self._point(right_x, y)
        self.canvas.drawRightString(px, py, value)

    def text_center(self, value: str, y: float, center_x: Optional[float] = None) -> None:
        px, py = self._point(self.width / 2 if center_x is None else center_x, y)
        self.canvas.drawCentredString(px, py, value)

    def wrap(self, value: str, width: float) -> List[str]:
        lines: List[str] = []
        for paragraph in value.splitlines() or [""]:
            lines.extend(simpleSplit(paragraph, self._font, self._size, width * mm) or [""])
        return lines

    def text_lines(self, lines: List[str], x: float, y: float, leading: float = 4) -> float:
        """Draw pre-wrapped lines; returns the y after the last one."""
        for line in lines:
            self.text(line, x, y)
            y += leading
        return y

    # -- shapes --------------------------------------------------------- #

    def line(self, x1: float, y1: float, x2: float, y2: float, width: float = 0.5,
             color: RGB = BLACK) -> None:
        self.canvas.setLineWidth(width * mm)
        self.canvas.setStrokeColor(rgb(color))
        ax, ay = self._point(x1, y1)
        bx, by = self._point(x2, y2)
        self.canvas.line(ax, ay, bx, by)

    def rect(self, x: float, y: float, w: float, h: float, fill: Optional[RGB] = None,
             stroke: Optional[RGB] = BLACK, line_width: float = 0.5) -> None:
        """Box with top-left corner at (x, y)."""
        self.canvas.saveState()
        if fill is not None:
            self.canvas.setFillColor(rgb(fill))
        if stroke is not None:
            self.canvas.setStrokeColor(rgb(stroke))
            self.canvas.setLineWidth(line_width * mm)
        px, py = self._point(x, y + h)
        self.canvas.rect(px, py, w * mm, h * mm, stroke=1 if stroke is not None else 0,
                         fill=1 if fill is not None else 0)
        self.canvas.restoreState()

    def checkbox(self, x: float, y: float, size: float = 4) -> None:
        self.rect(x, y, size, size)

    # -- pagination ----------------------------------------------------- #

    def new_page(self, heading: Optional[str] = None) -> None:
        """Start the next page, optionally with a small running heading."""
        font, size = self._font, self._size
        self.canvas.showPage()
        self.page_number += 1
        self.y = self.margin
        if heading:
            self.font(9)
            self.text_color(MUTED)
            self.text(heading, self.margin, self.y)
            self.text_right(f"Page {self.page_number}", self.right, self.y)
            self.y += 8
        # showPage resets the graphics state
        self.text_color(BLACK)
        self.font(size, bold=font == FONT_BOLD)

    def ensure_space(self, height: float, heading: Optional[str] = None,
                     limit: Optional[float] = None) -> bool:
        """Break to a new page unless `height` mm fit above `limit`; True on a break."""
        if self.y + height <= (self.bottom if limit is None else limit):
            return False
        self.new_page(heading)
        return True

    # -- output --------------------------------------------------------- #

    def finish(self) -> bytes:
        self.canvas.showPage()
        self.canvas.save()
        return self._buffer.getvalue()


def count_pages(pdf: bytes) -> int:
    """Number of page objects in a rendered document."""
    return len(_PAGE_OBJECT.findall(pdf)) or 1


__all__ = ["PdfPage", "RGB", "BLACK", "MUTED", "RED", "rgb", "count_pages"]
