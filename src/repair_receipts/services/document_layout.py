"""
Document Layout Engine
Lays a receipt out on one fixed-size PDF page

The output is a pure function of the receipt and the shop profile: the
canvas runs in reportlab's invariant mode so identical input produces
identical bytes.
"""

import base64
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from reportlab.lib.pagesizes import A4, A5
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from repair_receipts.config.receipt_config import PageSize, ShopProfile
from repair_receipts.exceptions import DocumentUnavailableError
from repair_receipts.models.receipt import DeviceCategory, Receipt
from repair_receipts.utils.formatting import document_filename, format_currency
from repair_receipts.utils.qrcode import QRCodeGenerator

logger = logging.getLogger(__name__)

PAGE_SIZES = {
    PageSize.A4: A4,
    PageSize.A5: A5,
}

# Measurements in points for an A4 page; other sizes scale by height
MARGIN = 40
LINE_PITCH = 20
LABEL_WIDTH = 100
SECTION_GAP = 8
QR_SIZE = 64
SIGNATURE_WIDTH = 170
BASE_FONT_SIZE = 10
DATE_FORMAT = "%d/%m/%Y %I:%M %p"


@dataclass(frozen=True)
class ReceiptDocument:
    """Rendered receipt: a single-page PDF held in memory"""
    filename: str
    content: bytes
    page_size: Tuple[float, float]
    media_type: str = "application/pdf"

    def save(self, directory: Union[str, Path]) -> Path:
        """Write the document under its download name and return the path"""
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.filename
        path.write_bytes(self.content)
        return path

    def to_data_url(self) -> str:
        """Transient URL a browser can display directly"""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


class _Page:
    """Cursor over one canvas page with the shared row primitives"""

    def __init__(
        self,
        pdf: canvas.Canvas,
        size: Tuple[float, float],
        regular: str,
        bold: str,
    ) -> None:
        self.pdf = pdf
        self.width, self.height = size
        self.scale = self.height / A4[1]
        self.regular = regular
        self.bold = bold
        self.margin = MARGIN * self.scale
        self.pitch = LINE_PITCH * self.scale
        self.font_size = BASE_FONT_SIZE * self.scale
        self.y = self.height - self.margin

    @property
    def right(self) -> float:
        return self.width - self.margin

    def pt(self, value: float) -> float:
        return value * self.scale

    def gap(self, amount: float = SECTION_GAP) -> None:
        self.y -= self.pt(amount)

    def rule(self) -> None:
        self.pdf.setLineWidth(self.pt(0.8))
        self.pdf.line(self.margin, self.y, self.right, self.y)
        self.y -= self.pitch * 0.75

    def section(self, title: str) -> None:
        self.pdf.setFont(self.bold, self.font_size * 1.1)
        self.pdf.drawString(self.margin, self.y, title)
        self.y -= self.pitch

    def field(self, label: str, value: str, max_lines: int = 1) -> None:
        """Label, ruled line and value; long values wrap onto extra ruled lines"""
        value_x = self.margin + self.pt(LABEL_WIDTH)
        available = self.right - value_x - self.pt(4)
        lines = self.wrap(value, available, max_lines)

        self.pdf.setFont(self.regular, self.font_size)
        self.pdf.drawString(self.margin, self.y, f"{label}:")
        self.pdf.setLineWidth(self.pt(0.4))
        for line in lines:
            self.pdf.line(value_x, self.y - self.pt(3), self.right, self.y - self.pt(3))
            self.pdf.drawString(value_x + self.pt(4), self.y, line)
            self.y -= self.pitch

    def wrap(self, value: str, width: float, max_lines: int) -> List[str]:
        lines = simpleSplit(value or "", self.regular, self.font_size, width) or [""]
        if len(lines) > max_lines:
            lines = lines[:max_lines]
            lines[-1] = lines[-1].rstrip() + "..."
        return lines


class ReceiptDocumentRenderer:
    """
    Renders receipts into fixed-layout PDF documents

    Vertical order: header, number/date pair, customer block, device
    block, category checklist, amount block, signatures, footnote.

    Example:
        >>> renderer = ReceiptDocumentRenderer(shop)
        >>> document = renderer.render(receipt)
        >>> if document is not None:
        ...     document.save("./receipts")
    """

    def __init__(self, shop: ShopProfile) -> None:
        self.shop = shop
        self._qr = QRCodeGenerator()

    def render(self, receipt: Receipt) -> Optional[ReceiptDocument]:
        """Render a receipt, or return None if rendering is unavailable"""
        try:
            return self.render_or_raise(receipt)
        except DocumentUnavailableError as e:
            logger.warning(f"Receipt document not rendered: {e}")
            return None

    def render_or_raise(self, receipt: Receipt) -> ReceiptDocument:
        """
        Render a receipt

        Raises:
            DocumentUnavailableError: If the configured fonts cannot be loaded
        """
        regular, bold = self._ensure_fonts()
        size = PAGE_SIZES[self.shop.page_size]

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=size, invariant=1)
        pdf.setTitle(f"Repair receipt {receipt.receipt_number}")
        pdf.setAuthor(self.shop.name)
        pdf.setCreator(self.shop.name)
        pdf.setSubject("Repair receipt")

        page = _Page(pdf, size, regular, bold)
        self._draw_header(page, receipt)
        self._draw_number_and_date(page, receipt)
        self._draw_customer(page, receipt)
        self._draw_device(page, receipt)
        self._draw_checklist(page, receipt)
        self._draw_amount(page, receipt)
        self._draw_signatures(page)
        self._draw_footnote(page)

        pdf.showPage()
        pdf.save()

        return ReceiptDocument(
            filename=document_filename(receipt.receipt_number, receipt.customer_name),
            content=buffer.getvalue(),
            page_size=size,
        )

    @property
    def currency_symbol(self) -> str:
        # Base-14 fonts have no rupee glyph
        if self.shop.font_path:
            return self.shop.currency_symbol
        return self.shop.document_currency_symbol

    def _ensure_fonts(self) -> Tuple[str, str]:
        """Register configured TTF fonts, returning (regular, bold) names"""
        if not self.shop.font_path:
            return "Helvetica", "Helvetica-Bold"

        regular = self._register_font(self.shop.font_path)
        bold = self._register_font(self.shop.bold_font_path) if self.shop.bold_font_path else regular
        return regular, bold

    def _register_font(self, path: str) -> str:
        name = f"Receipt-{Path(path).stem}"
        if name in pdfmetrics.getRegisteredFontNames():
            return name
        try:
            pdfmetrics.registerFont(TTFont(name, path))
        except (TTFError, OSError) as e:
            raise DocumentUnavailableError(
                f"Font could not be loaded: {path}", cause=e
            ) from e
        return name

    def _draw_header(self, page: _Page, receipt: Receipt) -> None:
        pdf = page.pdf
        center = page.width / 2
        top = page.y

        pdf.setFont(page.bold, page.font_size * 1.8)
        pdf.drawCentredString(center, page.y, self.shop.name)
        page.y -= page.pitch * 1.1

        pdf.setFont(page.regular, page.font_size * 0.9)
        if self.shop.tagline:
            pdf.drawCentredString(center, page.y, self.shop.tagline)
            page.y -= page.pitch * 0.7
        for line in self.shop.address_lines:
            pdf.drawCentredString(center, page.y, line)
            page.y -= page.pitch * 0.7
        contact = " | ".join(part for part in (self.shop.phone, self.shop.email) if part)
        if contact:
            pdf.drawCentredString(center, page.y, contact)
            page.y -= page.pitch * 0.7

        self._draw_qr(page, receipt.receipt_number, top)
        page.y = min(page.y, top - page.pt(QR_SIZE)) - page.pt(4)
        page.rule()

    def _draw_qr(self, page: _Page, payload: str, top: float) -> None:
        matrix = self._qr.matrix(payload)
        cell = page.pt(QR_SIZE) / matrix.size
        origin_x = page.right - page.pt(QR_SIZE)
        origin_y = top + page.font_size * 1.2
        page.pdf.setFillGray(0)
        for row_index, row in enumerate(matrix.modules):
            for col_index, dark in enumerate(row):
                if dark:
                    page.pdf.rect(
                        origin_x + col_index * cell,
                        origin_y - (row_index + 1) * cell,
                        cell,
                        cell,
                        stroke=0,
                        fill=1,
                    )

    def format_date(self, value: Optional[datetime]) -> str:
        """Creation time as printed, in the shop's zone"""
        if value is None:
            return "-"
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.shop.tzinfo).strftime(DATE_FORMAT)

    def _draw_number_and_date(self, page: _Page, receipt: Receipt) -> None:
        page.field("Receipt No.", receipt.receipt_number)
        page.field("Date", self.format_date(receipt.created_at))
        page.gap()

    def _draw_customer(self, page: _Page, receipt: Receipt) -> None:
        page.section("Customer Details")
        page.field("Name", receipt.customer_name)
        page.field("Phone", receipt.phone)
        page.field("Address", receipt.address, max_lines=2)
        page.field("Email", receipt.email)
        page.gap()

    def _draw_device(self, page: _Page, receipt: Receipt) -> None:
        page.section("Device Details")
        page.field("IMEI", receipt.imei)
        page.field("Serial No.", receipt.serial_number)
        page.field("Issue", receipt.issue, max_lines=2)
        page.field("Condition", receipt.condition, max_lines=2)
        page.gap()

    def _draw_checklist(self, page: _Page, receipt: Receipt) -> None:
        page.section("Device Type")
        pdf = page.pdf
        categories = list(DeviceCategory)
        column = (page.right - page.margin) / len(categories)
        box = page.pt(9)

        pdf.setLineWidth(page.pt(0.6))
        for index, category in enumerate(categories):
            x = page.margin + index * column
            pdf.rect(x, page.y - page.pt(1), box, box, stroke=1, fill=0)
            if category == receipt.device_category:
                pdf.setFont(page.bold, page.font_size)
                pdf.drawCentredString(x + box / 2, page.y + page.pt(0.5), "X")
            pdf.setFont(page.regular, page.font_size)
            pdf.drawString(x + box + page.pt(4), page.y, category.value)
        page.y -= page.pitch
        page.gap()

    def _draw_amount(self, page: _Page, receipt: Receipt) -> None:
        pdf = page.pdf
        page.rule()

        pdf.setFont(page.bold, page.font_size * 1.2)
        pdf.drawString(page.margin, page.y, "Total Amount")
        pdf.setFont(page.bold, page.font_size * 1.4)
        pdf.drawRightString(
            page.right,
            page.y,
            format_currency(receipt.total_amount, symbol=self.currency_symbol),
        )
        page.y -= page.pitch

        page.field("In Words", receipt.amount_in_words, max_lines=2)
        page.gap(SECTION_GAP * 4)

    def _draw_signatures(self, page: _Page) -> None:
        pdf = page.pdf
        width = page.pt(SIGNATURE_WIDTH)
        caption_y = page.y - page.pt(12)

        pdf.setLineWidth(page.pt(0.6))
        pdf.line(page.margin, page.y, page.margin + width, page.y)
        pdf.line(page.right - width, page.y, page.right, page.y)

        pdf.setFont(page.regular, page.font_size * 0.9)
        pdf.drawString(page.margin, caption_y, "Customer Signature")
        pdf.drawRightString(page.right, caption_y, f"For {self.shop.name}")
        page.y = caption_y - page.pitch

    def _draw_footnote(self, page: _Page) -> None:
        pdf = page.pdf
        size = page.font_size * 0.8
        pdf.setFont(page.regular, size)
        first, second = self.shop.footnote_lines
        pdf.drawString(page.margin, page.margin + size * 1.4, first)
        pdf.drawString(page.margin, page.margin, second)
