"""PDF export for transaction receipts using ReportLab."""

from __future__ import annotations

import logging
from pathlib import Path

from .currency import format_currency
from .receipt import Receipt, ReceiptSection

logger = logging.getLogger(__name__)

# Unicode TrueType fonts, for customer and shop names outside Latin-1
_FONT_SEARCH_PATHS = [
    # DejaVu (Debian/Ubuntu)
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    # DejaVu (Fedora/RHEL)
    "/usr/share/fonts/dejavu-sans-fonts/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    # Noto Sans
    "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
    # macOS
    "/Library/Fonts/Arial Unicode.ttf",
    "/System/Library/Fonts/Supplemental/Arial Unicode.ttf",
]

_FALLBACK_FONT = "Helvetica"

# Parchment palette of the in-game receipt
_INK = "#8B4513"
_PAPER = "#FFF8DC"
_SUMMARY = "#F5F5DC"
_GOOD = "#228B22"
_BAD = "#DC143C"


def _find_unicode_font() -> str | None:
    for path in _FONT_SEARCH_PATHS:
        if Path(path).exists():
            return path
    return None


def _register_font() -> str:
    """Register a Unicode font with ReportLab, or fall back to Helvetica."""
    from reportlab.pdfbase import pdfmetrics
    from reportlab.pdfbase.ttfonts import TTFont

    font_path = _find_unicode_font()
    if font_path is None:
        logger.debug("No Unicode font found, using %s", _FALLBACK_FONT)
        return _FALLBACK_FONT
    font_name = "ReceiptFont"
    pdfmetrics.registerFont(TTFont(font_name, font_path))
    return font_name


def _section_rows(section: ReceiptSection) -> tuple[list[list[str]], int | None]:
    """Table rows for a section and the row index of its haggle line."""
    rows = [[section.title, "", ""]]
    for line in section.lines:
        rows.append([line.name, f"x{line.quantity}", format_currency(line.total)])
    rows.append(["Subtotal:", "", format_currency(section.subtotal)])
    adjustment_row = None
    if section.adjustment:
        sign = "-" if section.adjustment < 0 else "+"
        adjustment_row = len(rows)
        rows.append([
            f"{section.adjustment_label} ({section.adjustment_percent}%):",
            "",
            f"{sign}{format_currency(abs(section.adjustment))}",
        ])
    rows.append([f"{section.total_label}:", "", format_currency(section.total)])
    return rows, adjustment_row


def generate_receipt_pdf(receipt: Receipt, output_path: str | Path) -> Path:
    """Generate a PDF file from a Receipt.

    Args:
        receipt: The receipt to render.
        output_path: Where to save the PDF file.

    Returns:
        Path to the generated PDF file.

    Raises:
        ImportError: If reportlab is not installed.
    """
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A5
        from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import (
            Paragraph,
            SimpleDocTemplate,
            Spacer,
            Table,
            TableStyle,
        )
    except ImportError:
        raise ImportError(
            "reportlab is required: pip install 'shopkeeper[pdf]'"
        )

    font_name = _register_font()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=A5,
        leftMargin=12 * mm,
        rightMargin=12 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
        title=f"Receipt: {receipt.header.customer_name}",
    )

    styles = getSampleStyleSheet()
    ink = colors.HexColor(_INK)
    title_style = ParagraphStyle(
        "ReceiptTitle",
        parent=styles["Title"],
        fontName=font_name,
        fontSize=16,
        leading=20,
        textColor=ink,
    )
    subtitle_style = ParagraphStyle(
        "ReceiptSubtitle",
        parent=styles["Normal"],
        fontName=font_name,
        fontSize=10,
        leading=13,
        alignment=1,
    )
    body_style = ParagraphStyle(
        "ReceiptBody",
        parent=styles["Normal"],
        fontName=font_name,
        fontSize=9,
        leading=13,
    )
    footer_style = ParagraphStyle(
        "ReceiptFooter",
        parent=body_style,
        alignment=1,
        textColor=ink,
    )

    header = receipt.header
    elements: list = [
        Paragraph(header.shop_name, title_style),
        Paragraph(header.merchant_name, subtitle_style),
        Paragraph(header.location, subtitle_style),
        Spacer(1, 4 * mm),
        Paragraph(f"Customer: {header.customer_name} ({header.player_name})", body_style),
        Paragraph(f"Date: {header.timestamp:%Y-%m-%d %H:%M}", body_style),
        Spacer(1, 4 * mm),
    ]

    col_widths = [70 * mm, 20 * mm, 34 * mm]
    for section in (receipt.buy, receipt.sell):
        if section is None:
            continue
        rows, adjustment_row = _section_rows(section)
        commands = [
            ("FONTNAME", (0, 0), (-1, -1), font_name),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("TEXTCOLOR", (0, 0), (-1, 0), ink),
            ("FONTSIZE", (0, 0), (-1, 0), 11),
            ("LINEBELOW", (0, 0), (-1, 0), 0.75, ink),
            ("ALIGN", (1, 1), (1, -1), "CENTER"),
            ("ALIGN", (2, 1), (2, -1), "RIGHT"),
            ("LINEABOVE", (0, -1), (-1, -1), 1.5, ink),
            ("BACKGROUND", (0, 1), (-1, -1), colors.HexColor(_PAPER)),
            ("TOPPADDING", (0, 0), (-1, -1), 2),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ]
        if adjustment_row is not None:
            favourable = (section.adjustment < 0) == (section is receipt.buy)
            tint = colors.HexColor(_GOOD if favourable else _BAD)
            commands.append(("TEXTCOLOR", (0, adjustment_row), (-1, adjustment_row), tint))
        t = Table(rows, colWidths=col_widths)
        t.setStyle(TableStyle(commands))
        elements.append(t)
        elements.append(Spacer(1, 5 * mm))

    summary = Table(
        [
            ["Transaction Summary", ""],
            [f"Net Amount {receipt.direction}:", format_currency(abs(receipt.net))],
            ["Currency Before:", format_currency(receipt.before)],
            ["Currency After:", format_currency(receipt.after)],
        ],
        colWidths=[70 * mm, 54 * mm],
    )
    summary.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, -1), font_name),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TEXTCOLOR", (0, 0), (-1, 0), ink),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor(_SUMMARY)),
        ("BOX", (0, 0), (-1, -1), 0.75, ink),
        ("ALIGN", (1, 1), (1, -1), "RIGHT"),
    ]))
    elements.append(summary)
    elements.append(Spacer(1, 6 * mm))
    elements.append(Paragraph(f"<i>{receipt.footer}</i>", footer_style))

    doc.build(elements)
    return output_path


def generate_document_pdf(title: str, body: str, output_path: str | Path) -> Path:
    """Render a stored plain-text receipt body to PDF, line for line.

    Raises:
        ImportError: If reportlab is not installed.
    """
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A5
        from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import Preformatted, SimpleDocTemplate
    except ImportError:
        raise ImportError(
            "reportlab is required: pip install 'shopkeeper[pdf]'"
        )

    font_name = _register_font()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(output_path),
        pagesize=A5,
        leftMargin=12 * mm,
        rightMargin=12 * mm,
        topMargin=12 * mm,
        bottomMargin=12 * mm,
        title=title,
    )
    style = ParagraphStyle(
        "ReceiptText",
        parent=getSampleStyleSheet()["Code"],
        fontName=font_name,
        fontSize=9,
        leading=12,
        textColor=colors.HexColor(_INK),
        backColor=colors.HexColor(_PAPER),
    )
    doc.build([Preformatted(body, style)])
    logger.info("Wrote %s to %s", title, output_path)
    return output_path
