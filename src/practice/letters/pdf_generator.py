"""
Letter PDF Generator

Lays rendered letter text out as an A4 PDF using ReportLab.
"""

import io
import logging
import re
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_JUSTIFY, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer

logger = logging.getLogger(__name__)


class LetterPDFGenerator:
    """Generates PDF letters with the firm name as a header."""

    def __init__(self):
        self._styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self._styles.add(ParagraphStyle(
            'FirmHeader',
            parent=self._styles['Normal'],
            fontSize=13,
            fontName='Helvetica-Bold',
            alignment=TA_RIGHT,
            textColor=colors.HexColor("#1f3a5f"),
            spaceAfter=14,
        ))
        self._styles.add(ParagraphStyle(
            'LetterBody',
            parent=self._styles['Normal'],
            fontSize=10.5,
            leading=15,
            alignment=TA_JUSTIFY,
            spaceAfter=9,
        ))

    def generate_pdf(self, text: str, title: str = "Letter", firm_name: Optional[str] = None) -> bytes:
        """
        Build a PDF from rendered letter text.

        Blank lines separate paragraphs; single newlines are kept as line
        breaks (addresses, sign-offs).
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=2.2 * cm,
            leftMargin=2.2 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=title,
        )

        story = []
        if firm_name:
            story.append(Paragraph(escape(firm_name), self._styles['FirmHeader']))

        for block in re.split(r"\n\s*\n", (text or "").strip()):
            if not block.strip():
                continue
            story.append(Paragraph(escape(block).replace("\n", "<br/>"), self._styles['LetterBody']))
        if not story:
            story.append(Spacer(1, 1))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"Generated PDF letter '{title}' ({len(pdf_bytes)} bytes)")
        return pdf_bytes


_pdf_generator: Optional[LetterPDFGenerator] = None


def get_pdf_generator() -> LetterPDFGenerator:
    """Get the PDF generator singleton."""
    global _pdf_generator
    if _pdf_generator is None:
        _pdf_generator = LetterPDFGenerator()
    return _pdf_generator
