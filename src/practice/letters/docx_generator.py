"""
Letter DOCX Generator

Writes rendered letter text to a Word document with python-docx, so staff
can edit a letter before sending it.
"""

import io
import logging
import re
from typing import Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Cm, Pt

logger = logging.getLogger(__name__)


class LetterDocxGenerator:
    """Generates DOCX letters on A4 pages."""

    font_name = "Calibri"

    def generate_docx(self, text: str, title: str = "Letter", firm_name: Optional[str] = None) -> bytes:
        doc = Document()

        section = doc.sections[0]
        section.page_width = Cm(21.0)
        section.page_height = Cm(29.7)
        section.top_margin = Cm(2.0)
        section.bottom_margin = Cm(2.0)
        section.left_margin = Cm(2.2)
        section.right_margin = Cm(2.2)
        doc.core_properties.title = title

        if firm_name:
            p = doc.add_paragraph()
            p.alignment = WD_ALIGN_PARAGRAPH.RIGHT
            run = p.add_run(firm_name)
            run.bold = True
            run.font.size = Pt(13)
            run.font.name = self.font_name

        for block in re.split(r"\n\s*\n", (text or "").strip()):
            if not block.strip():
                continue
            p = doc.add_paragraph()
            p.paragraph_format.space_after = Pt(8)
            lines = block.split("\n")
            for index, line in enumerate(lines):
                run = p.add_run(line)
                run.font.size = Pt(10.5)
                run.font.name = self.font_name
                if index < len(lines) - 1:
                    run.add_break()

        buffer = io.BytesIO()
        doc.save(buffer)
        data = buffer.getvalue()
        buffer.close()

        logger.info(f"Generated DOCX letter '{title}' ({len(data)} bytes)")
        return data


_docx_generator: Optional[LetterDocxGenerator] = None


def get_docx_generator() -> LetterDocxGenerator:
    global _docx_generator
    if _docx_generator is None:
        _docx_generator = LetterDocxGenerator()
    return _docx_generator
