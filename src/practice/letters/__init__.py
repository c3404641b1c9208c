"""
Letter templates and generated letters.

Templates are jinja2 text rendered in a sandbox and written out as PDF
(reportlab) or DOCX (python-docx).
"""

from .template_models import (
    GeneratedLetter,
    LetterStatus,
    OutputFormat,
    Placeholder,
    PlaceholderSource,
    PlaceholderType,
    Template,
    TemplateCategory,
)

__all__ = [
    "GeneratedLetter",
    "LetterStatus",
    "OutputFormat",
    "Placeholder",
    "PlaceholderSource",
    "PlaceholderType",
    "Template",
    "TemplateCategory",
]
