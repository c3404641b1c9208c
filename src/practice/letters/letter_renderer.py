"""
Letter Renderer

Renders template content with jinja2 in a sandboxed environment. Templates
are user-editable, so they only get the custom filters registered here.
"""

import html
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from jinja2 import TemplateError, TemplateSyntaxError, Undefined, meta, nodes
from jinja2.sandbox import SandboxedEnvironment

from ..dates import parse_date
from ..services.service_models import PERIODS_PER_YEAR, ServiceFrequency
from security.api_errors import APIError, ErrorCode

logger = logging.getLogger(__name__)


# =============================================================================
# FILTERS
# =============================================================================

def _to_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, (date, datetime)):
        return parse_date(value)
    text = str(value).strip()
    if re.match(r"^\d{2}/\d{2}/\d{4}$", text):
        return datetime.strptime(text, "%d/%m/%Y").date()
    try:
        return parse_date(text)
    except ValueError:
        return None


def format_date(value: Any, fmt: str = "%d/%m/%Y") -> str:
    parsed = _to_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return parsed.strftime(fmt)


def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace("£", "").replace(",", "").strip())
    except ValueError:
        return None


def currency(value: Any, symbol: str = "£") -> str:
    number = _to_number(value)
    if number is None:
        return "" if value is None else str(value)
    return f"{symbol}{number:,.2f}"


def days_until_due(value: Any) -> str:
    parsed = _to_date(value)
    if parsed is None:
        return ""
    days = (parsed - date.today()).days
    if days < 0:
        return f"{abs(days)} days overdue"
    if days == 0:
        return "due today"
    return f"{days} days"


def annual_total(value: Any, frequency: str = "ANNUAL") -> str:
    number = _to_number(value)
    if number is None:
        return ""
    try:
        periods = PERIODS_PER_YEAR[ServiceFrequency(str(frequency).upper())]
    except ValueError:
        periods = 1
    return currency(number * periods)


def default(value: Any, fallback: Any = "") -> Any:
    """Fallback for undefined, None or empty-string values."""
    if isinstance(value, Undefined) or value is None or value == "":
        return fallback
    return value


FILTERS = {
    "format_date": format_date,
    "currency": currency,
    "days_until_due": days_until_due,
    "annual_total": annual_total,
    "uppercase": lambda v: str(v or "").upper(),
    "lowercase": lambda v: str(v or "").lower(),
    "capitalize": lambda v: str(v or "").capitalize(),
    "default": default,
}


class LetterRenderer:
    """Renders letter templates to plain text or simple HTML."""

    def __init__(self):
        self.env = SandboxedEnvironment(autoescape=False, keep_trailing_newline=True)
        self.env.filters.update(FILTERS)

    def _parse(self, content: str) -> nodes.Template:
        try:
            return self.env.parse(content or "")
        except TemplateSyntaxError as e:
            raise APIError(
                ErrorCode.VALIDATION_INVALID_FORMAT,
                f"Template syntax error on line {e.lineno}: {e.message}",
            )

    def extract_placeholders(self, content: str) -> List[str]:
        """Variables the template reads from its context, in order of first use."""
        ast = self._parse(content)
        undeclared = meta.find_undeclared_variables(ast)
        seen: List[str] = []
        for node in ast.find_all(nodes.Name):
            if node.name in undeclared and node.name not in seen:
                seen.append(node.name)
        return seen

    def compile(self, content: str):
        """Parse ``content``; syntax errors become a 400."""
        return self.env.from_string(self._parse(content))

    def render(self, content: str, context: Dict[str, Any]) -> str:
        template = self.compile(content)
        try:
            return template.render(**context)
        except (TemplateError, ValueError) as e:
            raise APIError(
                ErrorCode.VALIDATION_INVALID_FORMAT,
                f"Template could not be rendered: {e}",
            )

    def render_html(self, content: str, context: Dict[str, Any]) -> str:
        """Rendered text as escaped HTML paragraphs."""
        text = self.render(content, context)
        paragraphs = [p for p in re.split(r"\n\s*\n", text.strip()) if p.strip()]
        return "\n".join(
            "<p>" + html.escape(p).replace("\n", "<br/>") + "</p>" for p in paragraphs
        )


_renderer: Optional[LetterRenderer] = None


def get_letter_renderer() -> LetterRenderer:
    global _renderer
    if _renderer is None:
        _renderer = LetterRenderer()
    return _renderer
