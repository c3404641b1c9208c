"""
Built-in letter templates.
"""

from typing import List

from .template_models import (
    Placeholder,
    PlaceholderSource,
    PlaceholderType,
    Template,
    TemplateCategory,
)

ENGAGEMENT_LETTER = """{{ firm_name }}
{{ current_date }}

{{ client_name }}
{{ client_address }}

Dear {{ contact_name | default("Sir or Madam") }},

Letter of engagement: {{ client_name }} ({{ client_ref }})

Thank you for choosing {{ firm_name }}. This letter sets out the basis on which we will act for you.

We will provide the following services: {{ service_list | default("as agreed between us") }}.

Our fees will be billed as agreed and are payable within 30 days of invoice.

Please sign and return a copy of this letter to confirm your agreement.

Yours sincerely,

{{ firm_name }}
"""

FEE_CONFIRMATION = """{{ firm_name }}
{{ current_date }}

{{ client_name }}
{{ client_address }}

Dear {{ contact_name | default("Sir or Madam") }},

Fee confirmation: {{ service_kind }}

We confirm our fee for {{ service_kind }} of {{ fee }} {{ frequency_description }}, which amounts to {{ annualized | currency }} a year.

The next period falls due on {{ next_due }}.

Yours sincerely,

{{ firm_name }}
"""

COMPLIANCE_REMINDER = """{{ firm_name }}
{{ current_date }}

{{ client_name }}
{{ client_address }}

Dear {{ contact_name | default("Sir or Madam") }},

Reminder: {{ filing_name }} due {{ due_date }}

Your {{ filing_name }} for {{ client_name }} (company number {{ company_number | default("n/a") }}) must be filed by {{ due_date }}.

Please send us any outstanding records as soon as possible so we can meet this deadline.

Yours sincerely,

{{ firm_name }}
"""


def _client_fields() -> List[Placeholder]:
    return [
        Placeholder(key="client_name", label="Client Name", required=True, source=PlaceholderSource.CLIENT),
        Placeholder(key="client_ref", label="Client Reference", source=PlaceholderSource.CLIENT),
        Placeholder(key="client_address", label="Client Address", type=PlaceholderType.ADDRESS,
                    source=PlaceholderSource.CLIENT),
        Placeholder(key="contact_name", label="Contact Name", source=PlaceholderSource.CLIENT),
        Placeholder(key="firm_name", label="Firm Name", source=PlaceholderSource.SYSTEM),
        Placeholder(key="current_date", label="Date", type=PlaceholderType.DATE, source=PlaceholderSource.SYSTEM),
    ]


def default_letter_templates() -> List[Template]:
    """Fresh copies of the built-in templates."""
    return [
        Template(
            name="Client Engagement Letter",
            description="Standard letter of engagement for new clients",
            category=TemplateCategory.ENGAGEMENT,
            content=ENGAGEMENT_LETTER,
            placeholders=_client_fields() + [
                Placeholder(key="service_list", label="Services", source=PlaceholderSource.MANUAL),
            ],
            metadata={"builtin": True},
        ),
        Template(
            name="Fee Confirmation",
            description="Confirms the agreed fee for a service",
            category=TemplateCategory.CLIENT,
            content=FEE_CONFIRMATION,
            placeholders=_client_fields() + [
                Placeholder(key="service_kind", label="Service", required=True, source=PlaceholderSource.SERVICE),
                Placeholder(key="fee", label="Fee", type=PlaceholderType.CURRENCY, required=True,
                            source=PlaceholderSource.SERVICE),
                Placeholder(key="frequency_description", label="Billing Frequency", source=PlaceholderSource.SERVICE),
                Placeholder(key="annualized", label="Annual Fee", type=PlaceholderType.CURRENCY,
                            source=PlaceholderSource.SERVICE),
                Placeholder(key="next_due", label="Next Due", type=PlaceholderType.DATE,
                            source=PlaceholderSource.SERVICE),
            ],
            metadata={"builtin": True},
        ),
        Template(
            name="Compliance Reminder",
            description="Reminds a client of an upcoming statutory filing",
            category=TemplateCategory.COMPLIANCE,
            content=COMPLIANCE_REMINDER,
            placeholders=_client_fields() + [
                Placeholder(key="filing_name", label="Filing", required=True, default_value="Annual Accounts",
                            source=PlaceholderSource.MANUAL),
                Placeholder(key="due_date", label="Due Date", type=PlaceholderType.DATE, required=True,
                            source=PlaceholderSource.MANUAL),
                Placeholder(key="company_number", label="Company Number", source=PlaceholderSource.CLIENT),
            ],
            metadata={"builtin": True},
        ),
    ]
