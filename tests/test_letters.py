"""Tests for letter templates, rendering and letter generation."""

from datetime import date, timedelta
from uuid import UUID, uuid4

import pytest

from practice.documents.document_service import get_document_service
from practice.letters.letter_renderer import (
    LetterRenderer,
    annual_total,
    currency,
    days_until_due,
    format_date,
)
from practice.letters.letter_service import get_letter_service
from practice.letters.template_models import LetterStatus, OutputFormat, TemplateCategory
from practice.letters.template_service import get_template_service
from security.api_errors import APIError, ErrorCode


@pytest.fixture
def templates():
    return get_template_service()


@pytest.fixture
def letters():
    return get_letter_service()


def builtin(name):
    return next(t for t in get_template_service().list() if t.name == name)


# =============================================================================
# FILTERS
# =============================================================================

class TestFilters:
    """Custom template filters."""

    def test_format_date(self):
        assert format_date("2025-01-31") == "31/01/2025"
        assert format_date("31/01/2025", "%d %B %Y") == "31 January 2025"
        assert format_date("soon") == "soon"

    def test_currency(self):
        assert currency(1234.5) == "£1,234.50"
        assert currency("£2,000") == "£2,000.00"
        assert currency(None) == ""

    def test_annual_total(self):
        assert annual_total(100, "monthly") == "£1,200.00"
        assert annual_total(100, "unknown") == "£100.00"

    def test_days_until_due(self):
        assert days_until_due(date.today()) == "due today"
        assert days_until_due(date.today() + timedelta(days=5)) == "5 days"
        assert days_until_due(date.today() - timedelta(days=2)) == "2 days overdue"

    def test_default_covers_missing_keys(self):
        renderer = LetterRenderer()
        assert renderer.render('Hi {{ nickname | default("Sir") }}', {}) == "Hi Sir"
        assert renderer.render('Hi {{ nickname | default("Sir") }}', {"nickname": ""}) == "Hi Sir"
        assert renderer.render('{{ count | default(5) }}', {"count": 0}) == "0"


class TestRenderer:
    """Parsing and rendering errors."""

    def test_placeholders_from_blocks(self):
        content = (
            "{% if vat_registered %}VAT: {{ vat_number }}{% endif %}"
            "{% for line in address_lines %}{{ line }}{% endfor %}"
        )
        assert LetterRenderer().extract_placeholders(content) == ["vat_registered", "vat_number", "address_lines"]

    def test_invalid_date_is_a_format_error(self):
        with pytest.raises(APIError) as exc:
            LetterRenderer().render("Due {{ due | format_date }}", {"due": "31/02/2024"})
        assert exc.value.code == ErrorCode.VALIDATION_INVALID_FORMAT

    def test_undefined_attribute_is_a_format_error(self):
        with pytest.raises(APIError) as exc:
            LetterRenderer().render("{{ client.name.upper() }}", {})
        assert exc.value.code == ErrorCode.VALIDATION_INVALID_FORMAT


# =============================================================================
# TEMPLATES
# =============================================================================

class TestTemplateService:
    """Template CRUD and preview."""

    def test_builtins_seeded(self, templates):
        names = {t.name for t in templates.list()}
        assert names == {"Client Engagement Letter", "Fee Confirmation", "Compliance Reminder"}

    def test_placeholders_extracted_when_not_declared(self, templates):
        template = templates.create(
            "Chaser", "Dear {{ contact_name }}, please send {{ records | default('your records') }}.",
        )
        assert [p.key for p in template.placeholders] == ["contact_name", "records"]
        assert template.placeholders[0].label == "Contact Name"
        assert template.version == 1

    def test_syntax_error_rejected(self, templates):
        with pytest.raises(APIError) as exc:
            templates.create("Broken", "Hello {{ client_name ")
        assert exc.value.code == ErrorCode.VALIDATION_INVALID_FORMAT

    def test_content_change_bumps_version(self, templates):
        template = templates.create("Note", "Hello {{ client_name }}")
        templates.update(template.id, {"description": "Short note"})
        assert template.version == 1
        templates.update(template.id, {"content": "Hi {{ client_name }}"})
        assert template.version == 2

    def test_search_and_category(self, templates):
        templates.create("VAT Chaser", "{{ client_name }}", category=TemplateCategory.VAT)
        assert [t.name for t in templates.list(category=TemplateCategory.VAT)] == ["VAT Chaser"]
        assert [t.name for t in templates.search("chaser")] == ["VAT Chaser"]

    def test_inactive_hidden_by_default(self, templates):
        template = templates.create("Old", "x", is_active=False)
        assert template not in templates.list()
        assert template in templates.list(active_only=False)

    def test_preview_shows_unfilled_keys(self, templates):
        template = templates.create("Note", "Dear {{ contact_name }}, re {{ subject }}")
        preview = templates.preview(template.id, {"subject": "your accounts"})
        assert preview["content"] == "Dear [contact_name], re your accounts"
        assert preview["placeholders"] == ["contact_name", "subject"]

    def test_delete(self, templates):
        template = templates.create("Temp", "x")
        assert templates.delete(template.id) is True
        assert templates.delete(template.id) is False


# =============================================================================
# GENERATION
# =============================================================================

class TestLetterGeneration:
    """Merging, rendering and saving letters."""

    def test_engagement_letter_pdf(self, letters, sample_client):
        letter = letters.generate(builtin("Client Engagement Letter").id, sample_client.id)

        assert letter.status == LetterStatus.GENERATED
        assert letter.client_name == "Acme Widgets Ltd"
        assert list(letter.document_ids) == ["PDF"]
        document = get_document_service().get(UUID(letter.document_ids["PDF"]))
        assert document.mime_type == "application/pdf"
        assert document.original_name.startswith("Client_Engagement_Letter_1A001_")
        assert get_document_service().read_content(document.id).startswith(b"%PDF")

    def test_fee_confirmation_uses_service_data(self, letters, sample_client, sample_service):
        letter = letters.generate(
            builtin("Fee Confirmation").id, sample_client.id,
            service_id=sample_service.id, output_formats=[OutputFormat.PDF, OutputFormat.DOCX],
        )
        assert letter.placeholder_values["fee"] == "£1,200.00"
        assert letter.service_name == "Annual Accounts"
        assert set(letter.document_ids) == {"PDF", "DOCX"}

    def test_missing_required_placeholders(self, letters, sample_client):
        with pytest.raises(APIError) as exc:
            letters.generate(builtin("Fee Confirmation").id, sample_client.id)
        assert exc.value.code == ErrorCode.VALIDATION_MISSING_FIELD
        assert exc.value.details["missing"] == ["service_kind", "fee"]

    def test_caller_values_and_defaults(self, letters, sample_client):
        reminder = builtin("Compliance Reminder")
        preview = letters.preview(reminder.id, sample_client.id, placeholder_values={"due_date": "31/03/2026"})
        assert preview["missing"] == []
        assert "Reminder: Annual Accounts due 31/03/2026" in preview["content"]
        assert "company number 01234567" in preview["content"]

    def test_preview_reports_missing(self, letters, sample_client):
        preview = letters.preview(builtin("Compliance Reminder").id, sample_client.id)
        assert preview["missing"] == ["due_date"]
        assert "<p>" in preview["html"]

    def test_service_of_other_client_rejected(self, letters, sample_service):
        from practice.clients.client_service import get_client_service

        other = get_client_service().create(name="Beta Ltd")
        with pytest.raises(APIError) as exc:
            letters.generate(builtin("Fee Confirmation").id, other.id, service_id=sample_service.id)
        assert exc.value.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_draft_without_saving(self, letters, sample_client):
        letter = letters.generate(builtin("Client Engagement Letter").id, sample_client.id, auto_save=False)
        assert letter.status == LetterStatus.DRAFT
        assert letter.document_ids == {}
        assert get_document_service().list() == []

    def test_inactive_template_rejected(self, letters, templates, sample_client):
        template = templates.create("Old", "{{ client_name }}", is_active=False)
        with pytest.raises(APIError):
            letters.generate(template.id, sample_client.id)

    def test_engagement_preview_without_services(self, letters, sample_client):
        preview = letters.preview(builtin("Client Engagement Letter").id, sample_client.id)
        assert "We will provide the following services: as agreed between us." in preview["content"]
        assert "Dear Sir or Madam," in preview["content"]

    def test_bulk_generate_collects_failures(self, letters, sample_client):
        missing = uuid4()
        result = letters.bulk_generate(builtin("Client Engagement Letter").id, [sample_client.id, missing])
        assert result["generated"] == 1
        assert result["failed"] == [{"client_id": str(missing), "error": "Client not found"}]

    def test_bulk_generate_continues_past_render_errors(self, letters, templates, sample_client):
        from practice.clients.client_service import get_client_service

        single_word = get_client_service().create(name="Beta")
        template = templates.create("Salutation", "Dear {{ client_name.split()[1].upper() }}")

        result = letters.bulk_generate(template.id, [single_word.id, sample_client.id])
        assert result["generated"] == 1
        assert result["letters"][0]["client_id"] == str(sample_client.id)
        assert [f["client_id"] for f in result["failed"]] == [str(single_word.id)]


class TestLetterHistory:
    """Listing, searching and downloading letters."""

    def test_download_counts(self, letters, sample_client):
        letter = letters.generate(builtin("Client Engagement Letter").id, sample_client.id)
        _, filename, content = letters.download(letter.id, "pdf")

        assert filename.endswith(".pdf")
        assert content.startswith(b"%PDF")
        assert letter.download_count == 1
        assert letter.status == LetterStatus.DOWNLOADED

    def test_download_missing_format(self, letters, sample_client):
        letter = letters.generate(builtin("Client Engagement Letter").id, sample_client.id)
        with pytest.raises(APIError) as exc:
            letters.download(letter.id, "docx")
        assert exc.value.code == ErrorCode.RESOURCE_NOT_FOUND
        with pytest.raises(APIError) as exc:
            letters.download(letter.id, "rtf")
        assert exc.value.code == ErrorCode.VALIDATION_INVALID_FORMAT

    def test_list_and_search(self, letters, sample_client, sample_service):
        letters.generate(builtin("Client Engagement Letter").id, sample_client.id)
        fee = letters.generate(builtin("Fee Confirmation").id, sample_client.id, service_id=sample_service.id)

        assert len(letters.list_by_client(sample_client.id)) == 2
        assert letters.list_by_service(sample_service.id) == [fee]
        assert letters.search("fee") == [fee]
        assert letters.search("acme") == letters.list()
