"""Tests for compliance tracking and its task integration."""

from datetime import date, timedelta

import pytest

from practice.compliance.compliance_models import ComplianceSource, ComplianceStatus, ComplianceType
from practice.compliance.compliance_service import (
    compliance_type_for_service_kind,
    default_due_date,
    get_compliance_service,
)
from practice.compliance.compliance_tasks import get_compliance_task_integration, task_priority_for
from practice.services.service_manager import get_service_manager
from practice.services.service_models import ServiceFrequency, ServiceStatus
from practice.store import get_practice_store
from practice.tasks.task_models import TaskPriority, TaskStatus
from practice.tasks.task_service import get_task_service


@pytest.fixture
def compliance():
    return get_compliance_service()


@pytest.fixture
def integration():
    return get_compliance_task_integration()


def days(n):
    return date.today() + timedelta(days=n)


# =============================================================================
# SERVICE KIND MAPPING
# =============================================================================

class TestKindMapping:
    """Which services carry a filing obligation."""

    @pytest.mark.parametrize("kind,expected", [
        ("Annual Accounts", ComplianceType.ANNUAL_ACCOUNTS),
        ("VAT Returns", ComplianceType.VAT_RETURN),
        ("Payroll Services", ComplianceType.RTI_SUBMISSION),
        ("Company Secretarial", ComplianceType.CONFIRMATION_STATEMENT),
        ("Corporation Tax Return", ComplianceType.CT600),
        ("Self Assessment", ComplianceType.SA100),
        ("Year End Accounts Pack", ComplianceType.ANNUAL_ACCOUNTS),
        ("Bookkeeping", None),
        ("", None),
    ])
    def test_mapping(self, kind, expected):
        assert compliance_type_for_service_kind(kind) == expected

    def test_default_due_dates(self):
        today = date(2025, 5, 10)
        assert default_due_date(ComplianceType.VAT_RETURN, today) == date(2025, 6, 30)
        assert default_due_date(ComplianceType.SA100, today) == date(2027, 1, 31)
        assert default_due_date(ComplianceType.RTI_SUBMISSION, today) == date(2025, 6, 22)
        assert default_due_date(ComplianceType.OTHER, today) == date(2025, 6, 9)


# =============================================================================
# CRUD AND QUERIES
# =============================================================================

class TestComplianceItems:
    """Item lifecycle and queries."""

    def test_create_defaults(self, compliance, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.CONFIRMATION_STATEMENT, due_date=days(10))
        assert item.status == ComplianceStatus.PENDING
        assert item.source == ComplianceSource.COMPANIES_HOUSE
        assert item.description

    def test_manual_source(self, compliance, sample_client):
        item = compliance.create_manual(sample_client.id, ComplianceType.CT600, due_date=days(10))
        assert item.source == ComplianceSource.MANUAL

    def test_filed_at_set_and_cleared(self, compliance, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(10))
        compliance.mark_filed(item.id)
        assert item.filed_at is not None
        compliance.update(item.id, {"status": ComplianceStatus.PENDING})
        assert item.filed_at is None

    def test_overdue_and_upcoming(self, compliance, sample_client):
        late = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(-3))
        flagged = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(-1),
                                    status=ComplianceStatus.OVERDUE)
        compliance.create(sample_client.id, ComplianceType.SA100, due_date=days(-9),
                          status=ComplianceStatus.FILED)
        soon = compliance.create(sample_client.id, ComplianceType.RTI_SUBMISSION, due_date=days(5))
        compliance.create(sample_client.id, ComplianceType.OTHER, due_date=days(60))

        assert compliance.list_overdue() == [late, flagged]
        assert compliance.list_upcoming(30) == [soon]

    def test_statistics(self, compliance, sample_client):
        compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(-3))
        compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(40))
        compliance.create(sample_client.id, ComplianceType.SA100, status=ComplianceStatus.FILED)

        stats = compliance.statistics()
        assert stats["total"] == 3
        assert stats["pending"] == 2
        assert stats["overdue"] == 1
        assert stats["filed"] == 1
        assert stats["by_source"]["HMRC"] == 3

    def test_bulk_update(self, compliance, sample_client):
        a = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(1))
        b = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(1))
        assert compliance.bulk_update_status([a.id, b.id], ComplianceStatus.EXEMPT) == 2
        assert a.status == b.status == ComplianceStatus.EXEMPT

    def test_filter_by_portfolio(self, compliance, sample_client):
        from practice.clients.client_service import get_client_service

        other = get_client_service().create(name="Beta Ltd", portfolio_code=2)
        compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(1))
        compliance.create(other.id, ComplianceType.VAT_RETURN, due_date=days(1))
        assert len(compliance.list(portfolio_code=2)) == 1

    def test_cleanup_invalid_clients(self, compliance, sample_client):
        compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(1))
        del get_practice_store().clients[sample_client.id]
        assert compliance.cleanup_invalid_clients() == {"removed": 1}


# =============================================================================
# GENERATION FROM SERVICES
# =============================================================================

class TestServiceCompliance:
    """Items derived from the services a client buys."""

    def test_ensure_uses_next_due(self, compliance, sample_service):
        item = compliance.ensure_for_service(sample_service.id)
        assert item.type == ComplianceType.ANNUAL_ACCOUNTS
        assert item.due_date == sample_service.next_due
        assert item.description.endswith("(Annual Accounts)")

    def test_ensure_is_idempotent_until_filed(self, compliance, sample_service):
        first = compliance.ensure_for_service(sample_service.id)
        assert compliance.ensure_for_service(sample_service.id) is None
        compliance.mark_filed(first.id)
        assert compliance.ensure_for_service(sample_service.id) is not None

    def test_no_obligation(self, compliance, sample_client):
        service = get_service_manager().create(sample_client.id, "Bookkeeping", ServiceFrequency.MONTHLY)
        assert compliance.ensure_for_service(service.id) is None

    def test_auto_generate(self, compliance, sample_service, sample_client):
        manager = get_service_manager()
        manager.create(sample_client.id, "Bookkeeping", ServiceFrequency.MONTHLY)
        manager.create(sample_client.id, "VAT Returns", ServiceFrequency.QUARTERLY, status=ServiceStatus.INACTIVE)

        result = compliance.auto_generate_from_services()
        assert result["generated"] == 1
        assert result["skipped"] == 1
        assert result["errors"] == 0
        assert result["details"][0]["type"] == "ANNUAL_ACCOUNTS"


# =============================================================================
# TASK INTEGRATION
# =============================================================================

class TestTaskIntegration:
    """Tasks that get compliance items filed."""

    @pytest.mark.parametrize("due,expected", [
        (-1, TaskPriority.URGENT),
        (0, TaskPriority.URGENT),
        (5, TaskPriority.HIGH),
        (20, TaskPriority.MEDIUM),
        (90, TaskPriority.LOW),
    ])
    def test_priority_from_due_date(self, compliance, sample_client, due, expected):
        item = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(due))
        assert task_priority_for(item) == expected

    def test_create_task_for_item(self, compliance, integration, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(5), period="Q1 2025")
        task = integration.create_task_for_item(item.id)

        assert task.title == f"VAT RETURN - {item.description}"
        assert f"[compliance:{item.id}]" in task.description
        assert "Q1 2025" in task.description
        assert task.tags == ["compliance", "filing", "vat_return", "hmrc"]
        assert task.priority == TaskPriority.HIGH
        assert integration.find_tasks_for_item(item.id) == [task]

    def test_tasks_for_overdue_skip_existing(self, compliance, integration, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(-2))
        first = integration.create_tasks_for_overdue()
        second = integration.create_tasks_for_overdue()
        assert (first["created"], second["created"], second["skipped"]) == (1, 0, 1)
        assert first["tasks"][0]["priority"] == "URGENT"
        assert len(integration.find_tasks_for_item(item.id)) == 1

    def test_tasks_for_upcoming(self, compliance, integration, sample_client):
        compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(10))
        compliance.create(sample_client.id, ComplianceType.SA100, due_date=days(100))
        assert integration.create_tasks_for_upcoming(30)["created"] == 1

    def test_escalate_overdue(self, compliance, integration, sample_client):
        with_task = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(-2))
        task = get_task_service().create(
            "Prepare CT600", description=f"[compliance:{with_task.id}]",
            tags=["compliance"], priority=TaskPriority.LOW,
        )
        without_task = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(-1))

        result = integration.escalate_overdue()
        assert result == {"escalated": 2, "tasks_created": 1, "tasks_escalated": 1}
        assert with_task.status == ComplianceStatus.OVERDUE
        assert without_task.status == ComplianceStatus.OVERDUE
        assert task.priority == TaskPriority.URGENT

    def test_sync_files_when_all_tasks_complete(self, compliance, integration, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(5))
        task = integration.create_task_for_item(item.id)

        assert integration.sync_with_tasks() == {"synced": 0, "errors": 0}
        get_task_service().update_status(task.id, TaskStatus.COMPLETED)
        assert integration.sync_with_tasks() == {"synced": 1, "errors": 0}
        assert item.status == ComplianceStatus.FILED

    def test_priority_recommendations(self, compliance, integration, sample_client):
        overdue = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(-2))
        compliance.create(sample_client.id, ComplianceType.VAT_RETURN, due_date=days(3))

        result = integration.priority_recommendations()
        severities = [c["severity"] for c in result["critical_items"]]
        assert severities == ["critical", "high"]
        assert result["action_items"][0]["compliance_id"] == str(overdue.id)
        assert result["action_items"][0]["priority"] == "URGENT"

    def test_dashboard(self, compliance, integration, sample_client):
        item = compliance.create(sample_client.id, ComplianceType.CT600, due_date=days(-2))
        integration.create_task_for_item(item.id)
        dashboard = integration.dashboard()
        assert dashboard["summary"]["total"] == 1
        assert len(dashboard["overdue_with_tasks"][0]["related_tasks"]) == 1
        assert dashboard["relationships"][0]["has_active_tasks"] is True
