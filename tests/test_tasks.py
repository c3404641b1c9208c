"""Tests for tasks, task generation and task templates."""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from practice.services.service_manager import get_service_manager
from practice.services.service_models import ServiceFrequency, ServiceStatus
from practice.tasks.task_models import StandaloneCategory, TaskPriority, TaskStatus
from practice.tasks.task_service import get_task_service, score_task
from security.api_errors import APIError, ErrorCode


@pytest.fixture
def tasks():
    return get_task_service()


def days(n):
    return date.today() + timedelta(days=n)


# =============================================================================
# CRUD
# =============================================================================

class TestTaskCrud:
    """Basic task lifecycle."""

    def test_service_fills_client(self, tasks, sample_service):
        task = tasks.create("Chase records", service_id=sample_service.id)
        assert task.client_id == sample_service.client_id
        assert task.status == TaskStatus.TODO

    def test_title_required(self, tasks):
        with pytest.raises(APIError) as exc:
            tasks.create("  ")
        assert exc.value.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_unknown_service(self, tasks):
        with pytest.raises(APIError) as exc:
            tasks.create("Orphan", service_id=uuid4())
        assert exc.value.code == ErrorCode.RESOURCE_NOT_FOUND

    def test_completed_at_stamped_and_cleared(self, tasks):
        task = tasks.create("File return")
        tasks.update_status(task.id, TaskStatus.COMPLETED)
        assert task.completed_at is not None
        tasks.update_status(task.id, TaskStatus.IN_PROGRESS)
        assert task.completed_at is None

    def test_list_ordered_by_due_date(self, tasks, sample_client):
        undated = tasks.create("Undated", client_id=sample_client.id)
        later = tasks.create("Later", client_id=sample_client.id, due_date=days(10))
        sooner = tasks.create("Sooner", client_id=sample_client.id, due_date=days(1))
        page = tasks.list(client_id=sample_client.id)
        assert page["tasks"] == [sooner, later, undated]
        assert page["total"] == 3
        assert tasks.list(search="soon")["tasks"] == [sooner]
        assert tasks.list(portfolio_code=1)["total"] == 3
        assert tasks.list(portfolio_code=2)["total"] == 0

    def test_bulk_delete(self, tasks):
        a = tasks.create("A")
        b = tasks.create("B")
        assert tasks.bulk_delete([a.id, b.id, uuid4()]) == 2

    def test_overdue_and_due_soon(self, tasks):
        overdue = tasks.create("Late", due_date=days(-2))
        soon = tasks.create("Soon", due_date=days(3))
        tasks.create("Done late", due_date=days(-5), status=TaskStatus.COMPLETED)
        tasks.create("Far", due_date=days(30))
        assert tasks.list_overdue() == [overdue]
        assert tasks.list_due_soon(7) == [soon]


# =============================================================================
# GENERATION
# =============================================================================

class TestTaskGeneration:
    """Tasks generated from service templates."""

    def test_annual_accounts_generates_four_steps(self, tasks, sample_service):
        created = tasks.generate_from_service(sample_service.id)
        assert len(created) == 4
        assert [t.due_date for t in created] == [
            sample_service.next_due - timedelta(days=d) for d in (60, 30, 14, 3)
        ]
        assert created[-1].priority == TaskPriority.URGENT
        assert all(t.client_id == sample_service.client_id for t in created)

    def test_generation_is_idempotent(self, tasks, sample_service):
        tasks.generate_from_service(sample_service.id)
        assert tasks.generate_from_service(sample_service.id) == []

    def test_cancelled_tasks_are_regenerated(self, tasks, sample_service):
        first = tasks.generate_from_service(sample_service.id)
        tasks.update_status(first[0].id, TaskStatus.CANCELLED)
        again = tasks.generate_from_service(sample_service.id)
        assert [t.title for t in again] == [first[0].title]

    def test_alias_and_frequency_match(self, tasks, sample_client):
        service = get_service_manager().create(
            sample_client.id, "payroll", ServiceFrequency.MONTHLY, next_due=days(20),
        )
        assert len(tasks.generate_from_service(service.id)) == 3

    def test_outside_window_generates_nothing(self, tasks, sample_client):
        service = get_service_manager().create(sample_client.id, "Annual Accounts", next_due=days(200))
        assert tasks.generate_from_service(service.id) == []

    def test_no_next_due_generates_nothing(self, tasks, sample_client):
        service = get_service_manager().create(sample_client.id, "Annual Accounts")
        assert tasks.generate_from_service(service.id) == []

    def test_unknown_kind_generates_nothing(self, tasks, sample_client):
        service = get_service_manager().create(sample_client.id, "Probate", next_due=days(10))
        assert tasks.generate_from_service(service.id) == []

    def test_generate_for_all_skips_inactive(self, tasks, sample_service, sample_client):
        get_service_manager().create(
            sample_client.id, "Payroll Services", ServiceFrequency.MONTHLY,
            next_due=days(20), status=ServiceStatus.INACTIVE,
        )
        result = tasks.generate_for_all_services()
        assert result == {"created": 4, "services": 1}

    def test_advance_next_due(self, tasks, sample_client):
        service = get_service_manager().create(
            sample_client.id, "VAT Returns", ServiceFrequency.QUARTERLY, next_due=date(2026, 1, 31),
        )
        tasks.advance_service_next_due(service.id)
        assert service.next_due == date(2026, 4, 30)


# =============================================================================
# DASHBOARD
# =============================================================================

class TestDashboard:
    """Alerts, recommendations and compliance deadlines."""

    def test_alert_buckets(self, tasks):
        tasks.create("Overdue", due_date=days(-1))
        tasks.create("Today", due_date=days(0))
        tasks.create("Tomorrow", due_date=days(1), priority=TaskPriority.URGENT)
        tasks.create("Closed", due_date=days(0), status=TaskStatus.COMPLETED)

        alerts = tasks.dashboard_alerts()
        assert alerts["overdue"]["count"] == 1
        assert alerts["overdue"]["severity"] == "critical"
        assert alerts["due_today"]["count"] == 1
        assert alerts["due_tomorrow"]["count"] == 1
        assert alerts["due_this_week"]["count"] == 2
        assert alerts["urgent"]["count"] == 1

    def test_empty_bucket_is_normal(self, tasks):
        assert tasks.dashboard_alerts()["overdue"] == {"count": 0, "severity": "normal", "tasks": []}

    def test_priority_recommendations(self, tasks):
        low = tasks.create("Low", priority=TaskPriority.LOW)
        late = tasks.create("Late", due_date=days(-3), priority=TaskPriority.MEDIUM)
        result = tasks.priority_recommendations()
        assert result["top_priority"][0]["id"] == str(late.id)
        assert result["top_priority"][0]["priority_score"] == score_task(late)
        assert result["top_priority"][-1]["id"] == str(low.id)
        assert result["recommendations"]["overdue"] == 1

    def test_compliance_deadlines_use_tags(self, tasks):
        tasks.create("Submit CT600", due_date=days(5), tags=["filing"])
        tasks.create("Late RTI", due_date=days(-1), tags=["compliance"], priority=TaskPriority.URGENT)
        tasks.create("Tidy office", due_date=days(5))

        deadlines = tasks.compliance_deadlines()
        assert deadlines["summary"] == {"total_upcoming": 1, "total_overdue": 1, "critical_count": 1}

    def test_summary_counts(self, tasks):
        tasks.create("A", due_date=days(2))
        tasks.create("B", status=TaskStatus.REVIEW)
        summary = tasks.summary()
        assert summary["total"] == 2
        assert summary["by_status"]["REVIEW"] == 1
        assert summary["due_soon"] == 1


# =============================================================================
# TEMPLATES
# =============================================================================

class TestTemplates:
    """Service and standalone templates."""

    def test_default_templates_seeded(self, tasks):
        kinds = {t.service_kind for t in tasks.list_service_templates()}
        assert {"Annual Accounts", "Payroll Services", "Bookkeeping"} <= kinds

    def test_duplicate_service_template_rejected(self, tasks):
        with pytest.raises(APIError):
            tasks.create_service_template("annual accounts", ServiceFrequency.ANNUAL, [])

    def test_custom_service_template_used(self, tasks, sample_client):
        tasks.create_service_template(
            "Probate", ServiceFrequency.ANNUAL,
            [{"title": "Gather estate records", "days_before_due": 10, "priority": "high"}],
        )
        service = get_service_manager().create(sample_client.id, "Probate", next_due=days(20))
        created = tasks.generate_from_service(service.id)
        assert [(t.title, t.due_date, t.priority) for t in created] == [
            ("Gather estate records", days(10), TaskPriority.HIGH)
        ]

    def test_task_from_standalone_template(self, tasks, sample_client):
        template = tasks.list_standalone_templates(StandaloneCategory.BILLING)[0]
        task = tasks.create_from_standalone_template(template.id, client_id=sample_client.id, due_date=days(3))
        assert task.title == template.title
        assert task.client_id == sample_client.id
        assert task.tags == template.tags

    def test_standalone_categories(self, tasks):
        assert "Billing & Credit Control" in tasks.standalone_categories()
