"""Tests for automation scheduling, runners and the scheduler pass."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import AutomationRunStatus, AutomationType, RecordSource, Transaction
from app.schemas.automations import (
    AutomationCreate,
    AutomationHealth,
    AutomationLevel,
    AutomationSchedule,
)
from app.schemas.transactions import TransactionCreate
from app.services.automation_runners import RUNNERS, build_daily_digest
from app.services.automation_service import (
    calculate_next_run_at,
    describe_schedule,
    get_automation_service,
    get_health,
    get_level,
    merge_schedule,
)
from app.services.billing_run import AUTOMATION_USER
from app.services.transaction_service import get_transaction_service

UTC = timezone.utc


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


# =============================================================================
# SCHEDULING
# =============================================================================

class TestNextRunAt:
    """Next run computation. 2026-10-19 is a Monday."""

    def test_daily_later_today(self):
        schedule = {"frequency": "daily", "time_of_day": "02:00", "timezone": "UTC"}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 1, 0)) == utc(2026, 10, 19, 2, 0)

    def test_daily_rolls_to_tomorrow(self):
        schedule = {"frequency": "daily", "time_of_day": "02:00", "timezone": "UTC"}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 2, 0)) == utc(2026, 10, 20, 2, 0)

    def test_weekly_later_this_week(self):
        schedule = {"frequency": "weekly", "time_of_day": "02:00", "timezone": "UTC", "day_of_week": 3}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 10, 0)) == utc(2026, 10, 21, 2, 0)

    def test_weekly_same_day_passed(self):
        schedule = {"frequency": "weekly", "time_of_day": "02:00", "timezone": "UTC", "day_of_week": 1}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 10, 0)) == utc(2026, 10, 26, 2, 0)

    def test_weekly_sunday_is_zero(self):
        schedule = {"frequency": "weekly", "time_of_day": "08:30", "timezone": "UTC", "day_of_week": 0}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 10, 0)) == utc(2026, 10, 25, 8, 30)

    def test_monthly_next_month(self):
        schedule = {"frequency": "monthly", "time_of_day": "02:00", "timezone": "UTC", "day_of_month": 1}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 10, 0)) == utc(2026, 11, 1, 2, 0)

    def test_monthly_rolls_over_year(self):
        schedule = {"frequency": "monthly", "time_of_day": "02:00", "timezone": "UTC", "day_of_month": 1}
        assert calculate_next_run_at(schedule, utc(2026, 12, 15, 10, 0)) == utc(2027, 1, 1, 2, 0)

    def test_schedule_timezone_is_respected(self):
        # Sydney is on daylight time (UTC+11) in late October
        schedule = {"frequency": "daily", "time_of_day": "02:00", "timezone": "Australia/Sydney"}
        assert calculate_next_run_at(schedule, utc(2026, 10, 19, 0, 0)) == utc(2026, 10, 19, 15, 0)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone: Mars/Olympus"):
            calculate_next_run_at({"frequency": "daily", "timezone": "Mars/Olympus"})


class TestScheduleDisplay:
    """Descriptions, health and level."""

    @pytest.mark.parametrize("schedule,expected", [
        ({"frequency": "daily", "time_of_day": "02:00"}, "Daily at 02:00"),
        ({"frequency": "weekly", "time_of_day": "02:00", "day_of_week": 1}, "Every Monday at 02:00"),
        ({"frequency": "weekly", "time_of_day": "07:15", "day_of_week": 0}, "Every Sunday at 07:15"),
        ({"frequency": "monthly", "time_of_day": "02:00", "day_of_month": 1}, "Monthly on the 1st at 02:00"),
        ({"frequency": "monthly", "time_of_day": "02:00", "day_of_month": 12}, "Monthly on the 12th at 02:00"),
        ({"frequency": "monthly", "time_of_day": "02:00", "day_of_month": 23}, "Monthly on the 23rd at 02:00"),
    ])
    def test_describe_schedule(self, schedule, expected):
        assert describe_schedule(schedule) == expected

    def test_health(self):
        assert get_health(SimpleNamespace(is_enabled=False, last_run_status=None)) == AutomationHealth.DISABLED
        assert get_health(SimpleNamespace(
            is_enabled=True, last_run_status=AutomationRunStatus.FAILED
        )) == AutomationHealth.BROKEN
        assert get_health(SimpleNamespace(
            is_enabled=True, last_run_status=AutomationRunStatus.SUCCESS
        )) == AutomationHealth.ACTIVE

    def test_level(self):
        def level(automation_type, parameters=None):
            return get_level(SimpleNamespace(type=automation_type, parameters=parameters or {}))

        assert level(AutomationType.CONTRACT_BILLING_RUN) == AutomationLevel.CLIENT
        assert level(AutomationType.DAILY_DIGEST) == AutomationLevel.ORGANISATION
        assert level(AutomationType.RECURRING_TRANSACTION) == AutomationLevel.HOUSE
        assert level(
            AutomationType.RECURRING_TRANSACTION, {"scope": "organisation"}
        ) == AutomationLevel.ORGANISATION

    def test_merge_schedule_keeps_unchanged_fields(self):
        current = AutomationSchedule(frequency="weekly", day_of_week=5, timezone="UTC").model_dump(mode="json")
        merged = merge_schedule(current, {"time_of_day": "06:30", "frequency": None})

        assert merged["frequency"] == "weekly"
        assert merged["day_of_week"] == 5
        assert merged["time_of_day"] == "06:30"

    def test_schedule_rejects_bad_time(self):
        with pytest.raises(ValueError):
            AutomationSchedule(time_of_day="25:00")


# =============================================================================
# EXECUTION
# =============================================================================

class TestAutomationService:
    """Creating and running automations."""

    @pytest.mark.asyncio
    async def test_create_sets_next_run(self, db_session: AsyncSession):
        automation = await get_automation_service().create_automation(
            db_session,
            AutomationCreate(name="Morning digest", type=AutomationType.DAILY_DIGEST),
        )

        assert automation.next_run_at is not None
        assert automation.schedule["frequency"] == "monthly"

    @pytest.mark.asyncio
    async def test_recurring_requires_template(self, db_session: AsyncSession):
        with pytest.raises(ValueError, match="template_transaction_id"):
            await get_automation_service().create_automation(
                db_session,
                AutomationCreate(name="Weekly rent", type=AutomationType.RECURRING_TRANSACTION),
            )

    @pytest.mark.asyncio
    async def test_run_digest_records_run(self, db_session: AsyncSession):
        service = get_automation_service()
        automation = await service.create_automation(
            db_session,
            AutomationCreate(name="Morning digest", type=AutomationType.DAILY_DIGEST),
        )

        run, result = await service.run_now(db_session, automation.id)

        assert result.success
        assert result.summary.startswith("Digest for ")
        assert run.status == AutomationRunStatus.SUCCESS
        assert run.finished_at is not None
        assert automation.last_run_status == AutomationRunStatus.SUCCESS

        runs = await service.list_runs(db_session, automation.id)
        assert [r.id for r in runs] == [run.id]

    @pytest.mark.asyncio
    async def test_recurring_clones_template(self, db_session: AsyncSession, sample_resident, sample_contract):
        template = await get_transaction_service().create_transaction(
            db_session,
            TransactionCreate(
                resident_id=sample_resident.id,
                contract_id=sample_contract.id,
                occurred_at=datetime(2026, 3, 2, 9, 0),
                service_code="SDA",
                quantity=Decimal("1"),
                unit_price=Decimal("250.00"),
                note="Weekly SDA accommodation",
            ),
            "tester",
        )
        service = get_automation_service()
        automation = await service.create_automation(
            db_session,
            AutomationCreate(
                name="Weekly SDA",
                type=AutomationType.RECURRING_TRANSACTION,
                parameters={"template_transaction_id": template.id},
            ),
        )

        run, result = await service.run_now(db_session, automation.id)

        assert result.success
        assert run.status == AutomationRunStatus.SUCCESS
        clone = await db_session.get(Transaction, result.metrics["transaction_id"])
        assert clone.id == "TXN-HAVEN-A000002"
        assert clone.created_by == AUTOMATION_USER
        assert clone.source == RecordSource.AUTOMATION
        assert clone.automation_id == automation.id
        assert clone.unit_price == template.unit_price

    @pytest.mark.asyncio
    async def test_preflight_blocks_missing_template(self, db_session: AsyncSession):
        service = get_automation_service()
        automation = await service.create_automation(
            db_session,
            AutomationCreate(
                name="Orphan template",
                type=AutomationType.RECURRING_TRANSACTION,
                parameters={"template_transaction_id": "TXN-HAVEN-A000404"},
            ),
        )

        preflight = await service.preflight(db_session, automation.id)
        assert not preflight.can_run
        assert preflight.reason == "Template transaction not found"

        with pytest.raises(ValueError, match="Template transaction not found"):
            await service.run_now(db_session, automation.id)

    @pytest.mark.asyncio
    async def test_scheduler_runs_only_due_enabled(self, db_session: AsyncSession):
        service = get_automation_service()
        due = await service.create_automation(
            db_session, AutomationCreate(name="Due digest", type=AutomationType.DAILY_DIGEST)
        )
        disabled = await service.create_automation(
            db_session,
            AutomationCreate(name="Disabled digest", type=AutomationType.DAILY_DIGEST, is_enabled=False),
        )
        await service.create_automation(
            db_session, AutomationCreate(name="Future digest", type=AutomationType.DAILY_DIGEST)
        )
        past = datetime.now(UTC) - timedelta(days=1)
        due.next_run_at = past
        disabled.next_run_at = past
        await db_session.commit()

        response = await service.run_due_automations(db_session)

        assert response.processed == 1
        assert response.results[0].automation_id == due.id
        assert response.results[0].status == AutomationRunStatus.SUCCESS
        assert due.next_run_at is not None

    @pytest.mark.asyncio
    async def test_daily_digest_metrics(self, db_session: AsyncSession):
        digest = await build_daily_digest(db_session, today=datetime(2026, 10, 19).date())

        assert digest["date"] == "2026-10-18"
        assert digest["income"] == "0.00"
        assert digest["net"] == "0.00"
        assert digest["draft_claims"] == 0
        assert digest["failed_automations"] == 0

    @pytest.mark.asyncio
    async def test_crashing_runner_is_recorded_as_failed(self, db_session: AsyncSession, monkeypatch):
        async def crash(db, automation):
            raise RuntimeError("digest query blew up")

        monkeypatch.setitem(RUNNERS, AutomationType.DAILY_DIGEST, crash)
        service = get_automation_service()
        automation = await service.create_automation(
            db_session, AutomationCreate(name="Crashing digest", type=AutomationType.DAILY_DIGEST)
        )
        automation.next_run_at = datetime.now(UTC) - timedelta(days=1)
        await db_session.commit()

        response = await service.run_due_automations(db_session)

        assert response.processed == 1
        assert response.results[0].status == AutomationRunStatus.FAILED
        assert response.results[0].error == "digest query blew up"

        runs = await service.list_runs(db_session, automation.id)
        assert [r.status for r in runs] == [AutomationRunStatus.FAILED]
        assert runs[0].finished_at is not None
        assert runs[0].error == {"message": "digest query blew up"}

        assert automation.last_run_status == AutomationRunStatus.FAILED
        assert automation.next_run_at.replace(tzinfo=UTC) > datetime.now(UTC)
        assert (await service.preflight(db_session, automation.id)).can_run
