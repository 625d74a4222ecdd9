"""Automation service: scheduling, CRUD and run bookkeeping."""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.db_models import (
    Automation,
    AutomationRun,
    AutomationRunStatus,
    AutomationType,
)
from app.schemas.automations import (
    AutomationCreate,
    AutomationHealth,
    AutomationLevel,
    AutomationResponse,
    AutomationSchedule,
    AutomationUpdate,
    ScheduleFrequency,
    SchedulerResponse,
    SchedulerResult,
)
from app.services.automation_runners import (
    PreflightResult,
    RunnerResult,
    execute_runner,
    preflight_check,
)

logger = logging.getLogger(__name__)

# Sunday first, matching day_of_week 0-6
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


# =============================================================================
# SCHEDULING
# =============================================================================

def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _schedule_zone(schedule: Dict[str, Any]) -> ZoneInfo:
    name = schedule.get("timezone") or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def _time_of_day(schedule: Dict[str, Any]) -> time:
    hours, _, minutes = (schedule.get("time_of_day") or "02:00").partition(":")
    return time(int(hours or 2), int(minutes or 0))


def calculate_next_run_at(
    schedule: Dict[str, Any], from_time: Optional[datetime] = None
) -> datetime:
    """
    Next time a schedule fires after from_time.

    The schedule is evaluated in its own timezone and the result is returned
    in UTC.

    Args:
        schedule: Schedule dict (frequency, time_of_day, timezone, day_of_week, day_of_month)
        from_time: Reference time, defaults to now

    Returns:
        Timezone-aware UTC datetime
    """
    tz = _schedule_zone(schedule)
    now = (from_time or datetime.now(timezone.utc)).astimezone(tz)
    at = _time_of_day(schedule)
    frequency = schedule.get("frequency", ScheduleFrequency.DAILY.value)

    def at_date(d: date) -> datetime:
        return datetime.combine(d, at, tzinfo=tz)

    if frequency == ScheduleFrequency.WEEKLY.value:
        target_day = schedule.get("day_of_week", 1)
        current_day = (now.weekday() + 1) % 7
        days_until = target_day - current_day
        if days_until < 0 or (days_until == 0 and at_date(now.date()) <= now):
            days_until += 7
        next_run = at_date(now.date() + timedelta(days=days_until))

    elif frequency == ScheduleFrequency.MONTHLY.value:
        day = schedule.get("day_of_month", 1)
        next_run = at_date(now.date().replace(day=day))
        if next_run <= now:
            year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
            next_run = at_date(date(year, month, day))

    else:
        next_run = at_date(now.date())
        if next_run <= now:
            next_run = at_date(now.date() + timedelta(days=1))

    return next_run.astimezone(timezone.utc)


def describe_schedule(schedule: Dict[str, Any]) -> str:
    at = schedule.get("time_of_day") or "02:00"
    frequency = schedule.get("frequency")
    if frequency == ScheduleFrequency.WEEKLY.value:
        return f"Every {WEEKDAY_NAMES[schedule.get('day_of_week', 1)]} at {at}"
    if frequency == ScheduleFrequency.MONTHLY.value:
        return f"Monthly on the {_ordinal(schedule.get('day_of_month', 1))} at {at}"
    return f"Daily at {at}"


def get_health(automation: Automation) -> AutomationHealth:
    if not automation.is_enabled:
        return AutomationHealth.DISABLED
    if automation.last_run_status == AutomationRunStatus.FAILED:
        return AutomationHealth.BROKEN
    return AutomationHealth.ACTIVE


def get_level(automation: Automation) -> AutomationLevel:
    if automation.type == AutomationType.CONTRACT_BILLING_RUN:
        return AutomationLevel.CLIENT
    if automation.type == AutomationType.DAILY_DIGEST:
        return AutomationLevel.ORGANISATION
    if (automation.parameters or {}).get("scope") == "organisation":
        return AutomationLevel.ORGANISATION
    return AutomationLevel.HOUSE


def merge_schedule(current: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay non-null schedule changes and re-validate the result."""
    merged = {**(current or {}), **{k: v for k, v in changes.items() if v is not None}}
    return AutomationSchedule(**merged).model_dump(mode="json")


def to_response(automation: Automation) -> AutomationResponse:
    """Automation with its display helpers filled in."""
    response = AutomationResponse.model_validate(automation)
    response.health = get_health(automation)
    response.level = get_level(automation)
    response.schedule_description = describe_schedule(automation.schedule or {})
    return response


def _check_parameters(automation_type: AutomationType, parameters: Dict[str, Any]):
    if automation_type == AutomationType.RECURRING_TRANSACTION and not (
        parameters.get("template_transaction_id") or parameters.get("template_expense_id")
    ):
        raise ValueError(
            "Recurring automations need a template_transaction_id or template_expense_id"
        )


# =============================================================================
# SERVICE
# =============================================================================

class AutomationService:
    """Manage automations and record their runs."""

    async def get_automation(self, db: AsyncSession, automation_id: UUID) -> Automation:
        automation = await db.get(Automation, automation_id)
        if automation is None:
            raise LookupError("Automation not found")
        return automation

    async def list_automations(
        self, db: AsyncSession, automation_type: Optional[AutomationType] = None
    ) -> List[Automation]:
        query = select(Automation).order_by(Automation.created_at.desc())
        if automation_type:
            query = query.where(Automation.type == automation_type)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def create_automation(self, db: AsyncSession, data: AutomationCreate) -> Automation:
        _check_parameters(data.type, data.parameters)
        schedule = data.schedule.model_dump(mode="json")

        automation = Automation(
            name=data.name,
            description=data.description,
            type=data.type,
            is_enabled=data.is_enabled,
            schedule=schedule,
            parameters=data.parameters,
            next_run_at=calculate_next_run_at(schedule),
        )
        db.add(automation)
        await db.commit()
        await db.refresh(automation)

        logger.info(f"Created automation {automation.id} ({automation.type.value}) next run {automation.next_run_at}")
        return automation

    async def update_automation(
        self, db: AsyncSession, automation_id: UUID, data: AutomationUpdate
    ) -> Automation:
        """Update an automation, merging any partial schedule and recomputing the next run."""
        automation = await self.get_automation(db, automation_id)
        updates = data.model_dump(exclude_unset=True, exclude={"schedule"})

        if "parameters" in updates and updates["parameters"] is not None:
            _check_parameters(automation.type, updates["parameters"])

        for field, value in updates.items():
            if value is not None or field == "description":
                setattr(automation, field, value)

        if data.schedule is not None:
            automation.schedule = merge_schedule(
                automation.schedule, data.schedule.model_dump(mode="json")
            )
        automation.next_run_at = calculate_next_run_at(automation.schedule)

        await db.commit()
        await db.refresh(automation)
        logger.info(f"Updated automation {automation.id}")
        return automation

    async def toggle_automation(
        self, db: AsyncSession, automation_id: UUID, is_enabled: bool
    ) -> Automation:
        automation = await self.get_automation(db, automation_id)
        automation.is_enabled = is_enabled
        automation.next_run_at = calculate_next_run_at(automation.schedule)
        await db.commit()
        await db.refresh(automation)
        logger.info(f"Automation {automation.id} {'enabled' if is_enabled else 'disabled'}")
        return automation

    async def delete_automation(self, db: AsyncSession, automation_id: UUID):
        automation = await self.get_automation(db, automation_id)
        await db.delete(automation)
        await db.commit()
        logger.info(f"Deleted automation {automation_id}")

    async def list_runs(
        self, db: AsyncSession, automation_id: UUID, limit: int = 50
    ) -> List[AutomationRun]:
        await self.get_automation(db, automation_id)
        result = await db.execute(
            select(AutomationRun)
            .where(AutomationRun.automation_id == automation_id)
            .order_by(AutomationRun.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def preflight(self, db: AsyncSession, automation_id: UUID) -> PreflightResult:
        automation = await self.get_automation(db, automation_id)
        return await preflight_check(db, automation)

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def run_automation(
        self, db: AsyncSession, automation: Automation
    ) -> Tuple[AutomationRun, RunnerResult]:
        """
        Execute an automation and record the run.

        Runner failures, expected or not, are recorded on the run, not raised.

        Returns:
            Tuple of (AutomationRun, RunnerResult)
        """
        run = AutomationRun(automation_id=automation.id, status=AutomationRunStatus.RUNNING)
        db.add(run)
        await db.commit()
        await db.refresh(run)

        try:
            result = await execute_runner(db, automation)
        except (LookupError, ValueError) as e:
            await db.rollback()
            await db.refresh(automation)
            await db.refresh(run)
            result = RunnerResult(success=False, summary="Run failed", error=str(e))
            logger.warning(f"Automation {automation.id} failed: {e}")
        except Exception as e:
            # Close out the committed run row as failed
            await db.rollback()
            await db.refresh(automation)
            await db.refresh(run)
            result = RunnerResult(success=False, summary="Run crashed", error=str(e))
            logger.error(f"Automation {automation.id} crashed: {e}", exc_info=True)

        status = AutomationRunStatus.SUCCESS if result.success else AutomationRunStatus.FAILED
        run.status = status
        run.finished_at = datetime.now(timezone.utc)
        run.summary = result.summary
        run.metrics = result.metrics
        run.error = {"message": result.error} if result.error else None

        automation.last_run_at = run.finished_at
        automation.last_run_status = status
        automation.next_run_at = calculate_next_run_at(automation.schedule)

        await db.commit()
        await db.refresh(run)

        logger.info(f"Automation {automation.id} run {run.id}: {status.value} - {result.summary}")
        return run, result

    async def run_now(
        self, db: AsyncSession, automation_id: UUID
    ) -> Tuple[AutomationRun, RunnerResult]:
        """
        Run an automation immediately after a preflight check.

        Raises:
            LookupError: Automation not found
            ValueError: Preflight check failed
        """
        automation = await self.get_automation(db, automation_id)
        preflight = await preflight_check(db, automation)
        if not preflight.can_run:
            raise ValueError(preflight.reason)
        return await self.run_automation(db, automation)

    async def run_due_automations(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> SchedulerResponse:
        """Run every enabled automation whose next run time has passed."""
        now = now or datetime.now(timezone.utc)
        result = await db.execute(
            select(Automation)
            .where(
                Automation.is_enabled.is_(True),
                Automation.next_run_at.is_not(None),
                Automation.next_run_at <= now,
            )
            .order_by(Automation.next_run_at)
        )
        due_ids = [automation.id for automation in result.scalars().all()]
        logger.info(f"Scheduler: {len(due_ids)} automations due")

        results: List[SchedulerResult] = []
        for automation_id in due_ids:
            # Reload each time; a rollback after a crash expires the session
            automation = await self.get_automation(db, automation_id)
            name = automation.name
            try:
                run, outcome = await self.run_automation(db, automation)
                results.append(SchedulerResult(
                    automation_id=automation_id,
                    name=name,
                    status=run.status,
                    summary=outcome.summary,
                    error=outcome.error,
                ))
            except Exception as e:
                logger.error(f"Scheduler: automation {automation_id} crashed: {e}", exc_info=True)
                await db.rollback()
                results.append(SchedulerResult(
                    automation_id=automation_id,
                    name=name,
                    status=AutomationRunStatus.FAILED,
                    error=str(e),
                ))

        return SchedulerResponse(processed=len(due_ids), results=results)


# Singleton instance
_automation_service: Optional[AutomationService] = None


def get_automation_service() -> AutomationService:
    """Get or create the automation service singleton."""
    global _automation_service
    if _automation_service is None:
        _automation_service = AutomationService()
    return _automation_service
