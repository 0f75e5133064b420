"""
Automation Admin Routes
HTTP endpoints for inspecting and refreshing configuration, editing the
completed-month list and running reminder scans on demand.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from casework_notifier.auth.verify import admin_dependency
from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.jobs.config_refresh_job import config_refresh_job
from casework_notifier.jobs.reminder_job import (
    ReminderJobError,
    contact_reminder_job,
    summary_reminder_job,
)
from casework_notifier.jobs.runtime import AutomationRuntime, RuntimeConfigError, get_runtime
from casework_notifier.models.api.automation_request import CompletedMonthsUpdateRequest
from casework_notifier.models.api.automation_response import (
    CompletedMonthsResponse,
    JobRunResponse,
    VariablesResponse,
)
from casework_notifier.models.domain.config_domain import (
    CONTACT_COMPLETE_MONTHS,
    NO_COMPLETED_MONTHS,
    ConfigUnavailable,
    PeriodCompletionSet,
)
from casework_notifier.services.config_store import ConfigSourceError
from casework_notifier.services.escalation import month_number_from_name

logger = get_logger(__name__)

router = APIRouter(
    prefix="/automation", tags=["automation"], dependencies=[Depends(admin_dependency)]
)

JOBS = {
    "contact_reminders": contact_reminder_job,
    "summary_reminders": summary_reminder_job,
    "config_refresh": config_refresh_job,
}


async def runtime_dependency() -> AutomationRuntime:
    try:
        return await get_runtime()
    except RuntimeConfigError as e:
        logger.error("Automation runtime unavailable", error=str(e), missing=e.missing)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def _completed_response(completed: PeriodCompletionSet) -> CompletedMonthsResponse:
    months = [label for label in completed if month_number_from_name(label) is not None]
    return CompletedMonthsResponse(months=months, serialized=completed.serialize())


@router.get("/variables", response_model=VariablesResponse)
async def show_variables(runtime: AutomationRuntime = Depends(runtime_dependency)):
    """Show the resolved variables (served from cache when warm)."""
    try:
        context = await runtime.resolver.resolve()
    except ConfigUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return VariablesResponse(
        source=context.source, variable_count=len(context.values), variables=dict(context.values)
    )


@router.post("/variables/refresh", response_model=VariablesResponse)
async def refresh_variables(runtime: AutomationRuntime = Depends(runtime_dependency)):
    """Re-read the Variables sheet and overwrite the cache and durable copies."""
    try:
        context = await runtime.resolver.refresh()
    except ConfigSourceError as e:
        logger.error("Forced refresh failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return VariablesResponse(
        source=context.source, variable_count=len(context.values), variables=dict(context.values)
    )


@router.get("/completed-months", response_model=CompletedMonthsResponse)
async def get_completed_months(runtime: AutomationRuntime = Depends(runtime_dependency)):
    try:
        context = await runtime.resolver.resolve()
    except ConfigUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return _completed_response(context.completed_periods)


@router.put("/completed-months", response_model=CompletedMonthsResponse)
async def set_completed_months(
    request: CompletedMonthsUpdateRequest,
    runtime: AutomationRuntime = Depends(runtime_dependency),
):
    """Replace the completed-month list."""
    completed = PeriodCompletionSet(request.months)
    value = completed.serialize() or NO_COMPLETED_MONTHS

    try:
        context = await runtime.resolver.update_value(CONTACT_COMPLETE_MONTHS, value)
    except ConfigSourceError as e:
        logger.error("Failed to update completed months", error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    logger.info("Completed months updated", months=request.months)
    return _completed_response(context.completed_periods)


@router.post("/jobs/{job_name}", response_model=JobRunResponse)
async def run_job(job_name: str, runtime: AutomationRuntime = Depends(runtime_dependency)):
    """Run one job once and return its metrics."""
    job = JOBS.get(job_name)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown job '{job_name}'. Available jobs: {', '.join(sorted(JOBS))}",
        )

    try:
        metrics = await job.run_once(runtime)
    except ReminderJobError as e:
        code = (
            status.HTTP_502_BAD_GATEWAY if e.recoverable else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        raise HTTPException(status_code=code, detail=str(e))

    return JobRunResponse(job_name=job_name, metrics=metrics)
