# casework_notifier/models/api/automation_response.py
"""
Automation admin API response models.
Used by routes for output formatting.
"""

from typing import Any

from pydantic import BaseModel, Field


class VariablesResponse(BaseModel):
    """Resolved configuration values."""

    source: str = Field(..., description="Tier the values came from: cache, durable or sheet")
    variable_count: int = Field(..., description="Number of variables")
    variables: dict[str, str] = Field(..., description="Key/value pairs")


class CompletedMonthsResponse(BaseModel):
    """Months whose contact sheets are reconciled."""

    months: list[str] = Field(..., description="Completed month labels")
    serialized: str = Field(..., description="Value stored under CONTACT_COMPLETE_MONTHS")


class JobRunResponse(BaseModel):
    """Outcome of an on-demand job run."""

    job_name: str = Field(..., description="Job that ran")
    metrics: dict[str, Any] = Field(..., description="Job execution metrics")
