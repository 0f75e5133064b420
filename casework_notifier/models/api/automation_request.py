# casework_notifier/models/api/automation_request.py
"""
Automation admin API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, Field, field_validator

from casework_notifier.services.escalation import month_name_from_number, month_number_from_name


class CompletedMonthsUpdateRequest(BaseModel):
    """Replace the list of months whose contacts are reconciled."""

    months: list[str] = Field(..., description="Month names, e.g. ['January', 'February']")

    @field_validator("months")
    @classmethod
    def validate_months(cls, months: list[str]) -> list[str]:
        normalized = []
        for month in months:
            number = month_number_from_name(month)
            if number is None:
                raise ValueError(f"Unknown month name: {month!r}")
            name = month_name_from_number(number)
            if name not in normalized:
                normalized.append(name)
        return normalized
