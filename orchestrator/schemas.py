"""
Pydantic model for the LLM function-call payload.

The same model produces the JSON schema sent to OpenAI as the function
parameters and validates the arguments that come back, so nothing loosely
shaped reaches the planner.
"""
from __future__ import annotations

import typing as t

from pydantic import BaseModel, ConfigDict, Field, field_validator

Intent = t.Literal["SCHEDULE_EVENT", "MODIFY_EVENT", "QUERY_CALENDAR", "UNCLEAR"]
DayName = t.Literal["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]
LLMFrequency = t.Literal["ONCE", "DAILY", "WEEKLY", "MONTHLY"]


class SchedulingExtractionPayload(BaseModel):
    """Structured scheduling information extracted from a natural language request."""
    model_config = ConfigDict(extra="ignore")

    intent: Intent = Field(description="The primary intent of the user request")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence in the extraction (0-1)")
    title: t.Optional[str] = Field(default=None, description="The event title or subject")
    duration: t.Optional[float] = Field(default=None, gt=0, description="Duration in minutes")
    preferred_times: list[str] = Field(
        default_factory=list, description='Preferred time slots (e.g. "7pm", "2:30pm", "7-9pm")'
    )
    days_of_week: list[DayName] = Field(default_factory=list, description="Preferred days of the week")
    frequency: t.Optional[LLMFrequency] = Field(default=None, description="How often the event should repeat")
    avoid_days: list[DayName] = Field(default_factory=list, description="Days to avoid scheduling")
    avoid_times: list[str] = Field(default_factory=list, description="Time ranges to avoid")
    location: t.Optional[str] = Field(default=None, description="Event location")
    attendees: list[str] = Field(default_factory=list, description="Email addresses of attendees")
    clarification_needed: list[str] = Field(
        default_factory=list, description="Questions to ask the user for clarification"
    )
    suggestions: list[str] = Field(default_factory=list, description="Helpful suggestions for the user")

    @field_validator("days_of_week", "avoid_days", mode="before")
    @classmethod
    def _upper_days(cls, value: t.Any) -> t.Any:
        if isinstance(value, list):
            return [item.strip().upper() if isinstance(item, str) else item for item in value]
        return value

    @field_validator("frequency", mode="before")
    @classmethod
    def _upper_frequency(cls, value: t.Any) -> t.Any:
        return value.strip().upper() if isinstance(value, str) else value
