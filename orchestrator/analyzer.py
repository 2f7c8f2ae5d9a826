"""LLM-backed extraction of scheduling intent.

The analyzer asks OpenAI to call a single function whose parameters are the
JSON schema of SchedulingExtractionPayload, validates the returned arguments
with the same model and converts them into tagged extraction variants.
Every failure is reported as LLMExtractionError; deciding what to do about
it is the caller's job.
"""
from __future__ import annotations

import logging
import os
import typing as t

import openai
from openai import OpenAI
from pydantic import ValidationError

from orchestrator.models import ConstraintExtraction, LLMAnalysis, RecurrenceExtraction, TemporalExtraction
from orchestrator.schemas import SchedulingExtractionPayload
from prompts import load_prompt

logger = logging.getLogger(__name__)

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
EXTRACTION_FUNCTION = "extract_scheduling_info"


class LLMExtractionError(RuntimeError):
    """Raised when the LLM call fails or returns an unusable payload."""


def extraction_tool() -> dict[str, t.Any]:
    """OpenAI tool definition for the extraction function."""
    return {
        "type": "function",
        "function": {
            "name": EXTRACTION_FUNCTION,
            "description": "Extract structured scheduling information from natural language",
            "parameters": SchedulingExtractionPayload.model_json_schema(),
        },
    }


def to_analysis(payload: SchedulingExtractionPayload) -> LLMAnalysis:
    """Split a validated payload into its temporal, constraint and recurrence parts."""
    return LLMAnalysis(
        intent=payload.intent,
        confidence=payload.confidence,
        temporal=TemporalExtraction(
            title=payload.title.strip() if payload.title and payload.title.strip() else None,
            duration=int(round(payload.duration)) if payload.duration else None,
            preferred_times=tuple(payload.preferred_times),
            days_of_week=tuple(payload.days_of_week),
        ),
        constraints=ConstraintExtraction(
            avoid_days=tuple(payload.avoid_days),
            avoid_times=tuple(payload.avoid_times),
            location=payload.location or None,
            attendees=tuple(payload.attendees),
        ),
        recurrence=RecurrenceExtraction(
            frequency=None if payload.frequency in (None, "ONCE") else payload.frequency,
        ),
        clarification_needed=tuple(payload.clarification_needed),
        suggestions=tuple(payload.suggestions),
    )


class LLMAnalyzer:
    """Synchronous OpenAI function-calling extractor."""

    def __init__(
            self,
            client: t.Optional[OpenAI] = None,
            model: str = OPENAI_MODEL,
            timeout: float = 20.0,
    ):
        self.client = client or OpenAI(api_key=os.getenv("OPENAI_API_KEY"), timeout=timeout, max_retries=0)
        self.model = model
        self.system_prompt = load_prompt("scheduling_extractor_system_prompt")

    def analyze(self, text: str) -> LLMAnalysis:
        """Extract scheduling information from ``text``.

        Args:
            text: The user's free-text request.

        Returns:
            The validated analysis.

        Raises:
            LLMExtractionError: On transport errors, a missing function call or
                arguments that fail validation.
        """
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": text},
                ],
                tools=[extraction_tool()],
                tool_choice={"type": "function", "function": {"name": EXTRACTION_FUNCTION}},
                temperature=0.1,
            )
        except openai.OpenAIError as e:
            raise LLMExtractionError(f"OpenAI request failed: {e}") from e

        message = completion.choices[0].message if completion.choices else None
        tool_calls = getattr(message, "tool_calls", None) or []
        if not tool_calls or not tool_calls[0].function.arguments:
            raise LLMExtractionError("No function call response from OpenAI")

        try:
            payload = SchedulingExtractionPayload.model_validate_json(tool_calls[0].function.arguments)
        except ValidationError as e:
            raise LLMExtractionError(f"Invalid extraction payload: {e}") from e

        analysis = to_analysis(payload)
        logger.debug("LLM analysis for %r: %s", text, analysis)
        return analysis
