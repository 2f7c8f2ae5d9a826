# -*- coding: utf-8 -*-
import typing as t

from fastmcp import FastMCP

from planner_server.generator import PlanGenerator, validate_event_plan as _validate
from planner_server.models import EventPlan, PlanValidation, SchedulingRequest
from planner_server.temporal import parse_date_loose, parse_time

mcp = FastMCP("PlannerServer")

generator = PlanGenerator()


@mcp.tool()
def create_event_plan(user_id: str, natural_language_input: str) -> list[EventPlan]:
    """Turns a free-text request into candidate event plans.

    :param user_id: Id of the requesting user.
    :param natural_language_input: Request text, e.g. "Block 7-9pm Tu/Th for EE labs; avoid Fridays".
    :return: At least one EventPlan.
    """
    request = SchedulingRequest(user_id=user_id, natural_language_input=natural_language_input)
    return generator.create_event_plan(request)


@mcp.tool()
def validate_event_plan(event_plan: EventPlan) -> PlanValidation:
    """Checks an edited plan before confirmation.

    :param event_plan: The plan to check.
    :return: PlanValidation with any issues found.
    """
    return _validate(event_plan)


@mcp.tool()
def parse_date(text: str, default_year: t.Optional[int] = None) -> t.Optional[str]:
    """Resolves a loosely written date ("Oct 12", "03/04") to YYYY-MM-DD.

    :param text: Date text.
    :param default_year: Year to use when the text has none (optional).
    :return: ISO date string, or None when no date was recognized.
    """
    return parse_date_loose(text, default_year)


@mcp.tool()
def parse_clock_time(token: str) -> t.Optional[str]:
    """Normalizes a time token ("7pm", "7:30", "7") to 24h HH:MM.

    :param token: Time text.
    :return: "HH:MM", or None when no time was recognized.
    """
    parsed = parse_time(token)
    return parsed.as_clock() if parsed else None


if __name__ == "__main__":
    # Run as an MCP server over stdio
    mcp.run()
