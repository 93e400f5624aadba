"""Map a goal to exactly one tool call and run it.

Tool input is assembled from the fact record fields the goal needs, and the
tool's structured result is returned untouched.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import BaseTool

from parts_assistant.memory import FactRecord, ToolResult
from parts_assistant.requirements import UnknownGoalError
from parts_assistant.services.metrics import metrics
from parts_assistant.tools.email import build_transcript, email_summary
from parts_assistant.tools.parts import (
    check_compatibility,
    diagnose_repair,
    get_installation_instructions,
)

logger = logging.getLogger(__name__)

TOOLS_BY_GOAL: dict[str, BaseTool] = {
    "install_instruction": get_installation_instructions,
    "check_compatibility": check_compatibility,
    "diagnose_repair": diagnose_repair,
    "email_summary": email_summary,
}


class ToolExecutionError(Exception):
    """A tool raised while executing; the original error is ``__cause__``."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name} failed: {message}")


def tool_for_goal(goal: str | None) -> BaseTool:
    """Return the tool that serves *goal*.

    Raises:
        UnknownGoalError: *goal* has no tool.
    """
    if goal not in TOOLS_BY_GOAL:
        raise UnknownGoalError(goal)
    return TOOLS_BY_GOAL[goal]


def build_tool_input(goal: str, facts: FactRecord) -> dict[str, Any]:
    """Assemble the tool arguments for *goal* from the fact record."""
    if goal in ("install_instruction", "check_compatibility"):
        return {"part_number": facts["part_number"], "model": facts["product_model"]}
    if goal == "diagnose_repair":
        return {"model": facts["product_model"], "symptoms": list(facts["symptoms"])}
    if goal == "email_summary":
        return {
            "email": facts["email_address"],
            "transcript": build_transcript(facts["messages"]),
            "details": {
                "product_model": facts["product_model"],
                "part_number": facts["part_number"],
                "symptoms": list(facts["symptoms"]),
                "last_tool_result": facts["last_tool_result"],
            },
        }
    raise UnknownGoalError(goal)


def dispatch(goal: str, facts: FactRecord) -> ToolResult:
    """Run the single tool for *goal* against *facts*.

    Raises:
        UnknownGoalError: *goal* has no tool (programming error upstream).
        ToolExecutionError: the tool itself failed.
    """
    selected = tool_for_goal(goal)
    tool_input = build_tool_input(goal, facts)
    logger.debug("Dispatching %s with %s", selected.name, tool_input)
    try:
        data = selected.invoke(tool_input)
    except Exception as exc:
        metrics.record_tool(selected.name, ok=False)
        raise ToolExecutionError(selected.name, str(exc)) from exc

    metrics.record_tool(selected.name, ok=True)
    return {"tool_name": selected.name, "data": data}
