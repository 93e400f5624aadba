"""Which facts each goal needs before its tool can run.

``check_requirements`` is the only place this table is consulted; the turn
controller routes on its result and never re-derives it.
"""

from __future__ import annotations

from typing import Literal

from typing_extensions import TypedDict

from parts_assistant.memory import FactRecord

# Column order of the table is the order missing fields are reported in.
FIELD_LABELS: dict[str, str] = {
    "product_model": "appliance model",
    "part_number": "part number",
    "symptoms": "symptoms",
    "email_address": "email address",
}

REQUIREMENTS: dict[str, tuple[str, ...]] = {
    "install_instruction": ("product_model", "part_number"),
    "check_compatibility": ("product_model", "part_number"),
    "diagnose_repair": ("product_model", "symptoms"),
    "email_summary": ("email_address",),
}


class UnknownGoalError(ValueError):
    """A goal outside the supported vocabulary reached routing or dispatch."""

    def __init__(self, goal: object):
        self.goal = goal
        super().__init__(f"Unsupported goal: {goal!r}")


class RequirementCheck(TypedDict, total=False):
    status: Literal["satisfied", "missing"]
    fields: list[str]


def check_requirements(goal: str, facts: FactRecord) -> RequirementCheck:
    """Return ``{"status": "satisfied"}`` or the unmet fields for *goal*.

    Raises:
        UnknownGoalError: *goal* has no row in the requirement table.
    """
    if goal not in REQUIREMENTS:
        raise UnknownGoalError(goal)

    required = REQUIREMENTS[goal]
    missing = [
        label
        for field, label in FIELD_LABELS.items()
        if field in required and not facts.get(field)
    ]
    if missing:
        return {"status": "missing", "fields": missing}
    return {"status": "satisfied"}
