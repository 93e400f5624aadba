"""Per-session fact record and the single merge rule that updates it.

Every turn the extractor produces a :class:`FactDelta` for the current
utterance only, and :func:`merge_facts` folds it into the session's
:class:`FactRecord`.  This is the only place field preservation is decided:

* scalar fields (model, part, goal, email) take the delta's value only when
  it is present; otherwise the previous value is kept;
* symptoms are a set union keyed by their normalised form, so the list only
  grows and display order stays stable.

The one deliberate exception lives in the turn controller: after a tool runs
it clears ``goal_type`` so the next turn can state a new goal.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from typing_extensions import TypedDict

logger = logging.getLogger(__name__)

Goal = Literal[
    "install_instruction",
    "check_compatibility",
    "diagnose_repair",
    "email_summary",
]

GOALS: tuple[str, ...] = (
    "install_instruction",
    "check_compatibility",
    "diagnose_repair",
    "email_summary",
)

_APOSTROPHES = str.maketrans({"‘": "'", "’": "'", "ʼ": "'", "`": "'"})
_WHITESPACE_RE = re.compile(r"\s+")


class ChatMessage(TypedDict):
    role: str  # "user" | "assistant" | "tool"
    content: str


class ToolResult(TypedDict):
    tool_name: str
    data: Any


class FactRecord(TypedDict):
    """Structured memory of one conversation."""

    messages: list[ChatMessage]
    product_model: str | None
    part_number: str | None
    symptoms: list[str]
    goal_type: str | None
    email_address: str | None
    last_tool_result: ToolResult | None


def normalize_symptom(symptom: str) -> str:
    """Fold apostrophe variants, case and whitespace for equality checks."""
    folded = symptom.translate(_APOSTROPHES).casefold()
    return _WHITESPACE_RE.sub(" ", folded).strip()


def new_fact_record() -> FactRecord:
    """Return an empty record for a freshly started conversation."""
    return {
        "messages": [],
        "product_model": None,
        "part_number": None,
        "symptoms": [],
        "goal_type": None,
        "email_address": None,
        "last_tool_result": None,
    }


class FactDelta(BaseModel):
    """Facts found in a single utterance.  ``None`` means "not mentioned"."""

    model: str | None = None
    part: str | None = None
    symptoms: list[str] = Field(default_factory=list)
    goal: Goal | None = None
    email: str | None = None

    @field_validator("model", "part", mode="before")
    @classmethod
    def _upper_identifier(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip().upper()
        return value or None

    @field_validator("email", mode="before")
    @classmethod
    def _clean_email(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("goal", mode="before")
    @classmethod
    def _closed_goal(cls, value: Any) -> str | None:
        if value is None:
            return None
        value = str(value).strip().lower()
        if value in GOALS:
            return value
        if value not in ("", "none", "null"):
            logger.debug("Dropping goal outside the supported vocabulary: %r", value)
        return None

    @field_validator("symptoms", mode="before")
    @classmethod
    def _symptom_list(cls, value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("symptoms must be a list of strings")
        return [str(s).strip() for s in value if s and str(s).strip()]

    @property
    def is_empty(self) -> bool:
        return not (self.model or self.part or self.symptoms or self.goal or self.email)


def merge_symptoms(current: list[str], new: list[str]) -> list[str]:
    """Union of two symptom lists, deduplicated on the normalised label."""
    merged = list(current)
    seen = {normalize_symptom(s) for s in current}
    for symptom in new:
        key = normalize_symptom(symptom)
        if key and key not in seen:
            seen.add(key)
            merged.append(symptom)
    return merged


def merge_facts(current: FactRecord, delta: FactDelta) -> FactRecord:
    """Fold *delta* into *current* and return the updated record.

    Never raises and never mutates *current*.  An empty delta returns an
    equal copy.
    """
    updated: FactRecord = {
        **current,
        "messages": list(current["messages"]),
        "symptoms": merge_symptoms(current["symptoms"], delta.symptoms),
    }
    if delta.model is not None:
        updated["product_model"] = delta.model
    if delta.part is not None:
        updated["part_number"] = delta.part
    if delta.goal is not None:
        updated["goal_type"] = delta.goal
    if delta.email is not None:
        updated["email_address"] = delta.email
    return updated
