"""Tests for the goal requirement table."""

from __future__ import annotations

import itertools

import pytest

from parts_assistant.memory import GOALS, new_fact_record
from parts_assistant.requirements import (
    FIELD_LABELS,
    REQUIREMENTS,
    UnknownGoalError,
    check_requirements,
)

_VALUES = {
    "product_model": "WDT780SAEM1",
    "part_number": "PS3406971",
    "symptoms": ["Leaking"],
    "email_address": "a@b.com",
}


def _facts_with(fields):
    facts = new_fact_record()
    for field in fields:
        facts[field] = _VALUES[field]
    return facts


class TestRequirementTable:
    def test_every_goal_has_a_row(self):
        assert set(REQUIREMENTS) == set(GOALS)

    @pytest.mark.parametrize("goal", GOALS)
    def test_exactly_the_unmet_fields_for_every_combination(self, goal):
        all_fields = list(FIELD_LABELS)
        for n in range(len(all_fields) + 1):
            for present in itertools.combinations(all_fields, n):
                result = check_requirements(goal, _facts_with(present))
                expected = [
                    FIELD_LABELS[f] for f in all_fields
                    if f in REQUIREMENTS[goal] and f not in present
                ]
                if expected:
                    assert result == {"status": "missing", "fields": expected}
                else:
                    assert result == {"status": "satisfied"}


class TestCheckRequirements:
    def test_install_without_model(self):
        facts = _facts_with(["part_number"])
        assert check_requirements("install_instruction", facts) == {
            "status": "missing", "fields": ["appliance model"],
        }

    def test_diagnose_needs_model_and_symptoms_not_part(self):
        result = check_requirements("diagnose_repair", new_fact_record())
        assert result["fields"] == ["appliance model", "symptoms"]

    def test_email_summary_needs_only_email(self):
        assert check_requirements("email_summary", _facts_with(["email_address"])) == {
            "status": "satisfied",
        }

    def test_compatibility_reports_in_table_order(self):
        result = check_requirements("check_compatibility", new_fact_record())
        assert result["fields"] == ["appliance model", "part number"]

    def test_empty_symptom_list_counts_as_missing(self):
        facts = _facts_with(["product_model"])
        facts["symptoms"] = []
        assert check_requirements("diagnose_repair", facts)["fields"] == ["symptoms"]

    @pytest.mark.parametrize("goal", [None, "", "order_pizza"])
    def test_unknown_goal_raises(self, goal):
        with pytest.raises(UnknownGoalError):
            check_requirements(goal, new_fact_record())
