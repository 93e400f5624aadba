"""Tests for the fact record and its merge rule."""

from __future__ import annotations

from parts_assistant.memory import (
    FactDelta,
    merge_facts,
    merge_symptoms,
    new_fact_record,
    normalize_symptom,
)


def _record(**overrides):
    record = new_fact_record()
    record.update(overrides)
    return record


class TestNewFactRecord:
    def test_starts_empty(self):
        record = new_fact_record()
        assert record["messages"] == []
        assert record["symptoms"] == []
        assert record["goal_type"] is None
        assert record["product_model"] is None
        assert record["last_tool_result"] is None

    def test_records_are_independent(self):
        a = new_fact_record()
        b = new_fact_record()
        a["symptoms"].append("Leaking")
        assert b["symptoms"] == []


class TestFactDelta:
    def test_defaults_are_all_absent(self):
        assert FactDelta().is_empty

    def test_identifiers_are_upper_cased(self):
        delta = FactDelta(model=" wdt780saem1 ", part="ps3406971")
        assert delta.model == "WDT780SAEM1"
        assert delta.part == "PS3406971"

    def test_blank_values_become_none(self):
        delta = FactDelta(model="", part="  ", email="")
        assert delta.is_empty

    def test_goal_outside_vocabulary_is_dropped(self):
        assert FactDelta(goal="order_pizza").goal is None
        assert FactDelta(goal="none").goal is None

    def test_goal_is_case_insensitive(self):
        assert FactDelta(goal="Diagnose_Repair").goal == "diagnose_repair"

    def test_null_symptoms_become_empty_list(self):
        assert FactDelta(symptoms=None).symptoms == []


class TestMergeFacts:
    def test_empty_delta_is_noop(self):
        current = _record(product_model="WDT780SAEM1", goal_type="diagnose_repair", symptoms=["Leaking"])
        merged = merge_facts(current, FactDelta())
        assert merged == current

    def test_does_not_mutate_input(self):
        current = _record(symptoms=["Leaking"])
        merge_facts(current, FactDelta(model="WDT780SAEM1", symptoms=["Noisy"]))
        assert current["product_model"] is None
        assert current["symptoms"] == ["Leaking"]

    def test_absent_fields_keep_previous_values(self):
        current = _record(
            product_model="WDT780SAEM1",
            part_number="PS3406971",
            goal_type="install_instruction",
            email_address="a@b.com",
        )
        merged = merge_facts(current, FactDelta(symptoms=["Leaking"]))
        assert merged["product_model"] == "WDT780SAEM1"
        assert merged["part_number"] == "PS3406971"
        assert merged["goal_type"] == "install_instruction"
        assert merged["email_address"] == "a@b.com"

    def test_explicit_new_value_replaces_old(self):
        current = _record(product_model="WDT780SAEM1")
        merged = merge_facts(current, FactDelta(model="KDTE334GPS0"))
        assert merged["product_model"] == "KDTE334GPS0"

    def test_fills_unknown_fields(self):
        merged = merge_facts(new_fact_record(), FactDelta(part="PS3406971", goal="install_instruction"))
        assert merged["part_number"] == "PS3406971"
        assert merged["goal_type"] == "install_instruction"

    def test_messages_and_last_tool_result_carry_over(self):
        tool_result = {"tool_name": "check_compatibility", "data": {"compatible": True}}
        current = _record(
            messages=[{"role": "user", "content": "hi"}],
            last_tool_result=tool_result,
        )
        merged = merge_facts(current, FactDelta(model="WDT780SAEM1"))
        assert merged["messages"] == [{"role": "user", "content": "hi"}]
        assert merged["last_tool_result"] == tool_result

    def test_symptoms_accumulate_without_duplicates(self):
        current = _record(symptoms=["Leaking"])
        merged = merge_facts(current, FactDelta(symptoms=["Noisy", "Leaking"]))
        assert merged["symptoms"] == ["Leaking", "Noisy"]

    def test_symptom_set_never_shrinks_over_many_turns(self):
        record = new_fact_record()
        sizes = []
        for symptoms in (["Leaking"], [], ["leaking"], ["Noisy"], []):
            record = merge_facts(record, FactDelta(symptoms=symptoms))
            sizes.append(len(record["symptoms"]))
        assert sizes == sorted(sizes)
        assert record["symptoms"] == ["Leaking", "Noisy"]


class TestSymptomNormalisation:
    def test_folds_curly_apostrophes_and_case(self):
        assert normalize_symptom("Door Won’t Close") == normalize_symptom("door won't close")

    def test_collapses_whitespace(self):
        assert normalize_symptom("  Not   draining ") == "not draining"

    def test_merge_treats_apostrophe_variants_as_one(self):
        assert merge_symptoms(["Door won't close"], ["Door won’t close"]) == ["Door won't close"]
