"""Tests for prompt building and the fallback reply texts."""

from __future__ import annotations

from parts_assistant.memory import new_fact_record
from parts_assistant.prompts import (
    fallback_ask_goal,
    fallback_ask_missing,
    fallback_tool_result,
    get_ask_missing_prompt,
    get_extractor_prompt,
)


def _facts(**overrides):
    facts = new_fact_record()
    facts.update(overrides)
    return facts


class TestExtractorPrompt:
    def test_unknown_fields_are_open(self):
        prompt = get_extractor_prompt(new_fact_record())
        assert "already known" not in prompt
        assert '"model": null' in prompt

    def test_known_fields_are_locked(self):
        prompt = get_extractor_prompt(_facts(part_number="PS3406971", goal_type="install_instruction"))
        assert "part: already known (PS3406971)" in prompt
        assert "current goal is install_instruction" in prompt


class TestAskPrompts:
    def test_menu_lists_every_goal(self):
        text = fallback_ask_goal()
        for n in range(1, 5):
            assert f"{n}. " in text

    def test_missing_prompt_names_known_and_missing_facts(self):
        facts = _facts(part_number="PS3406971")
        prompt = get_ask_missing_prompt("install_instruction", facts, ["appliance model"])
        assert "- Part number: PS3406971" in prompt
        assert "- appliance model" in prompt

    def test_fallback_missing_joins_fields(self):
        text = fallback_ask_missing("diagnose_repair", new_fact_record(), ["appliance model", "symptoms"])
        assert text.endswith("Could you tell me your appliance model and symptoms?")


class TestFallbackToolResult:
    def test_unknown_model_diagnosis(self):
        text = fallback_tool_result("diagnose_repair", {"status": "unknown_model", "model": "X1234"})
        assert "couldn't find model X1234" in text

    def test_no_match_diagnosis(self):
        data = {"status": "no_match", "model": "WRS325FDAM04", "symptoms": ["Will Not Start"]}
        assert "couldn't match Will Not Start" in fallback_tool_result("diagnose_repair", data)

    def test_generic_steps_are_numbered(self):
        data = {"status": "generic_steps", "name": "Water Inlet Valve", "steps": ["Unplug", "Swap"]}
        text = fallback_tool_result("get_installation_instructions", data)
        assert text.endswith("1. Unplug\n2. Swap")

    def test_installation_not_found(self):
        data = {"status": "not_found", "part_number": "PS1", "model": "M1"}
        assert "couldn't find installation information" in fallback_tool_result(
            "get_installation_instructions", data,
        )
