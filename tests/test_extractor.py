"""Tests for the keyword and LLM extractors."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage

from parts_assistant.extractor import (
    CANONICAL_SYMPTOMS,
    ExtractionFailure,
    KeywordExtractor,
    LLMExtractor,
    canonicalize_symptoms,
    create_extractor,
    match_goal,
    match_symptoms,
    parse_extraction,
)
from parts_assistant.memory import FactDelta, new_fact_record


@pytest.fixture
def extractor():
    return KeywordExtractor()


# ── Symptoms ─────────────────────────────────────────────────────────


class TestMatchSymptoms:
    def test_vocabulary_has_eight_labels(self):
        assert len(CANONICAL_SYMPTOMS) == 8

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("it's leaking", ["Leaking"]),
            ("there's a drip under the door", ["Leaking"]),
            ("it makes a grinding sound", ["Noisy"]),
            ("the door won't close", ["Door won't close"]),
            ("the door won’t close", ["Door won't close"]),
            ("it WON'T START", ["Will Not Start"]),
            ("dishes come out dirty", ["Not cleaning dishes properly"]),
            ("the latch is broken", ["Door latch failure"]),
        ],
    )
    def test_maps_descriptions_to_labels(self, text, expected):
        assert match_symptoms(text) == expected

    def test_standing_water_is_a_drainage_problem(self):
        assert match_symptoms("there is standing water in the tub") == ["Not draining"]

    def test_multiple_symptoms_in_order_of_appearance(self):
        assert match_symptoms("it's noisy and leaking") == ["Noisy", "Leaking"]

    def test_unmapped_description_yields_nothing(self):
        assert match_symptoms("the light is flickering") == []

    @pytest.mark.parametrize(
        "text",
        [
            "How do I install the water filter PS11752778 on my WRS325FDAM04?",
            "Sounds good, thanks",
            "is the water inlet valve compatible?",
            "the sound of it running is normal",
        ],
    )
    def test_everyday_words_are_not_complaints(self, text):
        assert match_symptoms(text) == []

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("there's water on the floor", ["Leaking"]),
            ("I found a puddle under it", ["Leaking"]),
            ("it's making a weird sound", ["Noisy"]),
            ("there's a strange sound during the cycle", ["Noisy"]),
        ],
    )
    def test_complaint_phrasing_still_matches(self, text, expected):
        assert match_symptoms(text) == expected


class TestCanonicalizeSymptoms:
    def test_exact_labels_pass_through(self):
        assert canonicalize_symptoms(["leaking", "Door won’t close"]) == ["Leaking", "Door won't close"]

    def test_free_text_is_mapped(self):
        assert canonicalize_symptoms(["water on the floor"]) == ["Leaking"]

    def test_unknown_descriptions_are_dropped(self):
        assert canonicalize_symptoms(["smells funny"]) == []


# ── Goals ────────────────────────────────────────────────────────────


class TestMatchGoal:
    @pytest.mark.parametrize(
        "text,goal",
        [
            ("I want it fixed", "diagnose_repair"),
            ("how do I install this?", "install_instruction"),
            ("I need to replace the wheel", "install_instruction"),
            ("is it compatible with my fridge?", "check_compatibility"),
            ("will this work with my dishwasher", "check_compatibility"),
            ("please email me the summary", "email_summary"),
            ("send it to me", "email_summary"),
            ("can you send me a summary?", "email_summary"),
            ("save this conversation", "email_summary"),
        ],
    )
    def test_keywords(self, text, goal):
        assert match_goal(text) == goal

    @pytest.mark.parametrize(
        "text,goal",
        [
            ("Can you send me the install video for PS3406971 on WDT780SAEM1?", "install_instruction"),
            ("share your thoughts: will it work with my fridge?", "check_compatibility"),
            ("save me some time and fix it", "diagnose_repair"),
        ],
    )
    def test_send_save_share_alone_do_not_mean_email(self, text, goal):
        assert match_goal(text) == goal

    def test_earliest_keyword_wins(self):
        assert match_goal("install it, and will it work?") == "install_instruction"

    def test_no_goal(self):
        assert match_goal("It's a WDT780SAEM1") is None


# ── Keyword extractor ────────────────────────────────────────────────


class TestKeywordExtractor:
    def test_model_symptom_and_goal_in_one_message(self, extractor):
        delta = extractor.extract("My WDT780SAEM1 is leaking, I want it fixed", new_fact_record())
        assert delta.model == "WDT780SAEM1"
        assert delta.part is None
        assert delta.symptoms == ["Leaking"]
        assert delta.goal == "diagnose_repair"

    def test_part_number_is_not_taken_as_model(self, extractor):
        delta = extractor.extract("Help me install PS3406971", new_fact_record())
        assert delta.part == "PS3406971"
        assert delta.model is None
        assert delta.goal == "install_instruction"

    def test_lower_case_identifiers_are_upper_cased(self, extractor):
        delta = extractor.extract("is ps11752778 compatible with wrs325fdam04?", new_fact_record())
        assert delta.part == "PS11752778"
        assert delta.model == "WRS325FDAM04"
        assert delta.goal == "check_compatibility"

    def test_bare_model_statement(self, extractor):
        delta = extractor.extract("It's a WDT780SAEM1", new_fact_record())
        assert delta == FactDelta(model="WDT780SAEM1")

    def test_email_address(self, extractor):
        delta = extractor.extract("send it to jo.smith99@example.com please", new_fact_record())
        assert delta.email == "jo.smith99@example.com"
        assert delta.goal == "email_summary"
        assert delta.model is None

    def test_small_talk_is_empty(self, extractor):
        assert extractor.extract("hello there", new_fact_record()).is_empty

    def test_only_current_utterance_is_used(self, extractor):
        facts = new_fact_record()
        facts["messages"] = [{"role": "user", "content": "My WDT780SAEM1 is leaking"}]
        assert extractor.extract("thanks", facts).is_empty

    def test_water_filter_install_has_no_symptom(self, extractor):
        delta = extractor.extract(
            "How do I install the water filter PS11752778 on my WRS325FDAM04?", new_fact_record(),
        )
        assert delta.symptoms == []
        assert delta.goal == "install_instruction"
        assert delta.part == "PS11752778"

    def test_small_talk_about_sounds_is_empty(self, extractor):
        assert extractor.extract("Sounds good, thanks", new_fact_record()).is_empty


# ── LLM extractor ────────────────────────────────────────────────────


class TestParseExtraction:
    def test_valid_json(self):
        delta = parse_extraction(
            '{"model": "wdt780saem1", "part": null, "symptoms": ["leaking"], '
            '"goal": "diagnose_repair", "email": null}'
        )
        assert delta.model == "WDT780SAEM1"
        assert delta.symptoms == ["Leaking"]
        assert delta.goal == "diagnose_repair"

    def test_code_fenced_json(self):
        delta = parse_extraction('```json\n{"part": "PS3406971"}\n```')
        assert delta.part == "PS3406971"

    def test_unknown_goal_is_dropped(self):
        assert parse_extraction('{"goal": "book_appointment"}').goal is None

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"symptoms": 5}', ""])
    def test_rejects_malformed_output(self, content):
        with pytest.raises(ExtractionFailure):
            parse_extraction(content)


class TestLLMExtractor:
    def test_uses_model_reply(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content='{"model": "KDTE334GPS0", "symptoms": ["noisy"]}')
        delta = LLMExtractor(llm=llm).extract("my KDTE334GPS0 is loud", new_fact_record())
        assert delta.model == "KDTE334GPS0"
        assert delta.symptoms == ["Noisy"]

    def test_prompt_locks_known_fields(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="{}")
        facts = new_fact_record()
        facts["product_model"] = "WDT780SAEM1"
        LLMExtractor(llm=llm).extract("it's leaking", facts)
        prompt = llm.invoke.call_args.args[0][0].content
        assert "already known (WDT780SAEM1)" in prompt
        assert prompt.endswith("Message: it's leaking")

    def test_malformed_reply_degrades_to_empty_delta(self):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="Sure! The model is WDT780SAEM1.")
        assert LLMExtractor(llm=llm).extract("x", new_fact_record()).is_empty

    def test_model_error_degrades_to_empty_delta(self):
        llm = MagicMock()
        llm.invoke.side_effect = RuntimeError("overloaded")
        assert LLMExtractor(llm=llm).extract("x", new_fact_record()).is_empty


class TestCreateExtractor:
    def test_keyword_backend(self):
        assert isinstance(create_extractor("keyword"), KeywordExtractor)

    def test_unknown_backend_falls_back_to_keyword(self):
        assert isinstance(create_extractor("magic"), KeywordExtractor)
