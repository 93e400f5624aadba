"""Prompts for the speaker and extractor models, plus the plain-text
fallbacks used when the speaker model is unavailable."""

from __future__ import annotations

import json
from typing import Any

from parts_assistant.memory import FactRecord

GOAL_DESCRIPTIONS: dict[str, str] = {
    "install_instruction": "installation instructions for a part",
    "check_compatibility": "checking whether a part fits your appliance",
    "diagnose_repair": "diagnosing and fixing a problem",
    "email_summary": "emailing a summary of our conversation",
}

SPEAKER_PERSONA = (
    "You are a friendly PartSelect support agent for refrigerator and "
    "dishwasher parts. Keep replies short and specific. Never invent part "
    "numbers, prices, links or compatibility results."
)

TOOL_FAILURE_MESSAGE = (
    "Sorry, I ran into a problem while working on that request and couldn't "
    "finish it. Please try again, or ask me for something else."
)

INTERNAL_ERROR_MESSAGE = (
    "Sorry, something went wrong on my side. Could you tell me again what "
    "you'd like help with?"
)


# ── Extractor ────────────────────────────────────────────────────────

EXTRACTOR_PROMPT_TEMPLATE = """Extract facts from the user's message below. Use ONLY this message.

Fields:
{model_instruction}
{part_instruction}
- symptoms: list of problems mentioned in this message, mapped to these exact terms, or []
    - "Not cleaning dishes properly": not clean, dirty, residue, not washing
    - "Door won't close": door stuck, door won't close, won't shut
    - "Noisy": loud, noise, strange sound, squeaking, grinding, rattling
    - "Door latch failure": latch broken, door won't latch, won't lock
    - "Leaking": leak, drip, puddle, water on the floor, wet floor
    - "Will Not Start": won't start, won't turn on, not starting
    - "Not draining": won't drain, not draining, standing water
    - "Not drying dishes properly": not drying, wet dishes, drying issue
  Problems that match none of these terms are left out.
{goal_instruction}
{email_instruction}

Return JSON ONLY, no prose:
{{"model": null, "part": null, "symptoms": [], "goal": null, "email": null}}"""


def get_extractor_prompt(facts: FactRecord) -> str:
    """Build the extraction prompt, locking fields the session already knows."""
    model, part, goal, email = (
        facts.get("product_model"), facts.get("part_number"),
        facts.get("goal_type"), facts.get("email_address"),
    )
    if model:
        model_instruction = (
            f"- model: already known ({model}); return null unless the user "
            "explicitly gives a different appliance model in this message"
        )
    else:
        model_instruction = "- model: appliance model number (e.g. WDT780SAEM1) or null"

    if part:
        part_instruction = (
            f"- part: already known ({part}); return null unless the user "
            "explicitly gives a different part number in this message"
        )
    else:
        part_instruction = "- part: part number (e.g. PS3406971) or null"

    goal_instruction = (
        "- goal: only if explicitly stated in this message, otherwise null\n"
        '    - "diagnose_repair": fix, troubleshoot, diagnose, what\'s wrong, repair\n'
        '    - "install_instruction": install, how to install, replacement, replace\n'
        '    - "check_compatibility": compatible, will it work, fit\n'
        '    - "email_summary": email me, send me a summary, save or share the conversation'
    )
    if goal:
        goal_instruction += f"\n  (current goal is {goal}; do not repeat it)"

    if email:
        email_instruction = (
            f"- email: already known ({email}); return null unless a different "
            "address is given in this message"
        )
    else:
        email_instruction = "- email: the user's email address if given in this message, or null"

    return EXTRACTOR_PROMPT_TEMPLATE.format(
        model_instruction=model_instruction,
        part_instruction=part_instruction,
        goal_instruction=goal_instruction,
        email_instruction=email_instruction,
    )


# ── Speaker ──────────────────────────────────────────────────────────


def _goal_menu() -> str:
    return "\n".join(
        f"{i}. {desc[0].upper()}{desc[1:]}"
        for i, desc in enumerate(GOAL_DESCRIPTIONS.values(), start=1)
    )


def _known_facts(facts: FactRecord) -> list[str]:
    lines = []
    if facts.get("product_model"):
        lines.append(f"Appliance model: {facts['product_model']}")
    if facts.get("part_number"):
        lines.append(f"Part number: {facts['part_number']}")
    if facts.get("symptoms"):
        lines.append(f"Problems: {', '.join(facts['symptoms'])}")
    if facts.get("email_address"):
        lines.append(f"Email: {facts['email_address']}")
    return lines


def get_ask_goal_prompt() -> str:
    return (
        f"{SPEAKER_PERSONA}\n\n"
        "The user hasn't said what they need yet. Ask them in a friendly way, "
        f"mentioning that you can help with:\n{_goal_menu()}\n\nBe concise."
    )


def get_ask_missing_prompt(goal: str, facts: FactRecord, missing: list[str]) -> str:
    known = _known_facts(facts)
    prompt = f"{SPEAKER_PERSONA}\n\nGoal: {GOAL_DESCRIPTIONS.get(goal, goal)}\n"
    if known:
        prompt += "\nThe user has already provided:\n" + "\n".join(f"- {k}" for k in known) + "\n"
    prompt += (
        "\nAsk ONLY for these missing items, do not ask again for anything "
        "already provided:\n"
        + "\n".join(f"- {m}" for m in missing)
        + "\n\nGive a short example of each (model like WDT780SAEM1, part like "
        "PS3406971). One or two sentences."
    )
    return prompt


def format_tool_result(tool_name: str, data: Any) -> str:
    """Render a structured tool result as the speaker's input text."""
    if tool_name == "diagnose_repair" and isinstance(data, dict) and data.get("suggested_parts"):
        parts_text = "\n".join(
            f"- {p['name']} (Part #{p['part_number']}) - ${p['price']}"
            for p in data["suggested_parts"]
        )
        return (
            f"Found {len(data['suggested_parts'])} part(s) for model {data['model']} "
            f"that might fix: {', '.join(data['symptoms'])}\n\n{parts_text}"
        )
    return json.dumps(data, indent=2, default=str)


def get_tool_result_prompt(tool_name: str, data: Any) -> str:
    return (
        f"{SPEAKER_PERSONA}\n\n"
        "Summarize this result for the user in a helpful way. Only narrate "
        "what it says: keep part numbers, prices, links and yes/no answers "
        "exactly as given. Be concise.\n\n"
        f"[Tool: {tool_name}]\n{format_tool_result(tool_name, data)}"
    )


# ── Fallback texts (no speaker model) ────────────────────────────────


def fallback_ask_goal() -> str:
    return f"Hi! What can I help you with today? I can help with:\n{_goal_menu()}"


def fallback_ask_missing(goal: str, facts: FactRecord, missing: list[str]) -> str:
    known = _known_facts(facts)
    text = f"Happy to help with {GOAL_DESCRIPTIONS.get(goal, goal)}."
    if known:
        text += " I have your " + "; ".join(k[0].lower() + k[1:] for k in known) + "."
    return text + " Could you tell me your " + " and ".join(missing) + "?"


def fallback_tool_result(tool_name: str, data: Any) -> str:
    """Plain narration of a tool result, one message per outcome."""
    data = data if isinstance(data, dict) else {}
    status = data.get("status")
    part, model = data.get("part_number"), data.get("model")

    if tool_name == "check_compatibility":
        if data.get("compatible"):
            return f"Good news: part {part} is compatible with model {model}."
        return f"Part {part} is not compatible with model {model}."

    if tool_name == "diagnose_repair":
        if status == "unknown_model":
            return f"I couldn't find model {model} in our catalog. Could you double-check the model number?"
        if status == "no_match":
            return (
                f"I couldn't match {', '.join(data.get('symptoms', []))} to a part for "
                f"model {model}. Could you describe the problem in more detail?"
            )
        lines = [f"These parts for model {model} may fix the problem:"]
        lines += [
            f"- {p['name']} (Part #{p['part_number']}) - ${p['price']}"
            for p in data.get("suggested_parts", [])
        ]
        return "\n".join(lines)

    if tool_name == "get_installation_instructions":
        if status == "not_found":
            return f"I couldn't find installation information for {part} on model {model}."
        if status == "video":
            return f"Here's the installation video for the {data.get('name')}: {data.get('video_url')}"
        steps = "\n".join(f"{i}. {s}" for i, s in enumerate(data.get("steps", []), start=1))
        return (
            f"There's no installation video for the {data.get('name')}, "
            f"but here are the general steps:\n{steps}"
        )

    if tool_name == "email_summary":
        return f"Done! I've emailed a summary of our conversation to {data.get('email')}."

    return "Here's what I found."
