"""Turn one user utterance into a :class:`FactDelta`.

Two interchangeable backends share the ``extract(utterance, facts)``
signature:

* :class:`KeywordExtractor` — deterministic regex/keyword matching.  Default.
* :class:`LLMExtractor` — asks the extractor model for JSON matching the
  fixed ``{model, part, symptoms, goal, email}`` schema.

Both look at the current utterance only and map free-text complaints onto
the canonical symptom vocabulary below.  Descriptions that map onto nothing
produce no symptom.  An unusable LLM response degrades to an empty delta.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from pydantic import ValidationError

from parts_assistant.config import ANTHROPIC_API_KEY, EXTRACTOR_BACKEND, EXTRACTOR_MODEL_NAME
from parts_assistant.memory import FactDelta, FactRecord, normalize_symptom
from parts_assistant.prompts import get_extractor_prompt
from parts_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)


# ── Canonical symptom vocabulary ─────────────────────────────────────
# Patterns run against normalize_symptom(utterance): lower-case, straight
# apostrophes, single spaces.

SYMPTOM_PATTERNS: dict[str, tuple[str, ...]] = {
    "Not cleaning dishes properly": (
        r"not (?:getting )?clean\w*", r"\bdirty\b", r"\bresidue\b", r"not washing",
    ),
    "Door won't close": (
        r"door (?:is )?stuck", r"door (?:won't|will not|doesn't) (?:close|shut)",
        r"won't shut", r"door issue",
    ),
    "Noisy": (
        r"\bloud\b", r"\bnois[ey]\w*", r"\bsqueak\w*", r"\bgrind\w*", r"\brattl\w*",
        r"(?:strange|weird|loud|grinding|humming|buzzing|clicking|banging) sounds?\b",
        r"making (?:a |an )?(?:\w+ )?sounds?\b",
    ),
    "Door latch failure": (
        r"\blatch\w*", r"door won't lock", r"won't lock",
    ),
    "Leaking": (
        r"\bleak\w*", r"\bdrip\w*", r"\bpuddles?\b",
        r"water (?:on|under|in|around|pooling|everywhere|all over|coming out)\b",
        r"wet (?:floor|spot|kitchen|cabinet)\b",
    ),
    "Will Not Start": (
        r"won't start", r"will not start", r"won't turn on", r"not starting", r"doesn't start",
    ),
    "Not draining": (
        r"won't drain", r"not draining", r"standing water", r"doesn't drain",
    ),
    "Not drying dishes properly": (
        r"not drying", r"wet dishes", r"drying issue", r"won't dry", r"doesn't dry",
    ),
}

CANONICAL_SYMPTOMS: tuple[str, ...] = tuple(SYMPTOM_PATTERNS)

GOAL_PATTERNS: dict[str, tuple[str, ...]] = {
    "diagnose_repair": (
        r"\bfix\w*", r"\btroubleshoot\w*", r"\bdiagnos\w*", r"what's wrong", r"\brepair\w*",
    ),
    "install_instruction": (
        r"\binstall\w*", r"\breplac\w*",
    ),
    "check_compatibility": (
        r"\bcompatib\w*", r"will (?:it |this |that )?work", r"\bwork with\b", r"\bfits?\b",
    ),
    "email_summary": (
        r"\bemail (?:me|it|this|that|a|the)\b",
        r"\bsend (?:me )?(?:a |the |my |our )?(?:summary|transcript|recap|copy)\b",
        r"\b(?:send|forward) (?:it|this|that) to\b",
        r"\b(?:save|share|forward) (?:a |the |this |our |my )?(?:conversation|chat|summary|transcript)\b",
        r"\bsummar\w*",
    ),
}

_PART_RE = re.compile(r"\bPS\d{5,}\b", re.IGNORECASE)
_EMAIL_SEARCH_RE = re.compile(r"[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)+")
_MODEL_CANDIDATE_RE = re.compile(r"\b[A-Za-z0-9]{5,20}\b")
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

_COMPILED_SYMPTOMS = [
    (label, re.compile(pattern))
    for label, patterns in SYMPTOM_PATTERNS.items()
    for pattern in patterns
]
_COMPILED_GOALS = [
    (goal, re.compile(pattern))
    for goal, patterns in GOAL_PATTERNS.items()
    for pattern in patterns
]


class ExtractionFailure(Exception):
    """The NL capability returned output that does not fit the schema."""


class Extractor(Protocol):
    def extract(self, utterance: str, facts: FactRecord) -> FactDelta: ...


# ── Matching helpers ─────────────────────────────────────────────────


def match_symptoms(text: str) -> list[str]:
    """Map free text onto canonical symptom labels.

    Overlapping matches are resolved longest-first, so "standing water" is
    a drainage complaint rather than a leak.  Labels come back in the order
    they appear in *text*.
    """
    normalized = normalize_symptom(text)
    hits = [
        (m.start(), m.end(), label)
        for label, pattern in _COMPILED_SYMPTOMS
        for m in pattern.finditer(normalized)
    ]
    hits.sort(key=lambda h: (-(h[1] - h[0]), h[0]))

    taken: list[tuple[int, int, str]] = []
    for start, end, label in hits:
        if all(end <= s or start >= e for s, e, _ in taken):
            taken.append((start, end, label))

    labels: list[str] = []
    for _, _, label in sorted(taken):
        if label not in labels:
            labels.append(label)
    return labels


def canonicalize_symptoms(descriptions: list[str]) -> list[str]:
    """Map LLM-reported symptom strings onto the canonical vocabulary."""
    by_key = {normalize_symptom(label): label for label in CANONICAL_SYMPTOMS}
    labels: list[str] = []
    for description in descriptions:
        exact = by_key.get(normalize_symptom(description))
        for label in [exact] if exact else match_symptoms(description):
            if label not in labels:
                labels.append(label)
    return labels


def match_goal(text: str) -> str | None:
    """Return the goal whose keyword appears first in *text*, if any."""
    normalized = normalize_symptom(text)
    best: tuple[int, str] | None = None
    for goal, pattern in _COMPILED_GOALS:
        m = pattern.search(normalized)
        if m and (best is None or m.start() < best[0]):
            best = (m.start(), goal)
    return best[1] if best else None


def _find_model(text: str) -> str | None:
    for candidate in _MODEL_CANDIDATE_RE.findall(text):
        if _PART_RE.fullmatch(candidate):
            continue
        has_digit = any(c.isdigit() for c in candidate)
        letters = sum(c.isalpha() for c in candidate)
        if has_digit and letters >= 2:
            return candidate.upper()
    return None


# ── Backends ─────────────────────────────────────────────────────────


class KeywordExtractor:
    """Deterministic extractor: regexes for identifiers, keyword tables for
    goals and symptoms."""

    def extract(self, utterance: str, facts: FactRecord) -> FactDelta:
        email_match = _EMAIL_SEARCH_RE.search(utterance)
        # Identifiers inside an address must not be mistaken for a model.
        scrubbed = _EMAIL_SEARCH_RE.sub(" ", utterance)
        part_match = _PART_RE.search(scrubbed)

        return FactDelta(
            model=_find_model(scrubbed),
            part=part_match.group(0) if part_match else None,
            symptoms=match_symptoms(scrubbed),
            goal=match_goal(scrubbed),
            email=email_match.group(0) if email_match else None,
        )


def _build_extractor_llm() -> ChatAnthropic:
    """Build a low-temperature model for structured extraction."""
    return ChatAnthropic(
        model=EXTRACTOR_MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.0,
        max_tokens=256,
    )


def parse_extraction(content: str) -> FactDelta:
    """Validate the extractor model's reply against the fact schema.

    Raises:
        ExtractionFailure: the reply is not a JSON object of the schema.
    """
    text = _CODE_FENCE_RE.sub("", (content or "").strip())
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionFailure(f"Extractor returned non-JSON output: {exc}") from exc
    if not isinstance(payload, dict):
        raise ExtractionFailure(f"Extractor returned {type(payload).__name__}, expected object")
    try:
        delta = FactDelta.model_validate(payload)
    except ValidationError as exc:
        raise ExtractionFailure(f"Extractor output failed validation: {exc}") from exc
    return delta.model_copy(update={"symptoms": canonicalize_symptoms(delta.symptoms)})


class LLMExtractor:
    """Schema-constrained extraction through the extractor model.

    Known facts are listed in the prompt so the model only reports what the
    current message adds or explicitly corrects.
    """

    def __init__(self, llm=None):
        self._llm = llm or _build_extractor_llm()

    def extract(self, utterance: str, facts: FactRecord) -> FactDelta:
        prompt = get_extractor_prompt(facts) + "\n\nMessage: " + utterance
        t0 = time.perf_counter()
        try:
            response = self._llm.invoke([HumanMessage(content=prompt)])
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_success("anthropic", "extract", latency_ms=elapsed)
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "extract",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.warning("Extractor model call failed, using empty delta: %s", exc)
            return FactDelta()

        try:
            delta = parse_extraction(response.content)
        except ExtractionFailure as exc:
            logger.warning("%s — proceeding with no new facts", exc)
            return FactDelta()
        logger.debug("LLM extracted: %s", delta.model_dump())
        return delta


def create_extractor(backend: str | None = None) -> Extractor:
    """Build the configured extractor backend (``keyword`` or ``llm``)."""
    backend = (backend or EXTRACTOR_BACKEND).lower()
    if backend == "llm":
        return LLMExtractor()
    if backend != "keyword":
        logger.warning("Unknown EXTRACTOR_BACKEND %r, falling back to keyword", backend)
    return KeywordExtractor()
