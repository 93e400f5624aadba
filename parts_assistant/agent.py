"""LangGraph turn controller for the parts support assistant.

Architecture:
  Each user message runs once through a LangGraph StateGraph and ends in
  exactly one terminal node:

    1. **extract**             — extractor reads the utterance, its delta is
                                 merged into the fact record (the only merge
                                 of the turn) and the utterance is logged
    2. **ask_goal**            — no goal known: ask what the user needs
    3. **check_requirements**  — requirement table says what the goal lacks
    4. **ask_missing**         — ask for exactly the missing facts
    5. **execute_tool**        — run the goal's single tool, narrate the
                                 result, then clear the goal
    6. **internal_error**      — goal outside the vocabulary; apologise

  Routing:
    extract → (no goal?)       → ask_goal → END
    extract → (goal known?)    → check_requirements
    check_requirements → (missing?)   → ask_missing → END
                       → (satisfied?) → execute_tool → END
                       → (bad goal?)  → internal_error → END

  There is no loop back within a turn; the next utterance starts again at
  ``extract``.

  Memory:
    The fact record lives in a session store, not in a LangGraph
    checkpointer.  :class:`PartsAssistant` loads it, feeds it into the graph
    with the utterance, and stores the resulting record, holding the
    session's lock for the whole turn.

  Goal clearing:
    ``execute_tool`` resets ``goal_type`` to ``None`` whether the tool
    succeeded or failed, so a finished (or broken) goal is not re-run on
    the next message and the user can ask for something new.
"""

from __future__ import annotations

import json
import logging
import operator
import time
from typing import Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from parts_assistant.config import ANTHROPIC_API_KEY, MODEL_NAME
from parts_assistant.extractor import Extractor, create_extractor
from parts_assistant.memory import (
    ChatMessage,
    FactDelta,
    FactRecord,
    ToolResult,
    merge_facts,
)
from parts_assistant.prompts import (
    INTERNAL_ERROR_MESSAGE,
    TOOL_FAILURE_MESSAGE,
    fallback_ask_goal,
    fallback_ask_missing,
    fallback_tool_result,
    get_ask_goal_prompt,
    get_ask_missing_prompt,
    get_tool_result_prompt,
)
from parts_assistant.requirements import RequirementCheck, UnknownGoalError, check_requirements
from parts_assistant.services.metrics import metrics
from parts_assistant.services.session_store import SessionStorage, SessionStore
from parts_assistant.tools.dispatcher import ToolExecutionError, dispatch

logger = logging.getLogger(__name__)

FACT_FIELDS = (
    "product_model",
    "part_number",
    "symptoms",
    "goal_type",
    "email_address",
    "last_tool_result",
)


# ── State schema ─────────────────────────────────────────────────────


class TurnState(TypedDict, total=False):
    """The state that flows through the graph for one turn.

    The fact fields mirror :class:`FactRecord`.  ``messages`` appends, so
    nodes return only the messages they add.  ``requirements``, ``action``,
    ``response`` and ``tool_payload`` are per-turn plumbing and are not
    stored in the session.
    """

    session_id: str
    user_message: str
    messages: Annotated[list[ChatMessage], operator.add]
    product_model: str | None
    part_number: str | None
    symptoms: list[str]
    goal_type: str | None
    email_address: str | None
    last_tool_result: ToolResult | None
    requirements: RequirementCheck | None
    action: str
    response: str
    tool_payload: ToolResult | None


class TurnResult(TypedDict):
    response_text: str
    tool_payload: ToolResult | None


def _facts(state: TurnState) -> FactRecord:
    """Read the fact record out of the graph state."""
    return {
        "messages": list(state.get("messages", [])),
        "product_model": state.get("product_model"),
        "part_number": state.get("part_number"),
        "symptoms": list(state.get("symptoms", [])),
        "goal_type": state.get("goal_type"),
        "email_address": state.get("email_address"),
        "last_tool_result": state.get("last_tool_result"),
    }


def _describe(facts: FactRecord) -> str:
    return (
        f"model={facts['product_model']} part={facts['part_number']} "
        f"goal={facts['goal_type']} symptoms={facts['symptoms']} "
        f"email={'set' if facts['email_address'] else None}"
    )


# ── Speaker ─────────────────────────────────────────────────────────


def _build_speaker_llm() -> ChatAnthropic:
    """Build the conversational model that phrases every reply."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.7,
        max_tokens=512,
    )


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content).strip()


def _make_speaker(llm):
    """Wrap the speaker model so a failed or empty reply uses *fallback*."""

    def speak(prompt: str, fallback: str, operation: str) -> str:
        t0 = time.perf_counter()
        try:
            response = llm.invoke([HumanMessage(content=prompt)])
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", operation,
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            logger.warning("Speaker failed for %s, using fallback text: %s", operation, exc)
            return fallback

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("anthropic", operation, latency_ms=elapsed)
        return _message_text(response) or fallback

    return speak


# ── Nodes ────────────────────────────────────────────────────────────


def _make_extract_node(extractor: Extractor):
    def extract_node(state: TurnState) -> dict:
        """Merge this utterance's facts into memory and log the utterance."""
        utterance = state.get("user_message", "")
        facts = _facts(state)
        try:
            delta = extractor.extract(utterance, facts)
        except Exception:
            logger.exception(
                "[%s] Extractor raised; continuing with no new facts", state.get("session_id"),
            )
            delta = FactDelta()

        merged = merge_facts(facts, delta)
        logger.debug("[%s] Facts after extract: %s", state.get("session_id"), _describe(merged))
        return {
            "messages": [{"role": "user", "content": utterance}],
            "product_model": merged["product_model"],
            "part_number": merged["part_number"],
            "symptoms": merged["symptoms"],
            "goal_type": merged["goal_type"],
            "email_address": merged["email_address"],
        }

    return extract_node


def check_requirements_node(state: TurnState) -> dict:
    """Record which facts the current goal still lacks."""
    try:
        result = check_requirements(state.get("goal_type"), _facts(state))
    except UnknownGoalError as exc:
        logger.error(
            "[%s] %s; facts: %s", state.get("session_id"), exc, _describe(_facts(state)),
        )
        return {"requirements": None}
    logger.debug("[%s] Requirements: %s", state.get("session_id"), result)
    return {"requirements": result}


def _make_ask_goal_node(speak):
    def ask_goal_node(state: TurnState) -> dict:
        reply = speak(get_ask_goal_prompt(), fallback_ask_goal(), "ask_goal")
        return {
            "messages": [{"role": "assistant", "content": reply}],
            "action": "ask_goal",
            "response": reply,
        }

    return ask_goal_node


def _make_ask_missing_node(speak):
    def ask_missing_node(state: TurnState) -> dict:
        facts = _facts(state)
        goal = facts["goal_type"]
        missing = state["requirements"]["fields"]
        reply = speak(
            get_ask_missing_prompt(goal, facts, missing),
            fallback_ask_missing(goal, facts, missing),
            "ask_missing",
        )
        return {
            "messages": [{"role": "assistant", "content": reply}],
            "action": "ask_missing",
            "response": reply,
        }

    return ask_missing_node


def _make_execute_tool_node(speak):
    def execute_tool_node(state: TurnState) -> dict:
        """Run the goal's tool, narrate it, and clear the goal."""
        facts = _facts(state)
        goal = facts["goal_type"]
        session_id = state.get("session_id")
        try:
            result = dispatch(goal, facts)
        except (ToolExecutionError, UnknownGoalError) as exc:
            logger.error("[%s] Tool for goal %s failed: %s; facts: %s",
                         session_id, goal, exc, _describe(facts))
            return {
                "messages": [{"role": "assistant", "content": TOOL_FAILURE_MESSAGE}],
                "goal_type": None,
                "action": "execute_tool",
                "response": TOOL_FAILURE_MESSAGE,
            }

        tool_name, data = result["tool_name"], result["data"]
        logger.info("[%s] Executed %s for goal %s", session_id, tool_name, goal)
        reply = speak(
            get_tool_result_prompt(tool_name, data),
            fallback_tool_result(tool_name, data),
            "render_tool_result",
        )
        return {
            "messages": [
                {"role": "tool", "content": json.dumps(data, default=str)},
                {"role": "assistant", "content": reply},
            ],
            "last_tool_result": result,
            "goal_type": None,
            "action": "execute_tool",
            "response": reply,
            "tool_payload": result,
        }

    return execute_tool_node


def internal_error_node(state: TurnState) -> dict:
    return {
        "messages": [{"role": "assistant", "content": INTERNAL_ERROR_MESSAGE}],
        "action": "internal_error",
        "response": INTERNAL_ERROR_MESSAGE,
    }


# ── Conditional edges ────────────────────────────────────────────────


def route_after_extract(state: TurnState) -> str:
    """Ask for a goal when none is known, otherwise check its requirements."""
    if not state.get("goal_type"):
        return "ask_goal"
    return "check_requirements"


def route_after_requirements(state: TurnState) -> str:
    result = state.get("requirements")
    if result is None:
        return "internal_error"
    if result.get("status") == "missing":
        return "ask_missing"
    return "execute_tool"


# ── Graph assembly ───────────────────────────────────────────────────


def create_turn_graph(extractor: Extractor | None = None, speaker_llm=None):
    """Build and compile the turn graph.

    Returns a compiled graph invoked once per turn with the session's fact
    record plus ``user_message`` (and ``session_id`` for logging)::

        graph.invoke({**record, "user_message": "...", "session_id": "abc"})
    """
    speak = _make_speaker(speaker_llm or _build_speaker_llm())

    graph = StateGraph(TurnState)
    graph.add_node("extract", _make_extract_node(extractor or create_extractor()))
    graph.add_node("ask_goal", _make_ask_goal_node(speak))
    graph.add_node("check_requirements", check_requirements_node)
    graph.add_node("ask_missing", _make_ask_missing_node(speak))
    graph.add_node("execute_tool", _make_execute_tool_node(speak))
    graph.add_node("internal_error", internal_error_node)

    graph.set_entry_point("extract")
    graph.add_conditional_edges(
        "extract",
        route_after_extract,
        {"ask_goal": "ask_goal", "check_requirements": "check_requirements"},
    )
    graph.add_conditional_edges(
        "check_requirements",
        route_after_requirements,
        {
            "ask_missing": "ask_missing",
            "execute_tool": "execute_tool",
            "internal_error": "internal_error",
        },
    )
    for terminal in ("ask_goal", "ask_missing", "execute_tool", "internal_error"):
        graph.add_edge(terminal, END)

    compiled = graph.compile()
    logger.debug("Turn graph compiled — speaker: %s", MODEL_NAME)
    return compiled


# ── Turn API ─────────────────────────────────────────────────────────


class PartsAssistant:
    """Runs turns against stored sessions.

    Turns for one session are serialised; different sessions run in
    parallel and share nothing but the read-only catalog.
    """

    def __init__(self, store: SessionStorage | None = None, graph=None):
        self._store = store or SessionStore()
        self._graph = graph or create_turn_graph()

    @property
    def store(self) -> SessionStorage:
        return self._store

    def handle_turn(self, session_id: str, utterance: str) -> TurnResult:
        """Process one user message and return the reply.

        ``tool_payload`` is ``{tool_name, data}`` when a tool ran this turn
        and ``None`` otherwise.  Never raises: an unexpected failure yields
        an apology and leaves the stored record unchanged.
        """
        t0 = time.perf_counter()
        with self._store.lock(session_id):
            record = self._store.get(session_id)
            try:
                output = self._graph.invoke(
                    {**record, "user_message": utterance, "session_id": session_id},
                )
            except Exception:
                logger.exception("[%s] Turn failed; facts: %s", session_id, _describe(record))
                metrics.record_turn("internal_error", (time.perf_counter() - t0) * 1000)
                return {"response_text": INTERNAL_ERROR_MESSAGE, "tool_payload": None}

            updated = _facts(output)
            self._store.put(session_id, updated)

        action = output.get("action", "unknown")
        metrics.record_turn(action, (time.perf_counter() - t0) * 1000)
        logger.debug("[%s] Turn ended in %s; facts: %s", session_id, action, _describe(updated))
        return {
            "response_text": output.get("response") or INTERNAL_ERROR_MESSAGE,
            "tool_payload": output.get("tool_payload"),
        }

    def end_session(self, session_id: str) -> bool:
        """Discard a session's memory.  Returns ``True`` if it existed."""
        discard = getattr(self._store, "discard", None)
        return bool(discard and discard(session_id))


def create_parts_assistant() -> PartsAssistant:
    """Build the assistant with the configured extractor, speaker and store."""
    return PartsAssistant(store=SessionStore(), graph=create_turn_graph())
