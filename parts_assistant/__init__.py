"""PartSelect parts assistant — a support chat for refrigerator and
dishwasher parts.

Architecture Overview
=====================

Each user message is one **turn** through a LangGraph state machine:

1. **extract** — the extractor (deterministic keyword matcher by default,
   Claude-based JSON extraction when ``EXTRACTOR_BACKEND=llm``) pulls the
   appliance model, part number, symptoms, goal and email out of the
   message.  The result is merged into the session's fact record with a
   single non-destructive rule: known facts are only replaced by new
   explicit values, symptoms only accumulate.
2. **route** — no goal yet → ask for one; otherwise the requirement table
   decides whether anything is missing for that goal.
3. **act** — ask for the missing facts, or run the goal's one tool
   (compatibility check, repair diagnosis, installation info, email
   summary) and have the speaker model narrate its result.

Key Design Decisions
--------------------
- **Deterministic routing**: goals come from a closed vocabulary and the
  requirement table is the only source of "what's missing".
- **One tool per turn**: the goal maps 1:1 to a tool; its structured result
  is returned unchanged as ``tool_payload`` for the UI.
- **Goal reset**: the goal is cleared after its tool runs so the next
  message can ask for something new.
- **Memory**: fact records live in an injected session store with LRU/TTL
  eviction and a lock per session, not in a graph checkpointer.
- **Dual Interface**: FastAPI server (production) + CLI chat loop.

Package Structure
-----------------
- ``parts_assistant/agent.py`` — turn graph and the ``PartsAssistant`` turn API
- ``parts_assistant/memory.py`` — fact record and merge rule
- ``parts_assistant/extractor.py`` — keyword and LLM extractors
- ``parts_assistant/requirements.py`` — requirement table
- ``parts_assistant/prompts.py`` — speaker/extractor prompts and fallbacks
- ``parts_assistant/config.py`` — configuration from environment variables
- ``parts_assistant/services/`` — catalog, session store, email client, metrics
- ``parts_assistant/tools/`` — LangChain tools and the goal dispatcher
- ``parts_assistant/api/`` — FastAPI routes and Pydantic schemas
"""
