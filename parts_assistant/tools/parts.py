"""LangChain tools over the parts catalog.

Each tool returns the catalog's structured result unchanged so it can be
stored as ``last_tool_result.data`` and rendered by the UI (parts grid,
embedded video).
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import tool

from parts_assistant.services.catalog import COMPATIBLE, get_catalog

logger = logging.getLogger(__name__)


@tool
def check_compatibility(part_number: str, model: str) -> dict[str, Any]:
    """Check if a specific part is compatible with an appliance model.

    Args:
        part_number: Part number (e.g. "PS11752778").
        model: Appliance model number (e.g. "WDT780SAEM1").
    """
    status = get_catalog().compatibility_status(part_number, model)
    logger.debug("Compatibility %s / %s: %s", part_number, model, status)
    return {
        "part_number": part_number,
        "model": model,
        "compatible": status == COMPATIBLE,
        "reason": status,
    }


@tool
def diagnose_repair(model: str, symptoms: list[str]) -> dict[str, Any]:
    """Suggest up to three parts that fix the described symptoms.

    Args:
        model: Appliance model number.
        symptoms: Canonical symptom labels (e.g. ["Leaking", "Noisy"]).
    """
    return get_catalog().diagnose(model, symptoms)


@tool
def get_installation_instructions(part_number: str, model: str) -> dict[str, Any]:
    """Get the installation video, or generic steps, for a part on a model.

    Args:
        part_number: Part number (e.g. "PS3406971").
        model: Appliance model number.
    """
    return get_catalog().get_installation_info(part_number, model)
