"""Read-only queries over the static parts catalog.

The catalog maps an appliance model to the parts sold for it::

    {
      "WDT780SAEM1": {
        "parts": {
          "PS3406971": {
            "name": "...", "price": 12.95, "description": "...",
            "image_url": "...", "solves_symptoms": ["Leaking"],
            "repair_video_url": "..."          # optional
          }
        }
      }
    }

It is loaded once and never written.  Misses are ordinary return values
with a ``status`` field so callers can tell "unknown model" apart from
"known model, nothing matched".
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from parts_assistant.config import CATALOG_PATH
from parts_assistant.memory import normalize_symptom

logger = logging.getLogger(__name__)

MAX_SUGGESTED_PARTS = 3

GENERIC_INSTALL_STEPS: tuple[str, ...] = (
    "Unplug the appliance",
    "Remove the old part",
    "Install the new part",
    "Test the appliance",
)

# compatibility_status() results
COMPATIBLE = "compatible"
UNKNOWN_MODEL = "unknown_model"
PART_NOT_LISTED = "part_not_listed"

# diagnose() results
MATCH = "match"
NO_MATCH = "no_match"

# get_installation_info() results
VIDEO = "video"
GENERIC_STEPS = "generic_steps"
NOT_FOUND = "not_found"


def _key(identifier: str | None) -> str:
    return (identifier or "").strip().upper()


class PartsCatalog:
    """Immutable-by-convention view over the parts-by-model snapshot."""

    def __init__(self, data: Mapping[str, Any]):
        self._models: dict[str, dict[str, dict[str, Any]]] = {
            _key(model): {
                _key(part_number): part
                for part_number, part in ((entry or {}).get("parts") or {}).items()
            }
            for model, entry in data.items()
        }

    @classmethod
    def from_file(cls, path: Path | str) -> PartsCatalog:
        """Load a catalog snapshot from a JSON file."""
        path = Path(path)
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        catalog = cls(data)
        logger.info(
            "Loaded parts catalog from %s (%d models, %d parts)",
            path, len(catalog._models), sum(len(p) for p in catalog._models.values()),
        )
        return catalog

    # ── Introspection ────────────────────────────────────────────────

    def has_model(self, model: str) -> bool:
        return _key(model) in self._models

    def get_part(self, part_number: str, model: str) -> dict[str, Any] | None:
        """Return the catalog entry for *part_number* under *model*, if any."""
        return self._models.get(_key(model), {}).get(_key(part_number))

    # ── Lookups ──────────────────────────────────────────────────────

    def compatibility_status(self, part_number: str, model: str) -> str:
        """Say why a part does or does not fit a model."""
        parts = self._models.get(_key(model))
        if parts is None:
            return UNKNOWN_MODEL
        if _key(part_number) not in parts:
            return PART_NOT_LISTED
        return COMPATIBLE

    def check_compatibility(self, part_number: str, model: str) -> bool:
        """True iff *model* is catalogued and lists *part_number*."""
        return self.compatibility_status(part_number, model) == COMPATIBLE

    def diagnose(self, model: str, symptoms: Iterable[str]) -> dict[str, Any]:
        """Suggest up to three parts of *model* that solve any of *symptoms*.

        Symptoms are compared for equality after normalisation, and parts
        come back in catalog order.
        """
        symptoms = list(symptoms)
        result: dict[str, Any] = {
            "model": _key(model),
            "symptoms": symptoms,
            "suggested_parts": [],
        }
        parts = self._models.get(_key(model))
        if parts is None:
            logger.debug("Diagnosis: model %s not in catalog", model)
            return {**result, "status": UNKNOWN_MODEL}

        wanted = {normalize_symptom(s) for s in symptoms}
        suggested = []
        for part_number, part in parts.items():
            solves = part.get("solves_symptoms") or []
            if wanted.intersection(normalize_symptom(s) for s in solves):
                suggested.append({
                    "part_number": part_number,
                    "name": part.get("name"),
                    "price": part.get("price"),
                    "description": part.get("description"),
                    "image_url": part.get("image_url"),
                    "solves_symptoms": list(solves),
                })
                if len(suggested) == MAX_SUGGESTED_PARTS:
                    break

        logger.debug(
            "Diagnosis: %d part(s) of %s match %s", len(suggested), model, symptoms,
        )
        if not suggested:
            return {**result, "status": NO_MATCH}
        return {**result, "status": MATCH, "suggested_parts": suggested}

    def get_installation_info(self, part_number: str, model: str) -> dict[str, Any]:
        """Return the repair video for a part, generic steps, or not-found."""
        part = self.get_part(part_number, model)
        base = {"part_number": _key(part_number), "model": _key(model)}
        if part is None:
            return {**base, "status": NOT_FOUND}

        base.update(name=part.get("name"), price=part.get("price"))
        video_url = part.get("repair_video_url")
        if video_url:
            return {**base, "status": VIDEO, "video_url": video_url}
        return {**base, "status": GENERIC_STEPS, "steps": list(GENERIC_INSTALL_STEPS)}


# ── Module-level singleton (thread-safe) ────────────────────────────
_catalog: PartsCatalog | None = None
_catalog_lock = threading.Lock()


def get_catalog() -> PartsCatalog:
    """Return the process-wide catalog, loading it from ``CATALOG_PATH`` once."""
    global _catalog
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                _catalog = PartsCatalog.from_file(CATALOG_PATH)
    return _catalog
