"""Shared test fixtures for the parts assistant test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("EMAIL_API_KEY", "test-email-key-456")
    os.environ["METRICS_ENABLED"] = "false"


@pytest.fixture
def catalog():
    """The bundled sample catalog (data/parts.json)."""
    from parts_assistant.services.catalog import get_catalog

    return get_catalog()


@pytest.fixture
def empty_facts():
    from parts_assistant.memory import new_fact_record

    return new_fact_record()


@pytest.fixture
def failing_speaker():
    """A speaker model that always errors, so replies use the fallback texts."""
    llm = MagicMock()
    llm.invoke.side_effect = RuntimeError("speaker down")
    return llm


@pytest.fixture
def echo_speaker():
    """A speaker model that replies with a fixed sentence."""
    from langchain_core.messages import AIMessage

    llm = MagicMock()
    llm.invoke.return_value = AIMessage(content="Sure, here's what I found.")
    return llm
