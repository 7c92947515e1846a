"""Pytest configuration for llm_react_toolkit tests."""

from __future__ import annotations

import logging

from dotenv import load_dotenv

# Ensure pytest-asyncio is always available so async tests execute without
# requiring plugins to be explicitly enabled via command line options.
pytest_plugins = ("pytest_asyncio",)

load_dotenv()

logging.getLogger("llm_react_toolkit").setLevel(logging.DEBUG)
