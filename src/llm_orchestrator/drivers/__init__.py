"""Provider drivers."""

from __future__ import annotations

from llm_orchestrator.drivers.base import Driver, HttpDriver
from llm_orchestrator.drivers.claude import ClaudeDriver
from llm_orchestrator.drivers.gemini import GeminiDriver
from llm_orchestrator.drivers.mock import MockDriver
from llm_orchestrator.drivers.openai import OpenAIDriver

__all__ = [
    "ClaudeDriver",
    "Driver",
    "GeminiDriver",
    "HttpDriver",
    "MockDriver",
    "OpenAIDriver",
]
