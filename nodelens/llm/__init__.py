"""Prompt assembly and analysis engine client."""

from nodelens.llm.analyzer import LLMAnalyzer
from nodelens.llm.context import build_context

__all__ = ["LLMAnalyzer", "build_context"]
