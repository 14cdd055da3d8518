"""
Confucius Sub-agents.

Model-backed helpers the orchestrator calls outside the main loop:
- CompressionAgent: summarizes the runnable scope when memory grows
- SessionSummarizer: writes the end-of-run digest
- LessonExtractor: turns a digest into one rule for the knowledge store

Every sub-agent degrades to a deterministic fallback when no model is
configured or the model call fails.
"""

from .compression import CompressionAgent, build_summary_message
from .lessons import LessonExtractor, clean_lesson
from .summarizer import SessionSummarizer

__all__ = [
    "CompressionAgent",
    "LessonExtractor",
    "SessionSummarizer",
    "build_summary_message",
    "clean_lesson",
]
