"""
Confucius Knowledge.

Persistent, cross-session stores:
- KnowledgeStore: append-only markdown file of learned rules
- SessionDigestStore: one markdown digest per finished run
"""

from .digests import SessionDigestStore, digest_filename
from .store import KNOWLEDGE_HEADER, KnowledgeStore, format_rule

__all__ = [
    "KNOWLEDGE_HEADER",
    "KnowledgeStore",
    "SessionDigestStore",
    "digest_filename",
    "format_rule",
]
