"""
Scribe - Resilient Completion Orchestrator

Drives a remote text-generation service until its output is complete,
with backoff retries and a shared request throttle.
"""

from scribe.protocols import NotesGeneratorProtocol

__version__ = "0.1.0"
__author__ = "Scribe Team"

__all__ = [
    "NotesGeneratorProtocol",
]
