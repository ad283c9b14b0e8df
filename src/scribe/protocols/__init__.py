"""Protocol abstractions for Scribe.

All protocols use `typing.Protocol` for structural subtyping with
`@runtime_checkable` for isinstance() support.

Protocols:
    NotesGeneratorProtocol: Interface for lecture-notes generators.
"""

from __future__ import annotations

from scribe.protocols.notes import NotesGeneratorProtocol

__all__ = [
    "NotesGeneratorProtocol",
]
