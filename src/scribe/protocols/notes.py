"""Notes generator protocol for Scribe.

This module defines the NotesGeneratorProtocol interface: the capability set
a notes backend offers to callers. Uses `typing.Protocol` for structural
subtyping, so implementations do not inherit from it.

Every operation returns text that passed the completeness rules; partial
output is never returned as if it were complete.

Usage:
    from scribe.protocols import NotesGeneratorProtocol

    service = create_notes_service(settings)
    assert isinstance(service, NotesGeneratorProtocol)
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class NotesGeneratorProtocol(Protocol):
    """Protocol for lecture-notes generators.

    Methods:
        generate_from_topic: Produce notes for a topic.
        generate_from_transcript: Turn a transcript into notes.
        continue_generation: Resume previously truncated output.
    """

    async def generate_from_topic(self, topic: str, context: Optional[str] = None) -> str:
        """Generate notes for a topic.

        Args:
            topic: Subject of the notes. Must not be blank.
            context: Optional extra material to ground the notes.

        Returns:
            Complete notes text.

        Raises:
            InputValidationError: If the topic is blank.
            IncompleteAfterMaxAttemptsError: If the output never completed.
        """
        ...

    async def generate_from_transcript(self, transcript: str, format: str = "latex") -> str:
        """Generate notes from a lecture transcript.

        Args:
            transcript: Raw transcript text. Must not be blank.
            format: Output format, ``"latex"`` or ``"markdown"``.

        Returns:
            Complete notes text.

        Raises:
            InputValidationError: If the transcript is blank or the format
                is unknown.
        """
        ...

    async def continue_generation(self, partial_text: str, instructions: str) -> str:
        """Continue a previously truncated generation.

        Args:
            partial_text: Text produced so far. Kept verbatim as the prefix
                of the result.
            instructions: The instruction the partial text was produced for.

        Returns:
            The partial text followed by the generated remainder.
        """
        ...
