"""Lecture notes service.

NotesService validates caller input, builds the chat messages and hands
them to a ContinuationLoop, so every returned text has passed the
completeness rules. It satisfies ``NotesGeneratorProtocol``.

Usage:
    service = NotesService(ContinuationLoop(provider, throttle=throttle))
    notes = await service.generate_lecture_notes("Fourier series")
    print(notes.content)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import List, Optional

import structlog

from scribe.core.exceptions import InputValidationError
from scribe.llm.continuation import ContinuationLoop, GenerationAttempt
from scribe.llm.provider import Message

log = structlog.get_logger()

LECTURER_ROLE = "You are a professional lecturer. Write clear, well-structured lecture notes."
TRANSCRIPT_ROLES = {
    "latex": "You are a professional lecturer. Turn lecture transcripts into complete LaTeX notes.",
    "markdown": "You are a professional lecturer. Turn lecture transcripts into complete Markdown notes.",
}
AUDIO_ROLE = "Transform this audio transcript into clear, complete lecture notes."
REFINE_ROLE = "Refine and improve this section using the provided transcript."
FORMAT_LABELS = {"latex": "LaTeX", "markdown": "Markdown"}


class LectureFormat(StrEnum):
    """Output formats for transcript notes."""

    LATEX = "latex"
    MARKDOWN = "markdown"


@dataclass
class LectureNotes:
    """Generated lecture notes with generation metadata."""

    topic: str
    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _require(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise InputValidationError(field=name)
    return value


def _parse_format(value: str) -> LectureFormat:
    try:
        return LectureFormat(value)
    except ValueError:
        raise InputValidationError(
            field="format",
            message='format must be either "latex" or "markdown"',
        ) from None


class NotesService:
    """Generate lecture notes through a ContinuationLoop.

    Args:
        loop: Continuation loop wrapping the configured provider.
        timeout: Optional deadline in seconds applied to every generation.
    """

    def __init__(self, loop: ContinuationLoop, timeout: Optional[float] = None) -> None:
        self._loop = loop
        self._timeout = timeout

    @property
    def loop(self) -> ContinuationLoop:
        return self._loop

    async def generate_lecture_notes(
        self, topic: str, context: Optional[str] = None
    ) -> LectureNotes:
        """Generate notes for a topic and wrap them with metadata.

        Raises:
            InputValidationError: If the topic is blank.
        """
        attempt = await self._generate_topic(topic, context)
        return LectureNotes(
            topic=topic,
            content=attempt.accumulated_text,
            model=attempt.model or self._loop.provider.get_model_name(),
            prompt_tokens=attempt.usage.prompt_tokens,
            completion_tokens=attempt.usage.completion_tokens,
        )

    async def generate_from_topic(self, topic: str, context: Optional[str] = None) -> str:
        attempt = await self._generate_topic(topic, context)
        return attempt.accumulated_text

    async def generate_from_transcript(self, transcript: str, format: str = "latex") -> str:
        """Turn a transcript into notes in the requested format.

        Raises:
            InputValidationError: If the transcript is blank or the format is
                neither ``latex`` nor ``markdown``.
        """
        _require(transcript, "transcript")
        lecture_format = _parse_format(format)

        messages = [
            Message.system(TRANSCRIPT_ROLES[lecture_format]),
            Message.user(transcript),
        ]
        log.info("notes_from_transcript", format=str(lecture_format), length=len(transcript))
        return await self._run(messages)

    async def generate_from_audio_transcript(self, audio_transcript: str) -> str:
        _require(audio_transcript, "audio_transcript")

        messages = [Message.system(AUDIO_ROLE), Message.user(audio_transcript)]
        log.info("notes_from_audio", length=len(audio_transcript))
        return await self._run(messages)

    async def refine_section(
        self, section: str, transcript: str, format: str = "latex"
    ) -> str:
        """Rewrite one section of existing notes against its transcript.

        Raises:
            InputValidationError: If the transcript or section is blank, or
                the format is unknown. The transcript is checked first.
        """
        _require(transcript, "transcript")
        _require(section, "section")
        lecture_format = _parse_format(format)

        messages = [
            Message.system(REFINE_ROLE),
            Message.user(f"Section: {section}\n\nTranscript: {transcript}"),
        ]
        log.info(
            "notes_refine_section",
            format=str(lecture_format),
            section_length=len(section),
            transcript_length=len(transcript),
        )
        return await self._run(messages)

    async def generate_scaffold(self, transcript: str, format: str = "latex") -> str:
        """Produce a document skeleton (headings, empty sections) for a transcript."""
        _require(transcript, "transcript")
        lecture_format = _parse_format(format)

        role = (
            f"Generate a document scaffold in {FORMAT_LABELS[lecture_format]} "
            "format based on this transcript."
        )
        messages = [Message.system(role), Message.user(transcript)]
        log.info("notes_scaffold", format=str(lecture_format), length=len(transcript))
        return await self._run(messages)

    async def augment_from_pdf(self, pdf_content: str, format: str = "latex") -> str:
        """Turn text extracted from a PDF into a complete document."""
        _require(pdf_content, "pdf_content")
        lecture_format = _parse_format(format)

        role = (
            "Transform this PDF content into a complete "
            f"{FORMAT_LABELS[lecture_format]} document."
        )
        messages = [Message.system(role), Message.user(pdf_content)]
        log.info("notes_from_pdf", format=str(lecture_format), length=len(pdf_content))
        return await self._run(messages)

    async def continue_generation(self, partial_text: str, instructions: str) -> str:
        """Resume a truncated generation; the result starts with ``partial_text``."""
        _require(partial_text, "partial_text")
        _require(instructions, "instructions")

        messages = [Message.system(LECTURER_ROLE), Message.user(instructions)]
        log.info("notes_continue", partial_length=len(partial_text))
        attempt = await self._loop.execute(
            messages, timeout=self._timeout, seed_text=partial_text
        )
        return attempt.accumulated_text

    async def _generate_topic(self, topic: str, context: Optional[str]) -> GenerationAttempt:
        _require(topic, "topic")

        prompt = f"Generate lecture notes about: {topic}"
        if context:
            prompt += f"\nContext: {context}"
        messages: List[Message] = [Message.system(LECTURER_ROLE), Message.user(prompt)]

        log.info("notes_from_topic", topic=topic, has_context=bool(context))
        return await self._loop.execute(messages, timeout=self._timeout)

    async def _run(self, messages: List[Message]) -> str:
        attempt = await self._loop.execute(messages, timeout=self._timeout)
        return attempt.accumulated_text
