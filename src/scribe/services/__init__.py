from .notes import LectureFormat, LectureNotes, NotesService
from .factory import create_notes_service, create_provider

__all__ = [
    "LectureFormat",
    "LectureNotes",
    "NotesService",
    "create_notes_service",
    "create_provider",
]
