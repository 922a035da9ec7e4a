"""Repositories package."""

from casenote.repositories.base import BaseRepository
from casenote.repositories.notes import NoteRepository, note_repository

__all__ = [
    "BaseRepository",
    "NoteRepository",
    "note_repository",
]
