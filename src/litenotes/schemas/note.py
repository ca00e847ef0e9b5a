# src/litenotes/schemas/note.py
"""Note-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from litenotes.services.envelope import OpenFailed
from litenotes.services.note_service import DecryptedNote, FieldResult, SavedNote

DECRYPTION_FAILED_SENTINEL = "[Decryption Failed]"


def render_field(result: FieldResult) -> str | None:
    """Convert a per-field decryption result into its display value."""
    if result is None:
        return None
    if isinstance(result, OpenFailed):
        return DECRYPTION_FAILED_SENTINEL
    return result.text()


class NoteWrite(BaseModel):
    """Schema for creating or replacing a note."""

    title: str | None = Field(None, description="Note title")
    content: str | None = Field(None, max_length=1_000_000, description="Note body")


class NoteResponse(BaseModel):
    """Schema for note information returned by the API."""

    id: int
    title: str | None
    content: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_saved(cls, note: SavedNote) -> "NoteResponse":
        return cls(
            id=note.id,
            title=note.title,
            content=note.content,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )

    @classmethod
    def from_decrypted(cls, note: DecryptedNote) -> "NoteResponse":
        """Build a response, substituting the sentinel for undecryptable fields."""
        return cls(
            id=note.id,
            title=render_field(note.title),
            content=render_field(note.content),
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class NoteUpdateResponse(BaseModel):
    """Acknowledgement of a note update."""

    message: str = "Note updated"
    updated_at: datetime
