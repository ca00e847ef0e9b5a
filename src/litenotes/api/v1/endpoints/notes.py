# src/litenotes/api/v1/endpoints/notes.py
"""Note endpoints for the LiteNotes API."""

from __future__ import annotations

from fastapi import APIRouter, status

from litenotes.api.v1.dependencies import CurrentUserDep, NoteServiceDep
from litenotes.schemas.note import NoteResponse, NoteUpdateResponse, NoteWrite
from litenotes.schemas.user import MessageResponse

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("/", response_model=list[NoteResponse])
def list_notes(current_user: CurrentUserDep, notes: NoteServiceDep) -> list[NoteResponse]:
    """List the caller's notes, most recently modified first."""
    return [NoteResponse.from_decrypted(note) for note in notes.list_notes(current_user.id)]


@router.get("/{note_id}", response_model=NoteResponse)
def get_note(note_id: int, current_user: CurrentUserDep, notes: NoteServiceDep) -> NoteResponse:
    """Return a single note."""
    return NoteResponse.from_decrypted(notes.get_note(current_user.id, note_id))


@router.post("/", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_note(
    payload: NoteWrite, current_user: CurrentUserDep, notes: NoteServiceDep
) -> NoteResponse:
    """Create a note; the stored copy is encrypted."""
    saved = notes.create_note(current_user.id, payload.title, payload.content)
    return NoteResponse.from_saved(saved)


@router.put("/{note_id}", response_model=NoteUpdateResponse)
def update_note(
    note_id: int, payload: NoteWrite, current_user: CurrentUserDep, notes: NoteServiceDep
) -> NoteUpdateResponse:
    """Replace a note's title and content."""
    updated_at = notes.update_note(current_user.id, note_id, payload.title, payload.content)
    return NoteUpdateResponse(updated_at=updated_at)


@router.delete("/{note_id}", response_model=MessageResponse)
def delete_note(note_id: int, current_user: CurrentUserDep, notes: NoteServiceDep) -> MessageResponse:
    """Delete a note."""
    notes.delete_note(current_user.id, note_id)
    return MessageResponse(message="Note deleted")
