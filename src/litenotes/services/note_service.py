"""Note CRUD with per-user envelope encryption of title and content."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from litenotes.core.errors import KeyUnavailableError, NotFoundError, StorageError
from litenotes.db.time import as_utc, utcnow
from litenotes.models import Note
from litenotes.services.envelope import EnvelopeCipher, OpenFailed, Opened
from litenotes.services.key_cache import KeyCache

__all__ = [
    "DecryptedNote",
    "FieldResult",
    "NoteService",
    "SavedNote",
]

logger = logging.getLogger(__name__)

# None marks a field that was stored empty.
FieldResult = Opened | OpenFailed | None


@dataclass(frozen=True)
class DecryptedNote:
    """A stored note whose fields have each been opened independently."""

    id: int
    title: FieldResult
    content: FieldResult
    created_at: datetime
    updated_at: datetime

    @property
    def intact(self) -> bool:
        """Return True if no field failed to decrypt."""
        return not isinstance(self.title, OpenFailed) and not isinstance(self.content, OpenFailed)


@dataclass(frozen=True)
class SavedNote:
    """Plaintext echo of a note that was just written."""

    id: int
    title: str | None
    content: str | None
    created_at: datetime
    updated_at: datetime


class NoteService:
    """Encrypt-on-write and decrypt-on-read over a user's notes.

    Every operation that touches note text requires the user's data key to be
    present in the key cache; it is never re-derived from a password here.
    """

    def __init__(self, db: Session, key_cache: KeyCache) -> None:
        self.db = db
        self.key_cache = key_cache

    def _require_key(self, user_id: int) -> bytes:
        key = self.key_cache.get(user_id)
        if key is None:
            raise KeyUnavailableError()
        return key

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            logger.error("Database error while %s", action, exc_info=True)
            raise StorageError() from err

    @staticmethod
    def _seal_field(value: str | None, key: bytes) -> str | None:
        # Empty fields are stored as null, not as an envelope of empty bytes.
        if not value:
            return None
        return EnvelopeCipher.seal(value, key)

    @staticmethod
    def _open_field(stored: str | None, key: bytes, note_id: int, field: str) -> FieldResult:
        if stored is None:
            return None
        result = EnvelopeCipher.open(stored, key)
        if isinstance(result, Opened):
            try:
                result.text()
            except UnicodeDecodeError:
                result = OpenFailed("plaintext is not valid UTF-8")
        if isinstance(result, OpenFailed):
            logger.warning("Could not decrypt %s of note %s: %s", field, note_id, result.reason)
        return result

    def _decrypt(self, note: Note, key: bytes) -> DecryptedNote:
        return DecryptedNote(
            id=note.id,
            title=self._open_field(note.title, key, note.id, "title"),
            content=self._open_field(note.content, key, note.id, "content"),
            created_at=as_utc(note.created_at),
            updated_at=as_utc(note.updated_at),
        )

    def _get_owned(self, user_id: int, note_id: int) -> Note:
        note = self.db.scalar(select(Note).where(Note.id == note_id, Note.user_id == user_id))
        if note is None:
            raise NotFoundError("Note not found")
        return note

    def create_note(self, user_id: int, title: str | None, content: str | None) -> SavedNote:
        """Seal and persist a new note, echoing back the supplied plaintext.

        Raises:
            KeyUnavailableError: No cached data key for ``user_id``
        """
        key = self._require_key(user_id)
        note = Note(
            user_id=user_id,
            title=self._seal_field(title, key),
            content=self._seal_field(content, key),
        )
        self.db.add(note)
        self._commit("creating note")
        self.db.refresh(note)
        logger.debug("Created note %s for user %s", note.id, user_id)
        return SavedNote(
            id=note.id,
            title=title,
            content=content,
            created_at=as_utc(note.created_at),
            updated_at=as_utc(note.updated_at),
        )

    def list_notes(self, user_id: int) -> list[DecryptedNote]:
        """Return all of the user's notes, most recently modified first.

        A field that fails to decrypt is reported as ``OpenFailed`` and never
        aborts the listing.

        Raises:
            KeyUnavailableError: No cached data key for ``user_id``
        """
        key = self._require_key(user_id)
        notes: Sequence[Note] = self.db.scalars(
            select(Note)
            .where(Note.user_id == user_id)
            .order_by(Note.updated_at.desc(), Note.id.desc())
        ).all()
        return [self._decrypt(note, key) for note in notes]

    def get_note(self, user_id: int, note_id: int) -> DecryptedNote:
        """Return one decrypted note owned by ``user_id``.

        Raises:
            KeyUnavailableError: No cached data key for ``user_id``
            NotFoundError: No such note for this user
        """
        key = self._require_key(user_id)
        return self._decrypt(self._get_owned(user_id, note_id), key)

    def update_note(
        self, user_id: int, note_id: int, title: str | None, content: str | None
    ) -> datetime:
        """Replace a note's title and content; return the new last-modified time.

        Last write wins: no merge is attempted with concurrent edits.

        Raises:
            KeyUnavailableError: No cached data key for ``user_id``
            NotFoundError: No such note for this user
        """
        key = self._require_key(user_id)
        note = self._get_owned(user_id, note_id)
        note.title = self._seal_field(title, key)
        note.content = self._seal_field(content, key)
        note.updated_at = utcnow()
        self._commit("updating note")
        self.db.refresh(note)
        return as_utc(note.updated_at)

    def delete_note(self, user_id: int, note_id: int) -> None:
        """Delete a note owned by ``user_id``.

        Raises:
            NotFoundError: No such note for this user, whether or not it exists
        """
        result = self.db.execute(
            delete(Note).where(Note.id == note_id, Note.user_id == user_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("Note not found")
        self._commit("deleting note")
