# src/litenotes/models/note.py
"""SQLAlchemy model for user notes."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litenotes.db.session import Base
from litenotes.db.time import utcnow

if TYPE_CHECKING:
    from litenotes.models.user import User


class Note(Base):
    """A single note belonging to exactly one user.

    ``title`` and ``content`` hold base64 envelopes (nonce || ciphertext || tag)
    or null when the field was empty. ``updated_at`` is the only ordering signal
    across devices; concurrent writers resolve as last-write-wins.
    """

    __tablename__ = "notes"
    __table_args__ = (Index("ix_notes_user_updated", "user_id", "updated_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    owner: Mapped[User] = relationship("User", back_populates="notes")
