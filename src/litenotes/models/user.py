# src/litenotes/models/user.py
"""SQLAlchemy model for registered accounts."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litenotes.db.session import Base
from litenotes.db.time import utcnow

if TYPE_CHECKING:
    from litenotes.models.note import Note
    from litenotes.models.password_reset import PasswordReset


class User(Base):
    """Account owning notes, plus the wrapped form of its data encryption key.

    ``encryption_salt`` and ``wrapped_data_key`` are written together at
    registration and are both set or both null.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(encryption_salt IS NULL AND wrapped_data_key IS NULL)"
            " OR (encryption_salt IS NOT NULL AND wrapped_data_key IS NOT NULL)",
            name="ck_users_key_material_complete",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    # Hex-encoded KDF salt and base64 envelope of the data encryption key.
    encryption_salt: Mapped[str | None] = mapped_column(String(64), nullable=True)
    wrapped_data_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    notes: Mapped[list[Note]] = relationship(
        "Note",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    password_resets: Mapped[list[PasswordReset]] = relationship(
        "PasswordReset",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_key_material(self) -> bool:
        """Return True if the account carries a wrapped data key."""
        return self.encryption_salt is not None and self.wrapped_data_key is not None
