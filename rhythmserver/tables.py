"""Relational table mappings for users, musics, sheets and records."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
    false,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class ClearTypeValue(enum.Enum):
    """Clear type as stored in the ``clear_type`` database enum."""

    FAILED = "failed"
    CLEAR = "clear"
    FULL_COMBO = "full_combo"
    ALL_PERFECT = "all_perfect"


class DifficultyValue(enum.Enum):
    """Difficulty as stored in the ``difficulty`` database enum."""

    BASIC = "basic"
    ADVANCED = "advanced"
    EXPERT = "expert"
    MASTER = "master"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Declarative base of all tables."""


class UserRow(Base):
    """A row of the ``users`` table."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    card: Mapped[str] = mapped_column(String, unique=True)
    display_name: Mapped[str] = mapped_column(String)
    rating: Mapped[int] = mapped_column(Integer, server_default=text("0"))
    xp: Mapped[int] = mapped_column(BigInteger, server_default=text("0"))
    credits: Mapped[int] = mapped_column(BigInteger, server_default=text("0"))
    is_admin: Mapped[bool] = mapped_column(Boolean, server_default=false())
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    records: Mapped[list[RecordRow]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class MusicRow(Base):
    """A row of the ``musics`` table."""

    __tablename__ = "musics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    title: Mapped[str] = mapped_column(String)
    artist: Mapped[str] = mapped_column(String)
    bpm: Mapped[Decimal] = mapped_column(Numeric(6, 3))
    genre: Mapped[int] = mapped_column(Integer)
    jacket: Mapped[str] = mapped_column(String)
    registration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_test: Mapped[bool] = mapped_column(Boolean, server_default=false())

    sheets: Mapped[list[SheetRow]] = relationship(
        back_populates="music", cascade="all, delete-orphan", passive_deletes=True
    )


class SheetRow(Base):
    """A row of the ``sheets`` table."""

    __tablename__ = "sheets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    music_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("musics.id", ondelete="CASCADE", onupdate="CASCADE")
    )
    difficulty: Mapped[DifficultyValue] = mapped_column(
        Enum(DifficultyValue, name="difficulty", values_callable=_enum_values)
    )
    level: Mapped[int] = mapped_column(Integer)
    notes_designer: Mapped[str] = mapped_column(String)

    music: Mapped[MusicRow] = relationship(back_populates="sheets")
    records: Mapped[list[RecordRow]] = relationship(
        back_populates="sheet", cascade="all, delete-orphan", passive_deletes=True
    )


class RecordRow(Base):
    """A row of the ``records`` table."""

    __tablename__ = "records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE")
    )
    sheet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("sheets.id", ondelete="CASCADE", onupdate="CASCADE")
    )
    score: Mapped[int] = mapped_column(Integer)
    clear_type: Mapped[ClearTypeValue] = mapped_column(
        Enum(ClearTypeValue, name="clear_type", values_callable=_enum_values)
    )
    play_count: Mapped[int] = mapped_column(Integer, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[UserRow] = relationship(back_populates="records")
    sheet: Mapped[SheetRow] = relationship(back_populates="records")