"""Domain entities of the rhythm game server."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timezone


class ClearType(enum.Enum):
    """Outcome of a single play."""

    FAIL = "FAIL"
    CLEAR = "CLEAR"
    FULL_COMBO = "FULL COMBO"
    ALL_PERFECT = "ALL PERFECT"

    def __str__(self) -> str:
        return self.value


class Difficulty(enum.Enum):
    """Difficulty class of a sheet."""

    EASY = "EASY"
    NORMAL = "NORMAL"
    HARD = "HARD"

    def __str__(self) -> str:
        return self.value


class Genre(enum.Enum):
    """Genre a music belongs to."""

    ORIGINAL = "ORIGINAL"

    def __str__(self) -> str:
        return self.value


class LevelError(ValueError):
    """Raised when a level is built from out-of-range parts."""

    def __init__(self, message: str = "Invalid level value") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Level:
    """A sheet level made of an integer part and a single decimal digit."""

    integer: int
    decimal: int

    def __post_init__(self) -> None:
        if self.integer < 1 or not 0 <= self.decimal < 10:
            raise LevelError()

    @property
    def value(self) -> float:
        """The level as a number, e.g. 12.7."""
        return self.integer + self.decimal / 10

    @classmethod
    def from_tuple(cls, value: tuple[int, int]) -> Level:
        """Build a level from an ``(integer, decimal)`` pair."""
        integer, decimal = value
        return cls(integer, decimal)

    def __str__(self) -> str:
        if self.decimal < 5:
            return f"{self.integer}"
        return f"{self.integer}+"


class Rating:
    """A player's rating."""

    __slots__ = ("_value",)

    def __init__(self, value: float = 0.0) -> None:
        self._value = float(value)

    @property
    def value(self) -> float:
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Rating):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Rating({self._value!r})"


@dataclass(frozen=True)
class Music:
    """A playable song."""

    id: str
    title: str
    artist: str
    notes_designer: str
    bpm: int
    genre: Genre
    jacket_image_url: str
    registration_date: date
    is_test: bool


@dataclass
class Record:
    """A player's best result on one sheet."""

    id: str
    user_id: str
    sheet_id: str
    score: int
    clear_type: ClearType
    play_count: int
    updated_at: datetime


@dataclass(frozen=True)
class Sheet:
    """A chart of one music at one difficulty."""

    id: str
    music_id: str
    difficulty: Difficulty
    level: Level


@dataclass
class User:
    """A registered player."""

    id: str
    card: str
    display_name: str
    rating: Rating
    xp: int
    credits: int
    is_admin: bool
    created_at: datetime

    @classmethod
    def new_temporary(cls, card: str, display_name: str) -> User:
        """Build a user not yet persisted: empty id, zeroed stats, created now (naive UTC)."""
        return cls(
            id="",
            card=card,
            display_name=display_name,
            rating=Rating(),
            xp=0,
            credits=0,
            is_admin=False,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )