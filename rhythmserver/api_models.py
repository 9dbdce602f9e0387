"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from rhythmserver.usecase import UserDataDto, UserRegisterDto


def _format_naive_datetime(moment: datetime) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS`` with milli- or microseconds only when non-zero."""
    text = f"{moment.date().isoformat()} {moment:%H:%M:%S}"
    micro = moment.microsecond
    if micro == 0:
        return text
    if micro % 1000 == 0:
        return f"{text}.{micro // 1000:03d}"
    return f"{text}.{micro:06d}"


@dataclass(frozen=True)
class RegisterUserRequest:
    """Body of a user registration request."""

    card: str
    display_name: str

    @classmethod
    def from_json(cls, data: Any) -> RegisterUserRequest:
        """Build from decoded JSON; unknown fields are ignored.

        Raises ``ValueError`` when the body is not an object or a field is
        missing or not a string.
        """
        if not isinstance(data, Mapping):
            raise ValueError("invalid type: expected a JSON object")
        for field in ("card", "display_name"):
            if field not in data:
                raise ValueError(f"missing field `{field}`")
            if not isinstance(data[field], str):
                raise ValueError(f"invalid type for `{field}`: expected a string")
        return cls(card=data["card"], display_name=data["display_name"])

    def to_dto(self) -> UserRegisterDto:
        return UserRegisterDto(card=self.card, display_name=self.display_name)


@dataclass(frozen=True)
class UserDataResponse:
    """A user as answered to the client."""

    id: str
    card: str
    display_name: str
    rating: float
    xp: int
    credits: int
    is_admin: bool
    created_at: str

    @classmethod
    def from_dto(cls, dto: UserDataDto) -> UserDataResponse:
        return cls(
            id=dto.id,
            card=dto.card,
            display_name=dto.display_name,
            rating=dto.rating,
            xp=dto.xp,
            credits=dto.credits,
            is_admin=dto.is_admin,
            created_at=_format_naive_datetime(dto.created_at),
        )

    def to_json(self) -> dict[str, Any]:
        """The response as a JSON-ready dict, fields in declaration order."""
        return asdict(self)