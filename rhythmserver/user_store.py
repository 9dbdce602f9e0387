"""SQL-backed user repository and the row/entity conversions it needs."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from sqlalchemy.orm import Session

from rhythmserver.entities import Rating, User
from rhythmserver.repository import (
    CardIdAlreadyExistsError,
    RepositoryInternalError,
    Repositories,
    UserRepository,
    UserRepositoryError,
)
from rhythmserver.tables import UserRow

logger = logging.getLogger(__name__)

_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1
_U32_MASK = 0xFFFFFFFF
_UNIQUE_VIOLATION_SQLSTATE = "23505"


def _to_i32(value: float) -> int:
    if math.isnan(value):
        return 0
    if value >= _I32_MAX:
        return _I32_MAX
    if value <= _I32_MIN:
        return _I32_MIN
    return int(value)


def _parse_uuid(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError:
        return uuid.UUID(int=0)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def user_to_row(user: User) -> UserRow:
    """Build a full table row from a domain user; an unparsable id becomes the nil UUID."""
    return UserRow(
        id=_parse_uuid(user.id),
        card=user.card,
        display_name=user.display_name,
        rating=_to_i32(user.rating.value),
        xp=user.xp,
        credits=user.credits,
        is_admin=user.is_admin,
        created_at=_as_utc(user.created_at),
        updated_at=datetime.now(timezone.utc),
    )


def row_to_user(row: UserRow) -> User:
    """Build a domain user from a table row; ``created_at`` becomes naive UTC."""
    return User(
        id=str(row.id),
        card=row.card,
        display_name=row.display_name,
        rating=Rating(float(row.rating)),
        xp=row.xp & _U32_MASK,
        credits=row.credits & _U32_MASK,
        is_admin=row.is_admin,
        created_at=_naive_utc(row.created_at),
    )


def user_insert_values(user: User) -> dict[str, Any]:
    """Column values to insert for ``user``.

    A user with an empty id leaves ``id`` and ``created_at`` to the database;
    ``updated_at`` is always left to it.
    """
    values: dict[str, Any] = {
        "card": user.card,
        "display_name": user.display_name,
        "rating": _to_i32(user.rating.value),
        "xp": user.xp,
        "credits": user.credits,
        "is_admin": user.is_admin,
    }
    if user.id:
        values["id"] = _parse_uuid(user.id)
        values["created_at"] = _as_utc(user.created_at)
    return values


def _is_unique_violation(orig: BaseException | None) -> bool:
    if orig is None:
        return False
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


def convert_user_insert_error(err: BaseException, card: str) -> UserRepositoryError:
    """Turn a database error raised while inserting a user into a repository error.

    A row that was not inserted, or a unique-key violation (the ``card`` column
    is unique), means the card is already registered; anything else is internal.
    """
    if isinstance(err, NoResultFound):
        return CardIdAlreadyExistsError(card)
    if isinstance(err, IntegrityError) and _is_unique_violation(err.orig):
        return CardIdAlreadyExistsError(card)
    return RepositoryInternalError(err)


class SqlUserRepository(UserRepository):
    """User repository stored in a SQL database."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, user: User) -> User:
        logger.debug("Persisting user card=%s", user.card)
        card = user.card
        try:
            with Session(self.engine, expire_on_commit=False) as session, session.begin():
                row = UserRow(**user_insert_values(user))
                session.add(row)
                session.flush()
                session.refresh(row)
        except SQLAlchemyError as err:
            logger.error("Failed to insert user: %s", err)
            raise convert_user_insert_error(err, card) from err
        logger.info("User persisted by repository user_id=%s", row.id)
        return row_to_user(row)


class SqlRepositories(Repositories):
    """Repositories backed by one SQL database."""

    def __init__(self, user: SqlUserRepository) -> None:
        self._user = user

    @property
    def user(self) -> SqlUserRepository:
        return self._user

    @classmethod
    def connect(cls, db_url: str) -> SqlRepositories:
        """Connect to ``db_url`` and build the repositories over it.

        Raises ``RuntimeError`` when the database cannot be reached.
        """
        logger.info("Connecting to database")
        try:
            engine = create_engine(db_url)
            with engine.connect():
                pass
        except SQLAlchemyError as err:
            logger.error("Failed to connect to the database: %s", err)
            raise RuntimeError("Failed to connect to the database") from err
        logger.info("Database connection established")
        return cls(SqlUserRepository(engine))