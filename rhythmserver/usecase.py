"""Application use cases and the data they exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from rhythmserver.entities import User
from rhythmserver.repository import Repositories, UserRepositoryError

logger = logging.getLogger(__name__)


class UserUsecaseError(Exception):
    """Failure of a user use case; its message is that of the underlying cause."""

    def __init__(self, cause: BaseException | str) -> None:
        super().__init__(str(cause))
        self.cause = cause
        if isinstance(cause, BaseException):
            self.__cause__ = cause

    @property
    def repository_error(self) -> UserRepositoryError | None:
        """The repository error behind this failure, if there is one."""
        if isinstance(self.cause, UserRepositoryError):
            return self.cause
        return None


@dataclass(frozen=True)
class UserRegisterDto:
    """Input for registering a user."""

    card: str
    display_name: str


@dataclass(frozen=True)
class UserDataDto:
    """A user as returned by the use cases."""

    id: str
    card: str
    display_name: str
    rating: float
    xp: int
    credits: int
    is_admin: bool
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserDataDto:
        return cls(
            id=user.id,
            card=user.card,
            display_name=user.display_name,
            rating=float(user.rating.value),
            xp=user.xp,
            credits=user.credits,
            is_admin=user.is_admin,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class UserUsecase:
    """Use cases around users."""

    repositories: Repositories

    def register(self, raw_user: UserRegisterDto) -> UserDataDto:
        """Create a new user from ``raw_user`` and return the stored data.

        Raises ``UserUsecaseError`` wrapping the repository's error on failure.
        """
        logger.debug(
            "Building user aggregate card=%s display_name=%s",
            raw_user.card,
            raw_user.display_name,
        )
        user = User.new_temporary(raw_user.card, raw_user.display_name)
        try:
            user = self.repositories.user.create(user)
        except UserRepositoryError as err:
            raise UserUsecaseError(err) from err
        logger.info("User persisted by repository user_id=%s", user.id)
        return UserDataDto.from_user(user)


class Usecases:
    """All use cases, built over one set of repositories."""

    def __init__(self, repositories: Repositories) -> None:
        self.user = UserUsecase(repositories)