"""Repository interfaces and the errors they report."""

from __future__ import annotations

from abc import ABC, abstractmethod

from rhythmserver.entities import User


class UserRepositoryError(Exception):
    """Base class of failures reported by a user repository."""


class CardIdAlreadyExistsError(UserRepositoryError):
    """Raised when a user with the same card is already stored."""

    def __init__(self, card: str) -> None:
        super().__init__(f"Card ID already exists: {card}")
        self.card = card


class RepositoryInternalError(UserRepositoryError):
    """Any other storage failure; its message is that of the underlying cause."""

    def __init__(self, cause: BaseException | str) -> None:
        super().__init__(str(cause))
        self.cause = cause
        if isinstance(cause, BaseException):
            self.__cause__ = cause


class UserRepository(ABC):
    """Storage for users."""

    @abstractmethod
    def create(self, user: User) -> User:
        """Persist ``user`` and return the stored user.

        Raises a ``UserRepositoryError`` on failure.
        """


class Repositories(ABC):
    """The set of repositories the use cases work with."""

    @property
    @abstractmethod
    def user(self) -> UserRepository:
        """The user repository."""