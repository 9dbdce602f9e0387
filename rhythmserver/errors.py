"""HTTP-facing application error and its mapping from use case errors."""

from __future__ import annotations

from http import HTTPStatus

from rhythmserver.repository import CardIdAlreadyExistsError, UserRepositoryError
from rhythmserver.usecase import UserUsecaseError


class AppError(Exception):
    """An error answered to the client as a JSON body with a status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = HTTPStatus(status_code)
        self.message = message

    def to_response(self) -> tuple[dict[str, str], int]:
        """The ``({"error": message}, status)`` pair a view can return."""
        return {"error": self.message}, int(self.status_code)

    def __repr__(self) -> str:
        return f"AppError({int(self.status_code)}, {self.message!r})"


def app_error_from(error: BaseException) -> AppError:
    """Map a repository or use case error to the error answered to the client.

    A card that is already registered is a conflict; anything else is an
    internal server error carrying the underlying message.
    """
    if isinstance(error, AppError):
        return error
    if isinstance(error, UserUsecaseError):
        repository_error = error.repository_error
        if repository_error is not None:
            return app_error_from(repository_error)
        return AppError(HTTPStatus.INTERNAL_SERVER_ERROR, str(error))
    if isinstance(error, CardIdAlreadyExistsError):
        return AppError(HTTPStatus.CONFLICT, str(error))
    if isinstance(error, UserRepositoryError):
        return AppError(HTTPStatus.INTERNAL_SERVER_ERROR, str(error))
    raise TypeError(f"cannot convert {type(error).__name__} to an application error")