"""The HTTP application: shared state and routes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from http import HTTPStatus

from flask import Flask, Response, request

from rhythmserver.api_models import RegisterUserRequest, UserDataResponse
from rhythmserver.errors import AppError, app_error_from
from rhythmserver.repository import Repositories
from rhythmserver.usecase import Usecases, UserUsecaseError

logger = logging.getLogger(__name__)

_STATE_KEY = "rhythmserver.state"
_TEXT_PLAIN = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class Config:
    """Application settings."""


class State:
    """State shared by every request: the use cases and the configuration."""

    def __init__(self, config: Config, repositories: Repositories) -> None:
        self.config = config
        self.usecases = Usecases(repositories)


def _rejection(status: HTTPStatus, message: str) -> tuple[str, int, dict[str, str]]:
    return message, int(status), {"Content-Type": _TEXT_PLAIN}


def _handle_post(state: State):
    if not request.is_json:
        return _rejection(
            HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
            "Expected request with `Content-Type: application/json`",
        )
    try:
        data = json.loads(request.get_data(as_text=True))
    except ValueError as err:
        return _rejection(
            HTTPStatus.BAD_REQUEST, f"Failed to parse the request body as JSON: {err}"
        )
    try:
        body = RegisterUserRequest.from_json(data)
    except ValueError as err:
        return _rejection(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            f"Failed to deserialize the JSON body into the target type: {err}",
        )

    logger.info(
        "Register user request received card=%s display_name=%s",
        body.card,
        body.display_name,
    )
    try:
        user_data = state.usecases.user.register(body.to_dto())
    except UserUsecaseError as err:
        return app_error_from(err).to_response()
    logger.info("User registered successfully user_id=%s", user_data.id)
    return UserDataResponse.from_dto(user_data).to_json(), int(HTTPStatus.CREATED)


def create_app(state: State) -> Flask:
    """Build the application with its user and health routes over ``state``."""
    app = Flask(__name__)
    app.extensions[_STATE_KEY] = state

    @app.post("/users", strict_slashes=False)
    def register_user():
        return _handle_post(state)

    @app.get("/health", strict_slashes=False)
    def health():
        return _rejection(HTTPStatus.OK, "OK")

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return error.to_response()

    @app.after_request
    def log_response(response: Response) -> Response:
        logger.info(
            "%s %s -> %s", request.method, request.path, response.status_code
        )
        return response

    return app