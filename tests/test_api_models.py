from datetime import datetime

import pytest

from rhythmserver.api_models import RegisterUserRequest, UserDataResponse
from rhythmserver.usecase import UserDataDto, UserRegisterDto


def _dto(created_at: datetime) -> UserDataDto:
    return UserDataDto(
        id="550e8400-e29b-41d4-a716-446655440000",
        card="CARD-002",
        display_name="Bob",
        rating=0.0,
        xp=10,
        credits=3,
        is_admin=False,
        created_at=created_at,
    )


def test_from_json_reads_fields():
    request = RegisterUserRequest.from_json({"card": "CARD-001", "display_name": "Alice"})
    assert request == RegisterUserRequest("CARD-001", "Alice")


def test_from_json_ignores_unknown_fields():
    request = RegisterUserRequest.from_json(
        {"card": "CARD-001", "display_name": "Alice", "extra": 1}
    )
    assert request.card == "CARD-001"
    assert request.display_name == "Alice"


@pytest.mark.parametrize(
    "data",
    [
        {"card": "CARD-001"},
        {"display_name": "Alice"},
        {"card": 5, "display_name": "Alice"},
        {"card": "CARD-001", "display_name": None},
        ["CARD-001", "Alice"],
        "CARD-001",
        None,
    ],
)
def test_from_json_rejects_bad_bodies(data):
    with pytest.raises(ValueError):
        RegisterUserRequest.from_json(data)


def test_missing_field_is_named_in_error():
    with pytest.raises(ValueError, match="display_name"):
        RegisterUserRequest.from_json({"card": "CARD-001"})


def test_to_dto():
    request = RegisterUserRequest("CARD-001", "Alice")
    assert request.to_dto() == UserRegisterDto("CARD-001", "Alice")


def test_from_dto_copies_fields():
    dto = _dto(datetime(2024, 1, 2, 3, 4, 5))
    response = UserDataResponse.from_dto(dto)
    assert response.id == dto.id
    assert response.card == dto.card
    assert response.display_name == dto.display_name
    assert response.rating == dto.rating
    assert response.xp == dto.xp
    assert response.credits == dto.credits
    assert response.is_admin == dto.is_admin


def test_created_at_without_fraction():
    response = UserDataResponse.from_dto(_dto(datetime(2024, 1, 2, 3, 4, 5)))
    assert response.created_at == "2024-01-02 03:04:05"


def test_created_at_with_milliseconds():
    response = UserDataResponse.from_dto(_dto(datetime(2024, 1, 2, 3, 4, 5, 123000)))
    assert response.created_at == "2024-01-02 03:04:05.123"


def test_created_at_with_microseconds():
    response = UserDataResponse.from_dto(_dto(datetime(2024, 1, 2, 3, 4, 5, 123456)))
    assert response.created_at == "2024-01-02 03:04:05.123456"


@pytest.mark.parametrize("micro", [0, 1000, 999999, 42])
def test_created_at_round_trips(micro):
    moment = datetime(2031, 12, 31, 23, 59, 58, micro)
    response = UserDataResponse.from_dto(_dto(moment))
    assert datetime.fromisoformat(response.created_at) == moment


def test_to_json_field_order_and_values():
    dto = _dto(datetime(2024, 1, 2, 3, 4, 5))
    body = UserDataResponse.from_dto(dto).to_json()
    assert list(body) == [
        "id",
        "card",
        "display_name",
        "rating",
        "xp",
        "credits",
        "is_admin",
        "created_at",
    ]
    assert body["id"] == dto.id
    assert body["xp"] == dto.xp
    assert body["is_admin"] is False