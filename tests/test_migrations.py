import uuid

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from rhythmserver.migrations import (
    CreateMusicsTable,
    CreateRecordsTable,
    CreateSheetsTable,
    CreateUsersTable,
    apply_down,
    apply_up,
    main,
    migrations,
    refresh,
)

NAMES = [
    "m20251007_000001_create_users_table",
    "m20251007_000002_create_musics_table",
    "m20251007_000003_create_sheets_table",
    "m20251007_000004_create_records_table",
]
SCHEMA_TABLES = {"users", "musics", "sheets", "records"}


@pytest.fixture
def connection():
    engine = sa.create_engine("sqlite://")
    with engine.begin() as conn:
        yield conn
    engine.dispose()


def _tables(conn):
    return set(sa.inspect(conn).get_table_names())


def _versions(conn):
    return list(
        conn.execute(sa.text("SELECT version FROM seaql_migrations ORDER BY version")).scalars()
    )


def test_migrations_are_in_order():
    assert [m.name for m in migrations()] == NAMES
    assert [type(m) for m in migrations()] == [
        CreateUsersTable,
        CreateMusicsTable,
        CreateSheetsTable,
        CreateRecordsTable,
    ]


def test_apply_up_creates_all_tables(connection):
    applied = apply_up(connection)
    assert applied == NAMES
    assert SCHEMA_TABLES <= _tables(connection)
    assert _versions(connection) == NAMES


def test_apply_up_twice_applies_nothing(connection):
    apply_up(connection)
    assert apply_up(connection) == []
    assert _versions(connection) == NAMES


def test_apply_down_reverts_newest_first(connection):
    apply_up(connection)
    reverted = apply_down(connection)
    assert reverted == list(reversed(NAMES))
    assert _tables(connection) & SCHEMA_TABLES == set()
    assert _versions(connection) == []


def test_apply_down_on_empty_database(connection):
    assert apply_down(connection) == []


def test_refresh_rebuilds_schema(connection):
    apply_up(connection)
    connection.execute(
        sa.text("INSERT INTO users (id, card, display_name) VALUES (:id, :card, :name)"),
        {"id": uuid.uuid4().hex, "card": "CARD-001", "name": "Alice"},
    )
    applied = refresh(connection)
    assert applied == NAMES
    assert connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one() == 0


def test_users_defaults(connection):
    apply_up(connection)
    connection.execute(
        sa.text("INSERT INTO users (id, card, display_name) VALUES (:id, :card, :name)"),
        {"id": uuid.uuid4().hex, "card": "CARD-001", "name": "Alice"},
    )
    row = connection.execute(
        sa.text("SELECT rating, xp, credits, is_admin, created_at, updated_at FROM users")
    ).one()
    assert tuple(row[:4]) == (0, 0, 0, 0)
    assert row.created_at is not None
    assert row.updated_at is not None


def test_users_card_is_unique(connection):
    apply_up(connection)
    insert = sa.text("INSERT INTO users (id, card, display_name) VALUES (:id, :card, :name)")
    connection.execute(insert, {"id": uuid.uuid4().hex, "card": "CARD-001", "name": "Alice"})
    with pytest.raises(IntegrityError):
        connection.execute(insert, {"id": uuid.uuid4().hex, "card": "CARD-001", "name": "Bob"})


def test_sheets_unique_index_and_foreign_key(connection):
    apply_up(connection)
    inspector = sa.inspect(connection)
    indexes = {idx["name"]: idx for idx in inspector.get_indexes("sheets")}
    index = indexes["uk_sheets_music_difficulty"]
    assert index["column_names"] == ["music_id", "difficulty"]
    assert bool(index["unique"])
    fks = inspector.get_foreign_keys("sheets")
    assert [(fk["constrained_columns"], fk["referred_table"]) for fk in fks] == [
        (["music_id"], "musics")
    ]


def test_records_user_sheet_pair_is_unique(connection):
    apply_up(connection)
    user_id, sheet_id = uuid.uuid4().hex, uuid.uuid4().hex
    insert = sa.text(
        "INSERT INTO records (id, user_id, sheet_id, score, clear_type) "
        "VALUES (:id, :user_id, :sheet_id, :score, :clear_type)"
    )
    params = {"user_id": user_id, "sheet_id": sheet_id, "score": 1000, "clear_type": "clear"}
    connection.execute(insert, {"id": uuid.uuid4().hex, **params})
    play_count = connection.execute(sa.text("SELECT play_count FROM records")).scalar_one()
    assert play_count == 0
    with pytest.raises(IntegrityError):
        connection.execute(insert, {"id": uuid.uuid4().hex, **params})


def test_records_foreign_keys(connection):
    apply_up(connection)
    fks = sa.inspect(connection).get_foreign_keys("records")
    referred = sorted((fk["constrained_columns"][0], fk["referred_table"]) for fk in fks)
    assert referred == [("sheet_id", "sheets"), ("user_id", "users")]


def test_single_migration_up_and_down(connection):
    migration = CreateMusicsTable()
    migration.up(connection)
    assert "musics" in _tables(connection)
    migration.down(connection)
    assert "musics" not in _tables(connection)


def _url(tmp_path):
    return f"sqlite:///{tmp_path / 'game.sqlite'}"


def _file_tables(url):
    engine = sa.create_engine(url)
    try:
        with engine.connect() as conn:
            return set(sa.inspect(conn).get_table_names())
    finally:
        engine.dispose()


def test_main_up_and_down_one_step(tmp_path):
    url = _url(tmp_path)
    assert main(["-u", url, "up"]) == 0
    assert SCHEMA_TABLES <= _file_tables(url)
    assert main(["-u", url, "down"]) == 0
    remaining = _file_tables(url)
    assert "records" not in remaining
    assert {"users", "musics", "sheets"} <= remaining


def test_main_defaults_to_up_using_environment(tmp_path, monkeypatch):
    url = _url(tmp_path)
    monkeypatch.setenv("DATABASE_URL", url)
    assert main([]) == 0
    assert SCHEMA_TABLES <= _file_tables(url)


def test_main_status_reports_each_migration(tmp_path, capsys):
    url = _url(tmp_path)
    main(["-u", url, "up", "-n", "2"])
    capsys.readouterr()
    assert main(["-u", url, "status"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == len(NAMES)
    assert all(name in line for name, line in zip(NAMES, lines))
    assert ["Applied" in line for line in lines] == [True, True, False, False]


def test_main_reset_and_refresh(tmp_path):
    url = _url(tmp_path)
    main(["-u", url, "up"])
    assert main(["-u", url, "reset"]) == 0
    assert _file_tables(url) & SCHEMA_TABLES == set()
    assert main(["-u", url, "refresh"]) == 0
    assert SCHEMA_TABLES <= _file_tables(url)


def test_main_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(SystemExit) as excinfo:
        main(["up"])
    assert excinfo.value.code == 2