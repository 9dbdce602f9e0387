"""Schema migrations for the game database and a small command to run them."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

_UPDATED_AT_FUNCTION = """
CREATE OR REPLACE FUNCTION set_updated_at_timestamp()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

_DIFFICULTY_TYPE = postgresql.ENUM(
    "basic", "advanced", "expert", "master", name="difficulty_type", create_type=False
)
_CLEAR_TYPE = postgresql.ENUM(
    "failed", "clear", "full_combo", "all_perfect", name="clear_type", create_type=False
)

_VERSION_TABLE = sa.Table(
    "seaql_migrations",
    sa.MetaData(),
    sa.Column("version", sa.String, primary_key=True),
    sa.Column("applied_at", sa.BigInteger, nullable=False),
)


def _is_postgres(connection: Connection) -> bool:
    return connection.dialect.name == "postgresql"


def _now_default() -> sa.sql.elements.ClauseElement:
    return sa.func.current_timestamp()


def _users_table(metadata: sa.MetaData, postgres: bool) -> sa.Table:
    id_default = sa.text("gen_random_uuid()") if postgres else None
    return sa.Table(
        "users",
        metadata,
        sa.Column("id", sa.Uuid, primary_key=True, nullable=False, server_default=id_default),
        sa.Column("card", sa.String, nullable=False, unique=True),
        sa.Column("display_name", sa.String, nullable=False),
        sa.Column("rating", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("xp", sa.BigInteger, nullable=False, server_default=sa.text("0")),
        sa.Column("credits", sa.BigInteger, nullable=False, server_default=sa.text("0")),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_now_default(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_now_default(),
        ),
    )


def _musics_table(metadata: sa.MetaData) -> sa.Table:
    return sa.Table(
        "musics",
        metadata,
        sa.Column("id", sa.Uuid, primary_key=True, nullable=False),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("artist", sa.String, nullable=False),
        sa.Column("bpm", sa.Numeric(6, 3), nullable=False),
        sa.Column("genre", sa.Integer, nullable=False),
        sa.Column("jacket", sa.String, nullable=False),
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_test", sa.Boolean, nullable=False, server_default=sa.false()),
    )


def _stub_table(metadata: sa.MetaData, name: str) -> sa.Table:
    """A referenced table known only by its key, so foreign keys can resolve."""
    return sa.Table(name, metadata, sa.Column("id", sa.Uuid, primary_key=True))


def _sheets_table(metadata: sa.MetaData) -> sa.Table:
    _stub_table(metadata, "musics")
    return sa.Table(
        "sheets",
        metadata,
        sa.Column("id", sa.Uuid, primary_key=True, nullable=False),
        sa.Column("music_id", sa.Uuid, nullable=False),
        sa.Column("difficulty", _DIFFICULTY_TYPE, nullable=False),
        sa.Column("level", sa.Integer, nullable=False),
        sa.Column("notes_designer", sa.String, nullable=False),
        sa.ForeignKeyConstraint(
            ["music_id"],
            ["musics.id"],
            name="fk_sheets_music",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
    )


def _records_table(metadata: sa.MetaData) -> sa.Table:
    _stub_table(metadata, "users")
    _stub_table(metadata, "sheets")
    return sa.Table(
        "records",
        metadata,
        sa.Column("id", sa.Uuid, primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("sheet_id", sa.Uuid, nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("clear_type", _CLEAR_TYPE, nullable=False),
        sa.Column("play_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_now_default(),
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_records_user",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["sheet_id"],
            ["sheets.id"],
            name="fk_records_sheet",
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
    )


class Migration(ABC):
    """One reversible schema change, identified by its name."""

    name: str = ""

    @abstractmethod
    def up(self, connection: Connection) -> None:
        """Apply the change."""

    @abstractmethod
    def down(self, connection: Connection) -> None:
        """Revert the change."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class CreateUsersTable(Migration):
    """Creates ``users`` and, on PostgreSQL, the ``updated_at`` trigger machinery."""

    name = "m20251007_000001_create_users_table"

    def up(self, connection: Connection) -> None:
        postgres = _is_postgres(connection)
        if postgres:
            connection.exec_driver_sql('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')
            connection.exec_driver_sql(_UPDATED_AT_FUNCTION)
        _users_table(sa.MetaData(), postgres).create(connection, checkfirst=True)
        if postgres:
            connection.exec_driver_sql(
                'CREATE TRIGGER trg_users_set_updated_at BEFORE UPDATE ON "users" '
                "FOR EACH ROW EXECUTE FUNCTION set_updated_at_timestamp();"
            )

    def down(self, connection: Connection) -> None:
        postgres = _is_postgres(connection)
        if postgres:
            connection.exec_driver_sql(
                'DROP TRIGGER IF EXISTS trg_users_set_updated_at ON "users";'
            )
        _users_table(sa.MetaData(), postgres).drop(connection)
        if postgres:
            connection.exec_driver_sql("DROP FUNCTION IF EXISTS set_updated_at_timestamp();")
            connection.exec_driver_sql('DROP EXTENSION IF EXISTS "pgcrypto";')


class CreateMusicsTable(Migration):
    """Creates ``musics``."""

    name = "m20251007_000002_create_musics_table"

    def up(self, connection: Connection) -> None:
        _musics_table(sa.MetaData()).create(connection, checkfirst=True)

    def down(self, connection: Connection) -> None:
        _musics_table(sa.MetaData()).drop(connection)


class CreateSheetsTable(Migration):
    """Creates the difficulty type, ``sheets`` and its (music, difficulty) unique index."""

    name = "m20251007_000003_create_sheets_table"

    def up(self, connection: Connection) -> None:
        if _is_postgres(connection):
            _DIFFICULTY_TYPE.create(connection, checkfirst=False)
        sheets = _sheets_table(sa.MetaData())
        sheets.create(connection, checkfirst=True)
        sa.Index(
            "uk_sheets_music_difficulty",
            sheets.c.music_id,
            sheets.c.difficulty,
            unique=True,
        ).create(connection)

    def down(self, connection: Connection) -> None:
        sheets = _sheets_table(sa.MetaData())
        sa.Index(
            "uk_sheets_music_difficulty",
            sheets.c.music_id,
            sheets.c.difficulty,
            unique=True,
        ).drop(connection)
        sheets.drop(connection)
        if _is_postgres(connection):
            _DIFFICULTY_TYPE.drop(connection, checkfirst=False)


class CreateRecordsTable(Migration):
    """Creates the clear type, ``records``, its (user, sheet) unique index and trigger."""

    name = "m20251007_000004_create_records_table"

    def up(self, connection: Connection) -> None:
        postgres = _is_postgres(connection)
        if postgres:
            _CLEAR_TYPE.create(connection, checkfirst=False)
        records = _records_table(sa.MetaData())
        records.create(connection, checkfirst=True)
        sa.Index(
            "uk_records_user_sheet",
            records.c.user_id,
            records.c.sheet_id,
            unique=True,
        ).create(connection)
        if postgres:
            connection.exec_driver_sql(
                'CREATE TRIGGER trg_records_set_updated_at BEFORE UPDATE ON "records" '
                "FOR EACH ROW EXECUTE FUNCTION set_updated_at_timestamp();"
            )

    def down(self, connection: Connection) -> None:
        postgres = _is_postgres(connection)
        if postgres:
            connection.exec_driver_sql(
                'DROP TRIGGER IF EXISTS trg_records_set_updated_at ON "records";'
            )
        records = _records_table(sa.MetaData())
        sa.Index(
            "uk_records_user_sheet",
            records.c.user_id,
            records.c.sheet_id,
            unique=True,
        ).drop(connection)
        records.drop(connection)
        if postgres:
            _CLEAR_TYPE.drop(connection, checkfirst=False)


def migrations() -> list[Migration]:
    """All migrations, in the order they are applied."""
    return [
        CreateUsersTable(),
        CreateMusicsTable(),
        CreateSheetsTable(),
        CreateRecordsTable(),
    ]


def _applied_versions(connection: Connection) -> set[str]:
    _VERSION_TABLE.create(connection, checkfirst=True)
    return set(connection.execute(sa.select(_VERSION_TABLE.c.version)).scalars())


def _status(connection: Connection) -> list[tuple[str, bool]]:
    applied = _applied_versions(connection)
    return [(migration.name, migration.name in applied) for migration in migrations()]


def _up(connection: Connection, steps: int | None = None) -> list[str]:
    applied = _applied_versions(connection)
    pending = [m for m in migrations() if m.name not in applied]
    if steps is not None:
        pending = pending[:steps]
    done = []
    for migration in pending:
        logger.info("Applying migration %s", migration.name)
        migration.up(connection)
        connection.execute(
            _VERSION_TABLE.insert().values(
                version=migration.name, applied_at=int(time.time())
            )
        )
        done.append(migration.name)
    return done


def _down(connection: Connection, steps: int | None = None) -> list[str]:
    applied = _applied_versions(connection)
    to_revert = [m for m in reversed(migrations()) if m.name in applied]
    if steps is not None:
        to_revert = to_revert[:steps]
    done = []
    for migration in to_revert:
        logger.info("Rolling back migration %s", migration.name)
        migration.down(connection)
        connection.execute(
            _VERSION_TABLE.delete().where(_VERSION_TABLE.c.version == migration.name)
        )
        done.append(migration.name)
    return done


def apply_up(connection: Connection) -> list[str]:
    """Apply every pending migration; return the names applied, in order."""
    return _up(connection)


def apply_down(connection: Connection) -> list[str]:
    """Revert every applied migration; return the names reverted, newest first."""
    return _down(connection)


def refresh(connection: Connection) -> list[str]:
    """Revert every applied migration, then apply all; return the names applied."""
    _down(connection)
    return _up(connection)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rhythmserver-migrate", description="Manage the database schema."
    )
    parser.add_argument(
        "-u",
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="database URL (default: $DATABASE_URL)",
    )
    commands = parser.add_subparsers(dest="command")
    up = commands.add_parser("up", help="apply pending migrations")
    up.add_argument("-n", "--num", type=int, default=None, help="number to apply")
    down = commands.add_parser("down", help="revert applied migrations")
    down.add_argument("-n", "--num", type=int, default=1, help="number to revert")
    commands.add_parser("refresh", help="revert all, then apply all")
    commands.add_parser("reset", help="revert all migrations")
    commands.add_parser("status", help="show which migrations are applied")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run a migration command; ``up`` when none is given."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.database_url:
        parser.error("a database URL is required (--database-url or DATABASE_URL)")
    command = args.command or "up"

    engine = sa.create_engine(args.database_url)
    try:
        with engine.begin() as connection:
            if command == "status":
                for name, is_applied in _status(connection):
                    print(f"Migration '{name}'... {'Applied' if is_applied else 'Pending'}")
                return 0
            if command == "up":
                applied = _up(connection, getattr(args, "num", None))
                reverted: list[str] = []
            elif command == "down":
                applied, reverted = [], _down(connection, args.num)
            elif command == "reset":
                applied, reverted = [], _down(connection)
            else:
                reverted = _down(connection)
                applied = _up(connection)
        for name in reverted:
            print(f"Rolled back migration '{name}'")
        for name in applied:
            print(f"Applied migration '{name}'")
        if not applied and not reverted:
            print("Nothing to do")
        return 0
    except SQLAlchemyError as err:
        print(f"Migration failed: {err}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()