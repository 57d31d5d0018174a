from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from comanda.core.config import DATABASE_URL, ENV_NORMALIZED, IS_PROD, IS_TEST

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"


@dataclass(frozen=True)
class MigrationState:
    current: frozenset[str]
    expected: frozenset[str]

    @property
    def up_to_date(self) -> bool:
        return bool(self.current) and self.current == self.expected


def validate_database_environment() -> None:
    """Producción corre siempre sobre Postgres."""
    if IS_PROD and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s sqlite database configured with ENV=%s", MIGRATIONS_PREFIX, ENV_NORMALIZED)
        raise RuntimeError("SQLite is not allowed when ENV is production")


def read_migration_state(*, engine: Engine, alembic_config_path: Path) -> MigrationState:
    if not alembic_config_path.exists():
        logger.critical("%s alembic.ini missing at %s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError(f"alembic config not found: {alembic_config_path}")

    scripts = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    with engine.connect() as connection:
        current = MigrationContext.configure(connection).get_current_heads()
    return MigrationState(current=frozenset(current), expected=frozenset(scripts.get_heads()))


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    # sqlite de desarrollo se arma con create_all
    if IS_TEST or DATABASE_URL.startswith("sqlite"):
        logger.info("%s revision check skipped env=%s", MIGRATIONS_PREFIX, ENV_NORMALIZED)
        return

    state = read_migration_state(engine=engine, alembic_config_path=alembic_config_path)
    if not state.current:
        logger.critical("%s database was never migrated; run `alembic upgrade head`", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no alembic revision")
    if not state.up_to_date:
        logger.critical(
            "%s database at %s, code expects %s",
            MIGRATIONS_PREFIX,
            sorted(state.current),
            sorted(state.expected),
        )
        raise RuntimeError("Database schema is behind the code")

    logger.info("%s database at head %s", MIGRATIONS_PREFIX, ",".join(sorted(state.current)))
