"""
Versioned schema migrations

SQL files named ``V<version>__<description>.sql`` are applied in ascending
version order, each inside its own transaction, and recorded in the
``schema_history`` table together with a CRC32 checksum of their contents.
An applied migration whose file has changed since is reported as an error
instead of being re-run.
"""

import re
import zlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import asyncpg

from reactive_demo.utils.errors import MigrationError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "sql"
HISTORY_TABLE = "schema_history"

# Arbitrary key shared by every instance migrating the same database
MIGRATION_LOCK_ID = 727_001

_FILENAME_PATTERN = re.compile(r"^V(\d+)__(\w+)\.sql$")

_CREATE_HISTORY_TABLE = f"""
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    version     INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    checksum    BIGINT NOT NULL,
    installed_on TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


@dataclass(frozen=True)
class Migration:
    """A single versioned migration script"""
    version: int
    description: str
    sql: str

    @property
    def checksum(self) -> int:
        normalized = self.sql.replace("\r\n", "\n").strip()
        return zlib.crc32(normalized.encode("utf-8"))


def parse_migration_filename(filename: str) -> Optional[tuple]:
    """Return (version, description) for a migration filename, None if it is not one"""
    match = _FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1)), match.group(2).replace("_", " ")


def discover_migrations(directory: Optional[Path] = None) -> List[Migration]:
    """Load every migration script from a directory, sorted by version"""
    directory = Path(directory) if directory else MIGRATIONS_DIR
    if not directory.is_dir():
        raise MigrationError(f"Migrations directory not found: {directory}")

    migrations: Dict[int, Migration] = {}
    for path in sorted(directory.glob("*.sql")):
        parsed = parse_migration_filename(path.name)
        if parsed is None:
            raise MigrationError(f"Invalid migration filename: {path.name}")

        version, description = parsed
        if version in migrations:
            raise MigrationError(f"Duplicate migration version {version}: {path.name}")

        migrations[version] = Migration(version, description, path.read_text(encoding="utf-8"))

    return [migrations[version] for version in sorted(migrations)]


async def _applied_checksums(conn: asyncpg.Connection) -> Dict[int, int]:
    rows = await conn.fetch(f"SELECT version, checksum FROM {HISTORY_TABLE}")
    return {row["version"]: row["checksum"] for row in rows}


async def apply_migrations(
    conn: asyncpg.Connection,
    directory: Optional[Path] = None
) -> List[Migration]:
    """
    Bring the database schema up to date

    Args:
        conn: Open connection to the target database
        directory: Directory holding migration scripts (defaults to the packaged ones)

    Returns:
        The migrations applied by this call, empty when already up to date
    """
    migrations = discover_migrations(directory)

    await conn.execute("SELECT pg_advisory_lock($1)", MIGRATION_LOCK_ID)
    try:
        await conn.execute(_CREATE_HISTORY_TABLE)
        applied = await _applied_checksums(conn)

        for migration in migrations:
            if migration.version in applied and applied[migration.version] != migration.checksum:
                raise MigrationError(
                    f"Checksum mismatch for migration V{migration.version}: "
                    f"applied {applied[migration.version]}, resolved locally {migration.checksum}"
                )

        pending = [m for m in migrations if m.version not in applied]
        for migration in pending:
            logger.info(f"Applying migration V{migration.version} - {migration.description}")
            try:
                async with conn.transaction():
                    await conn.execute(migration.sql)
                    await conn.execute(
                        f"INSERT INTO {HISTORY_TABLE} (version, description, checksum) VALUES ($1, $2, $3)",
                        migration.version, migration.description, migration.checksum
                    )
            except asyncpg.PostgresError as e:
                raise MigrationError(f"Migration V{migration.version} failed: {e}") from e

        if pending:
            logger.info(f"Applied {len(pending)} migration(s)")
        else:
            logger.info("Schema is up to date, no migration necessary")

        return pending
    finally:
        await conn.execute("SELECT pg_advisory_unlock($1)", MIGRATION_LOCK_ID)


async def migrate(database_url: str, directory: Optional[Path] = None) -> List[Migration]:
    """Open a dedicated connection and apply pending migrations"""
    try:
        conn = await asyncpg.connect(database_url)
    except (asyncpg.PostgresError, OSError) as e:
        raise MigrationError(f"Could not connect to database for migration: {e}") from e

    try:
        return await apply_migrations(conn, directory)
    finally:
        await conn.close()
