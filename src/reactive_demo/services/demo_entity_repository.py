"""
Demo entity repository - non-blocking data access for the demo_entity table
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncGenerator, Dict

import asyncpg

from reactive_demo.models.demo_entity import DEMO_ENTITY_MAPPING, DemoEntity, TableMapping
from reactive_demo.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

# Failures of the store client that surface as PersistenceError
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class DemoEntityRepository(ABC):
    """Capability set over a persistent store of demo entities"""

    @abstractmethod
    def find_all(self) -> AsyncGenerator[DemoEntity, None]:
        """
        Lazily produce every stored entity

        The sequence is finite, order is whatever the store returns, and an
        empty store produces an empty sequence.
        """

    @abstractmethod
    async def save(self, entity: DemoEntity) -> DemoEntity:
        """
        Insert a new entity or update an existing one

        Args:
            entity: Entity to persist; inserted when its id is unset

        Returns:
            The persisted entity, including the store-assigned id

        Raises:
            PersistenceError: store unavailable or write rejected
        """


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class PostgresDemoEntityRepository(DemoEntityRepository):
    """Repository backed by an asyncpg connection pool"""

    def __init__(self, pool: asyncpg.Pool, mapping: TableMapping = DEMO_ENTITY_MAPPING, prefetch: int = 50):
        self.pool = pool
        self.mapping = mapping
        self.prefetch = prefetch

        table = _quote(mapping.table)
        id_column = _quote(mapping.id_column)
        all_columns = [_quote(column) for column in mapping.columns.values()]
        value_columns = [_quote(mapping.columns[name]) for name in mapping.value_fields]
        returning = ", ".join(all_columns)

        self._select_all = f"SELECT {returning} FROM {table}"
        self._insert = (
            f"INSERT INTO {table} ({', '.join(value_columns)}) "
            f"VALUES ({', '.join(f'${i}' for i in range(1, len(value_columns) + 1))}) "
            f"RETURNING {returning}"
        )
        self._upsert = (
            f"INSERT INTO {table} ({returning}) "
            f"VALUES ({', '.join(f'${i}' for i in range(1, len(all_columns) + 1))}) "
            f"ON CONFLICT ({id_column}) DO UPDATE SET "
            f"{', '.join(f'{column} = EXCLUDED.{column}' for column in value_columns)} "
            f"RETURNING {returning}"
        )
        # Explicit ids bypass the identity sequence; move it past them so
        # later generated ids cannot collide
        self._sequence_args = (table, mapping.id_column)
        self._advance_sequence = (
            "SELECT setval(seq, $1::bigint) "
            "FROM (SELECT pg_get_serial_sequence($2, $3)::regclass AS seq) s "
            "WHERE $1::bigint > COALESCE(pg_sequence_last_value(seq), 0)"
        )

    async def find_all(self) -> AsyncGenerator[DemoEntity, None]:
        # asyncpg cursors only live inside a transaction; the connection goes
        # back to the pool when the consumer finishes, fails or is cancelled
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction(readonly=True):
                    async for row in conn.cursor(self._select_all, prefetch=self.prefetch):
                        yield self.mapping.from_row(row)
        except STORE_ERRORS as e:
            logger.error(f"Failed to read {self.mapping.table}: {e}")
            raise PersistenceError(f"Database read failed: {e}", operation="find_all") from e

    async def save(self, entity: DemoEntity) -> DemoEntity:
        row = self.mapping.to_row(entity)

        if entity.is_new():
            query = self._insert
            params = [row[self.mapping.columns[name]] for name in self.mapping.value_fields]
        else:
            query = self._upsert
            params = list(row.values())

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    saved = await conn.fetchrow(query, *params)
                    if saved is not None and not entity.is_new():
                        await conn.execute(self._advance_sequence, entity.id, *self._sequence_args)
        except STORE_ERRORS as e:
            logger.error(f"Failed to save into {self.mapping.table}: {e}")
            raise PersistenceError(f"Database write failed: {e}", operation="save") from e

        if saved is None:
            raise PersistenceError("Write operation failed - no data returned", operation="save")

        result = self.mapping.from_row(saved)
        logger.debug(f"Saved {self.mapping.table} row id={result.id}")
        return result


class InMemoryDemoEntityRepository(DemoEntityRepository):
    """Process-local repository for running without a database"""

    def __init__(self):
        self._rows: Dict[int, DemoEntity] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def find_all(self) -> AsyncGenerator[DemoEntity, None]:
        snapshot = list(self._rows.values())
        for entity in snapshot:
            yield entity.model_copy()
            # Let other requests run between rows
            await asyncio.sleep(0)

    async def save(self, entity: DemoEntity) -> DemoEntity:
        async with self._lock:
            if entity.is_new():
                saved = DemoEntity(id=self._next_id, data=entity.data)
                self._next_id += 1
            else:
                saved = entity.model_copy()
                self._next_id = max(self._next_id, saved.id + 1)
            self._rows[saved.id] = saved
        return saved.model_copy()
