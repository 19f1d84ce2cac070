"""
Integration fixtures: a disposable PostgreSQL container, migrated once per session
"""

import asyncio
import socket
import time
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

import asyncpg
import docker
from docker.errors import DockerException
import httpx
import pytest
import pytest_asyncio

from reactive_demo.app import create_app
from reactive_demo.config.settings import Settings
from reactive_demo.database.connection import get_db_pool
from reactive_demo.database.migrations import migrate
from reactive_demo.services.demo_entity_repository import PostgresDemoEntityRepository

POSTGRES_IMAGE = "postgres:16-alpine"
POSTGRES_USER = "test_user"
POSTGRES_PASSWORD = "test_pass"


@dataclass
class TestDatabase:
    """Test database instance information"""
    __test__ = False

    host: str
    port: int
    database_name: str

    def url(self, database_name: Optional[str] = None) -> str:
        return (
            f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}"
            f"@{self.host}:{self.port}/{database_name or self.database_name}"
        )

    @property
    def connection_url(self) -> str:
        return self.url()


def _find_available_port() -> int:
    """Find an available port for the test database"""
    for port in range(5433, 5533):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind(("127.0.0.1", port))
                return port
            except OSError:
                continue

    raise RuntimeError("No available ports found for test database")


async def _wait_for_database_ready(url: str, max_wait: int = 60):
    """Wait for database to be ready for connections"""
    start_time = time.time()
    last_error = None
    while time.time() - start_time < max_wait:
        try:
            conn = await asyncpg.connect(url, timeout=5)
            try:
                await conn.fetchval("SELECT 1")
            finally:
                await conn.close()
            return
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            last_error = e
            await asyncio.sleep(0.5)

    raise RuntimeError(f"Database not ready after {max_wait}s: {last_error}")


@pytest.fixture(scope="session")
def postgres_database():
    """Start a throwaway PostgreSQL container and apply the schema migrations"""
    try:
        client = docker.from_env()
        client.ping()
    except DockerException as e:
        pytest.skip(f"Docker is not available: {e}")

    db_uuid = uuid.uuid4().hex[:8]
    database_name = f"test_db_{db_uuid}"
    port = _find_available_port()

    container = client.containers.run(
        POSTGRES_IMAGE,
        name=f"demo_entity_test_db_{db_uuid}",
        environment={
            "POSTGRES_DB": database_name,
            "POSTGRES_USER": POSTGRES_USER,
            "POSTGRES_PASSWORD": POSTGRES_PASSWORD,
        },
        ports={"5432/tcp": ("127.0.0.1", port)},
        tmpfs={"/var/lib/postgresql/data": "rw"},  # In-memory for speed
        detach=True,
        auto_remove=True,
    )

    test_db = TestDatabase(host="127.0.0.1", port=port, database_name=database_name)
    try:
        asyncio.run(_wait_for_database_ready(test_db.connection_url))
        asyncio.run(migrate(test_db.connection_url))
        yield test_db
    finally:
        container.stop(timeout=5)


@pytest.fixture(scope="session")
def postgres_settings(postgres_database) -> Settings:
    return Settings(
        database_url=postgres_database.connection_url,
        repository_backend="postgres",
        db_pool_min_size=1,
        db_pool_max_size=4,
        stream_prefetch=2,
    )


async def _truncate(conn: asyncpg.Connection):
    await conn.execute("TRUNCATE demo_entity RESTART IDENTITY")


@pytest_asyncio.fixture
async def db_pool(postgres_database) -> AsyncGenerator[asyncpg.Pool, None]:
    """Fresh pool over an empty demo_entity table"""
    pool = await asyncpg.create_pool(postgres_database.connection_url, min_size=1, max_size=4)
    async with pool.acquire() as conn:
        await _truncate(conn)
    yield pool
    await pool.close()


@pytest_asyncio.fixture
async def repository(db_pool) -> PostgresDemoEntityRepository:
    # Small prefetch so streaming spans several round trips
    return PostgresDemoEntityRepository(db_pool, prefetch=2)


@pytest_asyncio.fixture
async def postgres_client(postgres_settings) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the application wired to the container database"""
    app = create_app(postgres_settings)
    async with app.router.lifespan_context(app):
        async with get_db_pool().acquire() as conn:
            await _truncate(conn)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest_asyncio.fixture
async def scratch_database_url(postgres_database) -> AsyncGenerator[str, None]:
    """Empty database in the same container, for migration tests"""
    name = f"scratch_{uuid.uuid4().hex[:8]}"
    conn = await asyncpg.connect(postgres_database.connection_url)
    try:
        await conn.execute(f'CREATE DATABASE "{name}"')
    finally:
        await conn.close()

    yield postgres_database.url(name)

    conn = await asyncpg.connect(postgres_database.connection_url)
    try:
        await conn.execute(f'DROP DATABASE IF EXISTS "{name}" WITH (FORCE)')
    finally:
        await conn.close()
