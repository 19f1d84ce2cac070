"""
pytest configuration and fixtures shared by the unit and integration suites
"""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from reactive_demo.app import create_app
from reactive_demo.config.settings import Settings


@pytest.fixture
def memory_settings() -> Settings:
    return Settings(repository_backend="memory")


@pytest_asyncio.fixture
async def memory_app(memory_settings) -> AsyncGenerator[FastAPI, None]:
    """Application running on the in-memory backend, lifespan entered"""
    app = create_app(memory_settings)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def memory_client(memory_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=memory_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
