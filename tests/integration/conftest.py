"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.

Pre-condition: a migrated PostgreSQL at DATABASE_URL (alembic upgrade head).
The seeded demo agents from migration 006 are used as parties. When the
database is unreachable every test in this directory is skipped.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.tak_common.database import engine
from src.tak_idempotency.application.guard import build_idempotency_guard


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if "tests/integration" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.integration)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncIterator[AsyncClient]:  # type: ignore[override]
    """Session-scoped async HTTP client against the real database."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"PostgreSQL unavailable at DATABASE_URL: {exc}")

    app.dependency_overrides.clear()
    guard = await build_idempotency_guard("memory")
    app.state.idempotency_guard = guard
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await guard.close()
    del app.state.idempotency_guard
    await engine.dispose()
