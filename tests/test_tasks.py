"""Tests for the Celery task wrappers"""

import asyncio

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from tablebook import database
from tablebook.database import Base
from tablebook.jobs import tasks


def test_task_runs_job_and_disposes_its_engine(tmp_path, monkeypatch):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}", poolclass=NullPool)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    pool_before = engine.sync_engine.pool
    monkeypatch.setattr(database, "create_worker_engine", lambda: engine)

    result = tasks.weekly_stats()

    assert result["job"] == "weekly_stats"
    assert result["success"] is True
    assert result["processed"] == 0
    # dispose() swaps in a fresh pool
    assert engine.sync_engine.pool is not pool_before
