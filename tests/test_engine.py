"""Tests for the database engine."""

import aiosqlite
import pytest

from studio_booking.db import engine
from studio_booking.errors import TransientStoreError
from studio_booking.models.classes import ClassCategory


class TestBusyStore:
    """A write lock held elsewhere surfaces as a retryable error."""

    async def test_locked_store_raises_transient_error(
        self, db_path, credit_service, users, monkeypatch
    ):
        monkeypatch.setattr(engine, "BUSY_TIMEOUT_SECONDS", 0.1)
        holder = await aiosqlite.connect(db_path, isolation_level=None)
        try:
            await holder.execute("BEGIN IMMEDIATE")

            with pytest.raises(TransientStoreError) as exc_info:
                await credit_service.set_balance(users["alice"].id, ClassCategory.GROUP, 3)

            assert exc_info.value.http_status == 503
        finally:
            await holder.execute("ROLLBACK")
            await holder.close()

        assert await credit_service.get_balance(users["alice"].id, ClassCategory.GROUP) == 0


class TestInitDb:
    async def test_init_is_idempotent(self, db_path):
        await engine.init_db(db_path)

        async with engine.connect(db_path) as db:
            columns = await engine._column_names(db, "private_class_requests")

        assert {"status", "class_id", "booking_id"} <= columns
