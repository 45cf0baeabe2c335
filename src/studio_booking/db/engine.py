"""Database engine setup and initialization."""

import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from ..config import get_settings
from ..errors import TransientStoreError

logger = logging.getLogger(__name__)

DB_FILENAME = "studio_booking.db"

# Seconds a connection waits on a locked database before giving up
BUSY_TIMEOUT_SECONDS = 10.0


def get_db_path(data_dir: Path | None = None) -> Path:
    """Get the database file path."""
    if data_dir is None:
        settings = get_settings()
        if settings.db_path is not None:
            settings.db_path.parent.mkdir(parents=True, exist_ok=True)
            return settings.db_path
        data_dir = settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / DB_FILENAME


def _is_busy(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


@asynccontextmanager
async def connect(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection in autocommit mode with foreign keys enforced.

    Transactions are always explicit (see ``transaction``).
    """
    if db_path is None:
        db_path = get_db_path()

    try:
        async with aiosqlite.connect(
            db_path, timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None
        ) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db
    except sqlite3.OperationalError as e:
        if _is_busy(e):
            raise TransientStoreError(
                "Store is busy, retry the operation", details={"error": str(e)}
            ) from e
        raise


@asynccontextmanager
async def transaction(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Run a block as one serializable unit against the store.

    ``BEGIN IMMEDIATE`` takes the write lock up front, so a
    read-check-write sequence inside the block cannot interleave with
    another writer, even one in a different process.
    """
    async with connect(db_path) as db:
        await db.execute("BEGIN IMMEDIATE")
        try:
            yield db
        except BaseException:
            if db.in_transaction:
                await db.execute("ROLLBACK")
            raise
        else:
            await db.execute("COMMIT")


@asynccontextmanager
async def atomic(
    db: aiosqlite.Connection | None = None, db_path: Path | None = None
) -> AsyncIterator[aiosqlite.Connection]:
    """Join the caller's transaction when ``db`` is given, else begin one."""
    if db is not None:
        yield db
        return
    async with transaction(db_path) as conn:
        yield conn


async def _column_names(db: aiosqlite.Connection, table: str) -> set[str]:
    cursor = await db.execute(f"PRAGMA table_info({table})")
    columns = await cursor.fetchall()
    return {col[1] for col in columns}


async def _run_migrations(db: aiosqlite.Connection) -> None:
    """Run database migrations for schema updates."""
    booking_columns = await _column_names(db, "bookings")
    if "credit_deducted" not in booking_columns:
        # Bookings made before the flag existed were all charged at reservation
        await db.execute(
            "ALTER TABLE bookings ADD COLUMN credit_deducted INTEGER NOT NULL DEFAULT 1"
        )
    if "late_cancellation" not in booking_columns:
        await db.execute(
            "ALTER TABLE bookings ADD COLUMN late_cancellation INTEGER NOT NULL DEFAULT 0"
        )

    package_columns = await _column_names(db, "packages")
    if "auto_renew" not in package_columns:
        await db.execute(
            "ALTER TABLE packages ADD COLUMN auto_renew INTEGER NOT NULL DEFAULT 1"
        )
    if "last_renewal_date" not in package_columns:
        await db.execute("ALTER TABLE packages ADD COLUMN last_renewal_date TEXT")

    account_columns = await _column_names(db, "credit_accounts")
    if "unlimited" not in account_columns:
        await db.execute(
            "ALTER TABLE credit_accounts ADD COLUMN unlimited INTEGER NOT NULL DEFAULT 0"
        )


async def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = get_db_path()

    async with connect(db_path) as db:
        await db.execute("PRAGMA journal_mode = WAL")

        await db.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                role TEXT NOT NULL DEFAULT 'client',
                classes_taken INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Balance floor mirrors MAX_OVERDRAFT in models.credit
        await db.execute("""
            CREATE TABLE IF NOT EXISTS credit_accounts (
                user_id TEXT NOT NULL,
                category TEXT NOT NULL,
                balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= -2),
                unlimited INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, category),
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS classes (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                category TEXT NOT NULL,
                capacity INTEGER NOT NULL CHECK (capacity >= 1),
                is_recurring INTEGER NOT NULL DEFAULT 0,
                class_date TEXT,
                recurrence_days TEXT DEFAULT '[]',
                recurrence_start TEXT,
                recurrence_end TEXT,
                start_time TEXT NOT NULL,
                duration_minutes INTEGER NOT NULL DEFAULT 60,
                coach_id TEXT,
                is_public INTEGER NOT NULL DEFAULT 1,
                status TEXT NOT NULL DEFAULT 'scheduled',
                current_bookings INTEGER NOT NULL DEFAULT 0 CHECK (current_bookings >= 0),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS cancelled_occurrences (
                class_id TEXT NOT NULL,
                occurrence_date TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (class_id, occurrence_date),
                FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS bookings (
                id TEXT PRIMARY KEY,
                class_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                occurrence_date TEXT,
                status TEXT NOT NULL DEFAULT 'confirmed',
                credit_deducted INTEGER NOT NULL DEFAULT 0,
                late_cancellation INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE,
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS package_templates (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                classes_included INTEGER NOT NULL,
                validity_days INTEGER NOT NULL DEFAULT 30,
                price REAL NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                live_from TEXT,
                live_until TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS packages (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                template_id TEXT,
                category TEXT NOT NULL,
                name TEXT NOT NULL,
                classes_included INTEGER NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                renewal_months INTEGER NOT NULL DEFAULT 1
                    CHECK (renewal_months BETWEEN 1 AND 999),
                auto_renew INTEGER NOT NULL DEFAULT 1,
                last_renewal_date TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (template_id) REFERENCES package_templates(id) ON DELETE SET NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS package_bundles (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                price REAL NOT NULL DEFAULT 0,
                group_template_id TEXT,
                group_months INTEGER CHECK (group_months BETWEEN 1 AND 999),
                private_template_id TEXT,
                private_months INTEGER CHECK (private_months BETWEEN 1 AND 999),
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (group_template_id) REFERENCES package_templates(id),
                FOREIGN KEY (private_template_id) REFERENCES package_templates(id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS package_purchases (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                package_id TEXT,
                amount REAL NOT NULL DEFAULT 0,
                payment_method TEXT NOT NULL DEFAULT 'n/a',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (package_id) REFERENCES packages(id) ON DELETE SET NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS attendance_records (
                id TEXT PRIMARY KEY,
                class_id TEXT NOT NULL,
                occurrence_date TEXT NOT NULL,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                marked_by TEXT NOT NULL,
                notes TEXT,
                reason TEXT,
                marked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (class_id, occurrence_date, user_id),
                FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS private_class_requests (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                requested_date TEXT NOT NULL,
                requested_time TEXT NOT NULL,
                duration_minutes INTEGER NOT NULL DEFAULT 60,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'rejected')),
                admin_notes TEXT,
                class_id TEXT,
                booking_id TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (class_id) REFERENCES classes(id) ON DELETE SET NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS notification_log (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                kind TEXT NOT NULL,
                subject TEXT NOT NULL,
                status TEXT NOT NULL,
                error_message TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # One live booking per (class, occurrence, user)
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active
            ON bookings(class_id, IFNULL(occurrence_date, ''), user_id)
            WHERE status != 'cancelled'
        """)
        # One active package per (user, category)
        await db.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_packages_active
            ON packages(user_id, category)
            WHERE status = 'active'
        """)

        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_bookings_occurrence
            ON bookings(class_id, occurrence_date, status)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_bookings_user
            ON bookings(user_id)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_packages_user
            ON packages(user_id, category)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_attendance_user
            ON attendance_records(user_id)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_private_requests_status
            ON private_class_requests(status, created_at)
        """)

        # Run migrations for existing databases
        await _run_migrations(db)

    logger.info("Database initialized at %s", db_path)
