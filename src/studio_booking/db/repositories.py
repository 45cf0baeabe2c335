"""Data access layer for studio-booking.

Every method takes an optional open connection ``db``. When given, the
call runs inside the caller's transaction; otherwise the repository opens
its own autocommit connection.
"""

import json
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from pathlib import Path
from typing import AsyncIterator
from uuid import uuid4

import aiosqlite

from ..models.attendance import AttendanceRecord, AttendanceStatus
from ..models.booking import Booking, BookingStatus
from ..models.classes import (
    CancelledOccurrence,
    ClassCategory,
    ClassDefinition,
    ClassStatus,
    RecurringSchedule,
    SingleSchedule,
)
from ..models.credit import CreditAccount
from ..models.package import Package, PackageBundle, PackageStatus, PackageTemplate
from ..models.private_request import PrivateClassRequest, RequestStatus
from ..models.user import User, UserRole
from .engine import connect, get_db_path


def _new_id() -> str:
    return str(uuid4())


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _to_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


class BaseRepository:
    """Shared connection handling."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    @asynccontextmanager
    async def _conn(
        self, db: aiosqlite.Connection | None = None
    ) -> AsyncIterator[aiosqlite.Connection]:
        if db is not None:
            yield db
            return
        async with connect(self.db_path) as own:
            yield own


class UserRepository(BaseRepository):
    """Repository for users."""

    async def create(self, user: User, db: aiosqlite.Connection | None = None) -> str:
        """Create a new user."""
        user.id = user.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                "INSERT INTO users (id, name, email, role) VALUES (?, ?, ?, ?)",
                (user.id, user.name, user.email, user.role.value),
            )
        return user.id

    async def get(self, user_id: str, db: aiosqlite.Connection | None = None) -> User | None:
        """Get a user by ID."""
        async with self._conn(db) as conn:
            cursor = await conn.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            return self._row_to_user(row) if row else None

    async def list_all(self) -> list[User]:
        """List all users."""
        async with self._conn() as conn:
            cursor = await conn.execute("SELECT * FROM users ORDER BY name")
            rows = await cursor.fetchall()
            return [self._row_to_user(row) for row in rows]

    async def increment_classes_taken(
        self, user_id: str, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE users SET classes_taken = classes_taken + 1 WHERE id = ?",
                (user_id,),
            )

    def _row_to_user(self, row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            role=UserRole(row["role"]),
            classes_taken=row["classes_taken"],
            created_at=_to_datetime(row["created_at"]),
        )


class CreditAccountRepository(BaseRepository):
    """Repository for per-(user, category) credit balances.

    Balance changes are single conditional UPDATE statements, so a
    concurrent writer can never observe or produce a half-applied change.
    """

    async def ensure(
        self, user_id: str, category: ClassCategory, db: aiosqlite.Connection | None = None
    ) -> None:
        """Create the account row with a zero balance if it doesn't exist."""
        async with self._conn(db) as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO credit_accounts (user_id, category) VALUES (?, ?)",
                (user_id, category.value),
            )

    async def get(
        self, user_id: str, category: ClassCategory, db: aiosqlite.Connection | None = None
    ) -> CreditAccount | None:
        """Get an account."""
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "SELECT * FROM credit_accounts WHERE user_id = ? AND category = ?",
                (user_id, category.value),
            )
            row = await cursor.fetchone()
            return self._row_to_account(row) if row else None

    async def list_for_user(self, user_id: str) -> list[CreditAccount]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM credit_accounts WHERE user_id = ? ORDER BY category",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_account(row) for row in rows]

    async def list_below(self, floor: int) -> list[CreditAccount]:
        """Accounts whose balance is below ``floor``."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM credit_accounts WHERE balance < ? ORDER BY user_id",
                (floor,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_account(row) for row in rows]

    async def deduct(
        self,
        user_id: str,
        category: ClassCategory,
        floor: int,
        db: aiosqlite.Connection | None = None,
    ) -> bool:
        """Take one credit unless that would drop the balance below ``floor``.

        Returns:
            True if the row was updated
        """
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                UPDATE credit_accounts
                SET balance = balance - 1, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ? AND category = ? AND balance - 1 >= ?
                """,
                (user_id, category.value, floor),
            )
            return cursor.rowcount == 1

    async def add(
        self,
        user_id: str,
        category: ClassCategory,
        amount: int,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE credit_accounts
                SET balance = balance + ?, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ? AND category = ?
                """,
                (amount, user_id, category.value),
            )

    async def set_balance(
        self,
        user_id: str,
        category: ClassCategory,
        value: int,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE credit_accounts
                SET balance = ?, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ? AND category = ?
                """,
                (value, user_id, category.value),
            )

    async def set_unlimited(
        self,
        user_id: str,
        category: ClassCategory,
        unlimited: bool,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE credit_accounts SET unlimited = ? WHERE user_id = ? AND category = ?",
                (int(unlimited), user_id, category.value),
            )

    def _row_to_account(self, row: aiosqlite.Row) -> CreditAccount:
        return CreditAccount(
            user_id=row["user_id"],
            category=ClassCategory(row["category"]),
            balance=row["balance"],
            unlimited=bool(row["unlimited"]),
            updated_at=_to_datetime(row["updated_at"]),
        )


class ClassRepository(BaseRepository):
    """Repository for class definitions."""

    async def create(
        self, class_def: ClassDefinition, db: aiosqlite.Connection | None = None
    ) -> str:
        """Create a new class."""
        class_def.id = class_def.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO classes
                (id, title, category, capacity, is_recurring, class_date, recurrence_days,
                 recurrence_start, recurrence_end, start_time, duration_minutes, coach_id,
                 is_public, status, current_bookings)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (class_def.id, *self._schedule_columns(class_def)),
            )
        return class_def.id

    async def get(
        self, class_id: str, db: aiosqlite.Connection | None = None
    ) -> ClassDefinition | None:
        """Get a class by ID."""
        async with self._conn(db) as conn:
            cursor = await conn.execute("SELECT * FROM classes WHERE id = ?", (class_id,))
            row = await cursor.fetchone()
            return self._row_to_class(row) if row else None

    async def list_all(self) -> list[ClassDefinition]:
        """List all classes."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM classes ORDER BY COALESCE(class_date, recurrence_start), start_time"
            )
            rows = await cursor.fetchall()
            return [self._row_to_class(row) for row in rows]

    async def update(
        self, class_def: ClassDefinition, db: aiosqlite.Connection | None = None
    ) -> None:
        """Update an existing class."""
        if class_def.id is None:
            raise ValueError("Class must have an ID to update")

        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE classes SET
                    title = ?, category = ?, capacity = ?, is_recurring = ?, class_date = ?,
                    recurrence_days = ?, recurrence_start = ?, recurrence_end = ?,
                    start_time = ?, duration_minutes = ?, coach_id = ?, is_public = ?,
                    status = ?, current_bookings = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (*self._schedule_columns(class_def), class_def.id),
            )

    async def set_status(
        self, class_id: str, status: ClassStatus, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE classes SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (status.value, class_id),
            )

    async def try_increment_bookings(
        self, class_id: str, db: aiosqlite.Connection | None = None
    ) -> bool:
        """Claim a seat on a non-recurring class if one is free."""
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                UPDATE classes
                SET current_bookings = current_bookings + 1, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND current_bookings < capacity
                """,
                (class_id,),
            )
            return cursor.rowcount == 1

    async def decrement_bookings(
        self, class_id: str, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE classes
                SET current_bookings = current_bookings - 1, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND current_bookings > 0
                """,
                (class_id,),
            )

    async def set_bookings(
        self, class_id: str, count: int, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE classes SET current_bookings = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (count, class_id),
            )

    async def delete(self, class_id: str, db: aiosqlite.Connection | None = None) -> None:
        """Delete a class. Bookings, attendance and cancellations cascade."""
        async with self._conn(db) as conn:
            await conn.execute("DELETE FROM classes WHERE id = ?", (class_id,))

    def _schedule_columns(self, class_def: ClassDefinition) -> tuple:
        schedule = class_def.schedule
        if isinstance(schedule, RecurringSchedule):
            is_recurring = 1
            class_date = None
            days = json.dumps(sorted(schedule.weekdays))
            rec_start = schedule.start_date.isoformat()
            rec_end = schedule.end_date.isoformat()
        else:
            is_recurring = 0
            class_date = schedule.date.isoformat()
            days = "[]"
            rec_start = None
            rec_end = None

        return (
            class_def.title,
            class_def.category.value,
            class_def.capacity,
            is_recurring,
            class_date,
            days,
            rec_start,
            rec_end,
            class_def.start_time.strftime("%H:%M"),
            class_def.duration_minutes,
            class_def.coach_id,
            int(class_def.is_public),
            class_def.status.value,
            class_def.current_bookings,
        )

    def _row_to_class(self, row: aiosqlite.Row) -> ClassDefinition:
        """Convert a database row to a ClassDefinition."""
        if row["is_recurring"]:
            schedule = RecurringSchedule(
                weekdays=frozenset(json.loads(row["recurrence_days"] or "[]")),
                start_date=date.fromisoformat(row["recurrence_start"]),
                end_date=date.fromisoformat(row["recurrence_end"]),
            )
        else:
            schedule = SingleSchedule(date=date.fromisoformat(row["class_date"]))

        return ClassDefinition(
            id=row["id"],
            title=row["title"],
            category=ClassCategory(row["category"]),
            capacity=row["capacity"],
            schedule=schedule,
            start_time=time.fromisoformat(row["start_time"]),
            duration_minutes=row["duration_minutes"],
            coach_id=row["coach_id"],
            is_public=bool(row["is_public"]),
            status=ClassStatus(row["status"]),
            current_bookings=row["current_bookings"],
            created_at=_to_datetime(row["created_at"]),
        )


class CancelledOccurrenceRepository(BaseRepository):
    """Repository for withdrawn occurrences of recurring classes."""

    async def add(
        self, class_id: str, occurrence_date: date, db: aiosqlite.Connection | None = None
    ) -> bool:
        """Mark an occurrence cancelled.

        Returns:
            False if it was already cancelled
        """
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                INSERT OR IGNORE INTO cancelled_occurrences (class_id, occurrence_date)
                VALUES (?, ?)
                """,
                (class_id, occurrence_date.isoformat()),
            )
            return cursor.rowcount == 1

    async def remove(
        self, class_id: str, occurrence_date: date, db: aiosqlite.Connection | None = None
    ) -> bool:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "DELETE FROM cancelled_occurrences WHERE class_id = ? AND occurrence_date = ?",
                (class_id, occurrence_date.isoformat()),
            )
            return cursor.rowcount == 1

    async def dates_for_class(
        self, class_id: str, db: aiosqlite.Connection | None = None
    ) -> set[date]:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "SELECT occurrence_date FROM cancelled_occurrences WHERE class_id = ?",
                (class_id,),
            )
            rows = await cursor.fetchall()
            return {date.fromisoformat(row["occurrence_date"]) for row in rows}

    async def list_all(self, class_id: str | None = None) -> list[CancelledOccurrence]:
        async with self._conn() as conn:
            if class_id:
                cursor = await conn.execute(
                    """
                    SELECT * FROM cancelled_occurrences
                    WHERE class_id = ? ORDER BY occurrence_date
                    """,
                    (class_id,),
                )
            else:
                cursor = await conn.execute(
                    "SELECT * FROM cancelled_occurrences ORDER BY class_id, occurrence_date"
                )
            rows = await cursor.fetchall()
            return [
                CancelledOccurrence(
                    class_id=row["class_id"],
                    occurrence_date=date.fromisoformat(row["occurrence_date"]),
                    created_at=_to_datetime(row["created_at"]),
                )
                for row in rows
            ]


class BookingRepository(BaseRepository):
    """Repository for bookings.

    Occurrence matching treats NULL and '' alike so that bookings on
    non-recurring classes compare equal.
    """

    async def create(self, booking: Booking, db: aiosqlite.Connection | None = None) -> str:
        """Insert a booking. Raises IntegrityError on a duplicate live booking."""
        booking.id = booking.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO bookings
                (id, class_id, user_id, occurrence_date, status, credit_deducted, late_cancellation)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    booking.id,
                    booking.class_id,
                    booking.user_id,
                    _iso(booking.occurrence_date),
                    booking.status.value,
                    int(booking.credit_deducted),
                    int(booking.late_cancellation),
                ),
            )
        return booking.id

    async def get(self, booking_id: str, db: aiosqlite.Connection | None = None) -> Booking | None:
        """Get a booking by ID."""
        async with self._conn(db) as conn:
            cursor = await conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,))
            row = await cursor.fetchone()
            return self._row_to_booking(row) if row else None

    async def find_active(
        self,
        class_id: str,
        occurrence_date: date | None,
        user_id: str,
        db: aiosqlite.Connection | None = None,
    ) -> Booking | None:
        """Find the user's non-cancelled booking for an occurrence."""
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM bookings
                WHERE class_id = ? AND IFNULL(occurrence_date, '') = IFNULL(?, '')
                  AND user_id = ? AND status != 'cancelled'
                """,
                (class_id, _iso(occurrence_date), user_id),
            )
            row = await cursor.fetchone()
            return self._row_to_booking(row) if row else None

    async def count_active(
        self,
        class_id: str,
        occurrence_date: date | None,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                SELECT COUNT(*) AS count FROM bookings
                WHERE class_id = ? AND IFNULL(occurrence_date, '') = IFNULL(?, '')
                  AND status IN ('confirmed', 'attended', 'no_show')
                """,
                (class_id, _iso(occurrence_date)),
            )
            row = await cursor.fetchone()
            return row["count"]

    async def list_for_occurrence(
        self,
        class_id: str,
        occurrence_date: date | None,
        statuses: tuple[BookingStatus, ...] | None = None,
        db: aiosqlite.Connection | None = None,
    ) -> list[Booking]:
        """List bookings for one occurrence, optionally filtered by status."""
        query = """
            SELECT * FROM bookings
            WHERE class_id = ? AND IFNULL(occurrence_date, '') = IFNULL(?, '')
        """
        params: list = [class_id, _iso(occurrence_date)]
        if statuses:
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(s.value for s in statuses)
        query += " ORDER BY created_at"

        async with self._conn(db) as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_booking(row) for row in rows]

    async def list_for_class(
        self,
        class_id: str,
        statuses: tuple[BookingStatus, ...] | None = None,
        db: aiosqlite.Connection | None = None,
    ) -> list[Booking]:
        """List a class's bookings, most recently changed first."""
        query = "SELECT * FROM bookings WHERE class_id = ?"
        params: list = [class_id]
        if statuses:
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(s.value for s in statuses)
        query += " ORDER BY updated_at DESC, rowid DESC"

        async with self._conn(db) as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return [self._row_to_booking(row) for row in rows]

    async def list_for_user(self, user_id: str) -> list[Booking]:
        """List a user's bookings, newest first."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM bookings WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_booking(row) for row in rows]

    async def occurrence_counts(self, class_id: str) -> dict[date, int]:
        """Seat-holding booking counts keyed by occurrence date."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT occurrence_date, COUNT(*) AS count FROM bookings
                WHERE class_id = ? AND IFNULL(occurrence_date, '') != ''
                  AND status IN ('confirmed', 'attended', 'no_show')
                GROUP BY occurrence_date
                """,
                (class_id,),
            )
            rows = await cursor.fetchall()
            return {date.fromisoformat(row["occurrence_date"]): row["count"] for row in rows}

    async def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        late_cancellation: bool | None = None,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            if late_cancellation is None:
                await conn.execute(
                    """
                    UPDATE bookings SET status = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (status.value, booking_id),
                )
            else:
                await conn.execute(
                    """
                    UPDATE bookings
                    SET status = ?, late_cancellation = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (status.value, int(late_cancellation), booking_id),
                )

    async def set_credit_deducted(
        self, booking_id: str, deducted: bool, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE bookings SET credit_deducted = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (int(deducted), booking_id),
            )

    def _row_to_booking(self, row: aiosqlite.Row) -> Booking:
        """Convert a database row to a Booking."""
        return Booking(
            id=row["id"],
            class_id=row["class_id"],
            user_id=row["user_id"],
            occurrence_date=_to_date(row["occurrence_date"]),
            status=BookingStatus(row["status"]),
            credit_deducted=bool(row["credit_deducted"]),
            late_cancellation=bool(row["late_cancellation"]),
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )


class PackageTemplateRepository(BaseRepository):
    """Repository for the package catalogue."""

    async def create(
        self, template: PackageTemplate, db: aiosqlite.Connection | None = None
    ) -> str:
        template.id = template.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO package_templates
                (id, name, category, classes_included, validity_days, price,
                 is_active, live_from, live_until)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template.id,
                    template.name,
                    template.category.value,
                    template.classes_included,
                    template.validity_days,
                    template.price,
                    int(template.is_active),
                    _iso(template.live_from),
                    _iso(template.live_until),
                ),
            )
        return template.id

    async def get(
        self, template_id: str, db: aiosqlite.Connection | None = None
    ) -> PackageTemplate | None:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "SELECT * FROM package_templates WHERE id = ?", (template_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_template(row) if row else None

    async def list_all(self) -> list[PackageTemplate]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM package_templates ORDER BY category, name"
            )
            rows = await cursor.fetchall()
            return [self._row_to_template(row) for row in rows]

    def _row_to_template(self, row: aiosqlite.Row) -> PackageTemplate:
        return PackageTemplate(
            id=row["id"],
            name=row["name"],
            category=ClassCategory(row["category"]),
            classes_included=row["classes_included"],
            validity_days=row["validity_days"],
            price=row["price"],
            is_active=bool(row["is_active"]),
            live_from=_to_date(row["live_from"]),
            live_until=_to_date(row["live_until"]),
        )


class PackageRepository(BaseRepository):
    """Repository for users' package history."""

    async def create(self, package: Package, db: aiosqlite.Connection | None = None) -> str:
        """Insert a package. Raises IntegrityError on a second active row."""
        package.id = package.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO packages
                (id, user_id, template_id, category, name, classes_included, start_date,
                 end_date, status, renewal_months, auto_renew, last_renewal_date)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    package.id,
                    package.user_id,
                    package.template_id,
                    package.category.value,
                    package.name,
                    package.classes_included,
                    package.start_date.isoformat(),
                    package.end_date.isoformat(),
                    package.status.value,
                    package.renewal_months,
                    int(package.auto_renew),
                    _iso(package.last_renewal_date),
                ),
            )
        return package.id

    async def get(self, package_id: str, db: aiosqlite.Connection | None = None) -> Package | None:
        async with self._conn(db) as conn:
            cursor = await conn.execute("SELECT * FROM packages WHERE id = ?", (package_id,))
            row = await cursor.fetchone()
            return self._row_to_package(row) if row else None

    async def list_for_user(
        self, user_id: str, category: ClassCategory | None = None
    ) -> list[Package]:
        """List a user's package history, newest first."""
        async with self._conn() as conn:
            if category:
                cursor = await conn.execute(
                    """
                    SELECT * FROM packages WHERE user_id = ? AND category = ?
                    ORDER BY start_date DESC, created_at DESC
                    """,
                    (user_id, category.value),
                )
            else:
                cursor = await conn.execute(
                    """
                    SELECT * FROM packages WHERE user_id = ?
                    ORDER BY start_date DESC, created_at DESC
                    """,
                    (user_id,),
                )
            rows = await cursor.fetchall()
            return [self._row_to_package(row) for row in rows]

    async def list_active(
        self,
        user_id: str,
        category: ClassCategory,
        exclude_id: str | None = None,
        db: aiosqlite.Connection | None = None,
    ) -> list[Package]:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM packages
                WHERE user_id = ? AND category = ? AND status = 'active'
                  AND id != IFNULL(?, '')
                """,
                (user_id, category.value, exclude_id),
            )
            rows = await cursor.fetchall()
            return [self._row_to_package(row) for row in rows]

    async def count_active_groups(self) -> list[tuple[str, ClassCategory, int]]:
        """(user_id, category, count) for every pair with any active package."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT user_id, category, COUNT(*) AS count FROM packages
                WHERE status = 'active'
                GROUP BY user_id, category
                """
            )
            rows = await cursor.fetchall()
            return [
                (row["user_id"], ClassCategory(row["category"]), row["count"])
                for row in rows
            ]

    async def update_status(
        self, package_id: str, status: PackageStatus, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE packages SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (status.value, package_id),
            )

    async def activate(
        self,
        package_id: str,
        start_date: date,
        end_date: date,
        renewal_months: int,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE packages
                SET status = 'active', start_date = ?, end_date = ?, renewal_months = ?,
                    last_renewal_date = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (
                    start_date.isoformat(),
                    end_date.isoformat(),
                    renewal_months,
                    start_date.isoformat(),
                    package_id,
                ),
            )

    async def extend(
        self,
        package_id: str,
        end_date: date,
        renewal_months: int,
        renewed_on: date,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE packages
                SET end_date = ?, renewal_months = ?, last_renewal_date = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (end_date.isoformat(), renewal_months, renewed_on.isoformat(), package_id),
            )

    async def set_renewal_months(
        self, package_id: str, months: int, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                UPDATE packages SET renewal_months = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (months, package_id),
            )

    async def set_auto_renew(
        self, package_id: str, auto_renew: bool, db: aiosqlite.Connection | None = None
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                "UPDATE packages SET auto_renew = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (int(auto_renew), package_id),
            )

    async def delete(self, package_id: str, db: aiosqlite.Connection | None = None) -> None:
        async with self._conn(db) as conn:
            await conn.execute("DELETE FROM packages WHERE id = ?", (package_id,))

    async def record_purchase(
        self,
        user_id: str,
        package_id: str,
        amount: float,
        payment_method: str,
        db: aiosqlite.Connection | None = None,
    ) -> str:
        purchase_id = _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO package_purchases (id, user_id, package_id, amount, payment_method)
                VALUES (?, ?, ?, ?, ?)
                """,
                (purchase_id, user_id, package_id, amount, payment_method),
            )
        return purchase_id

    async def list_purchases(self, user_id: str) -> list[dict]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM package_purchases WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    def _row_to_package(self, row: aiosqlite.Row) -> Package:
        """Convert a database row to a Package."""
        return Package(
            id=row["id"],
            user_id=row["user_id"],
            template_id=row["template_id"],
            category=ClassCategory(row["category"]),
            name=row["name"],
            classes_included=row["classes_included"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            status=PackageStatus(row["status"]),
            renewal_months=row["renewal_months"],
            auto_renew=bool(row["auto_renew"]),
            last_renewal_date=_to_date(row["last_renewal_date"]),
            created_at=_to_datetime(row["created_at"]),
        )


class PackageBundleRepository(BaseRepository):
    """Repository for group and private package combos."""

    async def create(self, bundle: PackageBundle, db: aiosqlite.Connection | None = None) -> str:
        bundle.id = bundle.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO package_bundles
                (id, name, price, group_template_id, group_months, private_template_id,
                 private_months, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    bundle.id,
                    bundle.name,
                    bundle.price,
                    bundle.group_template_id,
                    bundle.group_months,
                    bundle.private_template_id,
                    bundle.private_months,
                    int(bundle.is_active),
                ),
            )
        return bundle.id

    async def get(
        self, bundle_id: str, db: aiosqlite.Connection | None = None
    ) -> PackageBundle | None:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "SELECT * FROM package_bundles WHERE id = ?", (bundle_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_bundle(row) if row else None

    async def list_all(self, include_inactive: bool = True) -> list[PackageBundle]:
        query = "SELECT * FROM package_bundles"
        if not include_inactive:
            query += " WHERE is_active = 1"
        query += " ORDER BY name"
        async with self._conn() as conn:
            cursor = await conn.execute(query)
            rows = await cursor.fetchall()
            return [self._row_to_bundle(row) for row in rows]

    async def delete(self, bundle_id: str) -> bool:
        async with self._conn() as conn:
            cursor = await conn.execute("DELETE FROM package_bundles WHERE id = ?", (bundle_id,))
            return cursor.rowcount == 1

    def _row_to_bundle(self, row: aiosqlite.Row) -> PackageBundle:
        return PackageBundle(
            id=row["id"],
            name=row["name"],
            price=row["price"],
            group_template_id=row["group_template_id"],
            group_months=row["group_months"],
            private_template_id=row["private_template_id"],
            private_months=row["private_months"],
            is_active=bool(row["is_active"]),
            created_at=_to_datetime(row["created_at"]),
        )


class AttendanceRepository(BaseRepository):
    """Repository for attendance outcomes. One row per occurrence-user pair."""

    async def get(
        self,
        class_id: str,
        occurrence_date: date,
        user_id: str,
        db: aiosqlite.Connection | None = None,
    ) -> AttendanceRecord | None:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM attendance_records
                WHERE class_id = ? AND occurrence_date = ? AND user_id = ?
                """,
                (class_id, occurrence_date.isoformat(), user_id),
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None

    async def upsert(
        self, record: AttendanceRecord, db: aiosqlite.Connection | None = None
    ) -> AttendanceRecord:
        """Insert or overwrite the record for (class, occurrence, user)."""
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO attendance_records
                (id, class_id, occurrence_date, user_id, status, marked_by, notes, reason)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (class_id, occurrence_date, user_id) DO UPDATE SET
                    status = excluded.status,
                    marked_by = excluded.marked_by,
                    notes = excluded.notes,
                    reason = excluded.reason,
                    marked_at = CURRENT_TIMESTAMP
                """,
                (
                    record.id or _new_id(),
                    record.class_id,
                    record.occurrence_date.isoformat(),
                    record.user_id,
                    record.status.value,
                    record.marked_by,
                    record.notes,
                    record.reason,
                ),
            )
            stored = await self.get(
                record.class_id, record.occurrence_date, record.user_id, db=conn
            )
        return stored

    async def delete(
        self,
        class_id: str,
        occurrence_date: date,
        user_id: str,
        db: aiosqlite.Connection | None = None,
    ) -> None:
        async with self._conn(db) as conn:
            await conn.execute(
                """
                DELETE FROM attendance_records
                WHERE class_id = ? AND occurrence_date = ? AND user_id = ?
                """,
                (class_id, occurrence_date.isoformat(), user_id),
            )

    async def list_for_occurrence(
        self, class_id: str, occurrence_date: date
    ) -> list[AttendanceRecord]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM attendance_records
                WHERE class_id = ? AND occurrence_date = ?
                ORDER BY marked_at DESC
                """,
                (class_id, occurrence_date.isoformat()),
            )
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]

    async def status_counts(self, user_id: str) -> dict[str, int]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT status, COUNT(*) AS count FROM attendance_records
                WHERE user_id = ? GROUP BY status
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return {row["status"]: row["count"] for row in rows}

    async def list_for_user(self, user_id: str, limit: int = 50) -> list[AttendanceRecord]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM attendance_records WHERE user_id = ?
                ORDER BY occurrence_date DESC, marked_at DESC LIMIT ?
                """,
                (user_id, limit),
            )
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: aiosqlite.Row) -> AttendanceRecord:
        return AttendanceRecord(
            id=row["id"],
            class_id=row["class_id"],
            occurrence_date=date.fromisoformat(row["occurrence_date"]),
            user_id=row["user_id"],
            status=AttendanceStatus(row["status"]),
            marked_by=row["marked_by"],
            notes=row["notes"],
            reason=row["reason"],
            marked_at=_to_datetime(row["marked_at"]),
        )


class PrivateClassRequestRepository(BaseRepository):
    """Repository for clients' private class requests."""

    async def create(
        self, request: PrivateClassRequest, db: aiosqlite.Connection | None = None
    ) -> str:
        request.id = request.id or _new_id()
        async with self._conn(db) as conn:
            await conn.execute(
                """
                INSERT INTO private_class_requests
                (id, user_id, requested_date, requested_time, duration_minutes, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    request.id,
                    request.user_id,
                    request.requested_date.isoformat(),
                    request.requested_time.strftime("%H:%M"),
                    request.duration_minutes,
                    request.status.value,
                ),
            )
        return request.id

    async def get(
        self, request_id: str, db: aiosqlite.Connection | None = None
    ) -> PrivateClassRequest | None:
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                "SELECT * FROM private_class_requests WHERE id = ?", (request_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_request(row) if row else None

    async def list_pending(self) -> list[PrivateClassRequest]:
        """Pending requests, oldest first."""
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM private_class_requests
                WHERE status = 'pending' ORDER BY created_at, rowid
                """
            )
            rows = await cursor.fetchall()
            return [self._row_to_request(row) for row in rows]

    async def list_for_user(self, user_id: str) -> list[PrivateClassRequest]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM private_class_requests WHERE user_id = ?
                ORDER BY requested_date DESC, requested_time DESC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_request(row) for row in rows]

    async def resolve(
        self,
        request_id: str,
        status: RequestStatus,
        admin_notes: str | None = None,
        class_id: str | None = None,
        booking_id: str | None = None,
        db: aiosqlite.Connection | None = None,
    ) -> bool:
        """Move a pending request to its final status.

        Returns:
            False if the request was not pending
        """
        async with self._conn(db) as conn:
            cursor = await conn.execute(
                """
                UPDATE private_class_requests
                SET status = ?, admin_notes = ?, class_id = ?, booking_id = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND status = 'pending'
                """,
                (status.value, admin_notes, class_id, booking_id, request_id),
            )
            return cursor.rowcount == 1

    def _row_to_request(self, row: aiosqlite.Row) -> PrivateClassRequest:
        return PrivateClassRequest(
            id=row["id"],
            user_id=row["user_id"],
            requested_date=date.fromisoformat(row["requested_date"]),
            requested_time=time.fromisoformat(row["requested_time"]),
            duration_minutes=row["duration_minutes"],
            status=RequestStatus(row["status"]),
            admin_notes=row["admin_notes"],
            class_id=row["class_id"],
            booking_id=row["booking_id"],
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )


class NotificationLogRepository(BaseRepository):
    """Outcome log for best-effort notifications."""

    async def create(
        self,
        kind: str,
        subject: str,
        status: str,
        user_id: str | None = None,
        error_message: str | None = None,
    ) -> str:
        entry_id = _new_id()
        async with self._conn() as conn:
            await conn.execute(
                """
                INSERT INTO notification_log (id, user_id, kind, subject, status, error_message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry_id, user_id, kind, subject, status, error_message),
            )
        return entry_id

    async def list_for_user(self, user_id: str) -> list[dict]:
        async with self._conn() as conn:
            cursor = await conn.execute(
                "SELECT * FROM notification_log WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
