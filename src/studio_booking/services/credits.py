"""Credit account operations.

A balance only moves through ``deduct``, ``refund`` and ``set_balance``.
Each is a single conditional statement inside a transaction, so two
requests racing on the same account cannot both pass the floor check.
"""

import logging
from pathlib import Path

import aiosqlite

from ..db.engine import atomic, get_db_path
from ..db.repositories import CreditAccountRepository, UserRepository
from ..errors import AccountNotFound, OverdraftExceeded, ValidationError
from ..models.classes import ClassCategory
from ..models.credit import MAX_OVERDRAFT, CreditAccount

logger = logging.getLogger(__name__)


class CreditService:
    """Per-(user, category) class-credit balances."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()
        self.accounts = CreditAccountRepository(self.db_path)
        self.users = UserRepository(self.db_path)

    async def get_account(
        self,
        user_id: str,
        category: ClassCategory,
        db: aiosqlite.Connection | None = None,
    ) -> CreditAccount:
        """Return the account, creating it at zero on first touch.

        Raises:
            AccountNotFound: If the user does not exist
        """
        async with atomic(db, self.db_path) as conn:
            if await self.users.get(user_id, db=conn) is None:
                raise AccountNotFound(user_id, category.value)
            await self.accounts.ensure(user_id, category, db=conn)
            return await self.accounts.get(user_id, category, db=conn)

    async def get_balance(
        self,
        user_id: str,
        category: ClassCategory,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        account = await self.get_account(user_id, category, db=db)
        return account.balance

    async def balances(self, user_id: str) -> dict[ClassCategory, CreditAccount]:
        """Accounts for every category, keyed by category."""
        return {
            category: await self.get_account(user_id, category)
            for category in ClassCategory
        }

    async def deduct(
        self,
        user_id: str,
        category: ClassCategory,
        allow_overdraft: bool = True,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        """Take one credit and return the new balance.

        With ``allow_overdraft`` the balance may reach ``MAX_OVERDRAFT``;
        without it the floor is zero.

        Raises:
            OverdraftExceeded: If the deduction would cross the floor
        """
        floor = MAX_OVERDRAFT if allow_overdraft else 0
        async with atomic(db, self.db_path) as conn:
            await self.get_account(user_id, category, db=conn)
            if not await self.accounts.deduct(user_id, category, floor, db=conn):
                account = await self.accounts.get(user_id, category, db=conn)
                raise OverdraftExceeded(user_id, category.value, account.balance, floor)
            balance = (await self.accounts.get(user_id, category, db=conn)).balance

        logger.info("Deducted 1 %s credit from user %s, balance %d", category.value, user_id, balance)
        return balance

    async def refund(
        self,
        user_id: str,
        category: ClassCategory,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        """Return one credit unconditionally and return the new balance."""
        async with atomic(db, self.db_path) as conn:
            await self.get_account(user_id, category, db=conn)
            await self.accounts.add(user_id, category, 1, db=conn)
            balance = (await self.accounts.get(user_id, category, db=conn)).balance

        logger.info("Refunded 1 %s credit to user %s, balance %d", category.value, user_id, balance)
        return balance

    async def credit(
        self,
        user_id: str,
        category: ClassCategory,
        amount: int,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        """Add ``amount`` credits (package renewal)."""
        async with atomic(db, self.db_path) as conn:
            await self.get_account(user_id, category, db=conn)
            await self.accounts.add(user_id, category, amount, db=conn)
            balance = (await self.accounts.get(user_id, category, db=conn)).balance

        logger.info("Credited %d %s credits to user %s, balance %d", amount, category.value, user_id, balance)
        return balance

    async def set_balance(
        self,
        user_id: str,
        category: ClassCategory,
        value: int,
        db: aiosqlite.Connection | None = None,
    ) -> int:
        """Privileged override of the balance.

        Skips the booking overdraft rules but can never go below
        ``MAX_OVERDRAFT``.
        """
        if value < MAX_OVERDRAFT:
            raise ValidationError(
                f"Balance cannot be set below {MAX_OVERDRAFT}",
                details={"value": value, "max_overdraft": MAX_OVERDRAFT},
            )

        async with atomic(db, self.db_path) as conn:
            await self.get_account(user_id, category, db=conn)
            await self.accounts.set_balance(user_id, category, value, db=conn)

        logger.info("Set %s balance of user %s to %d", category.value, user_id, value)
        return value

    async def set_unlimited(
        self, user_id: str, category: ClassCategory, unlimited: bool
    ) -> CreditAccount:
        async with atomic(None, self.db_path) as conn:
            await self.get_account(user_id, category, db=conn)
            await self.accounts.set_unlimited(user_id, category, unlimited, db=conn)
            return await self.accounts.get(user_id, category, db=conn)

    async def set_class_counts(
        self,
        user_id: str,
        group: int | None = None,
        private: int | None = None,
    ) -> dict[ClassCategory, int]:
        """Admin edit of a user's class counts.

        Only the categories given are changed. Both writes commit together.
        """
        changes = {}
        if group is not None:
            changes[ClassCategory.GROUP] = group
        if private is not None:
            changes[ClassCategory.PRIVATE] = private
        if not changes:
            raise ValidationError("Provide at least one class count to set")

        async with atomic(None, self.db_path) as conn:
            for category, value in changes.items():
                await self.set_balance(user_id, category, value, db=conn)
        return changes
