#!/usr/bin/env python3
"""Check the booking database for ledger inconsistencies.

Reports users holding more than one active package in a category and
credit balances below the overdraft floor. Databases created by current
versions enforce both at the store level; older copies may not.

Usage:
    python scripts/check_ledger.py [path/to/studio_booking.db]
"""

import asyncio
import sys
from pathlib import Path

from studio_booking.db import CreditAccountRepository, PackageRepository, get_db_path
from studio_booking.models import MAX_OVERDRAFT


async def check_ledger(db_path: Path) -> int:
    """Print findings and return the number of problems found."""
    problems = 0

    print("=== Active packages ===")
    groups = await PackageRepository(db_path).count_active_groups()
    for user_id, category, count in groups:
        if count > 1:
            problems += 1
            print(f"  user {user_id}: {count} active {category.value} packages")
    print(f"  {len(groups)} user/category pair(s) with an active package")

    print()
    print(f"=== Balances below {MAX_OVERDRAFT} ===")
    for account in await CreditAccountRepository(db_path).list_below(MAX_OVERDRAFT):
        problems += 1
        print(f"  user {account.user_id}: {account.category.value} balance {account.balance}")

    print()
    print("OK" if problems == 0 else f"{problems} problem(s) found")
    return problems


def main():
    db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else get_db_path()
    if not db_path.exists():
        print(f"No database at {db_path}")
        sys.exit(2)
    sys.exit(1 if asyncio.run(check_ledger(db_path)) else 0)


if __name__ == "__main__":
    main()
