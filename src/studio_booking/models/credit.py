"""Credit account model."""

from dataclasses import dataclass
from datetime import datetime

from .classes import ClassCategory

# Lowest balance any committed operation may leave behind
MAX_OVERDRAFT = -2


@dataclass
class CreditAccount:
    """Integer class-credit balance for one (user, category) pair."""

    user_id: str
    category: ClassCategory
    balance: int = 0
    unlimited: bool = False
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "category": self.category.value,
            "balance": self.balance,
            "unlimited": self.unlimited,
        }
