"""Package (subscription) models."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from .classes import ClassCategory

MIN_RENEWAL_MONTHS = 1
MAX_RENEWAL_MONTHS = 999


class PackageStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class PackageTemplate:
    """A purchasable package offering from the catalogue."""

    name: str
    category: ClassCategory
    classes_included: int
    validity_days: int = 30
    price: float = 0.0
    is_active: bool = True
    live_from: date | None = None
    live_until: date | None = None
    id: str | None = None

    def is_live(self, today: date) -> bool:
        """Whether the template can be assigned on the given day."""
        if not self.is_active:
            return False
        if self.live_from and self.live_from > today:
            return False
        if self.live_until and self.live_until < today:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "classes_included": self.classes_included,
            "validity_days": self.validity_days,
            "price": self.price,
            "is_active": self.is_active,
            "live_from": self.live_from.isoformat() if self.live_from else None,
            "live_until": self.live_until.isoformat() if self.live_until else None,
        }


@dataclass
class Package:
    """A user's package history entry.

    At most one package per (user, category) may be active.
    """

    user_id: str
    category: ClassCategory
    name: str
    classes_included: int
    start_date: date
    end_date: date
    status: PackageStatus = PackageStatus.ACTIVE
    renewal_months: int = 1
    auto_renew: bool = True
    template_id: str | None = None
    last_renewal_date: date | None = None
    id: str | None = None
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PackageStatus.ACTIVE

    def has_lapsed(self, today: date) -> bool:
        return self.end_date < today

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category": self.category.value,
            "name": self.name,
            "classes_included": self.classes_included,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status.value,
            "renewal_months": self.renewal_months,
            "auto_renew": self.auto_renew,
            "template_id": self.template_id,
            "last_renewal_date": (
                self.last_renewal_date.isoformat() if self.last_renewal_date else None
            ),
        }


@dataclass
class PackageBundle:
    """A catalogue offer that grants a group and a private package together.

    Either side may be left out. Each side that is set carries the number
    of months it renews for.
    """

    name: str
    price: float = 0.0
    group_template_id: str | None = None
    group_months: int | None = None
    private_template_id: str | None = None
    private_months: int | None = None
    is_active: bool = True
    id: str | None = None
    created_at: datetime | None = None

    def parts(self) -> list[tuple[ClassCategory, str, int]]:
        """(category, template_id, months) for each side that is set."""
        parts = []
        if self.group_template_id:
            parts.append((ClassCategory.GROUP, self.group_template_id, self.group_months or 1))
        if self.private_template_id:
            parts.append(
                (ClassCategory.PRIVATE, self.private_template_id, self.private_months or 1)
            )
        return parts

    @property
    def is_combo(self) -> bool:
        return bool(self.group_template_id and self.private_template_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "group_template_id": self.group_template_id,
            "group_months": self.group_months,
            "private_template_id": self.private_template_id,
            "private_months": self.private_months,
            "is_active": self.is_active,
            "is_combo": self.is_combo,
        }
