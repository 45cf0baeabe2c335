"""Package lifecycle: assignment, renewal, cancellation and lapse handling.

At most one package per (user, category) is active. Every transition that
activates a package expires the others in the same transaction, and the
store's partial unique index rejects anything that slips past.
"""

import logging
import sqlite3
from collections.abc import Callable
from datetime import date, timedelta
from pathlib import Path

import aiosqlite

from ..config import get_settings
from ..db.engine import atomic, get_db_path
from ..db.repositories import (
    PackageBundleRepository,
    PackageRepository,
    PackageTemplateRepository,
)
from ..errors import (
    BusinessRuleViolation,
    NotActive,
    NotExpired,
    PackageBundleNotFound,
    PackageNotFound,
    PackageTemplateNotFound,
    ValidationError,
)
from ..models.classes import ClassCategory
from ..models.package import (
    MAX_RENEWAL_MONTHS,
    MIN_RENEWAL_MONTHS,
    Package,
    PackageBundle,
    PackageStatus,
    PackageTemplate,
)
from .credits import CreditService
from .notifications import LoggingNotifier, Notifier, notify_safely

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 30


def validate_renewal_months(months: int) -> None:
    if not MIN_RENEWAL_MONTHS <= months <= MAX_RENEWAL_MONTHS:
        raise ValidationError(
            f"Renewal months must be between {MIN_RENEWAL_MONTHS} and {MAX_RENEWAL_MONTHS}",
            details={"renewal_months": months},
        )


class PackageService:
    """Manage users' packages and the credits they grant."""

    def __init__(
        self,
        db_path: Path | None = None,
        notifier: Notifier | None = None,
        today: Callable[[], date] | None = None,
        auto_renew_behavior: str | None = None,
    ):
        self.db_path = db_path or get_db_path()
        self.notifier = notifier or LoggingNotifier()
        self.today = today or date.today
        self.auto_renew_behavior = auto_renew_behavior or get_settings().auto_renew_behavior
        self.packages = PackageRepository(self.db_path)
        self.templates = PackageTemplateRepository(self.db_path)
        self.bundles = PackageBundleRepository(self.db_path)
        self.credits = CreditService(self.db_path)

    # Templates

    async def create_template(
        self,
        name: str,
        category: ClassCategory,
        classes_included: int,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        price: float = 0.0,
        is_active: bool = True,
        live_from: date | None = None,
        live_until: date | None = None,
    ) -> PackageTemplate:
        if not name.strip():
            raise ValidationError("Template name is required")
        if classes_included < 0:
            raise ValidationError("Classes included cannot be negative")
        if validity_days < 1:
            raise ValidationError("Validity must be at least one day")
        if live_from and live_until and live_from > live_until:
            raise ValidationError("Template goes live after it stops being live")

        template = PackageTemplate(
            name=name.strip(),
            category=category,
            classes_included=classes_included,
            validity_days=validity_days,
            price=price,
            is_active=is_active,
            live_from=live_from,
            live_until=live_until,
        )
        await self.templates.create(template)
        logger.info("Created package template %s (%s)", template.id, template.name)
        return template

    async def get_template(self, template_id: str) -> PackageTemplate:
        template = await self.templates.get(template_id)
        if template is None:
            raise PackageTemplateNotFound(template_id)
        return template

    async def list_templates(self) -> list[PackageTemplate]:
        return await self.templates.list_all()

    # Bundles

    async def create_bundle(
        self,
        name: str,
        price: float = 0.0,
        group_template_id: str | None = None,
        group_months: int | None = None,
        private_template_id: str | None = None,
        private_months: int | None = None,
        is_active: bool = True,
    ) -> PackageBundle:
        """Add a combo offer of a group package, a private package, or both.

        Each side that names a template must also say how many months it
        renews for.
        """
        if not name.strip():
            raise ValidationError("Bundle name is required")
        if not group_template_id and not private_template_id:
            raise ValidationError("A bundle needs at least one package template")
        if price < 0:
            raise ValidationError("Price cannot be negative", details={"price": price})

        sides = (
            (ClassCategory.GROUP, group_template_id, group_months),
            (ClassCategory.PRIVATE, private_template_id, private_months),
        )
        for category, template_id, months in sides:
            if not template_id:
                continue
            if months is None:
                raise ValidationError(
                    f"Months are required for the {category.value} package",
                    details={"category": category.value},
                )
            validate_renewal_months(months)
            template = await self.get_template(template_id)
            if template.category != category:
                raise ValidationError(
                    f"Template {template_id} is for {template.category.value} classes",
                    details={"template_category": template.category.value},
                )

        bundle = PackageBundle(
            name=name.strip(),
            price=price,
            group_template_id=group_template_id or None,
            group_months=group_months if group_template_id else None,
            private_template_id=private_template_id or None,
            private_months=private_months if private_template_id else None,
            is_active=is_active,
        )
        await self.bundles.create(bundle)
        logger.info("Created package bundle %s (%s)", bundle.id, bundle.name)
        return bundle

    async def get_bundle(self, bundle_id: str) -> PackageBundle:
        bundle = await self.bundles.get(bundle_id)
        if bundle is None:
            raise PackageBundleNotFound(bundle_id)
        return bundle

    async def list_bundles(self, include_inactive: bool = True) -> list[PackageBundle]:
        return await self.bundles.list_all(include_inactive)

    async def delete_bundle(self, bundle_id: str) -> None:
        if not await self.bundles.delete(bundle_id):
            raise PackageBundleNotFound(bundle_id)
        logger.info("Deleted package bundle %s", bundle_id)

    # Packages

    async def get(self, package_id: str, db: aiosqlite.Connection | None = None) -> Package:
        package = await self.packages.get(package_id, db=db)
        if package is None:
            raise PackageNotFound(package_id)
        return package

    async def list_for_user(
        self, user_id: str, category: ClassCategory | None = None
    ) -> list[Package]:
        return await self.packages.list_for_user(user_id, category)

    async def assign(
        self,
        user_id: str,
        category: ClassCategory,
        template_id: str,
        renewal_months: int = MIN_RENEWAL_MONTHS,
        override_balance: bool = False,
        auto_renew: bool = True,
        amount: float | None = None,
        payment_method: str = "n/a",
    ) -> Package:
        """Give a user a fresh active package.

        Any active package in the same category is expired first. The new
        balance is the template's credits plus any overdraft carried over,
        or exactly the template's credits when ``override_balance`` is set.
        """
        validate_renewal_months(renewal_months)
        template = await self._assignable_template(template_id, category)

        async with atomic(None, self.db_path) as db:
            package, new_balance, expired = await self._assign_within(
                db, user_id, template, renewal_months, override_balance, auto_renew
            )
            await self.packages.record_purchase(
                user_id,
                package.id,
                template.price if amount is None else amount,
                payment_method,
                db=db,
            )

        logger.info(
            "Assigned package %s (%s) to user %s, expired %d, balance %d",
            package.id,
            template.name,
            user_id,
            len(expired),
            new_balance,
        )
        await notify_safely(
            self.notifier,
            "package_assigned",
            user_id,
            f"Package assigned: {template.name}",
            {"package_id": package.id, "balance": new_balance},
            db_path=self.db_path,
        )
        return await self.get(package.id)

    async def assign_bundle(
        self,
        user_id: str,
        bundle_id: str,
        override_balance: bool = False,
        auto_renew: bool = True,
        amount: float | None = None,
        payment_method: str = "n/a",
    ) -> list[Package]:
        """Assign every package in a bundle in one transaction.

        Each side is assigned as ``assign`` would, with the bundle's months
        as its renewal months. One purchase is recorded for the bundle
        price, against the first package.
        """
        bundle = await self.get_bundle(bundle_id)
        if not bundle.is_active:
            raise ValidationError(
                f"Package bundle {bundle.name} is not available",
                details={"bundle_id": bundle_id},
            )
        parts = []
        for category, template_id, months in bundle.parts():
            template = await self._assignable_template(template_id, category)
            parts.append((template, months))

        assigned = []
        async with atomic(None, self.db_path) as db:
            for template, months in parts:
                package, balance, _ = await self._assign_within(
                    db, user_id, template, months, override_balance, auto_renew
                )
                assigned.append((package, balance))
            await self.packages.record_purchase(
                user_id,
                assigned[0][0].id,
                bundle.price if amount is None else amount,
                payment_method,
                db=db,
            )

        logger.info(
            "Assigned bundle %s (%s) to user %s: %s",
            bundle_id,
            bundle.name,
            user_id,
            ", ".join(f"{p.category.value}={balance}" for p, balance in assigned),
        )
        await notify_safely(
            self.notifier,
            "bundle_assigned",
            user_id,
            f"Package bundle assigned: {bundle.name}",
            {
                "bundle_id": bundle_id,
                "packages": [p.id for p, _ in assigned],
                "balances": {p.category.value: balance for p, balance in assigned},
            },
            db_path=self.db_path,
        )
        return [await self.get(p.id) for p, _ in assigned]

    async def renew(self, package_id: str, months: int = MIN_RENEWAL_MONTHS) -> Package:
        """Reactivate an expired package and add its credits to the balance."""
        validate_renewal_months(months)

        async with atomic(None, self.db_path) as db:
            package = await self.get(package_id, db=db)
            if package.status != PackageStatus.EXPIRED:
                raise NotExpired(
                    f"Package {package_id} is still active",
                    details={"package_id": package_id},
                )

            await self._expire_active(package.user_id, package.category, db)
            today = self.today()
            validity = await self._validity_days(package, db)
            await self.packages.activate(
                package_id, today, today + timedelta(days=validity), months, db=db
            )
            balance = await self.credits.credit(
                package.user_id, package.category, package.classes_included, db=db
            )

        logger.info("Renewed package %s for %d month(s), balance %d", package_id, months, balance)
        return await self.get(package_id)

    async def cancel(self, package_id: str) -> Package:
        """Expire an active package. The balance is left alone."""
        async with atomic(None, self.db_path) as db:
            package = await self.get(package_id, db=db)
            if package.status != PackageStatus.ACTIVE:
                raise NotActive(
                    f"Package {package_id} is not active", details={"package_id": package_id}
                )
            await self.packages.update_status(package_id, PackageStatus.EXPIRED, db=db)

        logger.info("Cancelled package %s", package_id)
        return await self.get(package_id)

    async def deactivate(self, package_id: str, purge: bool = False) -> Package:
        """Admin override to expired, optionally zeroing the balance."""
        async with atomic(None, self.db_path) as db:
            package = await self.get(package_id, db=db)
            await self.packages.update_status(package_id, PackageStatus.EXPIRED, db=db)
            if purge:
                await self.credits.set_balance(package.user_id, package.category, 0, db=db)

        logger.info("Deactivated package %s (purge=%s)", package_id, purge)
        return await self.get(package_id)

    async def update_renewal(self, package_id: str, months: int) -> Package:
        validate_renewal_months(months)
        async with atomic(None, self.db_path) as db:
            package = await self.get(package_id, db=db)
            if package.is_active:
                await self._expire_active(
                    package.user_id, package.category, db, exclude_id=package_id
                )
            await self.packages.set_renewal_months(package_id, months, db=db)

        logger.info("Package %s renewal months set to %d", package_id, months)
        return await self.get(package_id)

    async def set_auto_renew(self, package_id: str, auto_renew: bool) -> Package:
        await self.get(package_id)
        await self.packages.set_auto_renew(package_id, auto_renew)
        return await self.get(package_id)

    async def delete(self, package_id: str) -> None:
        """Delete a package from history. Active packages must be cancelled first."""
        package = await self.get(package_id)
        if package.is_active:
            raise NotExpired(
                f"Package {package_id} is active; cancel it before deleting",
                details={"package_id": package_id},
            )
        await self.packages.delete(package_id)
        logger.info("Deleted package %s", package_id)

    async def refresh_lapsed(self, user_id: str, today: date | None = None) -> list[Package]:
        """Roll over or expire the user's active packages past their end date.

        Returns:
            Packages that changed
        """
        today = today or self.today()
        changed = []

        async with atomic(None, self.db_path) as db:
            for category in ClassCategory:
                for package in await self.packages.list_active(user_id, category, db=db):
                    if not package.has_lapsed(today):
                        continue

                    if package.auto_renew and package.renewal_months > 1:
                        validity = await self._validity_days(package, db)
                        await self.packages.extend(
                            package.id,
                            package.end_date + timedelta(days=validity),
                            package.renewal_months - 1,
                            today,
                            db=db,
                        )
                        balance = await self.credits.get_balance(user_id, category, db=db)
                        if self.auto_renew_behavior == "deduct":
                            new_balance = package.classes_included + min(balance, 0)
                        else:
                            new_balance = package.classes_included
                        await self.credits.set_balance(user_id, category, new_balance, db=db)
                        logger.info(
                            "Auto-renewed package %s, %d month(s) left, balance %d",
                            package.id,
                            package.renewal_months - 1,
                            new_balance,
                        )
                    else:
                        await self.packages.update_status(
                            package.id, PackageStatus.EXPIRED, db=db
                        )
                        await self.credits.set_balance(user_id, category, 0, db=db)
                        logger.info("Package %s lapsed and expired", package.id)

                    changed.append(package.id)

        return [await self.get(package_id) for package_id in changed]

    async def _assignable_template(
        self, template_id: str, category: ClassCategory
    ) -> PackageTemplate:
        template = await self.get_template(template_id)
        if template.category != category:
            raise ValidationError(
                f"Template {template_id} is for {template.category.value} classes",
                details={"template_category": template.category.value},
            )
        if not template.is_live(self.today()):
            raise ValidationError(
                f"Package template {template.name} is not available",
                details={"template_id": template_id},
            )
        return template

    async def _assign_within(
        self,
        db: aiosqlite.Connection,
        user_id: str,
        template: PackageTemplate,
        renewal_months: int,
        override_balance: bool,
        auto_renew: bool,
    ) -> tuple[Package, int, list[str]]:
        """Expire the active package, reset the balance and insert the new one.

        Returns:
            The new package, the new balance and the ids of expired packages
        """
        category = template.category
        today = self.today()
        balance = await self.credits.get_balance(user_id, category, db=db)
        expired = await self._expire_active(user_id, category, db)

        if override_balance:
            new_balance = template.classes_included
        else:
            new_balance = template.classes_included + min(balance, 0)
        await self.credits.set_balance(user_id, category, new_balance, db=db)

        package = Package(
            user_id=user_id,
            category=category,
            name=template.name,
            classes_included=template.classes_included,
            start_date=today,
            end_date=today + timedelta(days=template.validity_days),
            renewal_months=renewal_months,
            auto_renew=auto_renew,
            template_id=template.id,
            last_renewal_date=today,
        )
        await self._insert_active(package, db)
        return package, new_balance, expired

    async def _expire_active(
        self,
        user_id: str,
        category: ClassCategory,
        db: aiosqlite.Connection,
        exclude_id: str | None = None,
    ) -> list[str]:
        expired = []
        for package in await self.packages.list_active(user_id, category, exclude_id, db=db):
            await self.packages.update_status(package.id, PackageStatus.EXPIRED, db=db)
            expired.append(package.id)
        return expired

    async def _insert_active(self, package: Package, db: aiosqlite.Connection) -> None:
        try:
            await self.packages.create(package, db=db)
        except sqlite3.IntegrityError as e:
            raise BusinessRuleViolation(
                "User already has an active package in this category",
                details={"user_id": package.user_id, "category": package.category.value},
            ) from e

    async def _validity_days(self, package: Package, db: aiosqlite.Connection) -> int:
        if package.template_id:
            template = await self.templates.get(package.template_id, db=db)
            if template is not None:
                return template.validity_days
        return DEFAULT_VALIDITY_DAYS
