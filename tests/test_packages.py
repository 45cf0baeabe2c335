"""Tests for the package lifecycle."""

from datetime import date, timedelta

import pytest

from studio_booking.db import PackageRepository
from studio_booking.errors import (
    AccountNotFound,
    NotActive,
    NotExpired,
    PackageBundleNotFound,
    ValidationError,
)
from studio_booking.models.classes import ClassCategory
from studio_booking.models.package import PackageStatus
from studio_booking.services.packages import PackageService

GROUP = ClassCategory.GROUP
PRIVATE = ClassCategory.PRIVATE
TODAY = date(2026, 11, 2)


@pytest.fixture
async def template(package_service):
    return await package_service.create_template(
        name="Group 8", category=GROUP, classes_included=8, validity_days=30, price=120.0
    )


class TestTemplates:
    """Tests for package templates."""

    async def test_create_and_list(self, package_service, template):
        templates = await package_service.list_templates()

        assert [t.id for t in templates] == [template.id]
        loaded = await package_service.get_template(template.id)
        assert loaded.classes_included == 8
        assert loaded.price == 120.0

    async def test_negative_classes_rejected(self, package_service):
        with pytest.raises(ValidationError):
            await package_service.create_template("Broken", GROUP, -1)


class TestAssign:
    """Tests for PackageService.assign."""

    async def test_assign_sets_balance(
        self, package_service, credit_service, template, users, notifier
    ):
        user_id = users["alice"].id

        package = await package_service.assign(user_id, GROUP, template.id)

        assert package.status == PackageStatus.ACTIVE
        assert package.start_date == TODAY
        assert package.end_date == TODAY + timedelta(days=30)
        assert package.last_renewal_date == TODAY
        assert await credit_service.get_balance(user_id, GROUP) == 8
        assert notifier.sent[-1][0] == "package_assigned"

    async def test_assign_carries_overdraft(self, package_service, credit_service, template, users):
        user_id = users["alice"].id
        await credit_service.set_balance(user_id, GROUP, -2)

        await package_service.assign(user_id, GROUP, template.id)

        assert await credit_service.get_balance(user_id, GROUP) == 6

    async def test_assign_does_not_carry_positive_balance(
        self, package_service, credit_service, template, users
    ):
        user_id = users["alice"].id
        await credit_service.set_balance(user_id, GROUP, 3)

        await package_service.assign(user_id, GROUP, template.id)

        assert await credit_service.get_balance(user_id, GROUP) == 8

    async def test_override_ignores_overdraft(
        self, package_service, credit_service, template, users
    ):
        user_id = users["alice"].id
        await credit_service.set_balance(user_id, GROUP, -2)

        await package_service.assign(user_id, GROUP, template.id, override_balance=True)

        assert await credit_service.get_balance(user_id, GROUP) == 8

    async def test_assign_expires_previous(self, package_service, template, users):
        user_id = users["bob"].id
        first = await package_service.assign(user_id, GROUP, template.id)

        second = await package_service.assign(user_id, GROUP, template.id)

        assert (await package_service.get(first.id)).status == PackageStatus.EXPIRED
        assert second.is_active
        active = [p for p in await package_service.list_for_user(user_id) if p.is_active]
        assert [p.id for p in active] == [second.id]

    async def test_records_purchase(self, package_service, template, users, db_path):
        package = await package_service.assign(
            users["alice"].id, GROUP, template.id, amount=99.0, payment_method="card"
        )

        purchases = await PackageRepository(db_path).list_purchases(users["alice"].id)
        assert purchases[0]["package_id"] == package.id
        assert purchases[0]["amount"] == 99.0
        assert purchases[0]["payment_method"] == "card"

    async def test_category_mismatch_rejected(self, package_service, template, users):
        with pytest.raises(ValidationError):
            await package_service.assign(users["alice"].id, PRIVATE, template.id)

    async def test_renewal_months_bounds(self, package_service, template, users):
        with pytest.raises(ValidationError):
            await package_service.assign(users["alice"].id, GROUP, template.id, renewal_months=0)

    async def test_template_not_live(self, package_service, users):
        future = await package_service.create_template(
            "Spring", GROUP, 6, live_from=TODAY + timedelta(days=10)
        )
        with pytest.raises(ValidationError):
            await package_service.assign(users["alice"].id, GROUP, future.id)

    async def test_unknown_user(self, package_service, template):
        with pytest.raises(AccountNotFound):
            await package_service.assign("ghost", GROUP, template.id)


class TestRenewAndCancel:
    """Tests for renewal, cancellation and deletion."""

    async def test_renew_adds_credits(self, package_service, credit_service, template, users):
        user_id = users["alice"].id
        package = await package_service.assign(user_id, GROUP, template.id)
        await package_service.cancel(package.id)
        await credit_service.set_balance(user_id, GROUP, 2)

        renewed = await package_service.renew(package.id, months=3)

        assert renewed.is_active
        assert renewed.renewal_months == 3
        assert await credit_service.get_balance(user_id, GROUP) == 10

    async def test_renew_active_rejected(self, package_service, template, users):
        package = await package_service.assign(users["alice"].id, GROUP, template.id)

        with pytest.raises(NotExpired):
            await package_service.renew(package.id)

    async def test_renew_expires_other_active(self, package_service, template, users):
        user_id = users["alice"].id
        old = await package_service.assign(user_id, GROUP, template.id)
        current = await package_service.assign(user_id, GROUP, template.id)

        await package_service.renew(old.id)

        assert (await package_service.get(current.id)).status == PackageStatus.EXPIRED
        assert (await package_service.get(old.id)).is_active

    async def test_cancel_keeps_balance(self, package_service, credit_service, template, users):
        user_id = users["alice"].id
        package = await package_service.assign(user_id, GROUP, template.id)

        cancelled = await package_service.cancel(package.id)

        assert cancelled.status == PackageStatus.EXPIRED
        assert await credit_service.get_balance(user_id, GROUP) == 8
        with pytest.raises(NotActive):
            await package_service.cancel(package.id)

    async def test_deactivate_with_purge(self, package_service, credit_service, template, users):
        user_id = users["alice"].id
        package = await package_service.assign(user_id, GROUP, template.id)

        await package_service.deactivate(package.id, purge=True)

        assert await credit_service.get_balance(user_id, GROUP) == 0

    async def test_delete_requires_expired(self, package_service, template, users):
        package = await package_service.assign(users["alice"].id, GROUP, template.id)

        with pytest.raises(NotExpired):
            await package_service.delete(package.id)

        await package_service.cancel(package.id)
        await package_service.delete(package.id)
        assert await package_service.list_for_user(users["alice"].id) == []


class TestRefreshLapsed:
    """Tests for lapse handling."""

    async def test_lapsed_single_month_expires(
        self, package_service, credit_service, template, users
    ):
        user_id = users["alice"].id
        package = await package_service.assign(user_id, GROUP, template.id)

        changed = await package_service.refresh_lapsed(user_id, TODAY + timedelta(days=31))

        assert [p.id for p in changed] == [package.id]
        assert changed[0].status == PackageStatus.EXPIRED
        assert await credit_service.get_balance(user_id, GROUP) == 0

    async def test_not_yet_lapsed(self, package_service, template, users):
        user_id = users["alice"].id
        await package_service.assign(user_id, GROUP, template.id)

        assert await package_service.refresh_lapsed(user_id, TODAY + timedelta(days=30)) == []

    async def test_auto_renew_extends_and_resets(
        self, package_service, credit_service, template, users
    ):
        user_id = users["alice"].id
        package = await package_service.assign(user_id, GROUP, template.id, renewal_months=3)
        await credit_service.set_balance(user_id, GROUP, -1)
        later = TODAY + timedelta(days=31)

        changed = await package_service.refresh_lapsed(user_id, later)

        renewed = changed[0]
        assert renewed.is_active
        assert renewed.renewal_months == 2
        assert renewed.end_date == package.end_date + timedelta(days=30)
        assert renewed.last_renewal_date == later
        assert await credit_service.get_balance(user_id, GROUP) == 8

    async def test_deduct_behaviour_carries_overdraft(
        self, db_path, credit_service, template, users
    ):
        service = PackageService(db_path, today=lambda: TODAY, auto_renew_behavior="deduct")
        user_id = users["alice"].id
        await service.assign(user_id, GROUP, template.id, renewal_months=2)
        await credit_service.set_balance(user_id, GROUP, -2)

        await service.refresh_lapsed(user_id, date(2026, 12, 10))

        assert await credit_service.get_balance(user_id, GROUP) == 6

    async def test_auto_renew_off_expires(self, package_service, template, users):
        user_id = users["alice"].id
        package = await package_service.assign(
            user_id, GROUP, template.id, renewal_months=3, auto_renew=False
        )

        changed = await package_service.refresh_lapsed(user_id, TODAY + timedelta(days=31))

        assert changed[0].id == package.id
        assert changed[0].status == PackageStatus.EXPIRED


@pytest.fixture
async def private_template(package_service):
    return await package_service.create_template(
        name="Private 4", category=PRIVATE, classes_included=4, validity_days=30, price=200.0
    )


class TestBundles:
    """Tests for package bundles."""

    async def test_create_and_list(self, package_service, template, private_template):
        bundle = await package_service.create_bundle(
            "Combo",
            price=280.0,
            group_template_id=template.id,
            group_months=3,
            private_template_id=private_template.id,
            private_months=1,
        )

        assert bundle.is_combo
        assert [b.id for b in await package_service.list_bundles()] == [bundle.id]

    async def test_needs_a_template(self, package_service):
        with pytest.raises(ValidationError):
            await package_service.create_bundle("Empty", price=10.0)

    async def test_months_required(self, package_service, template):
        with pytest.raises(ValidationError):
            await package_service.create_bundle("Combo", group_template_id=template.id)

    async def test_template_category_must_match(self, package_service, template):
        with pytest.raises(ValidationError):
            await package_service.create_bundle(
                "Wrong side", private_template_id=template.id, private_months=1
            )

    async def test_assign_bundle(
        self, package_service, credit_service, template, private_template, users, db_path
    ):
        user_id = users["alice"].id
        bundle = await package_service.create_bundle(
            "Combo",
            price=280.0,
            group_template_id=template.id,
            group_months=3,
            private_template_id=private_template.id,
            private_months=1,
        )

        assigned = await package_service.assign_bundle(user_id, bundle.id, payment_method="card")

        assert [p.category for p in assigned] == [GROUP, PRIVATE]
        assert all(p.status == PackageStatus.ACTIVE for p in assigned)
        assert assigned[0].renewal_months == 3
        assert await credit_service.get_balance(user_id, GROUP) == 8
        assert await credit_service.get_balance(user_id, PRIVATE) == 4
        purchases = await PackageRepository(db_path).list_purchases(user_id)
        assert len(purchases) == 1
        assert purchases[0]["amount"] == 280.0
        assert purchases[0]["package_id"] == assigned[0].id

    async def test_inactive_bundle_not_assignable(self, package_service, template, users):
        bundle = await package_service.create_bundle(
            "Old", group_template_id=template.id, group_months=1, is_active=False
        )

        with pytest.raises(ValidationError):
            await package_service.assign_bundle(users["alice"].id, bundle.id)

        assert await package_service.list_for_user(users["alice"].id) == []

    async def test_delete_unknown_bundle(self, package_service):
        with pytest.raises(PackageBundleNotFound):
            await package_service.delete_bundle("missing")
