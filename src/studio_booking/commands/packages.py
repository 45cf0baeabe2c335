"""Package commands."""

from datetime import date

import click

from ..models.classes import ClassCategory
from ..services.packages import PackageService
from .base import (
    async_command,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    parse_date,
)

CATEGORY_CHOICE = click.Choice([c.value for c in ClassCategory])


@click.group()
@click.pass_context
def packages(ctx):
    """Manage package templates and user packages."""
    ensure_initialized(ctx)


@packages.command(name="add-template")
@click.argument("name")
@click.argument("classes_included", type=int)
@click.option("--category", type=CATEGORY_CHOICE, default=ClassCategory.GROUP.value)
@click.option("--validity", "validity_days", type=int, default=30, help="Days per period")
@click.option("--price", type=float, default=0.0)
@click.option("--live-from", callback=parse_date)
@click.option("--live-until", callback=parse_date)
@async_command
async def add_template(
    name: str,
    classes_included: int,
    category: str,
    validity_days: int,
    price: float,
    live_from: date | None,
    live_until: date | None,
):
    """Add a package template to the catalogue."""
    template = await PackageService().create_template(
        name,
        ClassCategory(category),
        classes_included,
        validity_days=validity_days,
        price=price,
        live_from=live_from,
        live_until=live_until,
    )
    echo_success(f"Created template {template.name} (ID: {template.id})")


@packages.command()
@async_command
async def templates():
    """List package templates."""
    all_templates = await PackageService().list_templates()
    if not all_templates:
        echo_info("No templates yet")
        return

    rows = [
        [
            t.id,
            t.name,
            t.category.value,
            str(t.classes_included),
            str(t.validity_days),
            f"{t.price:.2f}",
            "yes" if t.is_active else "no",
        ]
        for t in all_templates
    ]
    click.echo()
    click.echo(format_table(["ID", "Name", "Category", "Classes", "Days", "Price", "Active"], rows))


@packages.command()
@click.argument("user_id")
@click.argument("template_id")
@click.option("--months", type=int, default=1, help="Renewal months (1-999)")
@click.option("--override", is_flag=True, help="Set balance to the package credits outright")
@click.option("--no-auto-renew", is_flag=True)
@click.option("--amount", type=float, help="Amount paid (defaults to template price)")
@click.option("--method", "payment_method", default="n/a", help="Payment method")
@async_command
async def assign(
    user_id: str,
    template_id: str,
    months: int,
    override: bool,
    no_auto_renew: bool,
    amount: float | None,
    payment_method: str,
):
    """Assign a package to a user."""
    service = PackageService()
    template = await service.get_template(template_id)
    package = await service.assign(
        user_id,
        template.category,
        template_id,
        renewal_months=months,
        override_balance=override,
        auto_renew=not no_auto_renew,
        amount=amount,
        payment_method=payment_method,
    )
    echo_success(f"Assigned {package.name} (ID: {package.id}) until {package.end_date}")


@packages.command(name="list")
@click.argument("user_id")
@click.option("--category", type=CATEGORY_CHOICE)
@async_command
async def list_packages(user_id: str, category: str | None):
    """Show a user's package history."""
    history = await PackageService().list_for_user(
        user_id, ClassCategory(category) if category else None
    )
    if not history:
        echo_info("No packages")
        return

    rows = [
        [
            p.id,
            p.name,
            p.category.value,
            p.status.value,
            f"{p.start_date}..{p.end_date}",
            str(p.renewal_months),
            "yes" if p.auto_renew else "no",
        ]
        for p in history
    ]
    click.echo()
    click.echo(format_table(["ID", "Name", "Category", "Status", "Period", "Months", "Auto"], rows))


@packages.command()
@click.argument("package_id")
@click.option("--months", type=int, default=1)
@async_command
async def renew(package_id: str, months: int):
    """Renew an expired package."""
    package = await PackageService().renew(package_id, months)
    echo_success(f"Renewed {package.name} until {package.end_date}")


@packages.command()
@click.argument("package_id")
@async_command
async def cancel(package_id: str):
    """Cancel an active package (balance is kept)."""
    await PackageService().cancel(package_id)
    echo_success(f"Cancelled package {package_id}")


@packages.command()
@click.argument("package_id")
@click.option("--purge", is_flag=True, help="Also set the balance to zero")
@async_command
async def deactivate(package_id: str, purge: bool):
    """Force a package to expired."""
    await PackageService().deactivate(package_id, purge=purge)
    echo_success(f"Deactivated package {package_id}" + (" and purged credits" if purge else ""))


@packages.command()
@click.argument("user_id")
@async_command
async def refresh(user_id: str):
    """Roll over or expire a user's lapsed packages."""
    changed = await PackageService().refresh_lapsed(user_id)
    if not changed:
        echo_info("Nothing has lapsed")
        return
    for package in changed:
        echo_success(f"{package.name}: {package.status.value} until {package.end_date}")


@packages.command(name="add-bundle")
@click.argument("name")
@click.option("--group", "group_template_id", help="Group package template ID")
@click.option("--group-months", type=int, help="Renewal months for the group package")
@click.option("--private", "private_template_id", help="Private package template ID")
@click.option("--private-months", type=int, help="Renewal months for the private package")
@click.option("--price", type=float, default=0.0)
@async_command
async def add_bundle(
    name: str,
    group_template_id: str | None,
    group_months: int | None,
    private_template_id: str | None,
    private_months: int | None,
    price: float,
):
    """Add a bundle of a group and/or private package."""
    bundle = await PackageService().create_bundle(
        name,
        price=price,
        group_template_id=group_template_id,
        group_months=group_months,
        private_template_id=private_template_id,
        private_months=private_months,
    )
    echo_success(f"Created bundle {bundle.name} (ID: {bundle.id})")


@packages.command()
@async_command
async def bundles():
    """List package bundles."""
    all_bundles = await PackageService().list_bundles()
    if not all_bundles:
        echo_info("No bundles yet")
        return

    rows = [
        [
            b.id,
            b.name,
            f"{b.group_template_id} x{b.group_months}" if b.group_template_id else "-",
            f"{b.private_template_id} x{b.private_months}" if b.private_template_id else "-",
            f"{b.price:.2f}",
            "yes" if b.is_active else "no",
        ]
        for b in all_bundles
    ]
    click.echo()
    click.echo(format_table(["ID", "Name", "Group", "Private", "Price", "Active"], rows))


@packages.command(name="assign-bundle")
@click.argument("user_id")
@click.argument("bundle_id")
@click.option("--override", is_flag=True, help="Set balances to the package credits outright")
@click.option("--no-auto-renew", is_flag=True)
@click.option("--amount", type=float, help="Amount paid (defaults to bundle price)")
@click.option("--method", "payment_method", default="n/a", help="Payment method")
@async_command
async def assign_bundle(
    user_id: str,
    bundle_id: str,
    override: bool,
    no_auto_renew: bool,
    amount: float | None,
    payment_method: str,
):
    """Assign every package in a bundle to a user."""
    assigned = await PackageService().assign_bundle(
        user_id,
        bundle_id,
        override_balance=override,
        auto_renew=not no_auto_renew,
        amount=amount,
        payment_method=payment_method,
    )
    for package in assigned:
        echo_success(f"Assigned {package.name} (ID: {package.id}) until {package.end_date}")
