"""Credit balance commands."""

import click

from ..models.classes import ClassCategory
from ..services.credits import CreditService
from .base import async_command, echo_success, ensure_initialized, format_table


@click.group()
@click.pass_context
def credits(ctx):
    """Inspect and adjust class credits."""
    ensure_initialized(ctx)


@credits.command()
@click.argument("user_id")
@async_command
async def show(user_id: str):
    """Show a user's balances."""
    accounts = await CreditService().balances(user_id)
    rows = [
        [category.value, str(a.balance), "yes" if a.unlimited else "no"]
        for category, a in accounts.items()
    ]
    click.echo()
    click.echo(format_table(["Category", "Balance", "Unlimited"], rows))


@credits.command(name="set")
@click.argument("user_id")
@click.option("--group", type=int, help="New group class count")
@click.option("--private", type=int, help="New private class count")
@async_command
async def set_counts(user_id: str, group: int | None, private: int | None):
    """Overwrite a user's class counts."""
    changed = await CreditService().set_class_counts(user_id, group=group, private=private)
    for category, value in changed.items():
        echo_success(f"{category.value} balance set to {value}")


@credits.command()
@click.argument("user_id")
@click.argument("category", type=click.Choice([c.value for c in ClassCategory]))
@click.option("--off", is_flag=True, help="Make the account metered again")
@async_command
async def unlimited(user_id: str, category: str, off: bool):
    """Mark an account as unlimited."""
    account = await CreditService().set_unlimited(user_id, ClassCategory(category), not off)
    state = "unlimited" if account.unlimited else "metered"
    echo_success(f"{category} account of {user_id} is now {state}")
