"""User management commands."""

import click

from ..models.user import UserRole
from ..services.users import UserService
from .base import async_command, echo_info, echo_success, ensure_initialized, format_table


@click.group()
@click.pass_context
def users(ctx):
    """Manage studio users."""
    ensure_initialized(ctx)


@users.command(name="add")
@click.argument("name")
@click.argument("email")
@click.option(
    "--role",
    type=click.Choice([r.value for r in UserRole]),
    default=UserRole.CLIENT.value,
    help="User role",
)
@async_command
async def add_user(name: str, email: str, role: str):
    """Add a user."""
    user = await UserService().create(name, email, UserRole(role))
    echo_success(f"Created {user.role.value} {user.name} (ID: {user.id})")


@users.command(name="list")
@async_command
async def list_users():
    """List all users."""
    all_users = await UserService().list_users()
    if not all_users:
        echo_info("No users yet. Add one with 'studio-booking users add'")
        return

    rows = [[u.id, u.name, u.email, u.role.value, str(u.classes_taken)] for u in all_users]
    click.echo()
    click.echo(format_table(["ID", "Name", "Email", "Role", "Taken"], rows))
    click.echo()
    click.echo(f"Total: {len(all_users)} user(s)")
