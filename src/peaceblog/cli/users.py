"""Admin account management CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from peaceblog.database import close_db, get_session_context
from peaceblog.models import User
from peaceblog.models.user import DEFAULT_ROLE
from peaceblog.services.passcodes import MAX_PASSCODE_BYTES, hash_passcode, passcode_too_long

console = Console()
app = typer.Typer(help="Admin account commands")


def _prompt_passcode() -> str:
    passcode = typer.prompt("Passcode", hide_input=True, confirmation_prompt=True)
    if passcode_too_long(passcode):
        console.print(f"[red]Error:[/red] Passcode must be at most {MAX_PASSCODE_BYTES} bytes")
        raise typer.Exit(1)
    return passcode


async def _find(session, username: str) -> User | None:
    stmt = select(User).where(User.username == username)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


@app.command("list")
def list_users():
    """List all admin accounts."""

    async def _list():
        async with get_session_context() as session:
            stmt = select(User).order_by(User.username)
            result = await session.execute(stmt)
            users = result.scalars().all()

            table = Table(title="Users")
            table.add_column("ID", style="cyan")
            table.add_column("Username", style="green")
            table.add_column("Email")
            table.add_column("Role", style="magenta")
            table.add_column("Created", style="dim")

            for user in users:
                created = user.created_at.strftime("%Y-%m-%d") if user.created_at else "-"
                table.add_row(user.id, user.username, user.email, user.role, created)

            console.print(table)
        await close_db()

    asyncio.run(_list())


@app.command("create")
def create_user(
    username: str = typer.Argument(..., help="Login name"),
    email: str = typer.Argument(..., help="Address that receives verification codes"),
    role: str = typer.Option(DEFAULT_ROLE, "--role", "-r", help="Role claim put in tokens"),
):
    """Create an admin account. The passcode is prompted for and stored hashed."""
    passcode = _prompt_passcode()

    async def _create():
        async with get_session_context() as session:
            if await _find(session, username):
                console.print(f"[red]Error:[/red] User {username} already exists")
                raise typer.Exit(1)

            user = User(
                username=username,
                email=email,
                role=role,
                passcode_hash=hash_passcode(passcode),
            )
            session.add(user)
            await session.commit()
            console.print(f"[green]Created user:[/green] {username} <{email}> (role={role})")
        await close_db()

    asyncio.run(_create())


@app.command("set-passcode")
def set_passcode(username: str = typer.Argument(..., help="Login name")):
    """Replace an account's passcode."""
    passcode = _prompt_passcode()

    async def _update():
        async with get_session_context() as session:
            user = await _find(session, username)
            if not user:
                console.print(f"[red]Error:[/red] User {username} not found")
                raise typer.Exit(1)

            user.passcode_hash = hash_passcode(passcode)
            await session.commit()
            console.print(f"[green]Passcode updated for:[/green] {username}")
        await close_db()

    asyncio.run(_update())


@app.command("hash-passcode")
def print_passcode_hash():
    """Print a bcrypt hash for a passcode, for seeding users by hand."""
    passcode = _prompt_passcode()
    typer.echo(hash_passcode(passcode))
