"""Management commands: ``python -m app.cli <command>``."""
import asyncio

import click
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from app.core.security import get_password_hash
from app.core.utils import utcnow
from app.db.models import Admin
from app.db.session import async_session, init_db
from app.services.otp_service import OtpStore

MIN_PASSWORD_LENGTH = 6


async def create_admin_account(session, username: str, password: str) -> Admin:
    admin = Admin(username=username, password_hash=get_password_hash(password))
    session.add(admin)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ValueError(f"Admin '{username}' already exists")
    await session.refresh(admin)
    return admin


async def set_admin_password(session, username: str, password: str) -> Admin:
    result = await session.execute(select(Admin).where(Admin.username == username))
    admin = result.scalars().first()
    if admin is None:
        raise ValueError(f"Admin '{username}' not found")
    admin.password_hash = get_password_hash(password)
    admin.updated_at = utcnow()
    session.add(admin)
    await session.commit()
    return admin


def _check_credentials(username: str, password: str) -> None:
    if not 3 <= len(username) <= 50:
        raise click.BadParameter("Username must be between 3 and 50 characters", param_hint="--username")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise click.BadParameter(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def _with_session(func, *args):
    async with async_session() as session:
        return await func(session, *args)


@click.group(help="GAMCA appointments management commands")
def cli() -> None:
    """Root command group."""


@cli.command("init-db", help="Create database tables")
def init_db_cmd() -> None:
    asyncio.run(init_db())
    click.echo("Database tables created.")


@cli.command("create-admin", help="Create an administrator account")
@click.option("--username", prompt=True, help="Admin username")
def create_admin_cmd(username: str) -> None:
    password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
    username = username.strip()
    _check_credentials(username, password)
    try:
        admin = asyncio.run(_with_session(create_admin_account, username, password))
    except ValueError as exc:
        click.secho(str(exc), fg="red")
        raise SystemExit(1)
    click.secho(f"Admin created with id {admin.id}", fg="green")


@cli.command("set-admin-password", help="Reset an administrator's password")
@click.option("--username", prompt=True, help="Admin username")
def set_admin_password_cmd(username: str) -> None:
    password = click.prompt("New password", hide_input=True, confirmation_prompt=True)
    username = username.strip()
    _check_credentials(username, password)
    try:
        asyncio.run(_with_session(set_admin_password, username, password))
    except ValueError as exc:
        click.secho(str(exc), fg="red")
        raise SystemExit(1)
    click.secho(f"Password updated for {username}", fg="green")


@cli.command("cleanup-otps", help="Delete expired one-time passwords")
def cleanup_otps_cmd() -> None:
    async def run(session):
        return await OtpStore(session).cleanup()

    removed = asyncio.run(_with_session(run))
    click.echo(f"Removed {removed} expired OTPs.")


if __name__ == "__main__":
    cli()
