"""CLI entry point for the ctrlw core."""

import asyncio
from dataclasses import asdict
from pathlib import Path

import click
import yaml

from ctrlw import __version__
from ctrlw.auth.identity import Identity
from ctrlw.config import load_config
from ctrlw.context import AppContext
from ctrlw.errors import CtrlwError
from ctrlw.formatting import format_time_ago, mask_secret
from ctrlw.logging import setup_logging


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None) -> None:
    """ctrlw - pairing sessions and token rotation core."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["logger"] = setup_logging(ctx.obj["config"])


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"ctrlw version {__version__}")


@main.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the core (session reaper) until interrupted."""
    config = ctx.obj["config"]

    async def _run():
        context = AppContext.create(config)
        await context.start()
        click.echo(
            f"ctrlw running (session TTL {config.sessions.ttl_minutes} min, "
            f"reaper every {config.sessions.reaper_interval:g}s)"
        )
        click.echo("Press Ctrl+C to stop")
        try:
            await asyncio.Event().wait()
        finally:
            await context.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


@main.group("config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration (secrets masked)."""
    data = asdict(ctx.obj["config"])
    data["tokens"]["access_secret"] = mask_secret(data["tokens"]["access_secret"])
    data["tokens"]["refresh_secret"] = mask_secret(data["tokens"]["refresh_secret"])
    click.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


@main.group()
def user() -> None:
    """Identity management commands."""
    pass


async def _open_context(ctx: click.Context) -> AppContext:
    """Build a context and load identities, without starting the reaper."""
    context = AppContext.create(ctx.obj["config"])
    await context.identity_store.load()
    return context


async def _resolve_identity(context: AppContext, identity_id: str) -> Identity:
    """Find an identity by full id or unique prefix (like git short hashes)."""
    identity = await context.identity_store.get(identity_id)
    if identity:
        return identity

    matches = [
        i for i in await context.identity_store.all()
        if i.identity_id.startswith(identity_id)
    ]
    if not matches:
        click.echo(f"Error: Identity '{identity_id}' not found.", err=True)
        raise SystemExit(1)
    if len(matches) > 1:
        click.echo(f"Error: Ambiguous identity ID '{identity_id}'. Matches:", err=True)
        for i in matches:
            click.echo(f"  {i.identity_id[:8]} - {i.email}", err=True)
        raise SystemExit(1)
    return matches[0]


@user.command("add")
@click.argument("email")
@click.option(
    "--password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="Password (prompted if omitted).",
)
@click.option(
    "--role",
    type=click.Choice(["user", "admin"]),
    default="user",
    show_default=True,
)
@click.pass_context
def user_add(ctx: click.Context, email: str, password: str, role: str) -> None:
    """Register a new identity."""

    async def _add():
        context = await _open_context(ctx)
        try:
            result = await context.tokens.register(email, password, role)
        except CtrlwError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        click.echo(f"Registered {result.identity['email']} ({result.identity['id'][:8]})")

    asyncio.run(_add())


@user.command("list")
@click.option("--full", is_flag=True, help="Show full identity IDs")
@click.pass_context
def user_list(ctx: click.Context, full: bool) -> None:
    """List registered identities."""

    async def _list():
        context = await _open_context(ctx)
        identities = await context.identity_store.all()

        if not identities:
            click.echo("No identities.")
            return

        click.echo(f"{'ID':<12} {'EMAIL':<30} {'ROLE':<6} {'ACTIVE':<7} {'LAST LOGIN'}")
        click.echo("-" * 75)

        for identity in sorted(identities, key=lambda i: i.created_at):
            identity_display = identity.identity_id if full else identity.identity_id[:8]
            active = "yes" if identity.is_active else "no"
            click.echo(
                f"{identity_display:<12} "
                f"{identity.email:<30} "
                f"{identity.role.value:<6} "
                f"{active:<7} "
                f"{format_time_ago(identity.last_login)}"
            )

    asyncio.run(_list())


@user.command("logout")
@click.argument("identity_id")
@click.pass_context
def user_logout(ctx: click.Context, identity_id: str) -> None:
    """Revoke an identity's refresh token."""

    async def _logout():
        context = await _open_context(ctx)
        identity = await _resolve_identity(context, identity_id)
        await context.tokens.logout(identity.identity_id)
        click.echo(f"Logged out {identity.email}.")

    asyncio.run(_logout())


@user.command("disable")
@click.argument("identity_id")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation")
@click.pass_context
def user_disable(ctx: click.Context, identity_id: str, force: bool) -> None:
    """Disable an identity and revoke its refresh token."""

    async def _disable():
        context = await _open_context(ctx)
        identity = await _resolve_identity(context, identity_id)
        if not force and not click.confirm(f"Disable '{identity.email}'?"):
            click.echo("Aborted.")
            return
        await context.tokens.set_active(identity.identity_id, False)
        click.echo(f"Disabled {identity.email}.")

    asyncio.run(_disable())


@user.command("enable")
@click.argument("identity_id")
@click.pass_context
def user_enable(ctx: click.Context, identity_id: str) -> None:
    """Re-enable a disabled identity."""

    async def _enable():
        context = await _open_context(ctx)
        identity = await _resolve_identity(context, identity_id)
        await context.tokens.set_active(identity.identity_id, True)
        click.echo(f"Enabled {identity.email}.")

    asyncio.run(_enable())


if __name__ == "__main__":
    main()
