"""Main CLI application.

Click commands for the openbands server: serve, init-db, badge, reconcile.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

import click

from openbands import __version__
from openbands.attestation.base import AttestationType
from openbands.config.loader import load_config
from openbands.core.errors import ConfigError, OpenBandsError
from openbands.core.wallet import is_wallet_address

if TYPE_CHECKING:
    from openbands.cli.display import Display
    from openbands.config.schema import LoggingConfig, OpenBandsConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> OpenBandsConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger from the ``[logging]`` section."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    logging.basicConfig(
        level=config.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _display() -> Display:
    from openbands.cli.display import Display

    return Display()


# ── Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="openbands")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """openbands - Badge-gated anonymous communities.

    Membership is decided by on-chain nationality, age and company badges.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@click.option(
    "--reload", is_flag=True, default=False, help="Enable auto-reload for development."
)
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    from openbands.api.app import create_app

    config = _load_config(ctx.obj["config_path"])
    _setup_logging(config.logging)

    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.api.host,
        port=port or config.api.port,
        reload=reload,
        log_config=None,
    )


# ── init-db ──────────────────────────────────────────────────────


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create any missing tables in the configured database."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_init_db_async(config))
    except OpenBandsError as e:
        _error(str(e))


async def _init_db_async(config: OpenBandsConfig) -> None:
    from openbands.store.database import create_engine, create_tables, verify_schema

    engine = create_engine(config)
    try:
        await create_tables(engine)
        await verify_schema(engine)
    finally:
        await engine.dispose()
    click.echo("Database schema ready.")


# ── badge ────────────────────────────────────────────────────────


@cli.command()
@click.argument("address")
@click.argument(
    "attestation_type",
    metavar="TYPE",
    type=click.Choice([t.value for t in AttestationType]),
)
@click.pass_context
def badge(ctx: click.Context, address: str, attestation_type: str) -> None:
    """Read ADDRESS's live TYPE badge from the registry."""
    if not is_wallet_address(address):
        _error(f"Invalid wallet address: {address}")
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_badge_async(config, address, AttestationType(attestation_type)))
    except OpenBandsError as e:
        _error(str(e))


async def _badge_async(
    config: OpenBandsConfig, address: str, attestation_type: AttestationType
) -> None:
    from openbands.attestation.chain import ChainAttestationReader

    reader = ChainAttestationReader(config.attestation)
    record = await reader.get_record(address, attestation_type)
    _display().badge(address, attestation_type, record)


# ── reconcile ────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def reconcile(ctx: click.Context) -> None:
    """Recompute member, post, comment and upvote counters from source rows."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_reconcile_async(config))
    except OpenBandsError as e:
        _error(str(e))


async def _reconcile_async(config: OpenBandsConfig) -> None:
    from openbands.store.database import create_db
    from openbands.store.repository import CommunityRepository

    factory, engine = await create_db(config)
    try:
        async with factory() as session:
            corrected = await CommunityRepository(session).reconcile_counters()
            await session.commit()
    finally:
        await engine.dispose()
    _display().reconcile(corrected)
