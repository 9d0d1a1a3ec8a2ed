"""Command line entry point: python -m vetora [serve|sync-roles]."""
import asyncio

import click
import redis.asyncio as redis
import uvicorn
from dotenv import load_dotenv

from vetora.config.provider import EnvConfigProvider
from vetora.logging_config import configure_logging, get_logging_config
from vetora.modules.auth.audit import AuditLog
from vetora.modules.auth.roles import VendorRoleSync
from vetora.modules.config import get_config
from vetora.modules.users import UserStore, VendorStoreRegistry

load_dotenv()


@click.group()
def cli():
    """Vetora auth service."""


@cli.command()
@click.option("--host", "host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", "port", type=int, default=None, help="Port (default: API_PORT)")
@click.option("--reload", "reload", is_flag=True, default=False)
def serve(host, port, reload):
    """Run the API server."""
    config = get_config()
    uvicorn.run(
        "vetora.main:app",
        host=host or config.get("host"),
        port=port or config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=reload or config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )


async def _sync_roles() -> int:
    config = get_config()
    client = redis.from_url(
        config.redis_url(),
        password=config.get("redis_password"),
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        users = UserStore(client)
        role_sync_config = EnvConfigProvider().get_role_sync_config()
        roles = VendorRoleSync(
            users,
            VendorStoreRegistry(client),
            client,
            cache_ttl=role_sync_config.cache_ttl,
            audit=AuditLog(client),
        )
        return await roles.sync_all()
    finally:
        await client.close()


@cli.command("sync-roles")
def sync_roles():
    """Reconcile every user's stored role with vendor store ownership."""
    configure_logging(get_config().get("log_level"))
    changed = asyncio.run(_sync_roles())
    click.echo(f"{changed} role(s) corrected")


if __name__ == "__main__":
    cli()
