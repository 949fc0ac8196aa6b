"""CLI entry point for the marketplace_sync daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from marketplace_sync.config import load_config
from marketplace_sync.daemon import SyncDaemon, run_daemon
from marketplace_sync.errors import ConfigError
from marketplace_sync.models.config import SyncConfig
from marketplace_sync.models.records import Lifecycle, OfferRecord, RequestRecord
from marketplace_sync.storage.sqlite import SQLiteStateStore


def _load(ctx: click.Context) -> SyncConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _require_contract(cfg: SyncConfig) -> None:
    """Exit with error if no contract address is configured."""
    if not cfg.contract_address:
        click.echo("Error: No contract address configured.", err=True)
        click.echo(
            "Set MARKETPLACE_SYNC_CONTRACT_ADDRESS or [chain] contract_address in config.",
            err=True,
        )
        sys.exit(1)


def _format_request(r: RequestRecord) -> str:
    line = (
        f"#{r.request_id:<6} {r.lifecycle.name:<10} {r.request_name[:30]:<30}"
        f" buyer={r.buyer_id} block={r.block_number}"
    )
    if r.lifecycle == Lifecycle.ACCEPTED:
        line += f" seller={r.locked_seller_id}"
    return line


def _format_offer(o: OfferRecord) -> str:
    flag = "accepted" if o.is_accepted else "pending"
    return (
        f"#{o.offer_id:<6} request={o.request_id:<6} {flag:<8}"
        f" price={o.price} store={o.store_name[:24]} block={o.block_number}"
    )


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """marketplace-sync - project marketplace contract events into SQLite."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    cfg = _load(ctx)
    level = logging.DEBUG if verbose or cfg.debug else getattr(
        logging, cfg.log_level.upper(), logging.INFO,
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the sync daemon."""
    cfg = _load(ctx)
    _require_contract(cfg)

    click.echo(f"Starting marketplace-sync daemon (every {cfg.poll_interval}s)")
    try:
        asyncio.run(run_daemon(cfg))
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def tick(ctx: click.Context) -> None:
    """Run a single sync tick and exit."""
    cfg = _load(ctx)
    _require_contract(cfg)

    try:
        report = asyncio.run(SyncDaemon(cfg).run_single())
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if report is None:
        click.echo("Tick failed, see log output.", err=True)
        sys.exit(1)

    click.echo(f"Status:  {report.status}")
    if report.window:
        click.echo(f"Window:  [{report.window.from_block}, {report.window.to_block}]")
        for name, count in report.events.items():
            click.echo(f"  {name:<16} {count}")
    click.echo(f"Cursor:  {report.cursor}")
    click.echo(f"Head:    {report.head}")


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show sync configuration."""
    cfg = _load(ctx)
    click.echo(f"RPC URL:      {cfg.rpc_url}")
    click.echo(f"Contract:     {cfg.contract_address or '(not set)'}")
    click.echo(f"ABI:          {cfg.abi_path}")
    click.echo(f"Start block:  {cfg.start_block}")
    click.echo(f"Max window:   {cfg.max_window} blocks")
    click.echo(f"Interval:     {cfg.poll_interval}s")
    click.echo(f"DB path:      {cfg.db_path}")
    click.echo(f"Debug:        {'on' if cfg.debug else 'off'}")


@cli.command()
@click.pass_context
def cursor(ctx: click.Context) -> None:
    """Show the last scanned block and derived-state counts."""
    cfg = _load(ctx)

    async def _cursor():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            block = await store.get_cursor()
            counts = await store.count_requests_by_lifecycle()
            offers = await store.count_offers()
        finally:
            await store.close()

        if block is None:
            click.echo("Cursor:     (not initialized)")
        else:
            click.echo(f"Cursor:     block {block}")
        click.echo(f"Requests:   {sum(counts.values())}")
        for lifecycle, count in counts.items():
            click.echo(f"  {lifecycle.name:<10} {count}")
        click.echo(f"Offers:     {offers}")

    asyncio.run(_cursor())


@cli.command()
@click.option(
    "--lifecycle",
    type=click.Choice([lc.name.lower() for lc in Lifecycle]),
    default=None,
    help="Only show requests in this lifecycle state",
)
@click.pass_context
def requests(ctx: click.Context, lifecycle: str | None) -> None:
    """List projected requests."""
    cfg = _load(ctx)

    async def _requests():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            if lifecycle:
                return await store.get_requests_by_lifecycle(Lifecycle[lifecycle.upper()])
            return await store.get_all_requests()
        finally:
            await store.close()

    rows = asyncio.run(_requests())
    if not rows:
        click.echo("No requests.")
        return
    for r in rows:
        click.echo(_format_request(r))


@cli.command()
@click.option("--request-id", type=int, default=None, help="Only offers for this request")
@click.option(
    "--accepted/--pending", "accepted", default=None,
    help="Filter by acceptance flag",
)
@click.pass_context
def offers(ctx: click.Context, request_id: int | None, accepted: bool | None) -> None:
    """List projected offers."""
    cfg = _load(ctx)

    async def _offers():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            if request_id is not None:
                rows = await store.get_offers_for_request(request_id)
            elif accepted is not None:
                rows = await store.get_offers_by_acceptance(accepted)
            else:
                rows = await store.get_all_offers()
        finally:
            await store.close()
        if request_id is not None and accepted is not None:
            rows = [o for o in rows if o.is_accepted == accepted]
        return rows

    rows = asyncio.run(_offers())
    if not rows:
        click.echo("No offers.")
        return
    for o in rows:
        click.echo(_format_offer(o))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
