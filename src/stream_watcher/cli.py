"""CLI entry point for the stream watcher."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from stream_watcher.config import load_config, validate_config
from stream_watcher.daemon import run_daemon
from stream_watcher.errors import ConfigError, DecodeError
from stream_watcher.models.records import StreamRecord, StreamStatus
from stream_watcher.stellar.decoder import decode_xdr
from stream_watcher.storage.sqlite import SQLiteStreamStore


def _print_stream(record: StreamRecord) -> None:
    click.echo(f"Stream {record.stream_id}")
    click.echo(f"  Status:     {record.status.value}")
    click.echo(f"  Sender:     {record.sender}")
    click.echo(f"  Receiver:   {record.receiver}")
    click.echo(f"  Total:      {record.total_amount}")
    click.echo(f"  Withdrawn:  {record.withdrawn}")
    click.echo(f"  Duration:   {record.duration}s")
    click.echo(f"  Created:    {record.created_at}")
    if record.closed_at:
        click.echo(f"  Closed:     {record.closed_at}")
        click.echo(f"  To receiver: {record.final_streamed_amount}")
        click.echo(f"  To sender:   {record.remaining_unstreamed_amount}")
    click.echo(f"  Tx hash:    {record.tx_hash}")
    click.echo(f"  Ledger:     {record.last_ledger}")


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """stream-watcher - Soroban payment-stream event indexer."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Watcher ────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start watching contract events."""
    cfg = ctx.obj["config"]
    try:
        validate_config(cfg)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Starting stream watcher (contract: {cfg.contract_id})")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and the last processed ledger."""
    cfg = ctx.obj["config"]
    click.echo(f"Network:        {cfg.network}")
    click.echo(f"RPC URL:        {cfg.rpc_url or '(not set)'}")
    click.echo(f"Contract:       {cfg.contract_id or '(not set)'}")
    click.echo(f"Poll interval:  {cfg.poll_interval_ms}ms")
    click.echo(f"Retries:        {cfg.max_retries} (base delay {cfg.retry_delay_ms}ms)")
    click.echo(f"DB path:        {cfg.db_path}")

    async def _cursor():
        store = SQLiteStreamStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_cursor()
        finally:
            await store.close()

    ledger = asyncio.run(_cursor())
    click.echo(f"Last ledger:    {ledger if ledger is not None else '(never run)'}")


# ── Streams ────────────────────────────────────────────


@cli.command()
@click.option("--status", "status_filter", default=None,
              type=click.Choice([s.value for s in StreamStatus]), help="Filter by status")
@click.option("--limit", default=50, show_default=True, help="Maximum streams to list")
@click.pass_context
def streams(ctx: click.Context, status_filter: str | None, limit: int) -> None:
    """List indexed streams, newest first."""
    cfg = ctx.obj["config"]

    async def _streams():
        store = SQLiteStreamStore(cfg.db_path)
        await store.initialize()
        try:
            records = await store.list_streams(
                limit=limit,
                status=StreamStatus(status_filter) if status_filter else None,
            )
            if not records:
                click.echo("No streams indexed.")
                return

            for r in records:
                click.echo(
                    f"  #{r.stream_id} [{r.status.value}] "
                    f"withdrawn={r.withdrawn}/{r.total_amount} "
                    f"sender={r.sender[:12]} receiver={r.receiver[:12]}"
                )
        finally:
            await store.close()

    asyncio.run(_streams())


@cli.command()
@click.argument("stream_id")
@click.pass_context
def stream(ctx: click.Context, stream_id: str) -> None:
    """Show one indexed stream."""
    cfg = ctx.obj["config"]

    async def _stream():
        store = SQLiteStreamStore(cfg.db_path)
        await store.initialize()
        try:
            return await store.get_stream(stream_id)
        finally:
            await store.close()

    record = asyncio.run(_stream())
    if record is None:
        click.echo(f"Stream {stream_id} not found.", err=True)
        sys.exit(1)
    _print_stream(record)


# ── Tools ──────────────────────────────────────────────


@cli.command()
@click.argument("value_xdr")
def decode(value_xdr: str) -> None:
    """Decode a base64 XDR SCVal to JSON."""
    try:
        value = decode_xdr(value_xdr)
    except DecodeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(json.dumps(value, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
