"""
BlindBid CLI - Command Line Interface for the blind auction client

Main entry point for all CLI commands.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

import click

from blindbid.utils.logger import setup_logging, get_logger


logger = get_logger("cli")


def _contract_client(config):
    """Build the JSON-RPC read adapter for ``config.rpc_url``."""
    from blindbid.core.chain.web3_client import Web3ContractReader
    return Web3ContractReader(config.rpc_url)


def _store(ctx):
    from blindbid.core.storage import SQLiteStore
    config = ctx.obj["config"]
    config.data_dir.mkdir(parents=True, exist_ok=True)
    return SQLiteStore(config.db_path)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default ~/.blindbid)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON config file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """BlindBid - Sealed-bid auction client"""
    from blindbid.core.config import load_config

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config")
    if data_dir is not None:
        config.data_dir = Path(data_dir).expanduser()

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=False)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# =============================================================================
# Commitment / Phase Commands
# =============================================================================

@cli.command("commit")
@click.argument("value", type=int)
@click.argument("secret")
@click.option("--fake", is_flag=True, help="Commit a decoy bid")
def commit(value, secret, fake):
    """Print the blinded commitment for VALUE and SECRET"""
    from blindbid.core.auction import commitment_hex, create_commitment
    from blindbid.core.errors import InvalidBidValue

    try:
        digest = create_commitment(value, fake, secret)
    except InvalidBidValue as e:
        raise click.BadParameter(str(e), param_hint="VALUE")
    click.echo(commitment_hex(digest))


@cli.command("phase")
@click.option("--now", type=int, default=None, help="Unix time (default: now)")
@click.option("--start", "bidding_start", type=int, required=True, help="Bidding start")
@click.option("--bidding-end", type=int, required=True, help="Bidding end")
@click.option("--reveal-end", type=int, required=True, help="Reveal end")
@click.option("--ended", is_flag=True, help="Contract reports the auction settled")
def phase(now, bidding_start, bidding_end, reveal_end, ended):
    """Derive the phase of an auction timeline"""
    from blindbid.core.auction import derive_phase, format_duration, time_left

    if now is None:
        now = int(datetime.now().timestamp())
    current = derive_phase(now, bidding_start, bidding_end, reveal_end, ended)
    remaining = time_left(now, bidding_start, bidding_end, reveal_end, ended)

    click.echo(f"Phase: {current}")
    if remaining is not None:
        click.echo(f"Time left: {format_duration(remaining)}")


# =============================================================================
# Auction Commands
# =============================================================================

@cli.group()
def auctions():
    """Auction queries"""
    pass


@auctions.command("fetch")
@click.argument("addresses", nargs=-1)
@click.option("--factory", default=None, help="Factory to list auctions from")
@click.pass_context
def auctions_fetch(ctx, addresses, factory):
    """Fetch auctions in rate-limited batches"""
    from blindbid.core.aggregator import BatchAggregator, BatchPolicy
    from blindbid.core.chain import AuctionReader
    from blindbid.core.storage import EndedAuctionCache

    config = ctx.obj["config"]
    factory = factory or config.factory_address
    if not addresses and not factory:
        raise click.UsageError("Give auction addresses or a factory address")

    store = _store(ctx)
    cache = EndedAuctionCache(store, config.cache_freshness_seconds, config.max_cache_items)
    reader = AuctionReader(
        _contract_client(config),
        factory_address=factory,
        max_attempts=config.max_fetch_attempts,
        backoff_base=config.backoff_base_seconds,
        ipfs_gateway=config.ipfs_gateway,
    )
    aggregator = BatchAggregator(reader, cache, BatchPolicy.from_config(config))

    async def run():
        targets = list(addresses)
        if not targets:
            targets = await reader.list_auctions()
        return await aggregator.fetch_all(targets)

    try:
        result = asyncio.run(run())
    finally:
        store.close()

    now = int(datetime.now().timestamp())
    for auction in result.auctions:
        line = f"{auction.address}  {auction.phase_at(now)!s:<9}  {auction.metadata.name}"
        if auction.highest_bidder:
            line += f"  highest={auction.highest_bid} by {auction.highest_bidder}"
        click.echo(line)

    click.echo(result.summary())
    if result.failed:
        click.echo(f"{result.failed_count} items failed", err=True)


# =============================================================================
# Bid Commands
# =============================================================================

@cli.group()
def bids():
    """Local bid ledger"""
    pass


@bids.command("list")
@click.argument("user")
@click.option("--auction", default=None, help="Only bids for this auction")
@click.pass_context
def bids_list(ctx, user, auction):
    """List recorded bids for USER"""
    from blindbid.core.storage import BidLedger

    store = _store(ctx)
    try:
        ledger = BidLedger(store)
        rows = list(enumerate(ledger.list_all(user)))
        if auction:
            wanted = auction.lower()
            rows = [(i, b) for i, b in rows if b.auction_address.lower() == wanted]

        if not rows:
            click.echo("No bids found.")
            return

        for index, bid in rows:
            status = "revealed" if bid.revealed else "sealed"
            kind = "fake" if bid.fake else "real"
            click.echo(
                f"  [{index}] {bid.auction_address} slot={int(bid.slot)} "
                f"value={bid.value} deposit={bid.deposit} {kind} {status}"
            )
    finally:
        store.close()


# =============================================================================
# Cache Commands
# =============================================================================

@cli.group()
def cache():
    """Ended-auction cache"""
    pass


@cache.command("show")
@click.pass_context
def cache_show(ctx):
    """List fresh cached auctions"""
    from blindbid.core.auction import format_duration
    from blindbid.core.storage import EndedAuctionCache

    config = ctx.obj["config"]
    store = _store(ctx)
    try:
        entries = EndedAuctionCache(store, config.cache_freshness_seconds, config.max_cache_items).entries()
    finally:
        store.close()

    if not entries:
        click.echo("Cache is empty.")
        return
    for entry in entries:
        click.echo(f"  {entry.auction.address}  age {format_duration(entry.age())}")


@cache.command("clear")
@click.pass_context
def cache_clear(ctx):
    """Drop every cached auction"""
    from blindbid.core.storage import EndedAuctionCache

    config = ctx.obj["config"]
    store = _store(ctx)
    try:
        removed = EndedAuctionCache(store, config.cache_freshness_seconds, config.max_cache_items).clear_all()
    finally:
        store.close()
    click.echo(f"✓ Cleared {removed} cached auction(s)")


if __name__ == "__main__":
    cli()
