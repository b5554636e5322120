"""
tipstake CLI - Command Line Interface for the TIP staking ledger

Main entry point for all CLI commands. State lives in a SQLite database under
--data-dir; the token ledger is the local in-memory token persisted alongside.
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path

import click

from tipstake import __version__
from tipstake.utils.logger import configure_logging, get_logger

logger = get_logger("cli")

MAX_KEYWORD = "max"


class AddressType(click.ParamType):
    """Hex address, or @label for a deterministic label-derived address."""

    name = "address"

    def convert(self, value, param, ctx):
        from tipstake.crypto import address_from_label, hex_to_address

        if isinstance(value, bytes):
            return value
        if value.startswith("@"):
            return address_from_label(value[1:])
        try:
            return hex_to_address(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


ADDRESS = AddressType()


@contextmanager
def rejections():
    """Report engine and token rejections as CLI errors."""
    from tipstake.core.errors import TipStakeError

    try:
        yield
    except TipStakeError as e:
        raise click.ClickException(e.reason) from e
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _amount(ctx, text: str) -> int:
    from tipstake.utils.units import parse_amount

    try:
        return parse_amount(text, ctx.obj["decimals"])
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="AMOUNT")


def _fmt(ctx, value: int) -> str:
    from tipstake.utils.units import format_amount

    return f"{format_amount(value, ctx.obj['decimals'])} {ctx.obj['symbol']}"


def _open(ctx):
    """
    Open the storage, token and pool saved in the data directory.

    Amounts are parsed and shown in the saved token's units from here on,
    whatever the current config says.
    """
    from tipstake.core import InMemoryToken, StakingPool
    from tipstake.core.storage import StorageManager

    storage = StorageManager(ctx.obj["data_dir"])
    meta = storage.load_pool_meta()
    if meta is None:
        raise click.ClickException("No pool found. Run 'tipstake init' first.")

    token = InMemoryToken(
        symbol=meta["config"]["token_symbol"],
        decimals=meta["config"]["token_decimals"],
        address=meta["token"],
        storage_manager=storage,
    )
    pool = StakingPool.from_storage(storage, token, clock=ctx.obj["clock"])
    ctx.obj["decimals"] = token.decimals
    ctx.obj["symbol"] = token.symbol
    return pool, token


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", is_flag=True, help="Also append logs to <log_dir>/tipstake.log")
@click.option("--data-dir", default="~/.tipstake", help="Data directory")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="JSON config file")
@click.option("--timestamp", type=int, default=None, help="Override the clock (unix seconds)")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, log_file, data_dir, config_path, timestamp):
    """TIP staking ledger - stake, earn and withdraw"""
    from tipstake.core import ManualClock, SystemClock, load_config

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    level = logging.DEBUG if debug else logging.WARNING
    configure_logging(level=level, log_dir=config.log_dir if log_file else None)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    # Until _open() loads a saved token
    ctx.obj["decimals"] = config.token_decimals
    ctx.obj["symbol"] = config.token_symbol
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)
    ctx.obj["clock"] = ManualClock(timestamp) if timestamp is not None else SystemClock()


# =============================================================================
# Setup
# =============================================================================


@cli.command("init")
@click.option("--owner", required=True, type=ADDRESS, help="Administrative address")
@click.pass_context
def init(ctx, owner):
    """Create a pool and its local token"""
    from tipstake.core import InMemoryToken, StakingPool
    from tipstake.core.storage import StorageManager
    from tipstake.crypto import to_checksum_address

    config = ctx.obj["config"]
    storage = StorageManager(ctx.obj["data_dir"])
    if storage.has_pool():
        raise click.ClickException(f"A pool already exists in {ctx.obj['data_dir']}")

    with rejections():
        token = InMemoryToken(
            symbol=config.token_symbol,
            decimals=config.token_decimals,
            storage_manager=storage,
        )
        pool = StakingPool(
            token=token,
            owner=owner,
            config=config,
            clock=ctx.obj["clock"],
            storage_manager=storage,
        )

    click.echo("✓ Pool created")
    click.echo(f"  Pool:  {to_checksum_address(pool.address)}")
    click.echo(f"  Token: {to_checksum_address(token.address)} ({token.symbol})")
    click.echo(f"  Owner: {to_checksum_address(owner)}")


# =============================================================================
# Token Commands
# =============================================================================


@cli.group()
def token():
    """Local token ledger commands"""
    pass


@token.command("mint")
@click.argument("address", type=ADDRESS)
@click.argument("amount")
@click.pass_context
def token_mint(ctx, address, amount):
    """Mint tokens to an address (local faucet)"""
    from tipstake.crypto import to_checksum_address

    _, tok = _open(ctx)
    value = _amount(ctx, amount)
    with rejections():
        tok.mint(address, value)
    click.echo(f"✓ Minted {_fmt(ctx, value)} to {to_checksum_address(address)}")


@token.command("approve")
@click.option("--account", required=True, type=ADDRESS, help="Token holder")
@click.argument("amount")
@click.pass_context
def token_approve(ctx, account, amount):
    """Allow the pool to pull AMOUNT (or 'max') from ACCOUNT"""
    from tipstake.core.reward_math import MAX_UINT256

    pool, tok = _open(ctx)
    value = MAX_UINT256 if amount == MAX_KEYWORD else _amount(ctx, amount)
    with rejections():
        tok.approve(account, pool.address, value)
    shown = "unlimited" if value == MAX_UINT256 else _fmt(ctx, value)
    click.echo(f"✓ Approved pool for {shown}")


@token.command("balance")
@click.argument("address", type=ADDRESS)
@click.pass_context
def token_balance(ctx, address):
    """Show a token balance"""
    from tipstake.crypto import to_checksum_address

    _, tok = _open(ctx)
    click.echo(f"Address: {to_checksum_address(address)}")
    click.echo(f"Balance: {_fmt(ctx, tok.balance_of(address))}")


@token.command("fund")
@click.option("--from", "sender", required=True, type=ADDRESS, help="Funding account")
@click.argument("amount")
@click.pass_context
def token_fund(ctx, sender, amount):
    """Transfer tokens into the pool's reward reserve"""
    pool, tok = _open(ctx)
    value = _amount(ctx, amount)
    with rejections():
        tok.transfer(sender, pool.address, value)
    click.echo(f"✓ Funded pool with {_fmt(ctx, value)} (pool balance {_fmt(ctx, tok.balance_of(pool.address))})")


# =============================================================================
# Staking Commands
# =============================================================================


@cli.command("stake")
@click.option("--account", required=True, type=ADDRESS, help="Staker")
@click.argument("amount")
@click.pass_context
def stake(ctx, account, amount):
    """Stake AMOUNT tokens"""
    from tipstake.utils.units import format_time_remaining

    pool, _ = _open(ctx)
    value = _amount(ctx, amount)
    with rejections():
        record = pool.stake(account, value)
    now = ctx.obj["clock"].now()
    click.echo(f"✓ Staked {_fmt(ctx, value)}")
    click.echo(f"  Total staked: {_fmt(ctx, record.amount)}")
    click.echo(f"  Lock: {format_time_remaining(record.unlock_time(pool.MIN_LOCK_PERIOD) - now)}")


@cli.command("unstake")
@click.option("--account", required=True, type=ADDRESS, help="Staker")
@click.argument("amount")
@click.pass_context
def unstake(ctx, account, amount):
    """Unstake AMOUNT tokens (penalty applies while locked)"""
    pool, _ = _open(ctx)
    value = _amount(ctx, amount)
    with rejections():
        receipt = pool.unstake(account, value)
    click.echo(f"✓ Unstaked {_fmt(ctx, receipt.amount)}")
    click.echo(f"  Rewards: {_fmt(ctx, receipt.rewards)}")
    click.echo(f"  Penalty: {_fmt(ctx, receipt.penalty)}")
    click.echo(f"  Received: {_fmt(ctx, receipt.payout)}")


@cli.command("claim")
@click.option("--account", required=True, type=ADDRESS, help="Staker")
@click.pass_context
def claim(ctx, account):
    """Claim accrued rewards"""
    pool, _ = _open(ctx)
    with rejections():
        paid = pool.claim_rewards(account)
    click.echo(f"✓ Claimed {_fmt(ctx, paid)}")


# =============================================================================
# Admin Commands
# =============================================================================


@cli.command("pause")
@click.option("--caller", required=True, type=ADDRESS, help="Owner address")
@click.pass_context
def pause(ctx, caller):
    """Pause staking operations (owner only)"""
    pool, _ = _open(ctx)
    with rejections():
        pool.pause(caller)
    click.echo("✓ Pool paused")


@cli.command("unpause")
@click.option("--caller", required=True, type=ADDRESS, help="Owner address")
@click.pass_context
def unpause(ctx, caller):
    """Resume staking operations (owner only)"""
    pool, _ = _open(ctx)
    with rejections():
        pool.unpause(caller)
    click.echo("✓ Pool unpaused")


@cli.command("emergency-withdraw")
@click.option("--caller", required=True, type=ADDRESS, help="Owner address")
@click.argument("destination", type=ADDRESS)
@click.pass_context
def emergency_withdraw(ctx, caller, destination):
    """Move the pool's whole token balance to DESTINATION (owner only)"""
    from tipstake.crypto import to_checksum_address

    pool, _ = _open(ctx)
    with rejections():
        amount = pool.emergency_withdraw(caller, destination)
    click.echo(f"✓ Withdrew {_fmt(ctx, amount)} to {to_checksum_address(destination)}")
    click.echo("  ⚠️  Account records are unchanged; staked principal is no longer backed.")


# =============================================================================
# Query Commands
# =============================================================================


@cli.command("info")
@click.argument("address", type=ADDRESS)
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_context
def info(ctx, address, as_json):
    """Show an account's stake, rewards and lock status"""
    from tipstake.crypto import to_checksum_address
    from tipstake.utils.units import format_time_remaining

    pool, _ = _open(ctx)
    user = pool.get_user_info(address)
    penalty_free = pool.can_unstake_without_penalty(address)

    if as_json:
        click.echo(json.dumps({
            "address": to_checksum_address(address),
            "amount": str(user.amount),
            "rewards": str(user.rewards),
            "deposit_time": user.deposit_time,
            "unlock_time": user.unlock_time,
            "can_unstake_without_penalty": penalty_free,
            "can_claim_rewards": pool.can_claim_rewards(address),
        }, indent=2))
        return

    now = ctx.obj["clock"].now()
    click.echo(f"Address: {to_checksum_address(address)}")
    click.echo(f"Staked:  {_fmt(ctx, user.amount)}")
    click.echo(f"Rewards: {_fmt(ctx, user.rewards)}")
    if user.amount > 0:
        click.echo(f"Lock:    {format_time_remaining(user.unlock_time - now)}")
        if not penalty_free:
            click.echo(f"Penalty if unstaked now: {_fmt(ctx, pool.calculate_penalty(address, user.amount))}")


@cli.command("stats")
@click.option("--json", "as_json", is_flag=True, help="Machine-readable output")
@click.pass_context
def stats(ctx, as_json):
    """Show pool statistics"""
    pool, tok = _open(ctx)
    s = pool.get_stats()

    if as_json:
        data = pool.stats()
        data["total_staked"] = str(data["total_staked"])
        data["pool_balance"] = str(data["pool_balance"])
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"Total Value Locked: {_fmt(ctx, s.tvl)}")
    click.echo(f"APR:                {s.apr}%")
    click.echo(f"Min Lock Period:    {s.min_lock // 86400} days")
    click.echo(f"Penalty Rate:       {pool.PENALTY_RATE}%")
    click.echo(f"Pool Balance:       {_fmt(ctx, tok.balance_of(pool.address))}")
    click.echo(f"Paused:             {'yes' if pool.paused else 'no'}")


@cli.command("events")
@click.option("--name", default=None, help="Filter by event name (e.g. Staked)")
@click.pass_context
def events(ctx, name):
    """List emitted events, oldest first"""
    pool, _ = _open(ctx)
    shown = 0
    for event in pool.events:
        if name and event.name != name:
            continue
        click.echo(json.dumps(event.to_dict(), sort_keys=True))
        shown += 1
    if shown == 0:
        click.echo("No events.")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.pass_context
def demo(ctx):
    """Run a scripted staking scenario on a simulated clock"""
    from tipstake.core import InMemoryToken, ManualClock, StakingPool
    from tipstake.core.reward_math import MAX_UINT256, SECONDS_PER_DAY, SECONDS_PER_YEAR
    from tipstake.crypto import address_from_label

    config = ctx.obj["config"]
    unit = 10 ** config.token_decimals

    click.echo("=" * 60)
    click.echo("  TIP STAKING LEDGER - DEMO")
    click.echo("=" * 60)
    click.echo()

    owner = address_from_label("owner")
    alice = address_from_label("alice")
    bob = address_from_label("bob")

    clock = ManualClock(start=1_700_000_000)
    tok = InMemoryToken(symbol=config.token_symbol, decimals=config.token_decimals)
    pool = StakingPool(token=tok, owner=owner, config=config, clock=clock)

    tok.mint(owner, 100_000 * unit)
    tok.transfer(owner, pool.address, 50_000 * unit)
    for user in (alice, bob):
        tok.mint(user, 10_000 * unit)
        tok.approve(user, pool.address, MAX_UINT256)
    click.echo(f"📦 Pool funded with {_fmt(ctx, tok.balance_of(pool.address))} for rewards")
    click.echo()

    click.echo("💰 Alice stakes 1000, Bob stakes 2000")
    pool.stake(alice, 1000 * unit)
    pool.stake(bob, 2000 * unit)
    click.echo(f"  ✓ TVL: {_fmt(ctx, pool.total_staked)}")
    click.echo()

    click.echo("⏩ One hour later Bob leaves early")
    clock.advance(3600)
    receipt = pool.unstake(bob, 2000 * unit)
    click.echo(f"  ✓ Bob received {_fmt(ctx, receipt.payout)} (penalty {_fmt(ctx, receipt.penalty)})")
    click.echo()

    click.echo("⏩ Six months later Alice claims")
    clock.advance(SECONDS_PER_YEAR // 2)
    click.echo(f"  ✓ Pending before claim: {_fmt(ctx, pool.pending(alice))}")
    paid = pool.claim_rewards(alice)
    click.echo(f"  ✓ Claimed {_fmt(ctx, paid)}, pending now {_fmt(ctx, pool.pending(alice))}")
    click.echo()

    click.echo("⏩ Three more months, Alice unstakes after the lock")
    clock.advance(SECONDS_PER_YEAR // 4)
    penalty_free = pool.can_unstake_without_penalty(alice)
    receipt = pool.unstake(alice, 1000 * unit)
    click.echo(f"  ✓ Penalty-free: {penalty_free}")
    click.echo(f"  ✓ Alice received {_fmt(ctx, receipt.payout)} (rewards {_fmt(ctx, receipt.rewards)})")
    click.echo()

    pool.check_invariants()
    click.echo(f"📊 Events emitted: {len(pool.events)}, TVL: {_fmt(ctx, pool.total_staked)}")
    click.echo(f"   Lock period: {pool.MIN_LOCK_PERIOD // SECONDS_PER_DAY} days, APR: {pool.REWARD_RATE}%")


if __name__ == "__main__":
    cli()
