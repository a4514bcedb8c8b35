"""
Soneium CLI entry point.

Usage:
    soneium [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from web3 import Web3

from .account_abstraction import parse_ether
from .client import ClientOptions, SoneiumClient
from .config import NetworkType, get_config
from .errors import SoneiumError
from .logging_utils import LogLevel, configure_logging, mask_secret
from .models import TransactionRequest

console = Console()


def _client(ctx: click.Context) -> SoneiumClient:
    obj = ctx.obj
    return SoneiumClient(
        obj["network"],
        ClientOptions(
            timeout_seconds=obj["timeout"],
            enable_logging=obj["verbose"],
            transport=obj.get("transport"),
        ),
    )


def _run(ctx: click.Context, coro):
    """Run a coroutine, turning SoneiumError into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except SoneiumError as e:
        console.print(f"[red]{e}[/red]")
        ctx.exit(1)


@click.group()
@click.version_option(message="%(prog)s %(version)s", package_name="soneium-chain")
@click.option(
    "--network",
    type=click.Choice([n.value for n in NetworkType]),
    default=None,
    help="Network to use (defaults to SONEIUM_DEFAULT_NETWORK)",
)
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, network: str | None, timeout: float | None, verbose: bool):
    """Soneium CLI - blocks, balances and smart-account transfers."""
    load_dotenv()
    ctx.ensure_object(dict)

    if verbose:
        configure_logging(LogLevel.DEBUG)

    ctx.obj["network"] = network or get_config().default_network
    ctx.obj["timeout"] = timeout
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
def info(ctx):
    """Show network and account abstraction configuration."""
    config = get_config()
    network = config.get_network_config(ctx.obj["network"])
    aa = config.account_abstraction

    table = Table(title=f"Soneium ({ctx.obj['network']})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Network", network.name)
    table.add_row("Chain ID", str(network.chain_id))
    table.add_row("RPC URL", network.rpc_url)
    table.add_row("Explorer", network.explorer_url)
    table.add_row("Bundler URL", aa.bundler_url)
    table.add_row("Paymaster URL", aa.paymaster_url)
    table.add_row("Entry Point", aa.entry_point_address)
    table.add_row("Account Factory", aa.factory_address)
    table.add_row("Paymaster API Key", mask_secret(aa.paymaster_api_key))
    console.print(table)


@cli.command()
@click.pass_context
def block(ctx):
    """Print the latest block number."""

    async def _block() -> int:
        async with _client(ctx) as client:
            return await client.get_block_number()

    number = _run(ctx, _block())
    console.print(f"Block: [bold]{number}[/bold]")


@cli.command()
@click.argument("address")
@click.pass_context
def balance(ctx, address: str):
    """Show the native balance of ADDRESS."""

    async def _balance() -> int:
        async with _client(ctx) as client:
            return await client.get_balance(address)

    wei = _run(ctx, _balance())
    native = get_config().get_network_config(ctx.obj["network"]).native_token
    console.print(f"{address}: [green]{Web3.from_wei(wei, 'ether')} {native}[/green] ({wei} wei)")


@cli.command()
@click.argument("to")
@click.argument("amount")
@click.option(
    "--private-key",
    envvar="SONEIUM_PRIVATE_KEY",
    required=True,
    help="Sender private key (or SONEIUM_PRIVATE_KEY)",
)
@click.pass_context
def send(ctx, to: str, amount: str, private_key: str):
    """Send AMOUNT ether to TO from an EOA."""
    tx = _transfer(to, amount)

    async def _send() -> str:
        async with _client(ctx) as client:
            client.connect_wallet(private_key)
            return await client.send_transaction(tx)

    tx_hash = _run(ctx, _send())
    _print_tx(ctx, tx_hash)


@cli.command("send-aa")
@click.argument("to")
@click.argument("amount")
@click.option(
    "--private-key",
    envvar="SONEIUM_PRIVATE_KEY",
    required=True,
    help="Smart account owner key (or SONEIUM_PRIVATE_KEY)",
)
@click.option("--sponsored", is_flag=True, help="Pay gas through the paymaster")
@click.option(
    "--api-key",
    envvar="SONEIUM_PAYMASTER_API_KEY",
    default=None,
    help="Paymaster API key (or SONEIUM_PAYMASTER_API_KEY)",
)
@click.pass_context
def send_aa(ctx, to: str, amount: str, private_key: str, sponsored: bool, api_key: str | None):
    """Send AMOUNT ether to TO through a smart account."""
    tx = _transfer(to, amount)

    async def _send() -> str:
        async with _client(ctx) as client:
            if sponsored:
                return await client.send_sponsored_transaction(tx, api_key or "", private_key)
            return await client.send_aa_transaction(tx, private_key)

    with console.status("Waiting for the bundler..."):
        tx_hash = _run(ctx, _send())
    _print_tx(ctx, tx_hash)


def _transfer(to: str, amount: str) -> TransactionRequest:
    try:
        value = parse_ether(amount)
    except ValueError:
        raise click.BadParameter(f"invalid ether amount: {amount}", param_hint="AMOUNT")
    try:
        return TransactionRequest(to=to, value=value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="TO")


def _print_tx(ctx: click.Context, tx_hash: str) -> None:
    network = get_config().get_network_config(ctx.obj["network"])
    console.print(f"[green]✓ Transaction sent[/green] {tx_hash}")
    console.print(f"Explorer: [cyan]{network.tx_url(tx_hash)}[/cyan]")


if __name__ == "__main__":
    cli()
