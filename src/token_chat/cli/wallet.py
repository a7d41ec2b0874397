"""CLI: tokenchat wallet connect|status|disconnect"""

import click
from rich.console import Console

from token_chat.errors import InvalidAddressError
from token_chat.models.address import Address

console = Console()


def _load_config():
    from token_chat.cli.main import _load_config
    return _load_config()


def _save_config(cfg) -> None:
    from token_chat.cli.main import _save_config
    _save_config(cfg)


@click.group()
def wallet():
    """Wallet commands."""


@wallet.command("connect")
@click.argument("address")
@click.option("--provider", default="cli", help="Wallet provider name to record")
def wallet_connect(address: str, provider: str):
    """Chat as ADDRESS from now on."""
    try:
        canonical = Address(address)
    except InvalidAddressError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    cfg = _load_config()
    _save_config(cfg.model_copy(update={"address": str(canonical), "provider_name": provider}))
    console.print(f"[green]Connected {canonical} via {provider}[/green]")


@wallet.command("status")
def wallet_status():
    """Show the configured wallet."""
    cfg = _load_config()
    if cfg.address:
        console.print(f"[green]Connected[/green] as {cfg.address} (via {cfg.provider_name})")
    else:
        console.print("[yellow]No wallet connected. Run `tokenchat wallet connect <address>`.[/yellow]")


@wallet.command("disconnect")
def wallet_disconnect():
    """Forget the configured wallet."""
    cfg = _load_config()
    _save_config(cfg.model_copy(update={"address": None}))
    console.print("[green]Disconnected.[/green]")
