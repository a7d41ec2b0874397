"""
token-chat CLI — `tokenchat` command.

Commands:
  tokenchat wallet connect <address>   Remember the wallet to chat as
  tokenchat rooms list                 Rooms and whether you may enter them
  tokenchat rooms check <room>         Access decision for one room
  tokenchat send <room> <message>      One-shot message
  tokenchat chat <room>                Interactive REPL chat
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install token-chat[cli]")

from token_chat.client import AsyncTokenChat
from token_chat.config import ChatConfig, load_config, save_config
from token_chat.errors import ConfigError

console = Console()


def _load_config() -> ChatConfig:
    try:
        return load_config()
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


def _save_config(cfg: ChatConfig) -> None:
    save_config(cfg)


def _get_client() -> AsyncTokenChat:
    return AsyncTokenChat(_load_config())


def _require_wallet(cfg: ChatConfig) -> None:
    if not cfg.address:
        console.print("[red]No wallet connected. Run `tokenchat wallet connect <address>` first.[/red]")
        raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def main(verbose: bool):
    """token-chat CLI — chat rooms gated by the tokens your wallet holds."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# Register subcommands from separate modules
from token_chat.cli.wallet import wallet
from token_chat.cli.rooms import rooms
from token_chat.cli.chat import chat_cmd, send_cmd

main.add_command(wallet)
main.add_command(rooms)
main.add_command(chat_cmd)
main.add_command(send_cmd)


if __name__ == "__main__":
    main()
