"""CLI: tokenchat rooms list|check"""

import json

import click
from rich.console import Console
from rich.table import Table

from token_chat.errors import TokenChatError
from token_chat.utils import format_balance

console = Console()

DECISION_LABELS = {
    "admit": "[green]open to you[/green]",
    "deny_no_wallet": "[yellow]connect a wallet[/yellow]",
    "deny_insufficient_balance": "[red]not enough tokens[/red]",
    "deny_unknown": "[yellow]balance unknown, retry[/yellow]",
}


def _get_client():
    from token_chat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from token_chat.cli.main import _run
    return _run(coro)


@click.group()
def rooms():
    """Room listing and access checks."""


@rooms.command("list")
@click.option("--json-output", "--json", is_flag=True)
def rooms_list(json_output):
    """List rooms and whether the configured wallet may enter them."""
    client = _get_client()

    async def _list():
        try:
            if client.config.address:
                await client.connect()
            decisions = await client.decisions()
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([
                {**room.model_dump(mode="json"), "decision": decisions[room.room_id].value}
                for room in client.rooms()
            ], indent=2))
            return
        table = Table(title=f"Rooms ({len(decisions)})")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Members", justify="right")
        table.add_column("Requirement")
        table.add_column("Access")
        for room in client.rooms():
            requirement = ""
            if room.is_token_gated:
                symbol = room.required_token.symbol or "tokens"
                requirement = f"min {room.min_token_amount} {symbol}"
            if room.is_private:
                requirement = f"{requirement} (private)".strip()
            table.add_row(room.room_id, room.name, str(room.member_count), requirement,
                          DECISION_LABELS[decisions[room.room_id].value])
        console.print(table)

    _run(_list())


@rooms.command("check")
@click.argument("room_id")
def rooms_check(room_id):
    """Check access to ROOM_ID; exits non-zero when denied."""

    async def _check(client):
        try:
            holding = None
            if client.config.address:
                identity = await client.connect()
                room = client.registry.get(room_id)
                if room is not None and room.is_token_gated:
                    try:
                        raw = await client.oracle.balance_of(identity.address, room.required_token)
                        holding = f"{format_balance(raw, room.required_token.scale)} {room.required_token.symbol}"
                    except TokenChatError:
                        pass  # the decision below reports deny_unknown
            return await client.select_room(room_id), holding
        finally:
            await client.close()

    try:
        decision, holding = _run(_check(_get_client()))
    except TokenChatError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print(f"{room_id}: {DECISION_LABELS[decision.value]}")
    if holding:
        console.print(f"[dim]holding {holding.strip()}[/dim]")
    if not decision.admitted:
        raise SystemExit(1)
