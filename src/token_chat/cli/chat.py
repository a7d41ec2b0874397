"""CLI: tokenchat chat, tokenchat send"""

import json

import click
from rich.console import Console
from rich.markup import escape

from token_chat.errors import AccessDeniedError, TokenChatError
from token_chat.models.message import Message, MessageState
from token_chat.utils import format_timestamp, truncate_address

console = Console()

STATE_MARKS = {
    MessageState.PENDING: "[yellow]…[/yellow]",
    MessageState.CONFIRMED: "[green]✓[/green]",
    MessageState.FAILED: "[red]✗[/red]",
}


def _load_config():
    from token_chat.cli.main import _load_config
    return _load_config()


def _require_wallet(cfg) -> None:
    from token_chat.cli.main import _require_wallet
    _require_wallet(cfg)


def _get_client():
    from token_chat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from token_chat.cli.main import _run
    return _run(coro)


def render_message(message: Message) -> str:
    line = (f"{STATE_MARKS[message.state]} [bold]{truncate_address(message.sender)}[/bold] "
            f"[dim]{format_timestamp(message.created_at)}[/dim]  {escape(message.content)}")
    if message.state == MessageState.FAILED and message.failure_reason:
        line += f" [red]({escape(message.failure_reason)})[/red]"
    return line


@click.command("chat")
@click.argument("room_id")
def chat_cmd(room_id: str):
    """Interactive chat in ROOM_ID."""
    _require_wallet(_load_config())

    async def _chat():
        client = _get_client()
        try:
            await client.connect()
            decision = await client.select_room(room_id)
            if not decision.admitted:
                console.print(f"[red]Cannot enter {room_id}: {decision.value}[/red]")
                return
            for m in client.view(room_id):
                console.print(render_message(m))

            def on_change(kind: str, m: Message) -> None:
                if m.room_id == room_id and kind != "appended":
                    console.print(render_message(m))

            client.on_timeline(on_change)
            console.print("[cyan]Type your message (/quit to exit)[/cyan]\n")
            while True:
                msg = click.prompt("You", prompt_suffix=": ")
                if msg.lower() in ("/quit", "/exit"):
                    break
                try:
                    await client.send(room_id, msg)
                except TokenChatError as e:
                    console.print(f"[red]{e}[/red]")
                    continue
                with console.status("Waiting for confirmation..."):
                    await client.wait_settled()
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        except TokenChatError as e:
            console.print(f"[red]{e}[/red]")
        finally:
            await client.close()

    _run(_chat())


@click.command("send")
@click.argument("room_id")
@click.argument("message")
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(room_id: str, message: str, json_output: bool):
    """Send a one-shot MESSAGE to ROOM_ID and wait for it to settle."""
    _require_wallet(_load_config())

    async def _send():
        client = _get_client()
        try:
            await client.connect()
            message_id = await client.send(room_id, message)
            await client.wait_settled()
            return client.session.timeline.get(message_id)
        finally:
            await client.close()

    try:
        sent = _run(_send())
    except AccessDeniedError as e:
        console.print(f"[red]Access denied: {e.decision.value}[/red]")
        raise SystemExit(1)
    except TokenChatError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    if json_output:
        click.echo(json.dumps(sent.model_dump(mode="json")))
    else:
        console.print(render_message(sent))
    if sent.state == MessageState.FAILED:
        raise SystemExit(1)
