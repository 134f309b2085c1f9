from __future__ import annotations

import json
from typing import Any, Dict, Optional

import click
import httpx

from hiring_inbox import constants
from hiring_inbox.cli.formatters import conversation_rows, table
from hiring_inbox.clients.database import init_db
from hiring_inbox.utils.logging import setup_logging
from hiring_inbox.utils.pathing import ensure_runtime_directories

INBOX_HEADERS = ["ID", "DEVELOPER", "BUSINESS", "UNREAD", "STATE", "LATEST"]


def _request(method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
    url = f"{constants.API_BASE}{path}"
    with httpx.Client(timeout=60) as client:
        response = client.request(method, url, json=payload)
    if response.status_code >= 400:
        raise click.ClickException(f"API error {response.status_code}: {response.text}")
    if response.content:
        return response.json()
    return None


def _echo(result: Any) -> None:
    click.echo(json.dumps(result, indent=2))


@click.group(help="Hiring Inbox command-line interface.")
def cli() -> None:
    """Root command for Hiring Inbox."""
    setup_logging()


@cli.command()
def init() -> None:
    """Initialize local directories and database."""
    ensure_runtime_directories()
    init_db()
    click.echo("Hiring Inbox environment initialized.")


@cli.group()
def user() -> None:
    """User account commands."""


@user.command("create")
@click.option("--email", required=True)
def create_user(email: str) -> None:
    _echo(_request("POST", "/users", {"email": email}))


@user.command("show")
@click.argument("user_id", type=int)
def show_user(user_id: int) -> None:
    _echo(_request("GET", f"/users/{user_id}"))


@cli.group()
def developer() -> None:
    """Developer identity commands."""


@developer.command("create")
@click.option("--user", "user_id", type=int, required=True, help="Owning user ID.")
@click.option("--name", required=True)
def create_developer(user_id: int, name: str) -> None:
    _echo(_request("POST", f"/users/{user_id}/developer", {"name": name}))


@developer.command("remove")
@click.argument("developer_id", type=int)
def remove_developer(developer_id: int) -> None:
    _request("DELETE", f"/developers/{developer_id}")
    click.echo("Developer removed; conversations kept.")


@cli.group()
def business() -> None:
    """Business identity commands."""


@business.command("create")
@click.option("--user", "user_id", type=int, required=True, help="Owning user ID.")
@click.option("--name", required=True)
def create_business(user_id: int, name: str) -> None:
    _echo(_request("POST", f"/users/{user_id}/business", {"name": name}))


@business.command("remove")
@click.argument("business_id", type=int)
def remove_business(business_id: int) -> None:
    _request("DELETE", f"/businesses/{business_id}")
    click.echo("Business removed; conversations kept.")


@cli.command()
@click.option("--developer", "developer_id", type=int, required=True)
@click.option("--business", "business_id", type=int, required=True)
def start(developer_id: int, business_id: int) -> None:
    """Open the conversation between a developer and a business."""
    payload = {"developer_id": developer_id, "business_id": business_id}
    _echo(_request("POST", "/conversations", payload))


@cli.command()
@click.argument("conversation_id", type=int)
def show(conversation_id: int) -> None:
    """Show a conversation with its messages."""
    _echo(_request("GET", f"/conversations/{conversation_id}"))


@cli.command("find-token")
@click.argument("token")
def find_token(token: str) -> None:
    """Resolve an inbound email token to its conversation."""
    _echo(_request("GET", f"/conversations/by-token/{token}"))


@cli.command()
@click.option("--user", "user_id", type=int, required=True)
@click.option("--archived/--active", default=False, show_default=True)
def inbox(user_id: int, archived: bool) -> None:
    """List a user's conversations."""
    suffix = "&archived=true" if archived else ""
    result = _request("GET", f"/conversations?user_id={user_id}{suffix}")
    click.echo(table(INBOX_HEADERS, conversation_rows(result, user_id), max_widths={5: 40}))


@cli.command()
@click.argument("conversation_id", type=int)
def messages(conversation_id: int) -> None:
    """List messages oldest first."""
    result = _request("GET", f"/conversations/{conversation_id}/messages")
    rows = [[item["created_at"], item["sender_side"], item["body"]] for item in result]
    click.echo(table(["SENT", "FROM", "BODY"], rows, max_widths={2: 60}))


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
@click.option("--body", prompt=True, help="Message body.")
def send(conversation_id: int, user_id: int, body: str) -> None:
    """Send a message as one side of the conversation."""
    payload = {"user_id": user_id, "body": body}
    _echo(_request("POST", f"/conversations/{conversation_id}/messages", payload))


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def read(conversation_id: int, user_id: int) -> None:
    """Mark a user's notifications in the conversation read."""
    result = _request("POST", f"/conversations/{conversation_id}/read", {"user_id": user_id})
    click.echo(f"Marked {result['marked']} notification(s) read.")


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def block(conversation_id: int, user_id: int) -> None:
    """Block the conversation for the user's side."""
    _request("POST", f"/conversations/{conversation_id}/block", {"user_id": user_id})
    click.echo("Conversation blocked.")


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def unblock(conversation_id: int, user_id: int) -> None:
    """Lift the user's side block."""
    _request("POST", f"/conversations/{conversation_id}/unblock", {"user_id": user_id})
    click.echo("Conversation unblocked.")


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def archive(conversation_id: int, user_id: int) -> None:
    """Archive the conversation for the user's side."""
    _request("POST", f"/conversations/{conversation_id}/archive", {"user_id": user_id})
    click.echo("Conversation archived.")


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def unarchive(conversation_id: int, user_id: int) -> None:
    """Return the conversation to the user's active list."""
    _request("POST", f"/conversations/{conversation_id}/unarchive", {"user_id": user_id})
    click.echo("Conversation unarchived.")


@cli.command()
@click.argument("conversation_id", type=int)
@click.option("--user", "user_id", type=int, required=True)
def status(conversation_id: int, user_id: int) -> None:
    """Show every state flag of the conversation for a user."""
    _echo(_request("GET", f"/conversations/{conversation_id}/status?user_id={user_id}"))


@cli.command()
@click.argument("conversation_id", type=int)
@click.confirmation_option(prompt="Delete the conversation and all of its messages?")
def delete(conversation_id: int) -> None:
    """Delete a conversation and its messages."""
    _request("DELETE", f"/conversations/{conversation_id}")
    click.echo("Conversation deleted.")


if __name__ == "__main__":
    cli()
