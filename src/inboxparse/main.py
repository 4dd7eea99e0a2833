import argparse
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from bs4 import BeautifulSoup
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from inboxparse import config
from inboxparse.auth import get_credentials
from inboxparse.client import GmailClient
from inboxparse.errors import (
    DecodeError,
    InboxParseError,
    MissingPayloadError,
    RemoteError,
)
from inboxparse.models import Message
from inboxparse.parser import parse_message

console = Console()
log = logging.getLogger("inboxparse")

# Errors that only spoil a single message; --keep-going reports and skips them.
MESSAGE_ERRORS = (RemoteError, DecodeError, MissingPayloadError)


def html_to_text(html: str) -> str:
    soup: Any = BeautifulSoup(html, "html.parser")
    for script in soup(["script", "style"]):
        script.decompose()
    return str(soup.get_text(separator="\n").strip())


def render_message(message: Message, as_text: bool = False) -> Panel:
    body = html_to_text(message.body_html) if as_text else message.body_html
    if message.body_plain:
        body = f"{message.body_plain}\n\n{body}" if body else message.body_plain

    header = (
        f"[bold]From:[/bold] {escape(message.sender)}\n"
        f"[bold]To:[/bold] {escape(message.recipient)}\n"
        f"[bold]Subject:[/bold] {escape(message.subject)}\n\n"
    )
    return Panel(
        header + escape(body),
        title=f"Email ID: {message.id}",
        expand=False,
    )


def run(
    client: GmailClient,
    query: str,
    user_id: str = config.DEFAULT_USER,
    out: Console = console,
    keep_going: bool = False,
    include_plain: bool = False,
    as_text: bool = False,
    max_results: Optional[int] = None,
) -> int:
    """List messages matching ``query``, then fetch, parse and print each one.

    Messages are handled in the order the list call returned them. Without
    ``keep_going`` the first failure aborts the run. Returns the number of
    messages printed.
    """
    ids = client.list_messages(query, max_results=max_results)
    if not ids:
        out.print("[yellow]No messages matched.[/yellow]")
        return 0

    printed = 0
    for message_id in ids:
        try:
            envelope = client.get_message(message_id, format="full", user_id=user_id)
            message = parse_message(
                client, envelope, user_id=user_id, include_plain=include_plain
            )
        except MESSAGE_ERRORS as e:
            if not keep_going:
                raise
            log.warning("Skipping message %s: %s", message_id, e)
            out.print(f"[red]Skipping message {message_id}:[/red] {escape(str(e))}")
            continue

        out.print(render_message(message, as_text=as_text))
        printed += 1
    return printed


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the headers and HTML body of Gmail messages matching a query",
        prog="inboxparse",
    )
    parser.add_argument(
        "--query", "-q", default=config.default_query(), help="Gmail search query"
    )
    parser.add_argument(
        "--credentials",
        default=str(config.CREDENTIALS_PATH),
        help="OAuth client secrets file (default: %(default)s)",
    )
    parser.add_argument(
        "--token",
        default=str(config.TOKEN_PATH),
        help="Where the OAuth token is cached (default: %(default)s)",
    )
    parser.add_argument(
        "--user", default=config.default_user(), help="Mailbox user id"
    )
    parser.add_argument(
        "--max-results",
        type=positive_int,
        default=None,
        help="Page size for the list call",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Report and skip messages that fail instead of stopping",
    )
    parser.add_argument(
        "--plain", action="store_true", help="Also extract the text/plain body"
    )
    parser.add_argument(
        "--text", action="store_true", help="Render the HTML body as plain text"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    config.load_env()
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else config.default_log_level())

    token_dir = Path(args.token).parent
    if not token_dir.exists():
        console.print(f"[yellow]Creating config directory at {token_dir}[/yellow]")
        token_dir.mkdir(parents=True, exist_ok=True)

    try:
        creds = get_credentials(args.token, args.credentials)
        client = GmailClient(creds, user_id=args.user)
        run(
            client,
            args.query,
            user_id=args.user,
            keep_going=args.keep_going,
            include_plain=args.plain,
            as_text=args.text,
            max_results=args.max_results,
        )
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Operation cancelled by user.[/bold yellow]")
        return 130
    except (InboxParseError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        log.debug("Fatal error", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
