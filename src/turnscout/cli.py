"""Command-line interface for turnscout."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from . import __version__
from .dom.document import Document
from .logging_config import setup_logging
from .models.config import TurnscoutConfig
from .models.events import ScanEvent
from .models.records import MessageRecord
from .pipeline.extract import ExtractionPipeline
from .targets import descriptors, resolve_target


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="turnscout",
        description="Extract the turns of a chat conversation from its rendered page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract turns from a saved page
  turnscout extract saved.html --url https://claude.ai/chat/abc

  # Same, as JSON
  turnscout extract saved.html --url https://chatgpt.com/c/abc --json

  # List supported applications
  turnscout targets

  # Follow a live conversation (requires Playwright)
  turnscout watch https://chat.deepseek.com --profile-dir ~/.turnscout/browser
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        metavar="FILE",
        help="YAML configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress output",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    extract = subparsers.add_parser("extract", help="Extract turns from a saved page")
    extract.add_argument("file", type=Path, help="HTML file to read")
    extract.add_argument(
        "--url",
        required=True,
        help="Address the page was saved from (selects the application)",
    )
    extract.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print records as JSON",
    )

    subparsers.add_parser("targets", help="List supported chat applications")

    watch = subparsers.add_parser("watch", help="Follow a live conversation (requires Playwright)")
    watch.add_argument("url", help="Address of the chat application")
    watch.add_argument(
        "--headless",
        action="store_true",
        help="Run browser in headless mode",
    )
    watch.add_argument(
        "--profile-dir",
        type=str,
        default=None,
        metavar="DIR",
        help="Browser profile directory (keeps the login between runs)",
    )
    watch.add_argument(
        "--duration",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Stop after this many seconds (default: until interrupted)",
    )

    return parser


def load_config(args: argparse.Namespace) -> TurnscoutConfig:
    """Build the configuration from the file and flags."""
    config = TurnscoutConfig.from_yaml_file(args.config) if args.config else TurnscoutConfig()
    if args.verbose:
        config.log_level = "DEBUG"
    elif args.quiet:
        config.log_level = "ERROR"
    return config


def records_table(records: list[MessageRecord], title: Optional[str] = None) -> Table:
    """Render records as a rich table."""
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Role")
    table.add_column("Content", overflow="fold")
    for record in records:
        style = "cyan" if record.role.value == "user" else "green"
        table.add_row(str(record.order), f"[{style}]{record.role.value}[/{style}]", record.content)
    return table


def run_extract(args: argparse.Namespace, config: TurnscoutConfig, console: Console) -> int:
    """Extract turns from a saved page."""
    strategy = resolve_target(args.url, config.inference)
    if strategy is None:
        console.print(f"[red]Error:[/red] No supported chat application at {args.url}")
        return 1

    try:
        html = args.file.read_bytes()
    except OSError as e:
        console.print(f"[red]Error:[/red] Could not read {args.file}: {e}")
        return 1

    result = ExtractionPipeline().scan(strategy, Document(html, args.url))

    if args.as_json:
        sys.stdout.write(json.dumps([r.to_dict() for r in result.records], indent=2, ensure_ascii=False))
        sys.stdout.write("\n")
        return 0

    if not args.quiet:
        console.print(records_table(result.records, title=f"{strategy.name}: {len(result.records)} messages"))
        if result.streaming:
            console.print("[yellow]A response was still being generated when the page was saved[/yellow]")
        console.print(f"Duration: {result.duration_seconds:.3f}s")
    return 0


def run_targets(console: Console) -> int:
    """List supported applications."""
    table = Table(title="Supported applications")
    table.add_column("Key")
    table.add_column("Name")
    table.add_column("Hosts")
    table.add_column("Debounce", justify="right")
    table.add_column("Settle", justify="right")
    for descriptor in descriptors():
        hosts = ", ".join(descriptor.hostnames)
        if descriptor.match == "substring":
            hosts += " (and subdomains)"
        table.add_row(
            descriptor.key,
            descriptor.name,
            hosts,
            f"{descriptor.debounce_ms} ms",
            f"{descriptor.post_detection_settle_ms} ms",
        )
    console.print(table)
    return 0


async def run_watch(args: argparse.Namespace, config: TurnscoutConfig, console: Console) -> int:
    """Follow a live conversation until interrupted."""
    from .capture import PLAYWRIGHT_AVAILABLE, PageSnapshotter, launch_page, watch_page
    from .session import ConversationSession
    from .storage import PersistenceRelay, create_store

    if not PLAYWRIGHT_AVAILABLE:
        console.print("[red]Error:[/red] Playwright is required. Install with: pip install turnscout[js]")
        return 1

    relay = PersistenceRelay(create_store(config.storage))

    def on_batch(records: list[MessageRecord]) -> None:
        if not args.quiet:
            console.print(records_table(records[-2:], title=f"{len(records)} messages"))

    def on_switch(previous: Optional[str], current: str) -> None:
        if not args.quiet:
            console.print(f"[bold]Conversation switched:[/bold] {current}")

    def on_event(event: ScanEvent) -> None:
        if event.is_error:
            console.print(f"[red]{event.type.value}:[/red] {event.error}")

    async with launch_page(args.url, headless=args.headless, user_data_dir=args.profile_dir) as page:
        session = ConversationSession(
            page.url,
            PageSnapshotter(page).snapshot,
            on_batch=on_batch,
            on_switch=on_switch,
            relay=relay,
            config=config,
            emit=on_event,
        )
        if not session.active:
            console.print(f"[red]Error:[/red] No supported chat application at {page.url}")
            return 1

        await watch_page(page, session)
        session.document_changed()
        if not args.quiet:
            console.print(f"[bold blue]turnscout[/bold blue] v{__version__} watching {page.url}")

        try:
            if args.duration is not None:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            await session.aclose()

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args)
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    setup_logging(config.log_level, str(config.log_file) if config.log_file else None, force=True)

    if args.command == "extract":
        return run_extract(args, config, console)
    if args.command == "targets":
        return run_targets(console)

    try:
        return asyncio.run(run_watch(args, config, console))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
