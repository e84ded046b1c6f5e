"""
chrome_agent/scripts/run_chrome_agent.py

Command-line front end for ChromeAgent. Each invocation connects, runs one
command against the first page tab, and disconnects.

Usage:
    chrome-agent navigate https://example.com
    chrome-agent snapshot
    chrome-agent click @e3
    chrome-agent type @e5 "hello world"
    chrome-agent select @e7 red green
    chrome-agent check @e9 --off
    chrome-agent screenshot --full-page --format jpeg --quality 70 --output page.jpg
    chrome-agent tabs list | tabs new [url] | tabs close [id]
    chrome-agent cookies export > cookies.json
    chrome-agent cookies import cookies.json
    chrome-agent back | forward | reload
    chrome-agent wait-idle --idle-ms 500 --timeout-ms 30000

Environment:
    CHROME_CDP_URL   CDP endpoint (default: http://localhost:9222)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chrome_agent.agent import ChromeAgent
from chrome_agent.config import Config
from chrome_agent.data_models.screenshot import ImageFormat, ScreenshotOptions
from chrome_agent.utils.exceptions import ChromeAgentError
from chrome_agent.utils.logger import set_log_level

console = Console()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per agent operation."""
    parser = argparse.ArgumentParser(
        prog="chrome-agent",
        description="Control a Chrome instance over the DevTools Protocol.",
    )
    parser.add_argument(
        "--cdp-url",
        default=Config.CHROME_CDP_URL,
        help=f"CDP endpoint, http:// or ws:// (default: {Config.CHROME_CDP_URL})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("navigate", help="Navigate to a URL")
    p.add_argument("url")

    p = sub.add_parser("snapshot", help="Print accessibility snapshot with refs")
    p.add_argument("--limit", type=int, default=None, help="Max nodes (1-2000)")

    p = sub.add_parser("click", help="Click element (e.g. @e1)")
    p.add_argument("ref")

    p = sub.add_parser("type", help="Type text into element")
    p.add_argument("ref")
    p.add_argument("text", nargs="+")

    p = sub.add_parser("select", help="Select option(s) in a select element")
    p.add_argument("ref")
    p.add_argument("values", nargs="+")

    p = sub.add_parser("check", help="Check (or with --off, uncheck) a checkbox/radio")
    p.add_argument("ref")
    p.add_argument("--off", action="store_true", help="Uncheck instead of check")

    p = sub.add_parser("screenshot", help="Save a screenshot")
    p.add_argument("--full-page", action="store_true")
    p.add_argument("--output", "-o", default=None, help="Output path (default: screenshot.<format>)")
    p.add_argument("--format", choices=[f.value for f in ImageFormat], default=ImageFormat.PNG.value)
    p.add_argument("--quality", type=float, default=None, help="JPEG quality 0-100")

    p = sub.add_parser("tabs", help="List, open or close tabs")
    p.add_argument("action", nargs="?", choices=["list", "new", "close"], default="list")
    p.add_argument("arg", nargs="?", default=None, help="URL for 'new', tab id for 'close'")

    p = sub.add_parser("cookies", help="Export or import cookies as JSON")
    p.add_argument("action", choices=["export", "import"])
    p.add_argument("file", nargs="?", default=None, help="JSON file for 'import'")

    sub.add_parser("back", help="Navigate back")
    sub.add_parser("forward", help="Navigate forward")
    sub.add_parser("reload", help="Reload page")

    p = sub.add_parser("wait-idle", help="Wait until the network is idle")
    p.add_argument("--idle-ms", type=float, default=None)
    p.add_argument("--timeout-ms", type=float, default=None)

    return parser


def _print_tabs(agent: ChromeAgent) -> None:
    tabs = agent.list_tabs()
    if not tabs:
        console.print("[dim](no tracked tabs)[/dim]")
        return
    table = Table(box=box.SIMPLE)
    table.add_column("Tab")
    table.add_column("URL")
    table.add_column("Title")
    for tab in tabs:
        marker = "*" if tab.tab_id == agent.current_tab_id else ""
        table.add_row(f"{escape(tab.tab_id)}{marker}", escape(tab.url), escape(tab.title))
    console.print(table)


async def run_command(agent: ChromeAgent, args: argparse.Namespace) -> None:
    """Execute one parsed subcommand against a connected agent."""
    command = args.command

    if command == "navigate":
        await agent.navigate(args.url)
        console.print(f"Navigated to {escape(args.url)}")

    elif command == "snapshot":
        console.out(await agent.snapshot(limit=args.limit), highlight=False)

    # refs only live as long as the process, so ref commands snapshot first
    elif command == "click":
        await agent.snapshot()
        await agent.click(args.ref)
        console.print(f"Clicked {escape(args.ref)}")

    elif command == "type":
        await agent.snapshot()
        await agent.type(args.ref, " ".join(args.text))
        console.print(f"Typed into {escape(args.ref)}")

    elif command == "select":
        await agent.snapshot()
        await agent.select(args.ref, args.values)
        console.print(f"Selected in {escape(args.ref)}")

    elif command == "check":
        await agent.snapshot()
        await agent.check(args.ref, checked=not args.off)
        console.print(f"{'Unchecked' if args.off else 'Checked'} {escape(args.ref)}")

    elif command == "screenshot":
        image_format = ImageFormat(args.format)
        data = await agent.screenshot(ScreenshotOptions(
            full_page=args.full_page,
            format=image_format,
            quality=args.quality,
        ))
        output = Path(args.output or f"screenshot.{image_format.value}")
        output.write_bytes(data)
        console.print(f"Screenshot saved to {escape(str(output))}")

    elif command == "tabs":
        if args.action == "list":
            _print_tabs(agent)
        elif args.action == "new":
            tab_id = await agent.new_tab(args.arg)
            console.print(f"New tab: {escape(tab_id)}")
        else:
            await agent.close_tab(args.arg)
            console.print("Tab closed")

    elif command == "cookies":
        if args.action == "export":
            console.out(await agent.export_cookies(), highlight=False)
        else:
            if not args.file:
                raise SystemExit("Usage: chrome-agent cookies import <file>")
            count = await agent.import_cookies(Path(args.file).read_text(encoding="utf-8"))
            console.print(f"Imported {count} cookie(s)")

    elif command == "back":
        await agent.back()
        console.print("Navigated back")

    elif command == "forward":
        await agent.forward()
        console.print("Navigated forward")

    elif command == "reload":
        await agent.reload()
        console.print("Page reloaded")

    elif command == "wait-idle":
        idle = await agent.wait_for_network_idle(args.idle_ms, args.timeout_ms)
        console.print("Network idle" if idle else "[yellow]Timed out waiting for network idle, continuing[/yellow]")


async def _main(args: argparse.Namespace) -> None:
    agent = await ChromeAgent.connect(args.cdp_url)
    async with agent:
        await run_command(agent, args)


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    if args.verbose:
        set_log_level(logging.DEBUG)

    try:
        asyncio.run(_main(args))
    except (ChromeAgentError, OSError) as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
