#!/usr/bin/env python3
"""
Polite Crawler
==============
Main entry point: load seeds, run the controller with a live dashboard (or a
plain progress bar), and print a summary when the crawl stops.

Output: one append-only text file of delimited page records.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.logging import RichHandler

from .config import (
    CrawlerConfig,
    DEFAULT_DELAY_MS,
    EMPTY_TICKS_TO_STOP,
    FETCH_ATTEMPTS,
    FILE_ENCODING,
    MAX_PAGES,
    MONITOR_INTERVAL,
    NUM_WORKERS,
    OUTPUT_FILE,
    SEEDS_FILE,
)
from .controller import CrawlController
from .dashboard import LiveDashboard, print_final_summary
from .errors import CrawlerError, ConfigurationError

console = Console()
logger = logging.getLogger("politecrawl")


def configure_logging(verbose: bool = False, quiet: bool = False):
    """Route all crawler logging through Rich on the shared console."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def load_seeds(path: Path) -> List[str]:
    """Seed URLs from a JSON file: either {"seeds": [...]} or a bare list."""
    try:
        with open(path, "r", encoding=FILE_ENCODING) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Seeds file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Seeds file {path} is not valid JSON: {e}") from e

    seeds = data.get("seeds", []) if isinstance(data, dict) else data
    if not isinstance(seeds, list) or not all(isinstance(s, str) for s in seeds):
        raise ConfigurationError(f"Seeds file {path} must hold a list of URL strings")
    return seeds


def install_signal_handlers(controller: CrawlController):
    """SIGINT/SIGTERM request a graceful stop instead of killing the loop."""
    def shutdown_handler():
        console.print("\n[yellow]⚠️  Shutting down...[/yellow]")
        controller.request_stop()

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown_handler)


async def run_with_dashboard(controller: CrawlController):
    """Run the crawl with the live dashboard."""
    dashboard = LiveDashboard(controller, console=console)

    crawl_task = asyncio.create_task(controller.run())
    dashboard_task = asyncio.create_task(dashboard.run())

    try:
        await crawl_task
    finally:
        dashboard.stop()
        try:
            await asyncio.wait_for(dashboard_task, timeout=1.0)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            pass


async def run_without_dashboard(controller: CrawlController):
    """Run the crawl with a simple progress bar."""
    from tqdm.asyncio import tqdm

    console.print("[bold cyan]🚀 Starting crawler...[/bold cyan]")
    console.print(f"   Workers: {controller.num_workers}")
    console.print(f"   Seeds: {controller.ctx.frontier.qsize()} URLs")
    console.print(f"   Max pages: {controller.ctx.max_pages}\n")

    async def progress_display():
        with tqdm(desc="Crawling", unit=" pages", total=controller.ctx.max_pages) as pbar:
            last_count = 0
            while not controller.finished:
                current = controller.ctx.pages_stored
                pbar.update(current - last_count)
                pbar.set_postfix({
                    'queue': controller.ctx.frontier.qsize(),
                    'in_flight': controller.ctx.in_flight,
                })
                last_count = current
                await asyncio.sleep(0.5)
            pbar.update(controller.ctx.pages_stored - last_count)

    progress_task = asyncio.create_task(progress_display())
    try:
        await controller.run()
    finally:
        progress_task.cancel()


async def main(args):
    """Main entry point."""
    seeds = args.seed or load_seeds(Path(args.seeds_file))

    config = CrawlerConfig(
        output_path=Path(args.output),
        default_delay_ms=args.delay_ms,
        fetch_attempts=args.attempts,
        monitor_interval=args.monitor_interval,
        empty_ticks_to_stop=args.empty_ticks,
    )
    controller = CrawlController(seeds, max_pages=args.max_pages,
                                 num_workers=args.workers, config=config)

    console.print(f"📋 Loaded [green]{controller.ctx.frontier.qsize()}[/green] seed URLs")
    console.print(f"🌐 Scope: [green]{', '.join(sorted(controller.scope.allowed_hosts))}[/green]")
    console.print(f"📁 Output: [cyan]{config.output_path}[/cyan]\n")

    install_signal_handlers(controller)
    try:
        if args.no_dashboard:
            await run_without_dashboard(controller)
        else:
            await run_with_dashboard(controller)
    finally:
        # no-op if the monitor already shut down
        await controller.shutdown()
        print_final_summary(controller, console)


def cli():
    """Command-line interface."""
    parser = argparse.ArgumentParser(
        description="Polite multi-worker web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  politecrawl                                   # Seeds from configs/seeds.json
  politecrawl --seed https://toscrape.com       # Crawl a single site
  politecrawl --max-pages 200 --workers 20      # Bigger crawl
  politecrawl --no-dashboard -v                 # Plain progress + debug logs
        """
    )

    parser.add_argument('--seeds-file', default=str(SEEDS_FILE),
                        help='JSON file with seed URLs (default: configs/seeds.json)')
    parser.add_argument('--seed', action='append',
                        help='Seed URL (repeatable); overrides --seeds-file')
    parser.add_argument('--max-pages', type=int, default=MAX_PAGES,
                        help=f'Stop after storing this many pages (default: {MAX_PAGES})')
    parser.add_argument('--workers', type=int, default=NUM_WORKERS,
                        help=f'Number of parallel workers (default: {NUM_WORKERS})')
    parser.add_argument('--output', default=str(OUTPUT_FILE),
                        help='Output file for page records')
    parser.add_argument('--delay-ms', type=int, default=DEFAULT_DELAY_MS,
                        help=f'Per-host delay without a Crawl-delay (default: {DEFAULT_DELAY_MS})')
    parser.add_argument('--attempts', type=int, default=FETCH_ATTEMPTS,
                        help=f'Fetch attempts per URL (default: {FETCH_ATTEMPTS})')
    parser.add_argument('--monitor-interval', type=float, default=MONITOR_INTERVAL,
                        help=f'Seconds between monitor ticks (default: {MONITOR_INTERVAL})')
    parser.add_argument('--empty-ticks', type=int, default=EMPTY_TICKS_TO_STOP,
                        help=f'Idle ticks before stopping (default: {EMPTY_TICKS_TO_STOP})')
    parser.add_argument('--no-dashboard', action='store_true',
                        help='Run without the live dashboard')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()

    # the dashboard owns the screen; keep per-URL log lines out of it
    configure_logging(verbose=args.verbose, quiet=not args.no_dashboard and not args.verbose)

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    try:
        asyncio.run(main(args))
    except CrawlerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
