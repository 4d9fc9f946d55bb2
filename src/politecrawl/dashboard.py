"""
Live dashboard for monitoring crawl progress using Rich.
Shows frontier, worker and politeness status alongside the page counters.
"""

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from .controller import CrawlController


def _format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    return str(timedelta(seconds=int(seconds)))


def _bar(fraction: float, width: int) -> str:
    filled = int(max(0.0, min(1.0, fraction)) * width)
    return "█" * filled + "░" * (width - filled)


class LiveDashboard:
    """
    Real-time terminal dashboard for a running CrawlController.
    """

    def __init__(self, controller: "CrawlController", console: Console = None):
        self.controller = controller
        self.console = console or Console()
        self._running = False

    def _make_header(self) -> Panel:
        header_text = Text()
        header_text.append("🕷  ", style="bold")
        header_text.append("Polite Crawler", style="bold cyan")
        header_text.append(f"  ({', '.join(sorted(self.controller.scope.allowed_hosts))})", style="dim")
        return Panel(header_text, style="bold white on dark_blue")

    def _make_stats_table(self) -> Table:
        """Create the main statistics table."""
        snap = self.controller.snapshot()
        stats = self.controller.ctx.stats

        table = Table(title="📊 Crawl Statistics", expand=True, title_style="bold magenta")
        table.add_column("Metric", style="cyan", justify="left")
        table.add_column("Value", style="green", justify="right")
        table.add_column("Progress", justify="left")

        progress = snap["pages_stored"] / max(snap["max_pages"], 1)
        table.add_row("Pages stored", f"{snap['pages_stored']:,} / {snap['max_pages']:,}",
                      f"[green]{_bar(progress, 20)}[/green]")
        table.add_row("URLs seen", f"{snap['seen']:,}", "")
        table.add_row("Links enqueued", f"{stats.links_enqueued:,}", "")
        table.add_section()
        table.add_row("Failed", f"{stats.failed_urls:,}", "")
        table.add_row("Robots blocked", f"{stats.robots_blocked:,}", "")
        table.add_row("Non-HTML skipped", f"{stats.non_html_skipped:,}", "")
        return table

    def _make_status_panel(self) -> Panel:
        """Create the status panel with timing and pool state."""
        snap = self.controller.snapshot()
        ctx = self.controller.ctx

        status_table = Table.grid(padding=(0, 2))
        status_table.add_column(justify="right", style="bold")
        status_table.add_column(justify="left")

        status_table.add_row("⏱️  Session:", _format_duration(ctx.stats.elapsed_time))
        status_table.add_row("⚡ Speed:", f"{ctx.urls_per_minute:.1f} pages/min")
        status_table.add_row("📝 Queue:", f"{snap['queue']:,} URLs")
        status_table.add_row("👷 Workers:", f"{snap['workers']} alive / {snap['in_flight']} busy")
        if ctx.stop_requested:
            status_table.add_row("🛑 Stopping:", Text(ctx.stop_reason or "", style="yellow"))

        return Panel(status_table, title="🔧 Status", border_style="blue")

    def _make_health_panel(self) -> Panel:
        """Create the retry / crash health panel."""
        snap = self.controller.snapshot()
        stats = self.controller.ctx.stats

        health = Table.grid(padding=(0, 2))
        health.add_column(justify="right", style="bold")
        health.add_column(justify="left")

        health.add_row("🔁 Retries:", f"{snap['retries']:,}")
        health.add_row("🤖 Robots hosts:", f"{snap['robots_hosts']:,}")
        crash_style = "red" if stats.worker_crashes else "green"
        health.add_row("💥 Crashes:", Text(f"{stats.worker_crashes:,}", style=crash_style))
        health.add_row("♻️  Respawned:", f"{stats.workers_respawned:,}")

        return Panel(health, title="🚦 Health", border_style="yellow")

    def _make_activity_panel(self) -> Panel:
        """Create the current activity panel."""
        stats = self.controller.ctx.stats

        if stats.current_urls:
            activity_text = Text()
            for i, url in enumerate(stats.current_urls[-5:]):
                if i > 0:
                    activity_text.append("\n")
                activity_text.append("→ ", style="green")
                activity_text.append(url, style="dim")
        else:
            activity_text = Text("Waiting for tasks...", style="dim italic")

        return Panel(activity_text, title="🌐 Current Activity", border_style="green")

    def _make_config_panel(self) -> Panel:
        config = self.controller.config

        config_table = Table.grid(padding=(0, 2))
        config_table.add_column(justify="right", style="dim")
        config_table.add_column(justify="left")

        config_table.add_row("Default delay:", f"{config.default_delay_ms} ms")
        config_table.add_row("Fetch attempts:", f"{config.fetch_attempts}")
        config_table.add_row("Agent:", config.robots_agent)

        return Panel(config_table, title="⚙️  Config", border_style="dim")

    def generate_layout(self) -> Layout:
        """Generate the full dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=8)
        )

        layout["body"].split_row(
            Layout(name="main", ratio=2),
            Layout(name="sidebar", ratio=1)
        )

        layout["sidebar"].split_column(
            Layout(name="status"),
            Layout(name="health"),
            Layout(name="config", size=5)
        )

        layout["header"].update(self._make_header())
        layout["main"].update(self._make_stats_table())
        layout["status"].update(self._make_status_panel())
        layout["health"].update(self._make_health_panel())
        layout["config"].update(self._make_config_panel())
        layout["footer"].update(self._make_activity_panel())

        return layout

    async def run(self, refresh_rate: float = 0.5):
        """Run the live dashboard until stop() or the crawl finishes."""
        self._running = True

        with Live(self.generate_layout(), console=self.console,
                  refresh_per_second=int(1 / refresh_rate), screen=True) as live:
            while self._running and not self.controller.finished:
                live.update(self.generate_layout())
                await asyncio.sleep(refresh_rate)

    def stop(self):
        """Stop the dashboard."""
        self._running = False


def print_final_summary(controller: "CrawlController", console: Console = None):
    """Print final summary after crawling completes."""
    if console is None:
        console = Console()

    ctx = controller.ctx
    stats = ctx.stats
    snap = controller.snapshot()

    console.print("\n")
    console.print(Panel.fit(
        f"[bold green]✅ Crawling Complete![/bold green] [dim](stop reason: {ctx.stop_reason})[/dim]",
        border_style="green"
    ))

    table = Table(title="📊 Final Results", expand=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Pages stored", f"{ctx.pages_stored:,}")
    table.add_row("URLs seen", f"{ctx.visited.seen_count:,}")
    table.add_row("Left in frontier", f"{snap['queue']:,}")
    table.add_section()
    table.add_row("Failed", f"{stats.failed_urls:,}")
    table.add_row("Robots blocked", f"{stats.robots_blocked:,}")
    table.add_row("Non-HTML skipped", f"{stats.non_html_skipped:,}")
    table.add_row("Retries", f"{snap['retries']:,}")

    console.print(table)

    if stats.worker_crashes:
        console.print("\n[yellow]💥 Worker Crashes:[/yellow]")
        console.print(f"   Crashes: {stats.worker_crashes:,}")
        console.print(f"   Respawned: {stats.workers_respawned:,}")

    console.print(f"\n⏱️  Session runtime: {_format_duration(stats.elapsed_time)}")
    console.print(f"⚡ Average speed: {ctx.urls_per_minute:.1f} pages/minute")
    console.print(f"\n📁 Output: [cyan]{controller.config.output_path}[/cyan]")
