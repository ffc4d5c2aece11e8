#!/usr/bin/env python3
"""
EdgeFinder - Main Application Entry Point.

Odds aggregation and edge detection across sportsbooks:
1. Pulls odds for every tracked sport from The Odds API
2. De-vigs each market into a consensus fair price
3. Flags outcomes where one book is out of line with the rest
4. Tracks significant line movement between refreshes

Usage:
    edgefinder scan                       # One refresh, print edges
    edgefinder kelly --price -110 --prob 0.55 --bankroll 1000
    edgefinder serve                      # REST API
    edgefinder run                        # Background refresh loop
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.table import Table

from edgefinder.betting.kelly_calculator import KellyCalculator, size_bet
from edgefinder.betting.odds_converter import OddsError, format_american_odds
from edgefinder.config.constants import sport_label
from edgefinder.config.settings import get_settings
from edgefinder.data.pipeline import EdgePipeline, PipelineUnavailableError
from edgefinder.logging_config import configure_logging

logger = logging.getLogger(__name__)

CONFIDENCE_STYLES = {"HIGH": "bold green", "MEDIUM": "yellow", "LOW": "dim"}


def render_edges_table(edges: list, limit: int = 25) -> Table:
    """Rich table of edges, best EV first."""
    table = Table(
        title="Edges",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
        expand=True,
    )

    table.add_column("Sport", style="dim")
    table.add_column("Game", style="white", no_wrap=True)
    table.add_column("Pick", style="white")
    table.add_column("Book", style="dim")
    table.add_column("EV", justify="right", style="green")
    table.add_column("Books", justify="right")
    table.add_column("Confidence", justify="center")

    if not edges:
        table.add_row("", "[dim]No edges found[/dim]", "", "", "", "", "")
        return table

    for edge in edges[:limit]:
        confidence = edge.confidence.value
        style = CONFIDENCE_STYLES.get(confidence, "white")
        table.add_row(
            edge.sport,
            edge.game,
            edge.description,
            edge.book,
            edge.ev_display,
            str(edge.book_count),
            f"[{style}]{confidence}[/{style}]",
        )
    return table


def render_kelly_table(sizing, recommendation=None) -> Table:
    """Rich table for a Kelly sizing result."""
    table = Table(
        title=f"Kelly @ {format_american_odds(sizing.price)}, p={sizing.win_probability:.1%}",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Sizing", style="white")
    table.add_column("Fraction", justify="right")
    table.add_column("Stake", justify="right", style="green")

    rows = [
        ("Full Kelly", sizing.full_kelly, sizing.full_stake),
        ("Half Kelly", sizing.half_kelly, sizing.half_stake),
        ("Quarter Kelly", sizing.quarter_kelly, sizing.quarter_stake),
    ]
    for name, fraction, stake in rows:
        table.add_row(name, f"{fraction:.2%}", f"${stake:,.2f}" if stake is not None else "-")

    if recommendation is not None:
        table.add_row(
            "[bold]Recommended[/bold]",
            f"{recommendation.stake_percentage:.2%}",
            f"[bold]${recommendation.recommended_stake:,.2f}[/bold]",
        )

    table.caption = f"{sizing.verdict} | edge {sizing.edge_pct:+.1f}% | {sizing.risk_level.value}"
    return table


class EdgeFinderApp:
    """
    Long-running application: pipeline plus scheduler.

    Runs until SIGINT or SIGTERM, then shuts the scheduler down and
    closes upstream connections.
    """

    def __init__(self, settings, sports: Optional[list[str]] = None):
        self.settings = settings
        self.sports = sports
        self.pipeline: Optional[EdgePipeline] = None
        self.scheduler = None
        self._shutdown_event = asyncio.Event()

    async def setup(self) -> None:
        """Initialize all application components."""
        from edgefinder.scheduler.orchestrator import SchedulerOrchestrator

        logger.info("=" * 60)
        logger.info("EDGEFINDER - Odds Aggregation & Edge Detection")
        logger.info("=" * 60)
        logger.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

        self.pipeline = EdgePipeline.from_settings(self.settings)
        if self.sports:
            self.pipeline.sports = list(self.sports)

        health = await self.pipeline.health_check()
        logger.info(f"Pipeline health: {health.status}")
        for name, source in health.sources.items():
            logger.info(f"  {name}: {source.status.value}")

        self.scheduler = SchedulerOrchestrator(settings=self.settings, pipeline=self.pipeline)
        self.scheduler.start()

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler)

        try:
            logger.info(
                f"Refreshing every {self.settings.scheduler.refresh_interval_minutes} min "
                f"for {', '.join(self.pipeline.sports)}"
            )
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    def _signal_handler(self) -> None:
        logger.info("Shutdown signal received...")
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Gracefully shutdown all components."""
        logger.info("Shutting down...")
        if self.scheduler:
            self.scheduler.stop()
        if self.pipeline:
            await self.pipeline.close()
        logger.info("Shutdown complete")


async def scan_async(args: argparse.Namespace, settings) -> int:
    """One refresh, printed as a table."""
    console = Console()
    pipeline = EdgePipeline.from_settings(settings)

    try:
        result = await pipeline.refresh(sports=args.sport or None)
    except PipelineUnavailableError as e:
        console.print(f"[red]{e}[/red]")
        for sport, error in e.failures.items():
            console.print(f"  [dim]{sport_label(sport)}: {error}[/dim]")
        return 1
    finally:
        await pipeline.close()

    edges = result.edges
    if args.min_ev:
        edges = [e for e in edges if e.ev >= args.min_ev]

    console.print(render_edges_table(edges, limit=args.limit))
    console.print(
        f"[dim]{len(result.events)} events, {len(result.edges)} edges"
        f"{', failed: ' + ', '.join(result.failed_sports) if result.failed_sports else ''}[/dim]"
    )
    return 0


def kelly_command(args: argparse.Namespace, settings) -> int:
    console = Console()
    try:
        sizing = size_bet(args.price, args.prob, bankroll=args.bankroll)
    except OddsError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    recommendation = None
    if args.bankroll:
        calculator = KellyCalculator.from_settings(settings)
        recommendation = calculator.calculate_stake(
            bankroll=args.bankroll,
            win_probability=args.prob,
            odds=args.price,
        )

    console.print(render_kelly_table(sizing, recommendation))
    return 0


def serve_command(args: argparse.Namespace, settings) -> int:
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


async def run_async(args: argparse.Namespace, settings) -> int:
    app = EdgeFinderApp(settings, sports=args.sport or None)
    try:
        await app.setup()
        await app.run()
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edgefinder",
        description="EdgeFinder - odds aggregation and betting edge detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    edgefinder scan                         Refresh once and print edges
    edgefinder scan --sport basketball_nba  One sport only
    edgefinder kelly --price -110 --prob 0.55 --bankroll 1000
    edgefinder serve --port 8000            Start the REST API
    edgefinder run                          Refresh on a schedule until stopped
        """,
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", help="Refresh once and print edges")
    scan.add_argument("--sport", action="append", help="Sport key (repeatable)")
    scan.add_argument("--min-ev", type=float, default=0.0, help="Minimum EV percentage")
    scan.add_argument("--limit", type=int, default=25, help="Maximum rows to print")

    kelly = subparsers.add_parser("kelly", help="Kelly bet sizing")
    kelly.add_argument("--price", type=int, required=True, help="American odds (e.g. -110)")
    kelly.add_argument("--prob", type=float, required=True, help="Win probability (0-1)")
    kelly.add_argument("--bankroll", type=float, default=None, help="Bankroll in dollars")

    serve = subparsers.add_parser("serve", help="Start the REST API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    run = subparsers.add_parser("run", help="Refresh on a schedule until stopped")
    run.add_argument("--sport", action="append", help="Sport key (repeatable)")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings, level="DEBUG" if args.debug else None)

    if args.command == "scan":
        exit_code = asyncio.run(scan_async(args, settings))
    elif args.command == "kelly":
        exit_code = kelly_command(args, settings)
    elif args.command == "serve":
        exit_code = serve_command(args, settings)
    else:
        exit_code = asyncio.run(run_async(args, settings))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
