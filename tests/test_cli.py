"""Tests for the command line interface."""
from rich.console import Console

from edgefinder.betting.edge_detector import EdgeDetector
from edgefinder.betting.kelly_calculator import size_bet
from edgefinder.config.settings import Settings
from edgefinder.main import build_parser, kelly_command, render_edges_table, render_kelly_table

from factories import NBA


def render(table) -> str:
    console = Console(record=True, width=160)
    console.print(table)
    return console.export_text()


def test_parser():
    args = build_parser().parse_args(["scan", "--sport", NBA, "--sport", "icehockey_nhl", "--min-ev", "5"])
    assert args.command == "scan"
    assert args.sport == [NBA, "icehockey_nhl"]
    assert args.min_ev == 5.0

    args = build_parser().parse_args(["--debug", "kelly", "--price", "-110", "--prob", "0.55"])
    assert args.debug
    assert args.price == -110
    assert args.bankroll is None


def test_edges_table(slate_event):
    edges = EdgeDetector().scan_event(slate_event, NBA).edges
    text = render(render_edges_table(edges))
    assert "+13.9%" in text
    assert "Fanduel" in text


def test_empty_edges_table():
    assert "No edges found" in render(render_edges_table([]))


def test_kelly_table():
    text = render(render_kelly_table(size_bet(-110, 0.55, bankroll=1000)))
    assert "Quarter Kelly" in text
    assert "$55.00" in text


def test_kelly_command_rejects_bad_price():
    args = build_parser().parse_args(["kelly", "--price", "50", "--prob", "0.5"])
    assert kelly_command(args, Settings()) == 2
