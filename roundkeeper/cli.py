"""Click CLI: load a snapshot, evaluate it once, and print the decision."""

import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from roundkeeper.detector import ResumptionDetector
from roundkeeper.flow import flow_context_from_snapshot, resolve_phase
from roundkeeper.guard import TriggerGuard
from roundkeeper.ledger import build_ledger
from roundkeeper.models import Snapshot
from roundkeeper.output import console, print_decision, print_ledger, print_phase
from roundkeeper.scheduler import schedule
from roundkeeper.search_gate import should_wait
from roundkeeper.snapshot_io import SnapshotError, load_snapshot

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _report(snapshot: Snapshot, config: AppConfig) -> None:
    policy = config.resumption.response_policy()
    ledger = build_ledger(snapshot.messages, snapshot.roster, policy)
    result = schedule(ledger, snapshot.flags)
    waiting_on_search = ledger.current_round is not None and should_wait(
        snapshot.flags.web_search_enabled, snapshot.search_records, ledger.current_round,
    )

    detector = ResumptionDetector(
        guard=TriggerGuard(config.resumption.trigger_clear_delay_sec),
        policy=policy,
    )
    try:
        action = detector.evaluate(snapshot)
    finally:
        detector.close()

    console.print(f"\n[bold cyan]roundkeeper[/bold cyan] thread {escape(snapshot.thread_id)}\n")
    print_ledger(ledger, result, waiting_on_search)
    print_decision(action)
    print_phase(resolve_phase(flow_context_from_snapshot(snapshot, policy)))


@click.command()
@click.argument("snapshot_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--settings", "settings_path", default=None, type=click.Path(dir_okay=False),
              help="Settings YAML (default: $ROUNDKEEPER_SETTINGS or bundled settings.yaml)")
@click.option("--web-search/--no-web-search", "web_search", default=None,
              help="Override the snapshot's web_search_enabled flag")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(snapshot_file: str, settings_path: str | None, web_search: bool | None, verbose: bool) -> None:
    """Decide what a conversation thread should do next after a disruption.

    \b
    Examples:
      roundkeeper snapshot.yaml
      roundkeeper snapshot.yaml --no-web-search --verbose
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(settings_path) if settings_path else None)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    try:
        snapshot = load_snapshot(Path(snapshot_file), default_screen_mode=config.flow.screen_mode)
    except (FileNotFoundError, SnapshotError) as exc:
        console.print(f"[bold red]Snapshot error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    if web_search is not None:
        snapshot.flags.web_search_enabled = web_search

    _report(snapshot, config)


if __name__ == "__main__":
    main()
