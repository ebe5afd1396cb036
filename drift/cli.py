"""Command-line interface for Drift."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from drift.data_loader import load_experiment, load_price_csv
from drift.errors import DriftError
from drift.models import Experiment, Run
from drift.report import build_run_report, export_json
from drift.simulation import (
    IngestionService,
    ResultsService,
    SimulationEngine,
    SimulationService,
)
from drift.stats import ResultStats
from drift.storage import InMemoryStore, SQLiteStore
from drift.visualizer import generate_charts
from drift.worker_pool import WorkerPool


console = Console()


def _env_int(name: str) -> int | None:
    value = os.environ.get(name)
    return int(value) if value else None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drift",
        description="Monte Carlo portfolio simulation over historical prices.",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=os.environ.get("DRIFT_DB", "drift.db"),
        help="SQLite database path (default: $DRIFT_DB or drift.db)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=_env_int("DRIFT_WORKERS"),
        help="Parallel workers (default: $DRIFT_WORKERS or CPU count)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("DRIFT_LOG_LEVEL", "INFO"),
        help="Logging level (default: $DRIFT_LOG_LEVEL or INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Load price history CSV files")
    ingest.add_argument("files", nargs="+", help="CSV files (SYMBOL.csv or with a symbol column)")

    sub.add_parser("assets", help="List ingested assets")

    create = sub.add_parser("create", help="Create an experiment from a JSON config")
    create.add_argument("config", help="Experiment JSON file")

    sub.add_parser("experiments", help="List experiments")

    run = sub.add_parser("run", help="Run an experiment and store the result")
    run.add_argument("experiment_id")
    run.add_argument("--charts", type=str, default=None, help="Write charts to this directory")
    run.add_argument("--json", type=str, default=None, help="Write a JSON report to this path")

    runs = sub.add_parser("runs", help="List runs of an experiment, most recent first")
    runs.add_argument("experiment_id")

    simulate = sub.add_parser("simulate", help="Simulate a JSON config against CSV prices without a database")
    simulate.add_argument("config", help="Experiment JSON file")
    simulate.add_argument("--prices", nargs="+", required=True, help="Price CSV files")
    simulate.add_argument(
        "--output-dir", "-o",
        type=str,
        default=None,
        help="Write charts to this directory",
    )

    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------


def stats_table(stats: ResultStats, title: str = "Simulation Results") -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for label, value in (
        ("5th Percentile", stats.p5),
        ("25th Percentile", stats.p25),
        ("Median", stats.p50),
        ("75th Percentile", stats.p75),
        ("95th Percentile", stats.p95),
        ("Mean", stats.mean),
        ("Std Dev", stats.std_dev),
    ):
        table.add_row(label, f"${value:,.2f}")
    table.add_row("Probability of Loss", f"{stats.probability_of_loss * 100:.1f}%")
    table.add_row("Median Max Drawdown", f"{stats.median_max_drawdown * 100:.2f}%")
    table.add_row("95th Pct Max Drawdown", f"{stats.p95_max_drawdown * 100:.2f}%")
    table.add_row("Median CAGR", f"{stats.median_cagr * 100:.2f}%")
    return table


def experiment_panel(experiment: Experiment) -> Panel:
    cfg = experiment.config
    weights = ", ".join(f"{a.symbol} {a.weight * 100:.1f}%" for a in experiment.portfolio.assets)
    return Panel.fit(
        f"[bold blue]{experiment.name or experiment.id}[/bold blue]\n"
        f"Model: {cfg.model_name}  Paths: {cfg.num_paths:,}  "
        f"Horizon: {cfg.horizon_days} days  Lookback: {cfg.lookback_days} days\n"
        f"Start value: ${cfg.start_value:,.2f}  Seed: {cfg.seed if cfg.seed is not None else 'random'}\n"
        f"Portfolio: {weights or '(empty)'}",
        border_style="blue",
    )


def runs_table(runs: list[Run]) -> Table:
    table = Table(title="Runs")
    table.add_column("Run", style="cyan")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Median", justify="right")
    table.add_column("P(loss)", justify="right")
    table.add_column("Error", style="red")
    for r in runs:
        table.add_row(
            r.id,
            r.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            r.status.value,
            f"${r.stats.p50:,.2f}",
            f"{r.stats.probability_of_loss * 100:.1f}%",
            r.error,
        )
    return table


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


def cmd_ingest(args: argparse.Namespace, store: SQLiteStore) -> None:
    service = IngestionService(store)
    for f in args.files:
        with open(f, newline="") as fh:
            count = service.ingest_csv(fh, Path(f).name)
        console.print(f"[green]Ingested[/green] {count:,} records from {f}")


def cmd_assets(args: argparse.Namespace, store: SQLiteStore) -> None:
    service = IngestionService(store)
    table = Table(title="Assets")
    table.add_column("Symbol", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("First")
    table.add_column("Last")
    for asset in service.list_assets():
        prices = service.get_asset_prices(asset.symbol)
        first = prices[0].date.isoformat() if prices else "-"
        last = prices[-1].date.isoformat() if prices else "-"
        table.add_row(asset.symbol, f"{len(prices):,}", first, last)
    console.print(table)


def cmd_create(args: argparse.Namespace, store: SQLiteStore) -> None:
    experiment = ResultsService(store, store).create_experiment(load_experiment(args.config))
    console.print(experiment_panel(experiment))
    console.print(f"[green]Created experiment[/green] {experiment.id}")


def cmd_experiments(args: argparse.Namespace, store: SQLiteStore) -> None:
    table = Table(title="Experiments")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Paths", justify="right")
    table.add_column("Created")
    for e in ResultsService(store, store).list_experiments():
        created = e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else "-"
        table.add_row(e.id, e.name, e.config.model_name, f"{e.config.num_paths:,}", created)
    console.print(table)


def cmd_run(args: argparse.Namespace, store: SQLiteStore) -> None:
    results = ResultsService(store, store)
    experiment = results.get_experiment(args.experiment_id)
    console.print(experiment_panel(experiment))

    service = SimulationService(
        store, store, store,
        pool=WorkerPool(args.workers),
        keep_paths=bool(args.charts),
    )
    with console.status("Simulating..."):
        run = service.run_experiment(experiment.id)
    console.print(stats_table(run.stats, title=f"Run {run.id}"))

    if args.charts:
        paths = service.get_run_paths(run.id)
        for p in generate_charts(paths, run.stats, experiment.config.start_value, args.charts):
            console.print(f"  [green]Saved:[/green] {p}")

    if args.json:
        path = export_json(build_run_report(run, experiment), args.json)
        console.print(f"[green]JSON report saved:[/green] {path}")


def cmd_runs(args: argparse.Namespace, store: SQLiteStore) -> None:
    console.print(runs_table(ResultsService(store, store).list_runs(args.experiment_id)))


def cmd_simulate(args: argparse.Namespace) -> None:
    experiment = load_experiment(args.config)
    console.print(experiment_panel(experiment))

    store = InMemoryStore()
    ingestion = IngestionService(store)
    for f in args.prices:
        ingestion.ingest_records(load_price_csv(f))

    engine = SimulationEngine(store, WorkerPool(args.workers))
    with console.status("Simulating..."):
        outcome = engine.simulate(experiment.portfolio, experiment.config)
    console.print(stats_table(outcome.stats))

    if args.output_dir:
        for p in generate_charts(outcome.paths, outcome.stats, experiment.config.start_value, args.output_dir):
            console.print(f"  [green]Saved:[/green] {p}")


COMMANDS = {
    "ingest": cmd_ingest,
    "assets": cmd_assets,
    "create": cmd_create,
    "experiments": cmd_experiments,
    "run": cmd_run,
    "runs": cmd_runs,
}


def run(args: argparse.Namespace) -> None:
    """Dispatch a parsed command, reporting failures in red."""
    try:
        if args.command == "simulate":
            cmd_simulate(args)
            return
        with SQLiteStore(Path(args.db)) as store:
            COMMANDS[args.command](args, store)
    except (DriftError, FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    run(args)


if __name__ == "__main__":
    main()
