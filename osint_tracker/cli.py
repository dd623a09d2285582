from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from osint_tracker.config import get_settings
from osint_tracker.db import init_db, session_scope
from osint_tracker.engine import correlate
from osint_tracker.queries import build_query_plan
from osint_tracker.results_view import render_report, report_payload
from osint_tracker.sources.payloads import FindingLoadError, load_findings, load_subject
from osint_tracker.store import list_runs, load_run, save_report
from osint_tracker.types import Finding, Subject
from osint_tracker.utils import text_hash

app = typer.Typer(help="OSINT evidence correlation and confidence scoring")
console = Console()
log = logging.getLogger(__name__)


def _configure_logging(*, verbose: int, json_output: bool) -> None:
    if verbose <= 0:
        level = logging.ERROR
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    handlers: list[logging.Handler]
    if json_output:
        handlers = [logging.StreamHandler()]
        fmt = "%(levelname)s: %(message)s"
    else:
        handlers = [RichHandler(console=console, show_time=False, show_path=False, markup=True)]
        fmt = "%(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    project_root: str | None = typer.Option(
        None,
        "--project-root",
        help="Investigation workspace containing config/ overrides and data/.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON for scripting."),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="Increase log verbosity."),
) -> None:
    if project_root:
        os.environ["OSINT_TRACKER_HOME"] = str(Path(project_root).expanduser().resolve())
        get_settings.cache_clear()
    ctx.obj = {"json_output": json_output, "verbose": verbose}
    _configure_logging(verbose=verbose, json_output=json_output)


def _wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json_output"))


def _format_scalar(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4f}"
    if value is None:
        return "-"
    return str(value)


def _render_table(title: str, rows: list[tuple[str, str]], *, border_style: str = "cyan") -> None:
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for metric, value in rows:
        table.add_row(metric, value)
    console.print(Panel(table, title=title, border_style=border_style))


def _print(title: str, payload: dict[str, Any], ctx: typer.Context) -> None:
    if _wants_json(ctx):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    rows = [(key, _format_scalar(value)) for key, value in payload.items() if not isinstance(value, (dict, list))]
    _render_table(title, rows)
    for key, value in payload.items():
        if isinstance(value, dict):
            _render_table(
                f"{title} · {key}",
                [(nested_key, _format_scalar(nested_value)) for nested_key, nested_value in value.items()],
                border_style="magenta",
            )


def _load_subject(path: Path) -> Subject:
    try:
        return load_subject(path)
    except FindingLoadError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid subject file {path}: {exc.errors()[0].get('msg')}") from exc


@app.command("correlate")
def correlate_command(
    ctx: typer.Context,
    subject_file: Path = typer.Argument(..., help="Subject as YAML or JSON."),
    findings_file: Path = typer.Argument(..., help="Findings as a JSON array or JSON lines."),
    save: bool = typer.Option(False, "--save", help="Persist the report as a new investigation run."),
    top_n: int | None = typer.Option(None, "--top", help="Limit confirmed/possible rows shown."),
    include_private: bool = typer.Option(False, help="Show unredacted contact values."),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    subject = _load_subject(subject_file)
    try:
        findings = load_findings(findings_file)
    except FindingLoadError as exc:
        raise typer.BadParameter(str(exc)) from exc

    settings = get_settings()
    policy = settings.load_policy()
    report = correlate(subject, findings, settings=settings, policy=policy)
    payload = report_payload(report, top_n=top_n, include_private=include_private)

    if save:
        try:
            init_db(db_url)
            with session_scope(db_url) as session:
                run = save_report(
                    session,
                    report,
                    policy_version=policy.version,
                    findings_hash=text_hash(
                        [f.model_dump(mode="json") if isinstance(f, Finding) else f for f in findings]
                    ),
                )
                payload["run_id"] = run.id
        except Exception as exc:  # noqa: BLE001
            log.error("Could not save run: %s", exc)
            console.print(f"[red]Could not save run:[/red] {exc}")
            raise typer.Exit(code=1)

    if _wants_json(ctx):
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    render_report(console, payload)
    if "run_id" in payload:
        console.print(f"[green]Saved run {payload['run_id']}[/green]")


@app.command("plan-queries")
def plan_queries_command(
    ctx: typer.Context,
    subject_file: Path = typer.Argument(..., help="Subject as YAML or JSON."),
) -> None:
    subject = _load_subject(subject_file)
    plan = build_query_plan(subject)
    if _wants_json(ctx):
        typer.echo(json.dumps([item.model_dump(mode="json") for item in plan], indent=2, ensure_ascii=False))
        return
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("Priority", justify="right")
    table.add_column("Origin")
    table.add_column("Query", style="bold")
    table.add_column("Purpose")
    for item in plan:
        table.add_row(str(item.priority), item.origin.value, item.query, item.purpose)
    console.print(Panel(table, title=f"Query plan · {subject.full_name}", border_style="cyan"))


@app.command("runs")
def runs_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, help="Number of runs to list."),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    init_db(db_url)
    with session_scope(db_url) as session:
        rows = list_runs(session, limit=limit)
    if _wants_json(ctx):
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    table = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Subject", style="bold")
    table.add_column("Created")
    table.add_column("Confirmed", justify="right")
    table.add_column("Possible", justify="right")
    table.add_column("Rejected", justify="right")
    for row in rows:
        table.add_row(
            str(row["id"]),
            row["subject"],
            row["created_at"],
            str(row["confirmed"]),
            str(row["possible"]),
            str(row["rejected"]),
        )
    console.print(Panel(table, title="Investigation runs", border_style="cyan"))


@app.command("show-run")
def show_run_command(
    ctx: typer.Context,
    run_id: int = typer.Argument(..., help="Run ID from `runs`."),
    db_url: str | None = typer.Option(default=None, help="Optional SQLAlchemy DB URL"),
) -> None:
    init_db(db_url)
    with session_scope(db_url) as session:
        details = load_run(session, run_id)
    if details is None:
        raise typer.BadParameter(f"Run id={run_id} not found")
    if _wants_json(ctx):
        typer.echo(json.dumps(details, indent=2, ensure_ascii=False))
        return
    _print(f"run {run_id}", {k: v for k, v in details.items() if k not in {"results", "relatives", "addresses"}}, ctx)
    table = Table(show_header=True, header_style="bold green", box=ROUNDED)
    table.add_column("Class")
    table.add_column("Score", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Locator", overflow="fold")
    for row in details["results"]:
        if row["classification"] == "rejected":
            continue
        table.add_row(row["classification"], f"{row['score']:.2f}", row["title"] or "-", row["locator"])
    console.print(Panel(table, title="Results", border_style="green"))


@app.command("policy")
def policy_command(ctx: typer.Context) -> None:
    settings = get_settings()
    policy = settings.load_policy()
    payload = {
        "version": policy.version,
        "policy_file": str(settings.scoring_policy_file),
        "confirm_threshold": policy.confirm_threshold,
        "no_factor_cap": policy.no_factor_cap,
        "max_score": policy.max_score,
        "tier_base": {str(k): v for k, v in policy.tier_base.items()},
        "keyword_only_base": {str(k): v for k, v in policy.keyword_only_base.items()},
        "factor_weights": {str(k): v.weight for k, v in policy.factor_weights.items()},
    }
    _print("policy", payload, ctx)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
