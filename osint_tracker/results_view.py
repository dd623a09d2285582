from __future__ import annotations

from typing import Any

from rich.box import ROUNDED
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from osint_tracker.types import CorrelationReport, MatchResult


def _redact(value: str) -> str:
    if "@" in value:
        user, _, domain = value.partition("@")
        return f"{user[:2]}***@{domain}"
    return value


def _result_row(result: MatchResult) -> dict[str, Any]:
    finding = result.finding
    return {
        "locator": finding.locator if finding else result.locator_key,
        "source": finding.source if finding else "",
        "title": finding.title if finding else "",
        "tier": result.tier.value,
        "score": result.score,
        "badges": result.badges,
        "summary": result.summary,
        "keyword_only": result.keyword_only,
        "factors": [{"kind": f.kind.value, "value": f.value, "weight": f.weight} for f in result.factors],
    }


def report_payload(report: CorrelationReport, *, top_n: int | None = None, include_private: bool = False) -> dict[str, Any]:
    """JSON-ready view of a report. Contact values in factors are redacted unless asked for."""
    confirmed = [_result_row(result) for result in report.confirmed[:top_n]]
    possible = [_result_row(result) for result in report.possible[:top_n]]
    if not include_private:
        for row in [*confirmed, *possible]:
            for factor in row["factors"]:
                if factor["kind"] == "email":
                    factor["value"] = _redact(factor["value"])
    return {
        "subject": report.subject.full_name,
        "stats": report.stats,
        "confirmed": confirmed,
        "possible": possible,
        "rejected": [{"locator_key": r.locator_key, "reason": r.reason or "no name match"} for r in report.rejected],
        "relatives": [link.model_dump(mode="json") for link in report.relatives],
        "addresses": [match.model_dump(mode="json") for match in report.addresses],
    }


def _results_table(rows: list[dict[str, Any]], *, header_style: str) -> Table:
    table = Table(show_header=True, header_style=header_style, box=ROUNDED)
    table.add_column("#", style="dim")
    table.add_column("Score", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Source")
    table.add_column("Badges")
    table.add_column("Locator", overflow="fold")
    for idx, row in enumerate(rows, start=1):
        table.add_row(
            str(idx),
            f"{row['score']:.2f}",
            row["title"] or "-",
            row["source"],
            ", ".join(row["badges"]) or "-",
            row["locator"],
        )
    return table


def render_report(console: Console, payload: dict[str, Any]) -> None:
    summary = Table(show_header=True, header_style="bold cyan", box=ROUNDED)
    summary.add_column("Metric", style="bold")
    summary.add_column("Value")
    summary.add_row("subject", str(payload["subject"]))
    for key, value in payload["stats"].items():
        summary.add_row(key, str(value))
    console.print(Panel(summary, title="Correlation Summary", border_style="cyan"))

    if payload["confirmed"]:
        console.print(
            Panel(_results_table(payload["confirmed"], header_style="bold green"), title="Confirmed", border_style="green")
        )
    if payload["possible"]:
        console.print(
            Panel(_results_table(payload["possible"], header_style="bold yellow"), title="Possible", border_style="yellow")
        )

    relatives = payload["relatives"]
    if relatives:
        table = Table(show_header=True, header_style="bold magenta", box=ROUNDED)
        table.add_column("Name", style="bold")
        table.add_column("Relationship")
        table.add_column("Label")
        table.add_column("Tier")
        table.add_column("Confidence", justify="right")
        table.add_column("Sources", justify="right")
        table.add_column("Co-residence")
        for link in relatives:
            co_res = "-"
            if link["co_residence_addresses"]:
                co_res = f"{link['co_residence_addresses']} addr / {link['co_residence_years']} yrs"
            table.add_row(
                link["name"],
                link["relationship"],
                link.get("label") or "-",
                link["tier"],
                f"{link['confidence']:.2f}",
                str(len(link["sources"])),
                co_res,
            )
        console.print(Panel(table, title="Relatives & Associates", border_style="magenta"))

    addresses = payload["addresses"]
    if addresses:
        table = Table(show_header=True, header_style="bold blue", box=ROUNDED)
        table.add_column("Address", style="bold")
        table.add_column("Owners")
        table.add_column("Matched")
        table.add_column("Confidence", justify="right")
        table.add_column("Flags")
        for match in addresses:
            flags = [
                name
                for name in ("owner_is_subject", "owner_in_relatives", "multi_person_household", "shared_with_subject")
                if match.get(name)
            ]
            table.add_row(
                match["address"],
                ", ".join(match["owner_names"]) or "-",
                ", ".join(match["matched_owners"]) or "-",
                f"{match['confidence']:.2f}",
                ", ".join(flags) or "-",
            )
        console.print(Panel(table, title="Address & Ownership", border_style="blue"))
