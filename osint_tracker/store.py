from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from osint_tracker.models import InvestigationRun, RunAddress, RunRelative, RunResult
from osint_tracker.types import CorrelationReport, MatchResult
from osint_tracker.utils import from_json, to_json


def _result_row(result: MatchResult) -> RunResult:
    finding = result.finding
    return RunResult(
        locator_key=result.locator_key,
        locator=finding.locator if finding else "",
        source=finding.source if finding else "",
        title=finding.title if finding else "",
        tier=result.tier.value,
        score=result.score,
        classification=result.classification.value,
        keyword_only=result.keyword_only,
        reason=result.reason,
        factors_json=to_json([factor.model_dump(mode="json") for factor in result.factors]),
        finding_json=to_json(finding.model_dump(mode="json") if finding else {}),
    )


def save_report(
    session: Session,
    report: CorrelationReport,
    *,
    policy_version: str = "",
    findings_hash: str = "",
) -> InvestigationRun:
    """Persist a report as a new run. Runs are append-only; re-running creates another row."""
    run = InvestigationRun(
        subject_name=report.subject.full_name,
        subject_json=to_json(report.subject.model_dump(mode="json")),
        policy_version=policy_version,
        findings_hash=findings_hash,
        stats_json=to_json(report.stats),
    )
    for result in [*report.confirmed, *report.possible, *report.rejected]:
        run.results.append(_result_row(result))
    for link in report.relatives:
        run.relatives.append(
            RunRelative(
                name=link.name,
                normalized_name=link.key,
                relationship_type=link.relationship.value,
                tier=link.tier.value,
                confidence=link.confidence,
                link_json=to_json(link.model_dump(mode="json")),
            )
        )
    for match in report.addresses:
        run.addresses.append(
            RunAddress(
                address=match.address,
                normalized_address=match.key,
                confidence=match.confidence,
                match_json=to_json(match.model_dump(mode="json")),
            )
        )
    session.add(run)
    session.flush()
    return run


def list_runs(session: Session, *, limit: int = 20) -> list[dict[str, Any]]:
    counts = (
        select(RunResult.run_id, RunResult.classification, func.count(RunResult.id))
        .group_by(RunResult.run_id, RunResult.classification)
    )
    by_run: dict[int, dict[str, int]] = {}
    for run_id, classification, count in session.execute(counts):
        by_run.setdefault(run_id, {})[classification] = count

    runs = session.execute(
        select(InvestigationRun).order_by(InvestigationRun.created_at.desc(), InvestigationRun.id.desc()).limit(limit)
    ).scalars()
    out: list[dict[str, Any]] = []
    for run in runs:
        counters = by_run.get(run.id, {})
        out.append(
            {
                "id": run.id,
                "subject": run.subject_name,
                "policy_version": run.policy_version,
                "created_at": run.created_at.isoformat() if run.created_at else "",
                "confirmed": counters.get("confirmed", 0),
                "possible": counters.get("possible", 0),
                "rejected": counters.get("rejected", 0),
            }
        )
    return out


def load_run(session: Session, run_id: int) -> dict[str, Any] | None:
    run = session.get(InvestigationRun, run_id)
    if run is None:
        return None
    results = sorted(run.results, key=lambda row: (-row.score, row.locator_key))
    return {
        "id": run.id,
        "subject": from_json(run.subject_json, {}),
        "policy_version": run.policy_version,
        "findings_hash": run.findings_hash,
        "created_at": run.created_at.isoformat() if run.created_at else "",
        "stats": from_json(run.stats_json, {}),
        "results": [
            {
                "locator_key": row.locator_key,
                "locator": row.locator,
                "source": row.source,
                "title": row.title,
                "tier": row.tier,
                "score": row.score,
                "classification": row.classification,
                "keyword_only": row.keyword_only,
                "reason": row.reason,
                "factors": from_json(row.factors_json, []),
            }
            for row in results
        ],
        "relatives": [from_json(row.link_json, {}) for row in sorted(run.relatives, key=lambda r: (-r.confidence, r.normalized_name))],
        "addresses": [from_json(row.match_json, {}) for row in sorted(run.addresses, key=lambda r: (-r.confidence, r.normalized_address))],
    }
