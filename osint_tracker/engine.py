"""One investigation run: raw findings in, a classified report out.

``correlate`` is a pure batch computation over its inputs. Callers refresh a
report by re-running it on the grown finding set.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from osint_tracker.addresses import correlate_addresses
from osint_tracker.config import NameTables, ScoringPolicy, Settings, get_settings
from osint_tracker.dedup import dedupe_findings, merge_address_matches, merge_relative_links
from osint_tracker.name_match import NameMatch, match_finding
from osint_tracker.relatives import (
    build_link,
    extract_relatives,
    finalize_link,
    provided_links,
    structured_candidates,
)
from osint_tracker.scoring import ScoringContext, score_finding
from osint_tracker.types import (
    Classification,
    CorrelationReport,
    Finding,
    MatchResult,
    NameTier,
    RelativeLink,
    Subject,
)
from osint_tracker.utils import normalize_url

log = logging.getLogger(__name__)

FindingInput = Finding | Mapping[str, Any]


def _rejected(reason: str, finding: Finding | None = None, locator: str = "") -> MatchResult:
    return MatchResult(
        finding=finding,
        locator_key=finding.locator_key if finding is not None else normalize_url(locator),
        classification=Classification.REJECTED,
        reason=reason,
    )


def validate_findings(items: Iterable[FindingInput]) -> tuple[list[Finding], list[MatchResult]]:
    valid: list[Finding] = []
    rejected: list[MatchResult] = []
    for item in items:
        if isinstance(item, Finding):
            finding = item
        else:
            try:
                finding = Finding.model_validate(item)
            except ValidationError as exc:
                locator = item.get("locator", "") if isinstance(item, Mapping) else ""
                log.warning("Rejecting malformed finding %r: %s", locator, exc.errors()[0].get("msg", exc))
                rejected.append(_rejected("malformed finding", locator=str(locator or "")))
                continue
        if not finding.locator_key:
            log.warning("Rejecting finding without a locator (title=%r)", finding.title[:60])
            rejected.append(_rejected("missing locator", finding))
            continue
        if not finding.text.strip():
            log.warning("Rejecting finding %s with no text", finding.locator_key)
            rejected.append(_rejected("empty text", finding))
            continue
        valid.append(finding)
    return valid, rejected


def _collect_links(
    findings: list[Finding],
    matches: dict[str, NameMatch],
    subject: Subject,
    tables: NameTables,
    policy: ScoringPolicy,
    reference_year: int,
) -> list[RelativeLink]:
    links: list[RelativeLink] = []
    for finding in findings:
        # relatives are only mined from findings that are about the subject
        if not matches[finding.locator_key].matched:
            continue
        candidates = extract_relatives(finding.text, subject, tables, source=finding.locator_key)
        candidates.extend(structured_candidates(finding, subject))
        links.extend(build_link(c, subject, tables, policy.links, reference_year) for c in candidates)
    return links


def _sort_results(results: list[MatchResult]) -> list[MatchResult]:
    return sorted(results, key=lambda result: (-result.score, result.locator_key))


def correlate(
    subject: Subject | Mapping[str, Any],
    findings: Iterable[FindingInput],
    *,
    settings: Settings | None = None,
    policy: ScoringPolicy | None = None,
    tables: NameTables | None = None,
) -> CorrelationReport:
    settings = settings or get_settings()
    policy = policy or settings.load_policy()
    tables = tables or settings.load_name_tables()
    if not isinstance(subject, Subject):
        subject = Subject.model_validate(subject)

    raw = list(findings)
    valid, rejected = validate_findings(raw)
    kept, dropped = dedupe_findings(valid)

    name_matches = {finding.locator_key: match_finding(finding, subject.full_name, policy) for finding in kept}

    links = provided_links(subject, tables, policy.links)
    links.extend(_collect_links(kept, name_matches, subject, tables, policy, settings.reference_year))
    relative_names = [link.name for link in merge_relative_links(links)]

    correlation = correlate_addresses(
        kept,
        subject,
        relative_names,
        tables,
        policy.ownership,
        policy.links,
        settings.reference_year,
    )
    links.extend(correlation.links)
    relatives = [finalize_link(link, policy.links) for link in merge_relative_links(links)]
    relatives = sorted(relatives, key=lambda link: (-link.confidence, link.key))[: settings.max_relatives]
    addresses = sorted(merge_address_matches(correlation.matches), key=lambda match: (-match.confidence, match.key))

    context = ScoringContext(
        subject=subject,
        policy=policy,
        inferred_relatives={
            link.key: (link.name, set(link.sources)) for link in relatives if not link.provided and link.sources
        },
    )

    confirmed: list[MatchResult] = []
    possible: list[MatchResult] = []
    for finding in kept:
        try:
            result = score_finding(finding, name_matches[finding.locator_key], context)
        except Exception:  # noqa: BLE001
            log.exception("Failed to score finding %s", finding.locator_key)
            rejected.append(_rejected("scoring error", finding))
            continue
        if result.classification == Classification.CONFIRMED:
            confirmed.append(result)
        elif result.classification == Classification.POSSIBLE:
            possible.append(result)
        else:
            rejected.append(result)

    stats = {
        "findings": len(raw),
        "valid": len(valid),
        "duplicates": len(dropped),
        "name_matched": sum(1 for match in name_matches.values() if match.tier != NameTier.NONE),
        "confirmed": len(confirmed),
        "possible": len(possible),
        "rejected": len(rejected),
        "relatives": len(relatives),
        "addresses": len(addresses),
    }
    log.info(
        "Correlated %d findings for %s: %d confirmed, %d possible, %d rejected, %d relatives",
        stats["findings"],
        subject.full_name,
        stats["confirmed"],
        stats["possible"],
        stats["rejected"],
        stats["relatives"],
    )
    return CorrelationReport(
        subject=subject,
        confirmed=_sort_results(confirmed),
        possible=_sort_results(possible),
        rejected=sorted(rejected, key=lambda result: (result.locator_key, result.reason)),
        relatives=relatives,
        addresses=addresses,
        stats=stats,
    )
