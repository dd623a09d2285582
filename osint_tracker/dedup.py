from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from osint_tracker.types import AddressMatch, Finding, RelationshipType, RelativeLink
from osint_tracker.utils import to_json, unique_list

log = logging.getLogger(__name__)

RELATIONSHIP_PRECEDENCE: dict[RelationshipType, int] = {
    RelationshipType.SPOUSE_OR_PARTNER: 3,
    RelationshipType.BLOOD_RELATIVE: 2,
    RelationshipType.ASSOCIATE: 1,
    RelationshipType.UNKNOWN: 0,
}


def _content_key(finding: Finding) -> str:
    return to_json(finding.model_dump(mode="json"))


def dedupe_findings(findings: Iterable[Finding]) -> tuple[list[Finding], list[Finding]]:
    """Keep one finding per normalized locator.

    The survivor is picked by content, not arrival order, so shuffling the
    input never changes which record is scored. Returns ``(kept, dropped)``.
    """
    groups: dict[str, list[Finding]] = defaultdict(list)
    for finding in findings:
        groups[finding.locator_key].append(finding)

    kept: list[Finding] = []
    dropped: list[Finding] = []
    for key in sorted(groups):
        ordered = sorted(groups[key], key=_content_key)
        kept.append(ordered[0])
        dropped.extend(ordered[1:])
        if len(ordered) > 1:
            log.debug("Collapsed %d duplicate findings for %s", len(ordered) - 1, key)
    return kept, dropped


def _union(values: Iterable[str]) -> list[str]:
    return sorted(unique_list(sorted(values)), key=str.casefold)


def pick_relationship(values: Iterable[RelationshipType]) -> RelationshipType:
    return max(values, key=lambda value: RELATIONSHIP_PRECEDENCE[value], default=RelationshipType.UNKNOWN)


def _merge_links(key: str, group: list[RelativeLink]) -> RelativeLink:
    # provided entries carry the user's spelling and label, so they sort first
    ordered = sorted(group, key=lambda link: (not link.provided, link.name))
    labels = [link.label for link in ordered if link.label]
    first_years = [link.first_seen_year for link in group if link.first_seen_year is not None]
    last_years = [link.last_seen_year for link in group if link.last_seen_year is not None]
    sources = sorted({source for link in group for source in link.sources})
    return RelativeLink(
        name=ordered[0].name,
        key=key,
        relationship=pick_relationship(link.relationship for link in group),
        label=labels[0] if labels else None,
        sources=sources,
        confidence=max(link.confidence for link in group),
        co_residence_addresses=max(link.co_residence_addresses for link in group),
        co_residence_years=max(link.co_residence_years for link in group),
        shared_addresses=_union(a for link in group for a in link.shared_addresses),
        provided=any(link.provided for link in group),
        multi_source_confirmed=any(link.multi_source_confirmed for link in group) or len(sources) > 1,
        first_seen_year=min(first_years) if first_years else None,
        last_seen_year=max(last_years) if last_years else None,
    )


def merge_relative_links(links: Iterable[RelativeLink]) -> list[RelativeLink]:
    """Collapse links for the same normalized name.

    Counters take the maximum rather than the sum: two findings describing
    the same shared address are one piece of evidence, not two.
    """
    groups: dict[str, list[RelativeLink]] = defaultdict(list)
    for link in links:
        if link.key:
            groups[link.key].append(link)
    return [_merge_links(key, groups[key]) for key in sorted(groups)]


def merge_address_matches(matches: Iterable[AddressMatch]) -> list[AddressMatch]:
    groups: dict[str, list[AddressMatch]] = defaultdict(list)
    for match in matches:
        if match.key:
            groups[match.key].append(match)

    merged: list[AddressMatch] = []
    for key in sorted(groups):
        group = groups[key]
        merged.append(
            AddressMatch(
                address=sorted(match.address for match in group)[0],
                key=key,
                sources=sorted({source for match in group for source in match.sources}),
                owner_names=_union(n for match in group for n in match.owner_names),
                matched_owners=_union(n for match in group for n in match.matched_owners),
                household_members=_union(n for match in group for n in match.household_members),
                confidence=max(match.confidence for match in group),
                owner_is_subject=any(match.owner_is_subject for match in group),
                owner_in_relatives=any(match.owner_in_relatives for match in group),
                multi_person_household=any(match.multi_person_household for match in group),
                shared_with_subject=any(match.shared_with_subject for match in group),
            )
        )
    return merged
