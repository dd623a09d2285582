from __future__ import annotations

import logging
from dataclasses import dataclass

from osint_tracker.config import LinkWeights, NameTables, OwnershipWeights
from osint_tracker.relatives import RelativeCandidate, build_link, surname_differs
from osint_tracker.types import AddressMatch, Finding, PersonRecord, RelativeLink, Residence, Subject
from osint_tracker.utils import addresses_match, clip, first_last, key_contains, normalize_address, normalize_name

log = logging.getLogger(__name__)

HOUSEHOLD_ROLES = frozenset({"owner", "resident"})


def name_match_kind(candidate: str, target: str) -> str | None:
    """``"exact"`` on first+last token equality, ``"partial"`` on normalized containment."""
    cand_key = normalize_name(candidate)
    target_key = normalize_name(target)
    if not cand_key or not target_key:
        return None
    cand_first, cand_last = first_last(candidate)
    target_first, target_last = first_last(target)
    if cand_last and target_last and (cand_first, cand_last) == (target_first, target_last):
        return "exact"
    # single-token names are too weak for containment
    if len(cand_key.split()) < 2 or len(target_key.split()) < 2:
        return None
    if key_contains(cand_key, target_key) or key_contains(target_key, cand_key):
        return "partial"
    return None


def _matches_any(name: str, targets: list[str]) -> bool:
    return any(name_match_kind(name, target) for target in targets)


@dataclass
class AddressCorrelation:
    matches: list[AddressMatch]
    links: list[RelativeLink]


def ownership_confidence(
    weights: OwnershipWeights,
    *,
    has_owners: bool,
    owner_is_subject: bool,
    owner_in_relatives: bool,
    matched_count: int,
    other_surname_on_anchor: bool,
) -> float:
    if not has_owners:
        return 0.0
    score = weights.base
    if owner_is_subject:
        score += weights.owner_is_subject
    if owner_in_relatives:
        score += weights.owner_in_relatives
    if matched_count > 1:
        score += min(weights.extra_member_cap, weights.per_extra_member * (matched_count - 1))
    if other_surname_on_anchor:
        score += weights.shared_address_other_surname
    return round(clip(score, 0.0, weights.cap), 4)


def _household(finding: Finding) -> list[PersonRecord]:
    return [person for person in finding.persons if person.role in HOUSEHOLD_ROLES and normalize_name(person.name)]


def correlate_finding(
    finding: Finding,
    subject: Subject,
    relative_names: list[str],
    tables: NameTables,
    ownership: OwnershipWeights,
    links: LinkWeights,
    reference_year: int,
) -> tuple[AddressMatch | None, list[RelativeLink]]:
    if not finding.address:
        return None, []
    household = _household(finding)
    if not household:
        return None, []

    key = normalize_address(finding.address)
    shared_with_subject = any(addresses_match(finding.address, anchor.address) for anchor in subject.anchor_residences)

    owner_names: list[str] = []
    matched: list[str] = []
    owner_is_subject = False
    owner_in_relatives = False
    other_surname_on_anchor = False
    emitted: list[RelativeLink] = []

    for person in household:
        name = person.name.strip()
        if name not in owner_names:
            owner_names.append(name)
        if name_match_kind(name, subject.full_name):
            owner_is_subject = True
            matched.append(name)
            continue
        if _matches_any(name, relative_names):
            owner_in_relatives = True
            matched.append(name)
        if not shared_with_subject:
            continue
        if surname_differs(name, subject):
            other_surname_on_anchor = True
        residences = list(person.residences)
        if not any(addresses_match(res.address, finding.address) for res in residences):
            residences.append(Residence(address=finding.address))
        candidate = RelativeCandidate(
            name=name,
            source=finding.locator_key,
            label=person.relationship,
            role=person.role,
            residences=tuple(residences),
        )
        emitted.append(build_link(candidate, subject, tables, links, reference_year, shared_address=True))

    confidence = ownership_confidence(
        ownership,
        has_owners=bool(owner_names),
        owner_is_subject=owner_is_subject,
        owner_in_relatives=owner_in_relatives,
        matched_count=len(matched),
        other_surname_on_anchor=other_surname_on_anchor,
    )
    match = AddressMatch(
        address=finding.address.strip(),
        key=key,
        sources=[finding.locator_key],
        owner_names=owner_names,
        matched_owners=matched,
        household_members=[p.name.strip() for p in household if p.role == "resident"],
        confidence=confidence,
        owner_is_subject=owner_is_subject,
        owner_in_relatives=owner_in_relatives,
        multi_person_household=len(owner_names) > 1,
        shared_with_subject=shared_with_subject,
    )
    if emitted:
        log.debug("Address %s shared with subject; %d co-resident link(s)", key, len(emitted))
    return match, emitted


def correlate_addresses(
    findings: list[Finding],
    subject: Subject,
    relative_names: list[str],
    tables: NameTables,
    ownership: OwnershipWeights,
    links: LinkWeights,
    reference_year: int,
) -> AddressCorrelation:
    matches: list[AddressMatch] = []
    emitted: list[RelativeLink] = []
    for finding in findings:
        match, found_links = correlate_finding(
            finding, subject, relative_names, tables, ownership, links, reference_year
        )
        if match is not None and match.key:
            matches.append(match)
        emitted.extend(found_links)
    return AddressCorrelation(matches=matches, links=emitted)
