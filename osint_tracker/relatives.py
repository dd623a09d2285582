"""Relative and associate extraction plus relationship classification.

Free text yields candidates through a single pattern only: a capitalised
first name immediately followed by the subject's surname ("Moira Petrie").
Structured records (people-search relatives, business associates) are taken
as given. Every candidate then becomes a ``RelativeLink`` scored from
surname agreement, shared residence and whether the user already named them.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from rapidfuzz import fuzz

from osint_tracker.config import LinkWeights, NameTables
from osint_tracker.types import (
    Finding,
    KnownRelative,
    LinkTier,
    RelationshipType,
    RelativeLink,
    Residence,
    Subject,
)
from osint_tracker.utils import addresses_match, clip, name_tokens, normalize_address, normalize_name, surname_of

log = logging.getLogger(__name__)

CONTEXT_WINDOW_CHARS = 50
FUZZY_NAME_THRESHOLD = 92
MIN_FIRST_NAME_LENGTH = 3

STRUCTURED_RELATIVE_ROLES = frozenset({"relative", "associate"})
SPOUSE_LABELS = frozenset({"spouse", "wife", "husband", "partner", "fiance", "fiancee"})

_CONTEXT_WORD_RE = re.compile(r"[a-z][a-z-]*")


@dataclass(frozen=True)
class RelativeCandidate:
    name: str
    source: str
    label: str | None = None
    role: str = ""
    residences: tuple[Residence, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return normalize_name(self.name)


def is_valid_first_name(token: str, tables: NameTables, *, subject_first: str = "") -> bool:
    lowered = token.casefold()
    if not token or lowered == subject_first.casefold():
        return False
    if lowered in tables.non_name_words:
        return False
    if lowered in tables.common_first_names:
        return True
    return (
        len(token) >= MIN_FIRST_NAME_LENGTH
        and token.isalpha()
        and token[0].isupper()
        and token[1:].islower()
    )


def surname_pattern(surname: str) -> re.Pattern[str]:
    # The first name must be capitalised as written; the surname may be in any case.
    return re.compile(rf"\b([A-Z][a-z]{{2,15}})\s+(?i:{re.escape(surname)})\b")


def context_label(text: str, start: int, end: int, tables: NameTables) -> str | None:
    """Nearest relationship word within the context window around a mention."""
    lo = max(0, start - CONTEXT_WINDOW_CHARS)
    hi = min(len(text), end + CONTEXT_WINDOW_CHARS)
    window = text[lo:hi].casefold()
    best: tuple[int, str] | None = None
    for match in _CONTEXT_WORD_RE.finditer(window):
        label = tables.relationship_context.get(match.group(0))
        if label is None:
            continue
        word_start = lo + match.start()
        word_end = lo + match.end()
        distance = start - word_end if word_end <= start else max(0, word_start - end)
        if best is None or distance < best[0]:
            best = (distance, label)
    return best[1] if best else None


def extract_relatives(text: str, subject: Subject, tables: NameTables, *, source: str = "") -> list[RelativeCandidate]:
    surname = subject.surname
    if not text or not surname:
        return []
    candidates: dict[str, RelativeCandidate] = {}
    for match in surname_pattern(surname).finditer(text):
        first = match.group(1)
        if not is_valid_first_name(first, tables, subject_first=subject.first_name):
            continue
        written_surname = match.group(0)[len(first):].strip()
        name = f"{first} {written_surname if not written_surname.isupper() else written_surname.title()}"
        key = normalize_name(name)
        if key in candidates:
            continue
        candidates[key] = RelativeCandidate(
            name=name,
            source=source,
            label=context_label(text, match.start(), match.end(), tables),
        )
    return list(candidates.values())


def structured_candidates(finding: Finding, subject: Subject) -> list[RelativeCandidate]:
    subject_key = normalize_name(subject.full_name)
    out: list[RelativeCandidate] = []
    for person in finding.persons:
        if person.role not in STRUCTURED_RELATIVE_ROLES:
            continue
        if not normalize_name(person.name) or normalize_name(person.name) == subject_key:
            continue
        out.append(
            RelativeCandidate(
                name=person.name.strip(),
                source=finding.locator_key,
                label=person.relationship,
                role=person.role,
                residences=tuple(person.residences),
            )
        )
    return out


def match_provided(name: str, subject: Subject) -> KnownRelative | None:
    """The user-provided relative this name refers to, tolerating small spelling drift."""
    key = normalize_name(name)
    if not key:
        return None
    best: tuple[float, KnownRelative] | None = None
    for relative in subject.known_relatives:
        relative_key = normalize_name(relative.name)
        if not relative_key:
            continue
        if relative_key == key:
            return relative
        score = fuzz.ratio(key, relative_key)
        if score >= FUZZY_NAME_THRESHOLD and (best is None or score > best[0]):
            best = (score, relative)
    return best[1] if best else None


def same_surname(name: str, subject: Subject) -> bool:
    surname = subject.surname
    tokens = name_tokens(name)
    return bool(surname) and len(tokens) >= 2 and tokens[-1] == surname


def classify_relationship(
    name: str,
    subject: Subject,
    tables: NameTables,
    *,
    shared_address: bool = False,
    provided: KnownRelative | None = None,
    role: str = "",
    label: str | None = None,
) -> RelationshipType:
    label = (label or (provided.relationship if provided else None) or "").strip().casefold()
    if same_surname(name, subject):
        return RelationshipType.BLOOD_RELATIVE
    if provided is not None:
        if label in tables.associate_labels:
            return RelationshipType.ASSOCIATE
        return RelationshipType.SPOUSE_OR_PARTNER
    if shared_address or label in SPOUSE_LABELS or tables.relationship_context.get(label) == "spouse":
        return RelationshipType.SPOUSE_OR_PARTNER
    if role == "associate" or label in tables.associate_labels:
        return RelationshipType.ASSOCIATE
    return RelationshipType.UNKNOWN


@dataclass
class CoResidence:
    addresses: int = 0
    years: int = 0
    shared: list[str] = field(default_factory=list)
    first_year: int | None = None
    last_year: int | None = None


def _overlap(left: Residence, right: Residence, reference_year: int) -> tuple[int, int] | None:
    if left.from_year is None or right.from_year is None:
        return None
    start = max(left.from_year, right.from_year)
    stop = min(left.to_year or reference_year, right.to_year or reference_year)
    if stop < start:
        return None
    return start, stop


def co_residence(
    subject_residences: list[Residence],
    person_residences: list[Residence],
    reference_year: int,
) -> CoResidence:
    """Distinct shared addresses and the years both parties spent there."""
    result = CoResidence()
    shared_keys: set[str] = set()
    for mine in subject_residences:
        for theirs in person_residences:
            if not addresses_match(mine.address, theirs.address):
                continue
            key = normalize_address(mine.address)
            if key not in shared_keys:
                shared_keys.add(key)
                result.shared.append(mine.address)
            span = _overlap(mine, theirs, reference_year)
            if span is None:
                continue
            start, stop = span
            result.years += stop - start
            result.first_year = start if result.first_year is None else min(result.first_year, start)
            result.last_year = stop if result.last_year is None else max(result.last_year, stop)
    result.addresses = len(shared_keys)
    return result


def link_confidence(
    weights: LinkWeights,
    *,
    same_surname: bool,
    shared_address: bool,
    provided: bool,
) -> float:
    score = weights.base
    if same_surname:
        score += weights.same_surname
    if shared_address:
        score += weights.shared_address
        if not same_surname:
            score += weights.spouse_pattern
    if provided:
        score += weights.provided
    return round(clip(score, 0.0, weights.cap), 4)


def link_tier(link: RelativeLink) -> LinkTier:
    if link.multi_source_confirmed and link.confidence >= 0.8:
        return LinkTier.CONFIRMED
    if link.co_residence_addresses >= 2 or link.co_residence_years >= 5:
        return LinkTier.CONFIRMED
    if len(link.sources) >= 2 and link.confidence >= 0.6:
        return LinkTier.LIKELY
    if link.confidence >= 0.5:
        return LinkTier.POSSIBLE
    return LinkTier.UNVERIFIED


def build_link(
    candidate: RelativeCandidate,
    subject: Subject,
    tables: NameTables,
    weights: LinkWeights,
    reference_year: int,
    *,
    shared_address: bool = False,
) -> RelativeLink:
    provided = match_provided(candidate.name, subject)
    shared = co_residence(subject.anchor_residences, list(candidate.residences), reference_year)
    has_shared = shared_address or shared.addresses > 0
    name = provided.name if provided else candidate.name
    is_same_surname = same_surname(name, subject)
    relationship = classify_relationship(
        name,
        subject,
        tables,
        shared_address=has_shared,
        provided=provided,
        role=candidate.role,
        label=candidate.label,
    )
    return RelativeLink(
        name=name,
        key=normalize_name(name),
        relationship=relationship,
        label=candidate.label or (provided.relationship if provided else None),
        sources=[candidate.source] if candidate.source else [],
        confidence=link_confidence(
            weights,
            same_surname=is_same_surname,
            shared_address=has_shared,
            provided=provided is not None,
        ),
        co_residence_addresses=shared.addresses,
        co_residence_years=shared.years,
        shared_addresses=shared.shared,
        provided=provided is not None,
        first_seen_year=shared.first_year,
        last_seen_year=shared.last_year,
    )


def provided_links(subject: Subject, tables: NameTables, weights: LinkWeights) -> list[RelativeLink]:
    subject_key = normalize_name(subject.full_name)
    links: list[RelativeLink] = []
    for relative in subject.known_relatives:
        key = normalize_name(relative.name)
        if not key or key == subject_key:
            continue
        links.append(
            RelativeLink(
                name=relative.name.strip(),
                key=key,
                relationship=classify_relationship(relative.name, subject, tables, provided=relative),
                label=relative.relationship,
                confidence=link_confidence(
                    weights,
                    same_surname=same_surname(relative.name, subject),
                    shared_address=False,
                    provided=True,
                ),
                provided=True,
            )
        )
    return links


def finalize_link(link: RelativeLink, weights: LinkWeights) -> RelativeLink:
    """Apply the multi-source bonus once sources are merged, then assign the tier."""
    bonus = 0.0
    if len(link.sources) > 1:
        bonus = min(weights.extra_source_cap, weights.per_extra_source * (len(link.sources) - 1))
    confidence = round(clip(link.confidence + bonus, 0.0, weights.cap), 4)
    updated = link.model_copy(
        update={"confidence": confidence, "multi_source_confirmed": link.multi_source_confirmed or len(link.sources) > 1}
    )
    return updated.model_copy(update={"tier": link_tier(updated)})


def surname_differs(name: str, subject: Subject) -> bool:
    other = surname_of(name)
    return bool(other) and bool(subject.surname) and other != subject.surname
