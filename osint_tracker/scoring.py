"""Corroboration scoring.

A finding's confidence is a base taken from its name-match tier plus one
increment per corroborating factor, read from the declarative weight table
in the scoring policy. The final clamp enforces two invariants: a finding
with no corroborating factor never reaches the confirmation threshold, and
no score exceeds ``max_score``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from osint_tracker.config import ScoringPolicy
from osint_tracker.name_match import NameMatch, match_name
from osint_tracker.types import (
    Classification,
    Factor,
    FactorKind,
    Finding,
    KnownRelative,
    MatchResult,
    NameTier,
    Subject,
)
from osint_tracker.utils import (
    addresses_match,
    clip,
    key_contains,
    name_tokens,
    normalize_address,
    normalize_email,
    normalize_name,
    normalize_street_text,
    phone_in_text,
    unique_list,
)

log = logging.getLogger(__name__)

# Signals that can justify keeping a finding with no name match at all.
KEYWORD_CLASS = frozenset({FactorKind.KEYWORD, FactorKind.KNOWN_RELATIVE, FactorKind.RELATIVE_MENTION})

MIN_USERNAME_LENGTH = 3


@dataclass
class ScoringContext:
    subject: Subject
    policy: ScoringPolicy
    # normalized relative name -> locator keys of the findings it was inferred from
    inferred_relatives: dict[str, tuple[str, set[str]]] = field(default_factory=dict)

    @property
    def provided_relatives(self) -> list[KnownRelative]:
        subject_key = normalize_name(self.subject.full_name)
        return [rel for rel in self.subject.known_relatives if normalize_name(rel.name) not in ("", subject_key)]


def is_keyword_potential_relative(keyword: str, subject: Subject) -> bool:
    keyword_key = normalize_name(keyword)
    if not keyword_key or keyword_key == normalize_name(subject.full_name):
        return False
    for relative in subject.known_relatives:
        relative_key = normalize_name(relative.name)
        if relative_key and (key_contains(keyword_key, relative_key) or key_contains(relative_key, keyword_key)):
            return True
    tokens = name_tokens(keyword)
    return len(tokens) >= 2 and bool(subject.surname) and tokens[-1] == subject.surname


def _mentions(text: str, name: str) -> bool:
    # phrase or adjacent forms only; loose proximity is too weak for a third party
    return match_name(text, name, low_trust=True).matched


def detect_location(text: str, subject: Subject) -> str | None:
    if subject.city and re.search(rf"\b{re.escape(subject.city)}\b", text, re.IGNORECASE):
        return subject.city
    state = (subject.state or "").strip()
    if len(state) <= 2:
        state = state.upper()
    if not state:
        return None
    flags = 0 if len(state) <= 2 else re.IGNORECASE
    if re.search(rf"\b{re.escape(state)}\b", text, flags):
        return state
    return None


def detect_phone(finding: Finding, subject: Subject) -> str | None:
    if not subject.phone:
        return None
    if phone_in_text(subject.phone, finding.phone or "") or phone_in_text(subject.phone, finding.text):
        return subject.phone
    return None


def detect_email(finding: Finding, subject: Subject) -> str | None:
    email = normalize_email(subject.email)
    if not email:
        return None
    if normalize_email(finding.email) == email or email in finding.text.casefold():
        return subject.email
    return None


def detect_username(finding: Finding, subject: Subject) -> str | None:
    username = (subject.username or "").strip().lstrip("@")
    if len(username) < MIN_USERNAME_LENGTH:
        return None
    pattern = rf"(?<![\w.-]){re.escape(username)}(?![\w-])"
    for haystack in (finding.text, finding.locator):
        if re.search(pattern, haystack, re.IGNORECASE):
            return username
    return None


def detect_keywords(text: str, keywords: list[str]) -> list[str]:
    return [keyword for keyword in unique_list(keywords) if re.search(
        r"(?<!\w)" + r"\s+".join(re.escape(part) for part in keyword.split()) + r"(?!\w)",
        text,
        re.IGNORECASE,
    )]


def detect_address(finding: Finding, subject: Subject) -> str | None:
    text_key = normalize_street_text(finding.text)
    for residence in subject.anchor_residences:
        anchor_key = normalize_address(residence.address)
        if len(anchor_key.split()) < 2:
            continue
        if finding.address and addresses_match(finding.address, residence.address):
            return residence.address
        if key_contains(text_key, anchor_key):
            return residence.address
    return None


def detect_factors(finding: Finding, context: ScoringContext) -> list[Factor]:
    subject = context.subject
    text = finding.text
    factors: list[Factor] = []

    location = detect_location(text, subject)
    if location:
        factors.append(Factor(kind=FactorKind.LOCATION, value=location))
    phone = detect_phone(finding, subject)
    if phone:
        factors.append(Factor(kind=FactorKind.PHONE, value=phone))
    email = detect_email(finding, subject)
    if email:
        factors.append(Factor(kind=FactorKind.EMAIL, value=email))
    username = detect_username(finding, subject)
    if username:
        factors.append(Factor(kind=FactorKind.USERNAME, value=username))

    keyword_hits = detect_keywords(text, subject.keywords)
    relative_keywords = [kw for kw in keyword_hits if is_keyword_potential_relative(kw, subject)]
    plain_keywords = [kw for kw in keyword_hits if kw not in relative_keywords]
    if plain_keywords:
        factors.append(Factor(kind=FactorKind.KEYWORD, value=", ".join(plain_keywords), count=len(plain_keywords)))

    known = [rel.name for rel in context.provided_relatives if _mentions(text, rel.name)]
    known_keys = {normalize_name(name) for name in known}
    if known:
        factors.append(Factor(kind=FactorKind.KNOWN_RELATIVE, value=", ".join(known)))

    inferred: list[str] = [kw for kw in relative_keywords if normalize_name(kw) not in known_keys]
    locator_key = finding.locator_key
    for key, (name, sources) in sorted(context.inferred_relatives.items()):
        if key in known_keys or not (sources - {locator_key}):
            continue
        if _mentions(text, name) and name not in inferred:
            inferred.append(name)
    if inferred:
        factors.append(Factor(kind=FactorKind.RELATIVE_MENTION, value=", ".join(unique_list(inferred))))

    address = detect_address(finding, subject)
    if address:
        factors.append(Factor(kind=FactorKind.ADDRESS, value=address))
    return factors


def accumulate(base: float, factors: list[Factor], policy: ScoringPolicy) -> tuple[float, list[Factor]]:
    """Fold the weight table over the detected factors, then clamp."""
    weighted: list[Factor] = []
    score = base
    for factor in factors:
        increment = policy.weight_for(factor.kind).increment(factor.count)
        score += increment
        weighted.append(factor.model_copy(update={"weight": round(increment, 4)}))
    if not weighted:
        score = min(score, policy.no_factor_cap)
    score = clip(score, 0.0, policy.max_score)
    return round(score, 4), weighted


def classify(score: float, factors: list[Factor], policy: ScoringPolicy) -> Classification:
    if factors and score >= policy.confirm_threshold:
        return Classification.CONFIRMED
    return Classification.POSSIBLE


def score_finding(finding: Finding, name_match: NameMatch, context: ScoringContext) -> MatchResult:
    policy = context.policy
    factors = detect_factors(finding, context)

    keyword_only = False
    if name_match.tier == NameTier.NONE:
        if not any(factor.kind in KEYWORD_CLASS for factor in factors):
            return MatchResult(
                finding=finding,
                locator_key=finding.locator_key,
                tier=NameTier.NONE,
                factors=factors,
                classification=Classification.REJECTED,
                reason="no name match and no keyword signal",
            )
        keyword_only = True
        base = policy.keyword_only_base.get(finding.produced_by, 0.0)
    else:
        base = policy.tier_base.get(name_match.tier, 0.0)

    score, weighted = accumulate(base, factors, policy)
    classification = classify(score, weighted, policy)
    log.debug(
        "Scored %s tier=%s factors=%s score=%.2f -> %s",
        finding.locator_key,
        name_match.tier,
        [f.kind.value for f in weighted],
        score,
        classification,
    )
    return MatchResult(
        finding=finding,
        locator_key=finding.locator_key,
        tier=name_match.tier,
        rule=name_match.rule or ("keyword_only" if keyword_only else ""),
        factors=weighted,
        score=score,
        classification=classification,
        keyword_only=keyword_only,
    )
