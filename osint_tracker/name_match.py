"""Name matching: how strongly a text blob supports "this mentions the subject".

Each rule is a standalone predicate so the windows can be tuned from the
scoring policy and tested one at a time:

- ``contains_phrase``   -- the full name as a contiguous phrase
- ``forward_adjacent``  -- "John A. Smith" (first ... last within a short window)
- ``reverse_adjacent``  -- "Smith, John" (last, optional separator, first)
- ``within_proximity``  -- independent first/last mentions close together

Legal and court sources list many unrelated parties, so only the first three
rules are accepted there.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from osint_tracker.config import MatchWindows, ScoringPolicy
from osint_tracker.types import Finding, NameTier
from osint_tracker.utils import first_last, name_tokens

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NameMatch:
    tier: NameTier
    rule: str = ""

    @property
    def matched(self) -> bool:
        return self.tier != NameTier.NONE


NO_MATCH = NameMatch(tier=NameTier.NONE)


def _word(token: str) -> str:
    return rf"\b{re.escape(token)}\b"


def contains_phrase(text: str, full_name: str) -> bool:
    tokens = [token for token in full_name.split() if token]
    if not tokens:
        return False
    pattern = r"(?<!\w)" + r"\s+".join(re.escape(token) for token in tokens) + r"(?!\w)"
    return re.search(pattern, text, re.IGNORECASE) is not None


def forward_adjacent(text: str, first: str, last: str, window: int) -> bool:
    pattern = _word(first) + rf".{{0,{window}}}" + _word(last)
    return re.search(pattern, text, re.IGNORECASE) is not None


def reverse_adjacent(text: str, first: str, last: str, gap: int) -> bool:
    pattern = _word(last) + rf"[,;]?\s{{0,{gap}}}" + _word(first)
    return re.search(pattern, text, re.IGNORECASE) is not None


def token_positions(text: str, token: str) -> list[int]:
    return [m.start() for m in re.finditer(_word(token), text, re.IGNORECASE)]


def within_proximity(text: str, first: str, last: str, window: int) -> bool:
    first_hits = token_positions(text, first)
    if not first_hits:
        return False
    last_hits = token_positions(text, last)
    return any(abs(f_pos - l_pos) <= window for f_pos in first_hits for l_pos in last_hits)


def match_name(
    text: str,
    full_name: str,
    *,
    low_trust: bool = False,
    windows: MatchWindows | None = None,
) -> NameMatch:
    if not text or not full_name.strip():
        return NO_MATCH
    win = windows or MatchWindows()

    if contains_phrase(text, full_name):
        return NameMatch(tier=NameTier.EXACT, rule="phrase")

    if len(name_tokens(full_name)) < 2:
        return NO_MATCH
    first, last = first_last(full_name)
    adjacent_tier = NameTier.ADJACENT if win.distinguish_adjacent else NameTier.EXACT

    if forward_adjacent(text, first, last, win.adjacency_chars):
        return NameMatch(tier=adjacent_tier, rule="forward_adjacent")
    if reverse_adjacent(text, first, last, win.reverse_gap_chars):
        return NameMatch(tier=adjacent_tier, rule="reverse_adjacent")

    if low_trust:
        return NO_MATCH

    if within_proximity(text, first, last, win.proximity_chars):
        return NameMatch(tier=NameTier.PROXIMITY, rule="proximity")
    return NO_MATCH


def is_low_trust_source(finding: Finding, policy: ScoringPolicy) -> bool:
    source = finding.source.strip().casefold()
    if source in {s.casefold() for s in policy.low_trust_sources}:
        return True
    locator = finding.locator.casefold()
    return any(marker in locator for marker in policy.low_trust_url_markers)


def match_finding(finding: Finding, full_name: str, policy: ScoringPolicy) -> NameMatch:
    low_trust = is_low_trust_source(finding, policy)
    result = match_name(finding.text, full_name, low_trust=low_trust, windows=policy.windows)
    if low_trust and not result.matched:
        log.debug("Strict matching rejected low-trust finding %s", finding.locator)
    return result
