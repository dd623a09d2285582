from osint_tracker.config import MatchWindows, ScoringPolicy
from osint_tracker.name_match import (
    contains_phrase,
    forward_adjacent,
    is_low_trust_source,
    match_finding,
    match_name,
    reverse_adjacent,
    within_proximity,
)
from osint_tracker.types import Finding, NameTier

# "John" and "Smith" start 24 characters apart: too loose for adjacency, close enough for proximity.
PROXIMITY_TEXT = "John met the lawyer for Smith at noon"


def test_predicates_in_isolation() -> None:
    assert contains_phrase("Profile: john   SMITH, engineer", "John Smith")
    assert not contains_phrase("Johnny Smithers", "John Smith")
    assert forward_adjacent("John A. Smith", "john", "smith", 15)
    assert reverse_adjacent("Smith, John filed", "john", "smith", 5)
    assert not forward_adjacent(PROXIMITY_TEXT, "john", "smith", 15)
    assert within_proximity(PROXIMITY_TEXT, "john", "smith", 30)
    assert not within_proximity(PROXIMITY_TEXT, "john", "smith", 10)


def test_match_name_tiers() -> None:
    phrase = match_name("John Smith, 123 Oak St", "John Smith")
    assert phrase.tier == NameTier.EXACT
    assert phrase.rule == "phrase"

    assert match_name("John A. Smith spoke", "John Smith").rule == "forward_adjacent"
    assert match_name("SMITH; JOHN appeared", "John Smith").rule == "reverse_adjacent"
    assert match_name(PROXIMITY_TEXT, "John Smith").tier == NameTier.PROXIMITY
    assert match_name("John went home. " + "x" * 40 + " Smith stayed.", "John Smith").tier == NameTier.NONE


def test_adjacent_tier_can_be_reported_separately() -> None:
    windows = MatchWindows(distinguish_adjacent=True)
    assert match_name("John A. Smith", "John Smith", windows=windows).tier == NameTier.ADJACENT
    assert match_name("John Smith", "John Smith", windows=windows).tier == NameTier.EXACT


def test_single_token_names_only_match_as_phrase() -> None:
    assert match_name("Cher sang last night", "Cher").tier == NameTier.EXACT
    assert match_name("Cherry pie", "Cher").tier == NameTier.NONE


def test_court_sources_do_not_accept_proximity_matches() -> None:
    policy = ScoringPolicy()
    court = Finding(source="court_records", title=PROXIMITY_TEXT, locator="https://records.example.com/1")
    web = Finding(source="web_search", title=PROXIMITY_TEXT, locator="https://news.example.com/story")

    assert is_low_trust_source(court, policy)
    assert not is_low_trust_source(web, policy)
    assert match_finding(court, "John Smith", policy).tier == NameTier.NONE
    assert match_finding(web, "John Smith", policy).tier == NameTier.PROXIMITY


def test_legal_url_markers_make_a_source_low_trust() -> None:
    policy = ScoringPolicy()
    docket = Finding(title=PROXIMITY_TEXT, locator="https://ecf.pacer.example.gov/doc/123")
    assert is_low_trust_source(docket, policy)
    assert match_finding(docket, "John Smith", policy).tier == NameTier.NONE

    exact = Finding(source="court_records", title="Smith, John v. Acme Corp", locator="https://docket.example.com/9")
    assert match_finding(exact, "John Smith", policy).tier == NameTier.EXACT
