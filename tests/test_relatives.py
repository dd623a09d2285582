import yaml

from osint_tracker.config import NAME_TABLES_FILENAME, PACKAGE_DATA_DIR, LinkWeights, NameTables
from osint_tracker.relatives import (
    RelativeCandidate,
    build_link,
    classify_relationship,
    co_residence,
    extract_relatives,
    finalize_link,
    is_valid_first_name,
    link_confidence,
    link_tier,
    match_provided,
    structured_candidates,
)
from osint_tracker.types import Finding, LinkTier, PersonRecord, RelationshipType, RelativeLink, Residence, Subject


def _tables() -> NameTables:
    data = yaml.safe_load((PACKAGE_DATA_DIR / NAME_TABLES_FILENAME).read_text(encoding="utf-8"))
    return NameTables.model_validate(data)


def test_extracts_same_surname_relative_with_context_label() -> None:
    subject = Subject(full_name="Michael Petrie")
    text = "Moira Petrie, loving sister, survived by her nephew"

    candidates = extract_relatives(text, subject, _tables(), source="obits.example.com/petrie")

    assert [c.name for c in candidates] == ["Moira Petrie"]
    assert candidates[0].label == "sister"
    assert classify_relationship("Moira Petrie", subject, _tables()) == RelationshipType.BLOOD_RELATIVE


def test_extraction_skips_subject_stop_words_and_lowercase() -> None:
    subject = Subject(full_name="Michael Petrie")
    text = "Michael Petrie and The Petrie family thanked Beloved Petrie; moira petrie was absent"
    assert extract_relatives(text, subject, _tables()) == []


def test_first_name_validation() -> None:
    tables = _tables()
    assert is_valid_first_name("Moira", tables)
    assert is_valid_first_name("Brigida", tables)
    assert not is_valid_first_name("Survived", tables)
    assert not is_valid_first_name("Michael", tables, subject_first="michael")
    assert not is_valid_first_name("Jo", tables)


def test_structured_relatives_become_candidates() -> None:
    subject = Subject(full_name="Michael Petrie")
    finding = Finding(
        source="people_search",
        title="Michael Petrie",
        locator="https://people.example.com/michael-petrie",
        persons=[
            PersonRecord(name="Michael Petrie", role="resident"),
            PersonRecord(name="Dee Walsh", role="relative", relationship="cousin"),
            PersonRecord(name="Kate Brown", role="associate"),
        ],
    )

    candidates = structured_candidates(finding, subject)

    assert [(c.name, c.role) for c in candidates] == [("Dee Walsh", "relative"), ("Kate Brown", "associate")]
    assert classify_relationship("Kate Brown", subject, _tables(), role="associate") == RelationshipType.ASSOCIATE
    assert classify_relationship("Dee Walsh", subject, _tables(), role="relative") == RelationshipType.UNKNOWN


def test_provided_relatives_classification_and_fuzzy_lookup() -> None:
    subject = Subject(
        full_name="Michael Petrie",
        known_relatives=[
            {"name": "Yana Shapiro"},
            {"name": "Dana Cole", "relationship": "coworker"},
            {"name": "Moira Petrie", "relationship": "sister"},
        ],
    )
    tables = _tables()

    assert match_provided("Moira Petri", subject).name == "Moira Petrie"
    assert match_provided("Someone Else", subject) is None

    yana = match_provided("Yana Shapiro", subject)
    dana = match_provided("Dana Cole", subject)
    assert classify_relationship("Yana Shapiro", subject, tables, provided=yana) == RelationshipType.SPOUSE_OR_PARTNER
    assert classify_relationship("Dana Cole", subject, tables, provided=dana) == RelationshipType.ASSOCIATE


def test_shared_address_with_different_surname_is_spouse_or_partner() -> None:
    subject = Subject(full_name="Michael Petrie")
    assert (
        classify_relationship("Yana Shapiro", subject, _tables(), shared_address=True)
        == RelationshipType.SPOUSE_OR_PARTNER
    )
    assert classify_relationship("Yana Shapiro", subject, _tables()) == RelationshipType.UNKNOWN


def test_co_residence_intersects_year_ranges() -> None:
    mine = [Residence(address="456 Elm St", from_year=2010, to_year=2020), Residence(address="9 Pine Rd")]
    theirs = [
        Residence(address="456 Elm Street Apt 2", from_year=2012),
        Residence(address="77 Lake Dr", from_year=2001, to_year=2005),
    ]

    shared = co_residence(mine, theirs, reference_year=2024)

    assert shared.addresses == 1
    assert shared.years == 8
    assert shared.shared == ["456 Elm St"]
    assert (shared.first_year, shared.last_year) == (2012, 2020)


def test_link_confidence_weights() -> None:
    weights = LinkWeights()
    assert link_confidence(weights, same_surname=True, shared_address=False, provided=False) == 0.55
    assert link_confidence(weights, same_surname=False, shared_address=True, provided=False) == 0.9
    assert link_confidence(weights, same_surname=True, shared_address=True, provided=True) == 0.95


def test_link_tiers() -> None:
    assert link_tier(RelativeLink(name="a b", key="a b", co_residence_addresses=2)) == LinkTier.CONFIRMED
    assert link_tier(RelativeLink(name="a b", key="a b", co_residence_years=5)) == LinkTier.CONFIRMED
    assert link_tier(RelativeLink(name="a b", key="a b", sources=["x", "y"], confidence=0.65)) == LinkTier.LIKELY
    assert link_tier(RelativeLink(name="a b", key="a b", sources=["x"], confidence=0.55)) == LinkTier.POSSIBLE
    assert link_tier(RelativeLink(name="a b", key="a b", confidence=0.4)) == LinkTier.UNVERIFIED


def test_finalize_adds_bounded_multi_source_bonus() -> None:
    weights = LinkWeights()
    link = RelativeLink(name="Moira Petrie", key="moira petrie", sources=["a", "b", "c"], confidence=0.55)

    final = finalize_link(link, weights)

    assert final.confidence == 0.65
    assert final.multi_source_confirmed
    assert final.tier == LinkTier.LIKELY


def test_build_link_for_co_resident() -> None:
    subject = Subject(full_name="Michael Petrie", residences=[Residence(address="456 Elm St", from_year=2015)])
    candidate = RelativeCandidate(
        name="Yana Shapiro",
        source="property:1",
        role="owner",
        residences=(Residence(address="456 Elm Street", from_year=2016, to_year=2023),),
    )

    link = build_link(candidate, subject, _tables(), LinkWeights(), reference_year=2024)

    assert link.relationship == RelationshipType.SPOUSE_OR_PARTNER
    assert link.co_residence_addresses == 1
    assert link.co_residence_years == 7
    assert link.confidence == 0.9
