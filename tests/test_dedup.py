from osint_tracker.dedup import dedupe_findings, merge_address_matches, merge_relative_links
from osint_tracker.types import AddressMatch, Finding, RelationshipType, RelativeLink


def test_findings_differing_by_query_or_trailing_slash_collapse() -> None:
    first = Finding(title="John Smith profile", locator="https://www.example.com/p/john?utm=1")
    second = Finding(title="John Smith profile (copy)", locator="https://example.com/p/john/")
    third = Finding(title="Other", locator="https://example.com/p/jane")

    kept, dropped = dedupe_findings([first, second, third])

    assert [finding.locator_key for finding in kept] == ["example.com/p/jane", "example.com/p/john"]
    assert len(dropped) == 1

    kept_reversed, _ = dedupe_findings([third, second, first])
    assert kept_reversed == kept


def test_relative_links_merge_by_normalized_name() -> None:
    weaker = RelativeLink(
        name="Moira Petrie",
        key="moira petrie",
        relationship=RelationshipType.UNKNOWN,
        sources=["a.example.com"],
        confidence=0.55,
        co_residence_addresses=1,
        co_residence_years=3,
    )
    stronger = RelativeLink(
        name="MOIRA PETRIE",
        key="moira petrie",
        relationship=RelationshipType.BLOOD_RELATIVE,
        label="sister",
        sources=["b.example.com", "a.example.com"],
        confidence=0.7,
        co_residence_addresses=1,
        co_residence_years=2,
    )

    merged = merge_relative_links([weaker, stronger])

    assert len(merged) == 1
    link = merged[0]
    assert link.confidence == 0.7
    assert link.sources == ["a.example.com", "b.example.com"]
    # counters take the larger value, never the sum
    assert link.co_residence_addresses == 1
    assert link.co_residence_years == 3
    assert link.relationship == RelationshipType.BLOOD_RELATIVE
    assert link.label == "sister"
    assert link.multi_source_confirmed


def test_spouse_relationship_wins_on_merge() -> None:
    links = [
        RelativeLink(name="Yana Shapiro", key="yana shapiro", relationship=RelationshipType.ASSOCIATE, sources=["x"]),
        RelativeLink(name="Yana Shapiro", key="yana shapiro", relationship=RelationshipType.SPOUSE_OR_PARTNER),
    ]
    assert merge_relative_links(links)[0].relationship == RelationshipType.SPOUSE_OR_PARTNER


def test_address_matches_merge_by_key() -> None:
    one = AddressMatch(
        address="456 Elm St",
        key="456 elm st",
        sources=["property:1"],
        owner_names=["Yana Shapiro"],
        confidence=0.5,
    )
    two = AddressMatch(
        address="456 Elm Street",
        key="456 elm st",
        sources=["people_search:2"],
        owner_names=["Yana Shapiro", "Michael Petrie"],
        matched_owners=["Michael Petrie"],
        confidence=0.8,
        owner_is_subject=True,
    )

    merged = merge_address_matches([one, two])

    assert len(merged) == 1
    match = merged[0]
    assert match.confidence == 0.8
    assert match.sources == ["people_search:2", "property:1"]
    assert match.owner_names == ["Michael Petrie", "Yana Shapiro"]
    assert match.owner_is_subject
