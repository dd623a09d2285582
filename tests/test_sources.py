import json

import pytest

from osint_tracker.sources.common import html_to_text, split_values, synthetic_locator
from osint_tracker.sources.payloads import (
    FindingLoadError,
    load_findings,
    load_subject,
    payload_to_finding,
)
from osint_tracker.types import Finding, QueryOrigin


def test_html_snippets_are_flattened() -> None:
    assert html_to_text("<b>John</b> Smith &amp; co") == "John Smith & co"
    assert html_to_text("<div><script>var x;</script><p>Moira   Petrie</p></div>") == "Moira Petrie"
    assert html_to_text("plain\xa0text") == "plain text"
    assert html_to_text(None) == ""


def test_split_values() -> None:
    assert split_values(["555-1234", " ", "555-9876"]) == ["555-1234", "555-9876"]
    assert split_values("a@example.com; b@example.com") == ["a@example.com", "b@example.com"]
    assert split_values('["x", "y"]') == ["x", "y"]


def test_synthetic_locator_is_stable() -> None:
    payload = {"address": "456 Elm St", "owners": ["Yana Shapiro"]}
    assert synthetic_locator("property", payload) == synthetic_locator("property", dict(payload))
    assert synthetic_locator("property", payload).startswith("property:")


def test_web_result_adapter() -> None:
    finding = payload_to_finding(
        {
            "kind": "web",
            "title": "<b>John Smith</b> - Profile",
            "snippet": "Springfield engineer",
            "url": "https://example.com/john",
            "produced_by": "exact_keyword",
        }
    )
    assert isinstance(finding, Finding)
    assert finding.title == "John Smith - Profile"
    assert finding.produced_by == QueryOrigin.EXACT_KEYWORD


def test_people_search_adapter_carries_relatives_and_residences() -> None:
    finding = payload_to_finding(
        {
            "kind": "people_search",
            "name": "Michael Petrie",
            "age": 52,
            "addresses": [
                {"street": "456 Elm St", "city": "Springfield", "state": "IL", "from_year": 2015},
                "9 Pine Rd, Peoria, IL",
            ],
            "phones": ["(555) 123-4567"],
            "relatives": [{"name": "Moira Petrie", "relationship": "sister"}, "Dee Walsh"],
        }
    )

    assert finding.source == "people_search"
    assert finding.locator.startswith("people_search:")
    assert finding.address == "456 Elm St, Springfield, IL"
    assert finding.phone == "(555) 123-4567"
    roles = [(person.name, person.role) for person in finding.persons]
    assert roles == [("Michael Petrie", "resident"), ("Moira Petrie", "relative"), ("Dee Walsh", "relative")]
    assert finding.persons[0].residences[0].from_year == 2015


def test_property_and_court_adapters() -> None:
    prop = payload_to_finding({"kind": "property", "address": "456 Elm St", "owners": ["Yana Shapiro"]})
    assert prop.source == "property_records"
    assert prop.persons[0].role == "owner"
    assert "Yana Shapiro" in prop.text

    court = payload_to_finding({"kind": "court", "case_name": "Smith v. Acme", "url": "https://records.example.com/1"})
    assert court.source == "court_records"


def test_records_without_kind_pass_through_for_validation() -> None:
    raw = payload_to_finding({"title": "x", "locator": "https://a.example.com"})
    assert raw == {"title": "x", "locator": "https://a.example.com"}
    with pytest.raises(FindingLoadError):
        payload_to_finding({"kind": "carrier_pigeon"})


def test_load_findings_reads_json_and_json_lines(tmp_path) -> None:
    array = tmp_path / "findings.json"
    array.write_text(json.dumps([{"kind": "web", "title": "John Smith", "url": "https://a.example.com"}]), encoding="utf-8")
    lines = tmp_path / "findings.jsonl"
    lines.write_text(
        "\n".join(
            [
                json.dumps({"kind": "web", "title": "John Smith", "url": "https://a.example.com"}),
                "",
                json.dumps({"title": "raw", "locator": "https://b.example.com"}),
            ]
        ),
        encoding="utf-8",
    )

    assert len(load_findings(array)) == 1
    assert len(load_findings(lines)) == 2

    broken = tmp_path / "broken.jsonl"
    broken.write_text("{not json}\n", encoding="utf-8")
    with pytest.raises(FindingLoadError):
        load_findings(broken)
    with pytest.raises(FindingLoadError):
        load_findings(tmp_path / "missing.json")


def test_load_subject_accepts_yaml_with_plain_relative_names(tmp_path) -> None:
    path = tmp_path / "subject.yaml"
    path.write_text(
        "full_name: Michael Petrie\naddress: 456 Elm Street, Springfield, IL\nknown_relatives:\n  - Moira Petrie\n",
        encoding="utf-8",
    )

    subject = load_subject(path)

    assert subject.city == "Springfield"
    assert subject.state == "IL"
    assert subject.known_relatives[0].name == "Moira Petrie"


def test_owner_names_given_as_one_string_are_not_split_into_letters() -> None:
    prop = payload_to_finding({"kind": "property", "address": "456 Elm St", "owners": "Yana Shapiro"})
    assert [person.name for person in prop.persons] == ["Yana Shapiro"]

    pair = payload_to_finding({"kind": "property", "address": "456 Elm St", "owners": "Yana Shapiro; Michael Petrie"})
    assert [person.name for person in pair.persons] == ["Yana Shapiro", "Michael Petrie"]


def test_one_bad_record_does_not_stop_loading(tmp_path) -> None:
    path = tmp_path / "findings.json"
    path.write_text(
        json.dumps(
            [
                {"kind": "web", "title": 123, "url": "https://a.example.com/numbers"},
                {"kind": "carrier_pigeon", "title": "John Smith"},
                "not an object",
                {"kind": "web", "title": "John Smith", "url": "https://b.example.com"},
            ]
        ),
        encoding="utf-8",
    )

    loaded = load_findings(path)

    assert len(loaded) == 4
    assert loaded[0].title == "123"
    assert loaded[1] == {"kind": "carrier_pigeon", "title": "John Smith"}
    assert loaded[2] == "not an object"
    assert loaded[3].title == "John Smith"
