from osint_tracker.queries import build_query_plan
from osint_tracker.types import QueryOrigin, Subject


def test_query_plan_covers_anchors_and_relatives() -> None:
    subject = Subject(
        full_name="Michael Petrie",
        address="456 Elm Street, Springfield, IL",
        known_relatives=[{"name": "Moira Petrie", "relationship": "sister"}],
        keywords=["chess", "chess"],
    )

    plan = build_query_plan(subject)
    by_query = {item.query: item for item in plan}

    assert by_query['"Michael Petrie" Springfield IL'].origin == QueryOrigin.NAME_QUERY
    assert by_query['"456 Elm Street"'].origin == QueryOrigin.DIRECT
    assert by_query['"Michael Petrie" "Moira Petrie"'].priority == 2
    assert len([item for item in plan if item.query == '"Michael Petrie" chess']) == 1
    assert plan[0].priority == 1


def test_short_phone_numbers_are_not_queried() -> None:
    plan = build_query_plan(Subject(full_name="John Smith", phone="12345"))
    assert all(item.purpose != "phone" for item in plan)
