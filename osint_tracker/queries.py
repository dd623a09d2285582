from __future__ import annotations

from pydantic import BaseModel

from osint_tracker.types import QueryOrigin, Subject
from osint_tracker.utils import normalize_phone, unique_list


class GeneratedQuery(BaseModel):
    query: str
    origin: QueryOrigin
    priority: int
    purpose: str = ""


def _quoted(value: str) -> str:
    return f'"{value.strip()}"'


def build_query_plan(subject: Subject) -> list[GeneratedQuery]:
    """Search strings for the acquisition layer, each tagged with the origin the engine scores by.

    Lower priority numbers run first.
    """
    name = _quoted(subject.full_name)
    plan: list[GeneratedQuery] = []

    location = " ".join(part for part in (subject.city, subject.state) if part)
    plan.append(
        GeneratedQuery(
            query=f"{name} {location}".strip(),
            origin=QueryOrigin.NAME_QUERY,
            priority=1,
            purpose="name with location",
        )
    )
    if subject.address:
        plan.append(
            GeneratedQuery(
                query=_quoted(subject.address.split(",")[0]),
                origin=QueryOrigin.DIRECT,
                priority=2,
                purpose="property and residents at the anchor address",
            )
        )
    if subject.email:
        plan.append(GeneratedQuery(query=_quoted(subject.email), origin=QueryOrigin.DIRECT, priority=1, purpose="email"))
    if subject.phone and len(normalize_phone(subject.phone)) >= 7:
        plan.append(GeneratedQuery(query=_quoted(subject.phone), origin=QueryOrigin.DIRECT, priority=1, purpose="phone"))
    if subject.username:
        plan.append(
            GeneratedQuery(
                query=_quoted(subject.username.lstrip("@")),
                origin=QueryOrigin.DIRECT,
                priority=2,
                purpose="username",
            )
        )

    for keyword in unique_list(subject.keywords):
        if len(keyword.split()) > 1:
            plan.append(
                GeneratedQuery(
                    query=f"{name} {_quoted(keyword)}",
                    origin=QueryOrigin.EXACT_KEYWORD,
                    priority=2,
                    purpose=f"exact keyword: {keyword}",
                )
            )
        else:
            plan.append(
                GeneratedQuery(
                    query=f"{name} {keyword}",
                    origin=QueryOrigin.KEYWORD,
                    priority=3,
                    purpose=f"keyword: {keyword}",
                )
            )

    for relative in subject.known_relatives:
        plan.append(
            GeneratedQuery(
                query=f"{name} {_quoted(relative.name)}",
                origin=QueryOrigin.NAME_QUERY,
                priority=2,
                purpose=f"known relative: {relative.name}",
            )
        )

    # Relative discovery: obituaries and wedding notices name family members.
    if subject.surname:
        plan.append(
            GeneratedQuery(
                query=f'{_quoted(subject.surname.title())} obituary "survived by"',
                origin=QueryOrigin.KEYWORD,
                priority=4,
                purpose="relative discovery",
            )
        )
        plan.append(
            GeneratedQuery(
                query=f'{name} "married to"',
                origin=QueryOrigin.NAME_QUERY,
                priority=4,
                purpose="spouse discovery",
            )
        )

    seen: set[str] = set()
    out: list[GeneratedQuery] = []
    for item in sorted(plan, key=lambda q: q.priority):
        key = item.query.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
