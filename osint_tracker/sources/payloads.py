"""Adapters from collaborator payloads to ``Finding`` records.

Acquisition (search APIs, people-search scrapers, assessor lookups) happens
elsewhere; its output lands here as JSON objects tagged with a ``kind``.
Objects with no ``kind`` (or ``kind: finding``) are passed through untouched
so the engine can validate them and reject malformed ones itself.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from osint_tracker.sources.common import as_int, html_to_text, normalize_whitespace, split_values, synthetic_locator
from osint_tracker.types import Finding, PersonRecord, QueryOrigin, Residence, Subject

logger = logging.getLogger(__name__)


class FindingLoadError(ValueError):
    pass


def _origin(payload: dict[str, Any]) -> QueryOrigin:
    raw = str(payload.get("produced_by") or payload.get("query_origin") or "").strip()
    try:
        return QueryOrigin(raw) if raw else QueryOrigin.NAME_QUERY
    except ValueError:
        logger.debug("Unknown query origin %r, using name_query", raw)
        return QueryOrigin.NAME_QUERY


def _locator(source: str, payload: dict[str, Any]) -> str:
    url = str(payload.get("url") or payload.get("link") or payload.get("locator") or "").strip()
    return url or synthetic_locator(source, payload)


def _address_line(raw: Any) -> str:
    if isinstance(raw, dict):
        street = raw.get("street") or raw.get("address") or ""
        parts = [street, raw.get("city") or "", raw.get("state") or ""]
        line = ", ".join(str(part).strip() for part in parts if str(part).strip())
        zip_code = str(raw.get("zip") or "").strip()
        return f"{line} {zip_code}".strip()
    return normalize_whitespace(str(raw or ""))


def _residence(raw: Any) -> Residence | None:
    line = _address_line(raw)
    if not line:
        return None
    if isinstance(raw, dict):
        return Residence(address=line, from_year=as_int(raw.get("from_year")), to_year=as_int(raw.get("to_year")))
    return Residence(address=line)


def _persons(names: Any, role: str) -> list[PersonRecord]:
    if isinstance(names, str):
        names = split_values(names)
    out: list[PersonRecord] = []
    for raw in names or []:
        if isinstance(raw, dict):
            name = normalize_whitespace(str(raw.get("name") or ""))
            if not name:
                continue
            residences = [res for res in (_residence(a) for a in raw.get("addresses") or []) if res]
            out.append(PersonRecord(name=name, role=role, relationship=raw.get("relationship"), residences=residences))
        else:
            name = normalize_whitespace(str(raw))
            if name:
                out.append(PersonRecord(name=name, role=role))
    return out


def from_web_result(payload: dict[str, Any]) -> Finding:
    return Finding(
        source=str(payload.get("source") or "web_search"),
        title=html_to_text(payload.get("title")),
        snippet=html_to_text(payload.get("snippet") or payload.get("description")),
        locator=_locator("web", payload),
        produced_by=_origin(payload),
    )


def from_people_search(payload: dict[str, Any]) -> Finding:
    name = normalize_whitespace(str(payload.get("name") or ""))
    residences = [res for res in (_residence(a) for a in payload.get("addresses") or []) if res]
    phones = split_values(payload.get("phones") or payload.get("phone"))
    emails = split_values(payload.get("emails") or payload.get("email"))
    relatives = _persons(payload.get("relatives"), "relative")
    associates = _persons(payload.get("associates"), "associate")

    lines = [name]
    if payload.get("age"):
        lines.append(f"Age {payload['age']}")
    lines.extend(res.address for res in residences)
    if relatives:
        lines.append("Relatives: " + ", ".join(person.name for person in relatives))
    persons = [PersonRecord(name=name, role="resident", residences=residences)] if name else []
    return Finding(
        source="people_search",
        title=name,
        snippet="; ".join(line for line in lines[1:] if line),
        locator=_locator("people_search", payload),
        phone=phones[0] if phones else None,
        email=emails[0] if emails else None,
        address=residences[0].address if residences else None,
        persons=persons + relatives + associates,
        produced_by=_origin(payload),
    )


def from_property_record(payload: dict[str, Any]) -> Finding:
    address = _address_line(payload.get("address"))
    owners = _persons(payload.get("owners"), "owner")
    residents = _persons(payload.get("residents"), "resident")
    title = f"Property record: {address}" if address else "Property record"
    snippet_parts = []
    if owners:
        snippet_parts.append("Owner(s): " + ", ".join(person.name for person in owners))
    if residents:
        snippet_parts.append("Resident(s): " + ", ".join(person.name for person in residents))
    return Finding(
        source="property_records",
        title=title,
        snippet="; ".join(snippet_parts),
        locator=_locator("property", payload),
        address=address or None,
        persons=owners + residents,
        produced_by=_origin(payload),
    )


def from_court_record(payload: dict[str, Any]) -> Finding:
    return Finding(
        source="court_records",
        title=html_to_text(payload.get("case_name") or payload.get("title")),
        snippet=html_to_text(payload.get("snippet") or payload.get("text")),
        locator=_locator("court", payload),
        persons=_persons(payload.get("parties"), "party"),
        produced_by=_origin(payload),
    )


def from_business_record(payload: dict[str, Any]) -> Finding:
    entity = normalize_whitespace(str(payload.get("entity_name") or payload.get("name") or ""))
    officers = _persons(payload.get("officers"), "officer")
    agents = _persons(payload.get("agents") or payload.get("registered_agent"), "agent")
    associates = _persons(payload.get("associates"), "associate")
    address = _address_line(payload.get("address") or payload.get("principal_address"))
    parts = []
    if officers:
        parts.append("Officers: " + ", ".join(person.name for person in officers))
    if agents:
        parts.append("Registered agent: " + ", ".join(person.name for person in agents))
    if payload.get("status"):
        parts.append(f"Status: {payload['status']}")
    return Finding(
        source="business_registry",
        title=entity,
        snippet="; ".join(parts),
        locator=_locator("business", payload),
        address=address or None,
        persons=officers + agents + associates,
        produced_by=_origin(payload),
    )


ADAPTERS: dict[str, Callable[[dict[str, Any]], Finding]] = {
    "web": from_web_result,
    "web_search": from_web_result,
    "people_search": from_people_search,
    "property": from_property_record,
    "court": from_court_record,
    "business": from_business_record,
}


def payload_to_finding(payload: dict[str, Any]) -> Finding | dict[str, Any]:
    kind = str(payload.get("kind") or "").strip().casefold()
    if not kind or kind == "finding":
        return {key: value for key, value in payload.items() if key != "kind"}
    adapter = ADAPTERS.get(kind)
    if adapter is None:
        raise FindingLoadError(f"Unknown finding kind '{kind}'")
    return adapter(payload)


def _read_records(path: Path) -> list[Any]:
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FindingLoadError(f"{path}: invalid JSON ({exc})") from exc
        return list(data)
    records: list[Any] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise FindingLoadError(f"{path}:{lineno}: invalid JSON line ({exc})") from exc
    return records


def load_findings(path: Path) -> list[Any]:
    """Read a JSON array or JSON-lines file of payloads."""
    if not path.exists():
        raise FindingLoadError(f"Findings file not found: {path}")
    out: list[Any] = []
    for index, record in enumerate(_read_records(path), start=1):
        if not isinstance(record, dict):
            logger.warning("%s record %d is not a JSON object, passing it on for rejection", path, index)
            out.append(record)
            continue
        try:
            out.append(payload_to_finding(record))
        except (TypeError, ValueError) as exc:
            # the raw record still carries its kind, so the engine rejects it as malformed
            logger.warning("%s record %d could not be adapted: %s", path, index, exc)
            out.append(record)
    logger.info("Loaded %s findings from %s", len(out), path)
    return out


def load_subject(path: Path) -> Subject:
    if not path.exists():
        raise FindingLoadError(f"Subject file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise FindingLoadError(f"{path}: subject must be a mapping")
    return Subject.model_validate(data)
