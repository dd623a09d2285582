from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from osint_tracker.utils import first_last, normalize_url, parse_location_from_address


class NameTier(StrEnum):
    EXACT = "exact"
    ADJACENT = "adjacent"
    PROXIMITY = "proximity"
    NONE = "none"


class Classification(StrEnum):
    CONFIRMED = "confirmed"
    POSSIBLE = "possible"
    REJECTED = "rejected"


class FactorKind(StrEnum):
    PHONE = "phone"
    EMAIL = "email"
    USERNAME = "username"
    LOCATION = "location"
    KEYWORD = "keyword"
    RELATIVE_MENTION = "relative_mention"
    KNOWN_RELATIVE = "known_relative"
    ADDRESS = "address"


class QueryOrigin(StrEnum):
    NAME_QUERY = "name_query"
    EXACT_KEYWORD = "exact_keyword"
    KEYWORD = "keyword"
    DIRECT = "direct"


class RelationshipType(StrEnum):
    BLOOD_RELATIVE = "blood_relative"
    SPOUSE_OR_PARTNER = "spouse_or_partner"
    ASSOCIATE = "associate"
    UNKNOWN = "unknown"


class LinkTier(StrEnum):
    CONFIRMED = "confirmed"
    LIKELY = "likely"
    POSSIBLE = "possible"
    UNVERIFIED = "unverified"


# Badge shown by the presentation layer for each factor kind.
FACTOR_BADGES: dict[FactorKind, str] = {
    FactorKind.PHONE: "phone",
    FactorKind.EMAIL: "email",
    FactorKind.USERNAME: "username",
    FactorKind.LOCATION: "location",
    FactorKind.KEYWORD: "keyword",
    FactorKind.RELATIVE_MENTION: "relative",
    FactorKind.KNOWN_RELATIVE: "relative",
    FactorKind.ADDRESS: "address",
}


class Residence(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    from_year: int | None = None
    to_year: int | None = None


class KnownRelative(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    relationship: str | None = None


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = Field(min_length=1)
    address: str | None = None
    city: str | None = None
    state: str | None = None
    email: str | None = None
    phone: str | None = None
    username: str | None = None
    keywords: list[str] = Field(default_factory=list)
    known_relatives: list[KnownRelative] = Field(default_factory=list)
    residences: list[Residence] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coerce_inputs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        relatives = data.get("known_relatives")
        if isinstance(relatives, list):
            data = {
                **data,
                "known_relatives": [{"name": rel} if isinstance(rel, str) else rel for rel in relatives],
            }
        if data.get("city") and data.get("state"):
            return data
        city, state = parse_location_from_address(data.get("address"))
        return {**data, "city": data.get("city") or city, "state": data.get("state") or state}

    @property
    def first_name(self) -> str:
        return first_last(self.full_name)[0]

    @property
    def surname(self) -> str:
        return first_last(self.full_name)[1]

    @property
    def anchor_residences(self) -> list[Residence]:
        anchors: list[Residence] = []
        if self.address:
            anchors.append(Residence(address=self.address))
        anchors.extend(self.residences)
        return anchors


class PersonRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    role: str = ""
    relationship: str | None = None
    residences: list[Residence] = Field(default_factory=list)


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str = "web_search"
    title: str = ""
    snippet: str = ""
    locator: str = ""
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    persons: list[PersonRecord] = Field(default_factory=list)
    produced_by: QueryOrigin = QueryOrigin.NAME_QUERY

    @property
    def locator_key(self) -> str:
        return normalize_url(self.locator)

    @property
    def text(self) -> str:
        """Title, snippet and structured fields flattened into one comparable blob."""
        parts = [self.title, self.snippet, self.address or "", self.phone or "", self.email or ""]
        parts.extend(person.name for person in self.persons)
        return " \n".join(part for part in parts if part)


class Factor(BaseModel):
    kind: FactorKind
    value: str
    # distinct items behind the value; a keyword factor may group several keywords
    count: int = 1
    weight: float = 0.0


class MatchResult(BaseModel):
    finding: Finding | None = None
    locator_key: str = ""
    tier: NameTier = NameTier.NONE
    rule: str = ""
    factors: list[Factor] = Field(default_factory=list)
    score: float = 0.0
    classification: Classification = Classification.REJECTED
    keyword_only: bool = False
    reason: str = ""

    @property
    def badges(self) -> list[str]:
        badges: list[str] = []
        if self.tier in (NameTier.EXACT, NameTier.ADJACENT):
            badges.append("exact-match")
        for factor in self.factors:
            badge = FACTOR_BADGES[factor.kind]
            if badge not in badges:
                badges.append(badge)
        return badges

    @property
    def summary(self) -> str:
        count = len(self.factors)
        noun = "factor" if count == 1 else "factors"
        return f"{count} corroborating {noun}"


class RelativeLink(BaseModel):
    name: str
    key: str
    relationship: RelationshipType = RelationshipType.UNKNOWN
    label: str | None = None
    sources: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    co_residence_addresses: int = 0
    co_residence_years: int = 0
    shared_addresses: list[str] = Field(default_factory=list)
    provided: bool = False
    multi_source_confirmed: bool = False
    first_seen_year: int | None = None
    last_seen_year: int | None = None
    tier: LinkTier = LinkTier.UNVERIFIED


class AddressMatch(BaseModel):
    address: str
    key: str
    sources: list[str] = Field(default_factory=list)
    owner_names: list[str] = Field(default_factory=list)
    matched_owners: list[str] = Field(default_factory=list)
    household_members: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    owner_is_subject: bool = False
    owner_in_relatives: bool = False
    multi_person_household: bool = False
    shared_with_subject: bool = False


class CorrelationReport(BaseModel):
    subject: Subject
    confirmed: list[MatchResult] = Field(default_factory=list)
    possible: list[MatchResult] = Field(default_factory=list)
    rejected: list[MatchResult] = Field(default_factory=list)
    relatives: list[RelativeLink] = Field(default_factory=list)
    addresses: list[AddressMatch] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)

    def partition_keys(self) -> dict[str, list[str]]:
        return {
            "confirmed": sorted(result.locator_key for result in self.confirmed),
            "possible": sorted(result.locator_key for result in self.possible),
        }
