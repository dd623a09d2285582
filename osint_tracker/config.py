from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from osint_tracker.types import FactorKind, NameTier, QueryOrigin
from osint_tracker.utils import utc_now

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"
SCORING_POLICY_FILENAME = "scoring_policy.yaml"
NAME_TABLES_FILENAME = "name_tables.yaml"


def _resolve_project_root() -> Path:
    override = os.getenv("OSINT_TRACKER_HOME", "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.cwd().resolve()


def _config_file(filename: str) -> Path:
    project_file = _resolve_project_root() / "config" / filename
    if project_file.exists():
        return project_file
    return PACKAGE_DATA_DIR / filename


class MatchWindows(BaseModel):
    adjacency_chars: int = 15
    reverse_gap_chars: int = 5
    proximity_chars: int = 30
    distinguish_adjacent: bool = False


class FactorWeight(BaseModel):
    weight: float
    step: float = 0.0
    cap: float | None = None

    def increment(self, count: int) -> float:
        if count <= 0:
            return 0.0
        value = self.weight + self.step * (count - 1)
        if self.cap is not None:
            value = min(value, self.cap)
        return value


DEFAULT_TIER_BASE: dict[NameTier, float] = {
    NameTier.EXACT: 0.45,
    NameTier.ADJACENT: 0.45,
    NameTier.PROXIMITY: 0.25,
}

DEFAULT_KEYWORD_ONLY_BASE: dict[QueryOrigin, float] = {
    QueryOrigin.NAME_QUERY: 0.50,
    QueryOrigin.EXACT_KEYWORD: 0.45,
    QueryOrigin.KEYWORD: 0.35,
    QueryOrigin.DIRECT: 0.35,
}

DEFAULT_FACTOR_WEIGHTS: dict[FactorKind, FactorWeight] = {
    FactorKind.PHONE: FactorWeight(weight=0.20),
    FactorKind.EMAIL: FactorWeight(weight=0.20),
    FactorKind.USERNAME: FactorWeight(weight=0.20),
    FactorKind.LOCATION: FactorWeight(weight=0.15),
    FactorKind.KEYWORD: FactorWeight(weight=0.15, step=0.05, cap=0.25),
    FactorKind.RELATIVE_MENTION: FactorWeight(weight=0.25),
    FactorKind.KNOWN_RELATIVE: FactorWeight(weight=0.25),
    FactorKind.ADDRESS: FactorWeight(weight=0.30),
}


class LinkWeights(BaseModel):
    base: float = 0.40
    same_surname: float = 0.15
    shared_address: float = 0.40
    spouse_pattern: float = 0.10
    provided: float = 0.25
    per_extra_source: float = 0.05
    extra_source_cap: float = 0.15
    cap: float = 0.95


class OwnershipWeights(BaseModel):
    base: float = 0.5
    owner_is_subject: float = 0.3
    owner_in_relatives: float = 0.15
    per_extra_member: float = 0.05
    extra_member_cap: float = 0.15
    shared_address_other_surname: float = 0.40
    cap: float = 0.98


class ScoringPolicy(BaseModel):
    version: str = "1"
    windows: MatchWindows = Field(default_factory=MatchWindows)
    tier_base: dict[NameTier, float] = Field(default_factory=lambda: dict(DEFAULT_TIER_BASE))
    keyword_only_base: dict[QueryOrigin, float] = Field(default_factory=lambda: dict(DEFAULT_KEYWORD_ONLY_BASE))
    factor_weights: dict[FactorKind, FactorWeight] = Field(default_factory=lambda: dict(DEFAULT_FACTOR_WEIGHTS))
    no_factor_cap: float = 0.55
    max_score: float = 0.98
    confirm_threshold: float = 0.60
    links: LinkWeights = Field(default_factory=LinkWeights)
    ownership: OwnershipWeights = Field(default_factory=OwnershipWeights)
    low_trust_sources: list[str] = Field(default_factory=lambda: ["court_records", "legal", "bankruptcy"])
    low_trust_url_markers: list[str] = Field(
        default_factory=lambda: ["pacer", "court", "docket", "/case", "filing", "/pdf", ".pdf", "bankruptcy", "judicial"]
    )

    @model_validator(mode="after")
    def _check_caps(self) -> ScoringPolicy:
        if self.no_factor_cap >= self.confirm_threshold:
            raise ValueError("no_factor_cap must stay below confirm_threshold")
        if not 0.0 < self.max_score < 1.0:
            raise ValueError("max_score must be between 0 and 1 (exclusive)")
        return self

    def weight_for(self, kind: FactorKind) -> FactorWeight:
        return self.factor_weights.get(kind, FactorWeight(weight=0.0))


class NameTables(BaseModel):
    version: str = "1"
    non_name_words: set[str] = Field(default_factory=set)
    common_first_names: set[str] = Field(default_factory=set)
    relationship_context: dict[str, str] = Field(default_factory=dict)
    associate_labels: set[str] = Field(default_factory=set)

    @model_validator(mode="after")
    def _casefold(self) -> NameTables:
        self.non_name_words = {word.casefold() for word in self.non_name_words}
        self.common_first_names = {word.casefold() for word in self.common_first_names}
        self.relationship_context = {k.casefold(): v for k, v in self.relationship_context.items()}
        self.associate_labels = {word.casefold() for word in self.associate_labels}
        return self


class Settings(BaseModel):
    project_root: Path = Field(default_factory=_resolve_project_root)
    database_path: Path = Field(default_factory=lambda: _resolve_project_root() / "data" / "investigations.db")

    scoring_policy_file: Path = Field(default_factory=lambda: _config_file(SCORING_POLICY_FILENAME))
    name_tables_file: Path = Field(default_factory=lambda: _config_file(NAME_TABLES_FILENAME))

    # Open-ended residences (no to_year) are treated as running until this year.
    reference_year: int = Field(default_factory=lambda: utc_now().year)
    max_relatives: int = 50

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    def load_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data

    def load_policy(self) -> ScoringPolicy:
        return ScoringPolicy.model_validate(self.load_yaml(self.scoring_policy_file))

    def load_name_tables(self) -> NameTables:
        return NameTables.model_validate(self.load_yaml(self.name_tables_file))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
