import pytest
from pydantic import ValidationError

from osint_tracker.config import FactorWeight, ScoringPolicy, Settings, get_settings
from osint_tracker.types import FactorKind, NameTier, QueryOrigin


def test_packaged_policy_matches_code_defaults(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("OSINT_TRACKER_HOME", str(tmp_path))
    policy = Settings().load_policy()
    defaults = ScoringPolicy()

    assert policy.version == "2026.1"
    assert policy.tier_base == defaults.tier_base
    assert policy.factor_weights == defaults.factor_weights
    assert policy.keyword_only_base == defaults.keyword_only_base
    assert policy.tier_base[NameTier.PROXIMITY] == 0.25
    base = policy.keyword_only_base
    assert base[QueryOrigin.NAME_QUERY] > base[QueryOrigin.EXACT_KEYWORD] > base[QueryOrigin.KEYWORD]


def test_project_config_overrides_packaged_tables(tmp_path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "scoring_policy.yaml").write_text(
        "version: local\nconfirm_threshold: 0.7\nfactor_weights:\n  phone: {weight: 0.3}\n",
        encoding="utf-8",
    )
    (config_dir / "name_tables.yaml").write_text("non_name_words: [Honorable]\n", encoding="utf-8")
    monkeypatch.setenv("OSINT_TRACKER_HOME", str(tmp_path))

    settings = Settings()
    policy = settings.load_policy()

    assert settings.scoring_policy_file == (config_dir / "scoring_policy.yaml").resolve()
    assert policy.version == "local"
    assert policy.confirm_threshold == 0.7
    assert policy.weight_for(FactorKind.PHONE).weight == 0.3
    assert policy.weight_for(FactorKind.EMAIL).weight == 0.0
    assert settings.load_name_tables().non_name_words == {"honorable"}
    assert settings.database_url == f"sqlite:///{tmp_path.resolve() / 'data' / 'investigations.db'}"


def test_factor_weight_increment() -> None:
    weight = FactorWeight(weight=0.15, step=0.05, cap=0.25)
    assert weight.increment(0) == 0.0
    assert weight.increment(1) == 0.15
    assert weight.increment(2) == pytest.approx(0.20)
    assert weight.increment(5) == 0.25


def test_invalid_max_score_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ScoringPolicy(max_score=1.0)


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_packaged_name_tables_load_every_word_as_text(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("OSINT_TRACKER_HOME", str(tmp_path))
    tables = Settings().load_name_tables()

    assert {"on", "or", "the"} <= tables.non_name_words
    assert all(isinstance(word, str) for word in tables.non_name_words)
    assert "moira" in tables.common_first_names
    assert tables.relationship_context["wife"] == "spouse"
