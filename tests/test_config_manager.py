from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from newsdesk.config_manager import (
    Config,
    ConfigError,
    _coerce_text,
    load_config,
    main,
    save_config,
)
from newsdesk.config_schema import DEFAULT_CONFIG, iter_field_docs


def _flatten(mapping: dict[str, object], prefix: str = "") -> set[str]:
    keys: set[str] = set()
    for name, value in mapping.items():
        path = f"{prefix}.{name}" if prefix else name
        keys.add(path)
        if isinstance(value, dict):
            keys.update(_flatten(value, path))
    return keys


def test_precedence_env_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[session]\narticles_per_language = 10\n", encoding="utf-8")
    env_file = tmp_path / ".env"
    env_file.write_text("NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE=20\n", encoding="utf-8")

    config = load_config(
        config_file, environ={"NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE": "25"}
    )

    assert config.session.articles_per_language == 25
    provenance = config._metadata.provenance["session.articles_per_language"]
    assert provenance.layer == "env"
    assert provenance.env_var == "NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE"


def test_env_file_beats_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[session]\narticles_per_language = 10\n", encoding="utf-8")
    (tmp_path / ".env").write_text(
        "NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE=20\nOTHER_TOOL=ignored\n",
        encoding="utf-8",
    )

    config = load_config(config_file, environ={})

    assert config.session.articles_per_language == 20
    assert config._metadata.provenance["session.articles_per_language"].layer == "env-file"
    assert config._metadata.provenance["dedup.hydration_limit"].layer == "defaults"


def test_environment_values_are_coerced(tmp_path: Path) -> None:
    config = load_config(
        tmp_path / "config.toml",
        environ={
            "NEWSDESK__SESSION__TARGET_LANGUAGES": '["en", "ja"]',
            "NEWSDESK__SCHEDULER__ENABLED": "true",
            "NEWSDESK__DEDUP__TITLE_SIMILARITY_THRESHOLD": "0.9",
        },
    )

    assert config.session.target_languages == ["en", "ja"]
    assert config.scheduler.enabled is True
    assert config.dedup.title_similarity_threshold == 0.9


@pytest.mark.parametrize(
    "raw, expected",
    [("42", 42), ("-3", -3), ("0.5", 0.5), ("TRUE", True), ("none", None), ("text", "text")],
)
def test_coerce_text(raw: str, expected: object) -> None:
    assert _coerce_text(raw) == expected


def test_validation_errors_report_source(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[collection]\nrequest_timeout_seconds = 'abc'\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_file, environ={})

    assert "collection.request_timeout_seconds" in str(excinfo.value)
    assert "file" in str(excinfo.value)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[session]\nunknown_option = 1\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_file, environ={})


def test_postgresql_requires_connection_fields(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[database]\ndriver = "postgresql"\n', encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_file, environ={})

    assert "host" in str(excinfo.value)


def test_save_config_creates_backups(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[session]\narticles_per_language = 10\n", encoding="utf-8")
    config = load_config(config_file, environ={})
    data = config.model_dump(mode="python")

    for value in (30, 40):
        data["session"]["articles_per_language"] = value
        updated = Config.model_validate(data)
        updated._metadata = config._metadata
        save_config(updated)

    backups = list((tmp_path / "backups").glob("config.toml.*.bak"))
    assert backups
    assert load_config(config_file, environ={}).session.articles_per_language == 40


def test_blank_database_port_normalized(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[database]\nport = ""\nhost = " "\n', encoding="utf-8")

    config = load_config(config_file, environ={})

    assert config.database.port is None
    assert config.database.host is None


def test_cli_validate_and_explain(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[scheduler]\ncron_expression = "0 7 * * *"\n', encoding="utf-8")

    assert main(["--config", str(config_file), "--validate"]) == 0
    assert "Configuration OK" in capsys.readouterr().out

    assert main(["--config", str(config_file), "--explain", "scheduler.cron_expression"]) == 0
    output = capsys.readouterr().out
    assert '"0 7 * * *"' in output
    assert "file" in output


def test_cli_set_rejects_unknown_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("", encoding="utf-8")

    assert main(["--config", str(config_file), "--set", "session.bogus=1"]) == 1
    assert "Unknown configuration key" in capsys.readouterr().err


def test_schema_keys_cover_defaults() -> None:
    schema_keys = {
        entry["name"]
        for entry in iter_field_docs(DEFAULT_CONFIG)
        if not entry.get("is_nested")
    }
    default_keys = _flatten(DEFAULT_CONFIG.model_dump(mode="python"))
    assert schema_keys.issubset(default_keys)


@pytest.mark.parametrize(
    "path",
    [
        "app.timezone",
        "collection.max_response_bytes",
        "rate_limiting.retry_statuses",
        "quality.default_min_quality_score",
        "dedup.title_similarity_threshold",
        "progress.file_path",
        "session.stale_after_minutes",
        "enrichment.api_key",
        "scheduler.cron_expression",
        "logging.level",
    ],
)
def test_implicit_keys_are_defined(path: str) -> None:
    schema_keys = {
        entry["name"]
        for entry in iter_field_docs(DEFAULT_CONFIG)
        if not entry.get("is_nested")
    }
    assert path in schema_keys
