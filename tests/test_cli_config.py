from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]


def _run_cli(tmp_path: Path, *args: str) -> subprocess.CompletedProcess[str]:
    config_file = tmp_path / "config.toml"
    if not config_file.exists():
        config_file.write_text("[session]\narticles_per_language = 10\n", encoding="utf-8")
    cmd = [
        sys.executable,
        "-m",
        "newsdesk.config_manager",
        "--config",
        str(config_file),
        *args,
    ]
    env = {key: value for key, value in os.environ.items() if not key.startswith("NEWSDESK__")}
    return subprocess.run(
        cmd, check=False, capture_output=True, text=True, cwd=ROOT_DIR, env=env
    )


def test_validate_success(tmp_path: Path) -> None:
    result = _run_cli(tmp_path, "--validate")
    assert result.returncode == 0
    assert "Configuration OK" in result.stdout


def test_explain_reports_source(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text("NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE=20\n", encoding="utf-8")
    result = _run_cli(tmp_path, "--explain", "session.articles_per_language")
    assert result.returncode == 0
    assert "session.articles_per_language = 20" in result.stdout
    assert "NEWSDESK__SESSION__ARTICLES_PER_LANGUAGE" in result.stdout


def test_explain_masks_secrets(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text("NEWSDESK__ENRICHMENT__API_KEY=sk-live-123\n", encoding="utf-8")
    result = _run_cli(tmp_path, "--explain", "enrichment.api_key")
    assert result.returncode == 0
    assert "sk-live-123" not in result.stdout
    assert "***masked***" in result.stdout


def test_set_updates_file_and_creates_backup(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[session]\narticles_per_language = 10\n", encoding="utf-8")
    result = _run_cli(tmp_path, "--set", "session.articles_per_language=45")
    assert result.returncode == 0
    assert "session.articles_per_language: 10 -> 45" in result.stdout
    data = config_file.read_text(encoding="utf-8")
    assert "articles_per_language = 45" in data
    backups = list((tmp_path / "backups").glob("config.toml.*.bak"))
    assert backups, "CLI updates must generate backups"


def test_set_rejects_invalid_value(tmp_path: Path) -> None:
    result = _run_cli(tmp_path, "--set", "session.articles_per_language=0")
    assert result.returncode == 1
    assert "session.articles_per_language" in result.stderr


def test_print_schema_lists_fields(tmp_path: Path) -> None:
    result = _run_cli(tmp_path, "--print-schema")
    assert result.returncode == 0
    assert "| scheduler.cron_expression |" in result.stdout
