from pathlib import Path

import pytest

from pipescout.core.config import load_config


def test_defaults_without_params_file(tmp_path):
    cfg = load_config(base_dir=tmp_path, env={})
    assert cfg.discovery.max_candidates == 8
    assert cfg.discovery.fallback_paths == ["/pipeline", "/science/pipeline"]
    assert cfg.fetch.sufficient_chars == 2000
    assert cfg.fetch.timeout_sec == 15
    assert cfg.render.min_chars == 100
    assert cfg.quota.requests_per_minute == 25
    assert cfg.quota.cost_per_day_usd == 10.0
    assert cfg.extraction.model == "gpt-4o-mini"
    assert cfg.extraction.api_key is None
    assert cfg.orchestrator.max_successes == 5
    assert cfg.run_id


def test_params_file_is_read(tmp_path):
    params = tmp_path / "config" / "params.yaml"
    params.parent.mkdir()
    params.write_text(
        "\n".join(
            [
                "run_id: nightly",
                "search:",
                "  engine: Google",
                "discovery:",
                "  max_candidates: 4",
                "  known_domains:",
                "    Acme Biotech: acmebio.com",
                "quota:",
                "  requests_per_day: 50",
                "output:",
                "  root: out",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(base_dir=tmp_path, env={})
    assert cfg.run_id == "nightly"
    assert cfg.search.engine == "google"
    assert cfg.discovery.max_candidates == 4
    assert cfg.discovery.known_domains == {"acme biotech": "acmebio.com"}
    assert cfg.quota.requests_per_day == 50
    assert cfg.output.root == Path("out")


def test_env_overrides_yaml(tmp_path):
    env = {
        "OPENAI_LIMIT_REQUESTS_PER_MINUTE": "10",
        "OPENAI_LIMIT_COST_PER_DAY": "2.5",
        "SCRAPING_TIMEOUT": "20",
        "SCRAPING_MAX_CONTENT_LENGTH": "5000",
        "OPENAI_MODEL": "gpt-4o",
        "OPENAI_API_KEY": "sk-test",
        "HEADLESS": "false",
        "PIPESCOUT_QUOTA_STATE": str(tmp_path / "ledger.json"),
    }
    cfg = load_config(base_dir=tmp_path, env=env)
    assert cfg.quota.requests_per_minute == 10
    assert cfg.quota.cost_per_day_usd == 2.5
    assert cfg.fetch.timeout_sec == 20.0
    assert cfg.extraction.max_content_length == 5000
    assert cfg.extraction.model == "gpt-4o"
    assert cfg.extraction.api_key == "sk-test"
    assert cfg.render.headless is False
    assert cfg.quota.state_path == tmp_path / "ledger.json"


def test_invalid_value_names_the_key(tmp_path):
    with pytest.raises(ValueError, match="quota.requests_per_minute"):
        load_config(base_dir=tmp_path, env={"OPENAI_LIMIT_REQUESTS_PER_MINUTE": "lots"})
