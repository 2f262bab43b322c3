import json

import pytest

from pipescout import cli
from pipescout.core.config import load_config


@pytest.fixture
def params_file(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text(
        "\n".join(
            [
                "quota:",
                f"  state_path: {tmp_path / 'ledger.json'}",
                "output:",
                f"  root: {tmp_path / 'out'}",
            ]
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    # Ignore the developer environment and any .env file
    def _load(params_path=None):
        return load_config(params_path=params_path, env={})

    monkeypatch.setattr(cli, "load_config", _load)


def test_quota_status_prints_snapshot(params_file, capsys):
    assert cli.main(["--params", str(params_file), "quota", "status"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["daily"]["requests"] == 0
    assert payload["session"]["limit"] == 100


def test_quota_reset_session_persists_ledger(params_file, tmp_path, capsys):
    assert cli.main(["--params", str(params_file), "quota", "reset-session"]) == 0
    json.loads(capsys.readouterr().out)
    saved = json.loads((tmp_path / "ledger.json").read_text(encoding="utf-8"))
    assert saved["session"]["request_count"] == 0


def test_run_requires_companies(params_file):
    with pytest.raises(SystemExit) as info:
        cli.main(["--params", str(params_file), "run"])
    assert info.value.code == 2


def test_read_companies_skips_comments(tmp_path):
    path = tmp_path / "companies.txt"
    path.write_text("# top pharma\nPfizer\n\n  Novartis  \n#Roche\n", encoding="utf-8")
    assert cli.read_companies(path) == ["Pfizer", "Novartis"]


def test_environment_limits_do_not_leak_into_cli(
    params_file, monkeypatch, capsys
):
    monkeypatch.setenv("OPENAI_LIMIT_REQUESTS_PER_SESSION", "7")
    monkeypatch.setenv("HEADLESS", "false")
    assert cli.main(["--params", str(params_file), "quota", "status"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["session"]["limit"] == 100
