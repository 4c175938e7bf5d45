import json
from pathlib import Path
from time import sleep

from typer.testing import CliRunner

from approval_engine import config, main
from approval_engine.service import ApprovalReviewService
from approval_engine.utils import profiler
from scripts import generate_data

runner = CliRunner()


def test_settings_defaults():
    settings = config.Settings()
    assert settings.platform_api_version == "59.0"
    assert settings.api_base_path == "/services/data/v59.0"
    assert settings.offset_cap == 2000
    assert settings.batch_size == 5000
    assert settings.id_chunk_size == 500
    assert settings.max_or_chunks == 100
    assert settings.candidate_objects[0] == "Payment_Transactions_Needing_Approval__c"
    assert settings.pending_statuses == ["PM Review", "Contributor Approved"]


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "250")
    monkeypatch.setenv("PENDING_STATUSES", '["Submitted"]')
    settings = config.Settings()
    assert settings.batch_size == 250
    assert settings.pending_statuses == ["Submitted"]


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    fields = stats.as_log_fields()
    assert fields["profile"] == "sleep"
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_generate_dataset_is_deterministic():
    first = generate_data.generate_dataset(30, seed=5)
    second = generate_data.generate_dataset(30, seed=5)
    assert first == second
    rows = first[generate_data.TRANSACTION_OBJECT]
    assert len(rows) == 30
    assert rows[0]["Transaction_Date__c"] is None
    assert rows[0]["Payment_Amount__c"] is None


def test_generate_data_writes_json(tmp_path: Path):
    output = tmp_path / "approvals.json"
    result = runner.invoke(generate_data.app, ["--rows", "5", "--seed", "123", "--output", str(output)])
    assert result.exit_code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert len(payload["records"][generate_data.TRANSACTION_OBJECT]) == 5
    assert "Contributor_Project__c" in payload["describes"]


def test_cli_info(monkeypatch):
    monkeypatch.setattr(main, "get_settings", lambda: config.Settings(PLATFORM_INSTANCE_URL="https://org.test"))
    result = runner.invoke(main.app, ["info"])
    assert result.exit_code == 0
    assert "platform=https://org.test" in result.stdout
    assert "offset_cap=2000" in result.stdout


def test_cli_list_and_summary_json(monkeypatch, flat_platform, test_settings):
    service = ApprovalReviewService(flat_platform, settings=test_settings)
    monkeypatch.setattr(main, "_service", lambda: service)

    listed = runner.invoke(main.app, ["list", "--limit", "3", "--json"])
    assert listed.exit_code == 0
    assert len(json.loads(listed.stdout)["records"]) == 3

    summary = runner.invoke(main.app, ["summary", "--json"])
    assert summary.exit_code == 0
    assert json.loads(summary.stdout)["data"]["totalHours"] > 0


def test_cli_show_missing_record(monkeypatch, flat_platform, test_settings):
    monkeypatch.setattr(main, "_service", lambda: ApprovalReviewService(flat_platform, settings=test_settings))
    result = runner.invoke(main.app, ["show", "TX-999999"])
    assert result.exit_code == 1
