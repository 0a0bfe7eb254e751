import json
import socket

from cardforge import cli
from cardforge.health import BackendHealth, ServiceHealth


def _unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_generate_in_tutorial_mode_prints_output(capsys, tmp_path):
    exit_code = cli.main(["generate", "a young red dragon", "--tutorial", "--simulated-ms", "20"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert json.loads(captured.out) == {"name": "Unnamed Creature"}
    assert "100.0%" in captured.err

    events = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()
    record = json.loads(events[-1])
    assert record["status"] == "success"
    assert record["mode"] == "simulated"
    assert record["generation_type"] == "text"


def test_generate_rejects_blank_description(capsys):
    exit_code = cli.main(["generate", "   ", "--tutorial"])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert '"validation_errors"' in captured.err
    assert '"description": "This field is required"' in captured.err
    assert captured.out == ""


def test_generate_reports_classified_failure(capsys):
    endpoint = f"http://127.0.0.1:{_unused_port()}/generate"

    exit_code = cli.main(["generate", "a goblin", "--live", "--endpoint", endpoint, "--timeout-ms", "2000"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert '"code": "NETWORK"' in captured.err


def test_health_prints_report(monkeypatch, capsys):
    report = BackendHealth(
        main=ServiceHealth(url="http://localhost:7860/api/health", status="online", latency_ms=3.0),
        services={"statblockgenerator": ServiceHealth(url="http://localhost:7860/api/statblockgenerator/health", status="offline")},
    )
    seen = {}

    def fake_check(base_url, timeout):
        seen["args"] = (base_url, timeout)
        return report

    monkeypatch.setattr(cli, "check_backend_health", fake_check)

    exit_code = cli.main(["health", "--base-url", "http://localhost:7860"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert seen["args"] == ("http://localhost:7860", 5.0)
    assert payload["any_online"] is True
    assert payload["all_online"] is False
    assert payload["services"]["statblockgenerator"]["status"] == "offline"
