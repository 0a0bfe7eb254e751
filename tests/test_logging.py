import json

from cardforge.logging import log_generation_event, log_jsonl
from cardforge.settings import DEFAULT_EVENT_LOG


def test_log_jsonl_appends_sorted_records(tmp_path):
    path = tmp_path / "nested" / "log.jsonl"

    log_jsonl(str(path), {"b": 2, "a": 1})
    log_jsonl(str(path), {"c": 3})

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == '{"a": 1, "b": 2}'
    assert json.loads(lines[1]) == {"c": 3}


def test_log_generation_event_adds_timestamp(tmp_path):
    path = tmp_path / "events.jsonl"

    log_generation_event({"event": "generation.settled", "status": "success"}, path=str(path))

    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["status"] == "success"
    assert "timestamp" in record


def test_log_generation_event_defaults_to_event_log(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    log_generation_event({"event": "generation.settled"})

    path = tmp_path / DEFAULT_EVENT_LOG
    assert json.loads(path.read_text(encoding="utf-8"))["event"] == "generation.settled"
