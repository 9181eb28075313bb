"""Tests for the single-line JSON event log."""
import json

from core.logging_utils import log_json


def _last_entry(text):
    return json.loads(text.strip().splitlines()[-1])


def test_entry_carries_stage_goal_and_masked_details(capsys, monkeypatch):
    monkeypatch.delenv("CRAFTMIND_LOG_STREAM", raising=False)
    log_json("warn", "act_failed", goal="collect wood", stage="act",
             details={"action": "collectBlock oak_log 3", "api_key": "sk-secret-value"})

    entry = _last_entry(capsys.readouterr().err)
    assert entry["level"] == "WARN"
    assert entry["event"] == "act_failed"
    assert entry["stage"] == "act"
    assert entry["goal"] == "collect wood"
    assert entry["details"]["action"] == "collectBlock oak_log 3"
    assert "sk-secret-value" not in json.dumps(entry)


def test_optional_fields_are_omitted(capsys, monkeypatch):
    monkeypatch.delenv("CRAFTMIND_LOG_STREAM", raising=False)
    log_json("INFO", "agent_loop_initialized")

    entry = _last_entry(capsys.readouterr().err)
    assert set(entry) == {"ts", "level", "event"}


def test_stream_can_be_switched_to_stdout(capsys, monkeypatch):
    monkeypatch.setenv("CRAFTMIND_LOG_STREAM", "stdout")
    log_json("INFO", "graph_yield", stage="observe", details={"steps": 5})

    captured = capsys.readouterr()
    assert captured.err == ""
    assert _last_entry(captured.out)["details"] == {"steps": 5}
