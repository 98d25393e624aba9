"""Tests for CLI commands: record, show, demote, due, weak, stats, reset, session, config."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from chordcoach.interface.cli import app

runner = CliRunner()


@pytest.fixture
def data_file(mock_home, tmp_path):
    return str(tmp_path / "progress.json")


def invoke(*args, **kwargs):
    return runner.invoke(app, [str(a) for a in args], **kwargs)


def record(data_file, item, *extra):
    return invoke("record", item, "--data-file", data_file, *extra)


# --- Help ---


def test_cli_help():
    result = invoke("--help")
    assert result.exit_code == 0
    assert "record" in result.stdout
    assert "session" in result.stdout


# --- Record / show ---


def test_record_creates_progress(data_file):
    result = record(data_file, "E", "--time", 300)

    assert result.exit_code == 0
    assert "e: learning (1/1)" in result.stdout

    saved = json.loads(Path(data_file).read_text())
    assert saved["progress"]["character"]["e"]["totalAttempts"] == 1


def test_record_json_and_mastery(data_file):
    for _ in range(4):
        record(data_file, "e", "--time", 300)
    result = record(data_file, "e", "--time", 300, "--json")

    assert result.exit_code == 0
    summary = json.loads(result.stdout)
    assert summary["masteryLevel"] == "mastered"
    assert summary["totalAttempts"] == 5
    assert summary["repetitions"] == 5


def test_record_incorrect_word_with_tries(data_file):
    result = record(data_file, "the", "--type", "word", "--incorrect", "--tries", 2, "--json")
    assert result.exit_code == 0
    summary = json.loads(result.stdout)
    assert summary["itemType"] == "word"
    assert summary["correctAttempts"] == 0


def test_record_guided_keeps_new(data_file):
    result = record(data_file, "q", "--guided", "--json")
    assert json.loads(result.stdout)["masteryLevel"] == "new"


def test_record_bad_type(data_file):
    result = record(data_file, "e", "--type", "gesture")
    assert result.exit_code == 2


def test_show(data_file):
    record(data_file, "e", "--direction", "up")
    result = invoke("show", "e", "--data-file", data_file)

    assert result.exit_code == 0
    summary = json.loads(result.stdout)
    assert summary["itemId"] == "e"
    assert summary["weakestDirection"] == "down"


def test_show_unknown(data_file):
    result = invoke("show", "zz", "--data-file", data_file)
    assert result.exit_code == 1
    assert "No progress" in result.stdout


# --- Demote ---


def test_demote(data_file):
    for _ in range(5):
        record(data_file, "e", "--time", 300)
    result = invoke("demote", "e", "--data-file", data_file)

    assert result.exit_code == 0
    assert "e: familiar" in result.stdout


def test_demote_unknown(data_file):
    assert invoke("demote", "zz", "--data-file", data_file).exit_code == 1


# --- Queries ---


def test_due_empty(data_file):
    record(data_file, "e")
    result = invoke("due", "--data-file", data_file)
    assert result.exit_code == 0
    assert "Nothing due." in result.stdout


def test_weak_json(data_file):
    record(data_file, "x", "--incorrect")
    record(data_file, "y")
    result = invoke("weak", "--data-file", data_file, "--json")

    assert result.exit_code == 0
    assert [p["itemId"] for p in json.loads(result.stdout)] == ["x"]


def test_stats_after_session(data_file):
    record(data_file, "e")
    record(data_file, "th", "--type", "powerChord")
    close = invoke("session", "close", "--practice-ms", 60000, "--data-file", data_file)
    assert close.exit_code == 0
    assert "Streak: 1" in close.stdout

    result = invoke("stats", "--data-file", data_file, "--json")
    stats = json.loads(result.stdout)
    assert stats["learnedCounts"] == {"character": 1, "powerChord": 1, "word": 0}
    assert stats["totalPracticeTimeMs"] == 60000
    assert stats["currentStreak"] == 1


def test_stats_text(data_file):
    result = invoke("stats", "--data-file", data_file)
    assert result.exit_code == 0
    assert "Streak: 0" in result.stdout


# --- Reset ---


def test_reset_force(data_file):
    record(data_file, "e")
    record(data_file, "the", "--type", "word")

    result = invoke("reset", "--type", "word", "--force", "--data-file", data_file)
    assert result.exit_code == 0

    saved = json.loads(Path(data_file).read_text())
    assert saved["progress"]["word"] == {}
    assert "e" in saved["progress"]["character"]


def test_reset_declined(data_file):
    record(data_file, "e")
    result = invoke("reset", "--data-file", data_file, input="n\n")

    assert result.exit_code == 1
    assert "e" in json.loads(Path(data_file).read_text())["progress"]["character"]


# --- Config / serve ---


def test_config_show(mock_home):
    result = invoke("config", "show")
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["backend"] == "json"
    assert data["data_file"].endswith("progress.json")


@patch("uvicorn.run")
def test_serve(mock_run: MagicMock, mock_home):
    result = invoke("serve", "--port", 9999)
    assert result.exit_code == 0
    mock_run.assert_called_once_with(
        "chordcoach.server:app", host="127.0.0.1", port=9999, reload=False
    )


# --- Export / import ---


def test_export_import_round_trip(data_file, tmp_path):
    record(data_file, "e", "--time", 300)
    record(data_file, "the", "--type", "word", "--incorrect")
    export_file = tmp_path / "export.json"

    result = invoke("export", "--output", export_file, "--data-file", data_file)
    assert result.exit_code == 0
    doc = json.loads(export_file.read_text())
    assert doc["version"] == 1
    assert set(doc["progress"]["character"]) == {"e"}

    other = str(tmp_path / "other.json")
    result = invoke("import", export_file, "--data-file", other)
    assert result.exit_code == 0
    assert "Imported 2 item(s)." in result.stdout

    saved = json.loads(Path(other).read_text())
    assert saved["progress"]["word"]["the"]["totalAttempts"] == 1


def test_export_to_stdout(data_file):
    record(data_file, "e")
    result = invoke("export", "--data-file", data_file)
    assert result.exit_code == 0
    assert json.loads(result.stdout)["progress"]["character"]["e"]["itemId"] == "e"


def test_import_rejects_unknown_version(data_file, tmp_path):
    source = tmp_path / "future.json"
    source.write_text(json.dumps({"version": 42, "progress": {}}))

    result = invoke("import", source, "--data-file", data_file)

    assert result.exit_code == 1
    assert "Unsupported progress format version: 42" in result.stdout


def test_import_missing_file(data_file, tmp_path):
    result = invoke("import", tmp_path / "nope.json", "--data-file", data_file)
    assert result.exit_code == 1
    assert "Import failed" in result.stdout


def test_due_uses_configured_batch(data_file, monkeypatch):
    monkeypatch.setenv("CHORDCOACH_REVIEW_BATCH_SIZE", "1")
    for item in ("a", "b"):
        record(data_file, item)
    doc = json.loads(Path(data_file).read_text())
    for rec in doc["progress"]["character"].values():
        rec["nextReviewDate"] = "2000-01-01T00:00:00Z"
    Path(data_file).write_text(json.dumps(doc))

    result = invoke("due", "--data-file", data_file, "--json")
    assert len(json.loads(result.stdout)) == 1

    result = invoke("due", "--limit", 5, "--data-file", data_file, "--json")
    assert len(json.loads(result.stdout)) == 2
