from pathlib import Path

import pytest
from pydantic import ValidationError

from chordcoach.application.config import AppConfig, resolve_config
from chordcoach.application.factory import get_progress_service, get_progress_store
from chordcoach.infrastructure.adapters.progress import (
    InMemoryProgressStore,
    JsonFileProgressStore,
)


def test_defaults(mock_home):
    config = resolve_config()

    assert config.backend == "json"
    assert config.data_file == mock_home / ".local/share/chordcoach/progress.json"
    assert config.weak_threshold == 0.7
    assert config.streak_timezone == "UTC"
    assert config.max_interval_mastered is None


def test_env_override(mock_home, monkeypatch):
    monkeypatch.setenv("CHORDCOACH_WEAK_THRESHOLD", "0.55")
    monkeypatch.setenv("CHORDCOACH_BACKEND", "memory")

    config = resolve_config()

    assert config.weak_threshold == 0.55
    assert config.backend == "memory"


def test_toml_file(mock_home):
    config_dir = mock_home / ".config/chordcoach"
    config_dir.mkdir(parents=True)
    (config_dir / "config.toml").write_text('weak_threshold = 0.6\nport = 9000\n')

    config = resolve_config()

    assert config.weak_threshold == 0.6
    assert config.port == 9000


def test_env_beats_toml(mock_home, monkeypatch):
    (mock_home / ".chordcoach.toml").write_text("port = 9000\n")
    monkeypatch.setenv("CHORDCOACH_PORT", "9100")
    assert resolve_config().port == 9100


def test_overrides_skip_none(mock_home):
    config = resolve_config({"port": None, "host": "0.0.0.0"})
    assert config.port == 8787
    assert config.host == "0.0.0.0"


def test_data_file_expands_user(mock_home):
    config = resolve_config({"data_file": "~/progress.json"})
    assert config.data_file == Path(mock_home) / "progress.json"


def test_rejects_unknown_timezone(mock_home):
    with pytest.raises(ValidationError):
        AppConfig(streak_timezone="Mars/Olympus_Mons")


def test_rejects_out_of_range_threshold(mock_home):
    with pytest.raises(ValidationError):
        AppConfig(weak_threshold=1.5)


def test_builders(mock_home):
    config = AppConfig(
        mastery_window_size=3,
        mastered_response_time_ms=600,
        default_ease_factor=2.2,
        max_interval_mastered=90,
    )

    rules = config.mastery_rules()
    params = config.scheduler_params()

    assert rules.window_size == 3
    assert rules.mastered_response_time_ms == 600
    assert params.fast_response_time_ms == 600
    assert params.default_ease_factor == 2.2
    assert params.max_interval_mastered == 90
    assert config.timezone().key == "UTC"


def test_factory_picks_store(mock_home, tmp_path):
    assert isinstance(get_progress_store(AppConfig(backend="memory")), InMemoryProgressStore)

    store = get_progress_store(AppConfig(data_file=tmp_path / "p.json"))
    assert isinstance(store, JsonFileProgressStore)
    assert store.path == tmp_path / "p.json"


def test_factory_service_uses_given_store(mock_home):
    store = InMemoryProgressStore()
    service = get_progress_service(AppConfig(), store=store)
    assert service.store is store


def test_review_batch_size_reaches_service(mock_home, monkeypatch):
    monkeypatch.setenv("CHORDCOACH_REVIEW_BATCH_SIZE", "7")
    service = get_progress_service(resolve_config(), store=InMemoryProgressStore())
    assert service.review_batch_size == 7


def test_unused_fields_are_gone(mock_home):
    fields = AppConfig.model_fields
    assert "log_dir" not in fields
    assert "verbose" not in fields
