import pytest

from signrelay.config import Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("SIGNRELAY_CONFIG", "SIGNRELAY_SEQUENCE_LENGTH", "SIGNRELAY_DEBUG", "SIGNRELAY_CLASSIFIER_URL"):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    s = load_settings()
    assert s == Settings()
    assert s.sequence_length == 60
    assert s.smooth_frames == 5
    assert s.history_size == 5
    assert s.nothing_label == "nothing"
    assert s.clear_resets_history is False


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SIGNRELAY_SEQUENCE_LENGTH", "30")
    monkeypatch.setenv("SIGNRELAY_DEBUG", "1")
    s = load_settings()
    assert s.sequence_length == 30
    assert s.debug is True


def test_yaml_file_then_env(monkeypatch, tmp_path):
    path = tmp_path / "signrelay.yml"
    path.write_text("classifier_url: ws://example.test/ws\nhistory_size: 3\n", encoding="utf-8")
    monkeypatch.setenv("SIGNRELAY_CONFIG", str(path))
    monkeypatch.setenv("SIGNRELAY_CLASSIFIER_URL", "ws://override.test/ws")

    s = load_settings()
    assert s.history_size == 3
    assert s.classifier_url == "ws://override.test/ws"


def test_keyword_overrides_win(monkeypatch):
    monkeypatch.setenv("SIGNRELAY_SEQUENCE_LENGTH", "30")
    assert load_settings(sequence_length=10).sequence_length == 10


@pytest.mark.parametrize("overrides", [
    {"sequence_length": 0},
    {"history_size": "many"},
    {"debug": "maybe"},
    {"classifier_url": "http://not-a-socket"},
    {"no_such_key": 1},
])
def test_invalid_values_raise(overrides):
    with pytest.raises(ValueError):
        load_settings(**overrides)


def test_unknown_yaml_key(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("windowz: 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(path))


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "missing.yml"))
