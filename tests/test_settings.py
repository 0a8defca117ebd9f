from budget_categorizer.core import settings


def test_get_env_int(monkeypatch):
    monkeypatch.setenv("TEST_WORKERS", "8")
    assert settings.get_env_int("TEST_WORKERS", 4, min_value=1) == 8
    monkeypatch.setenv("TEST_WORKERS", "0")
    assert settings.get_env_int("TEST_WORKERS", 4, min_value=1) == 4
    monkeypatch.setenv("TEST_WORKERS", "lots")
    assert settings.get_env_int("TEST_WORKERS", 4) == 4
    monkeypatch.delenv("TEST_WORKERS")
    assert settings.get_env_int("TEST_WORKERS", 4) == 4


def test_get_env_float(monkeypatch):
    monkeypatch.setenv("TEST_CONFIDENCE", "0.35")
    assert settings.get_env_float("TEST_CONFIDENCE", 0.2, 0.0, 0.99) == 0.35
    monkeypatch.setenv("TEST_CONFIDENCE", "1.5")
    assert settings.get_env_float("TEST_CONFIDENCE", 0.2, 0.0, 0.99) == 0.2
    monkeypatch.setenv("TEST_CONFIDENCE", "high")
    assert settings.get_env_float("TEST_CONFIDENCE", 0.2) == 0.2


def test_get_env_bool(monkeypatch):
    monkeypatch.setenv("TEST_FLAG", "off")
    assert settings.get_env_bool("TEST_FLAG", True) is False
    monkeypatch.setenv("TEST_FLAG", "Yes")
    assert settings.get_env_bool("TEST_FLAG", False) is True
    monkeypatch.setenv("TEST_FLAG", "maybe")
    assert settings.get_env_bool("TEST_FLAG", True) is True


def test_read_config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "# comment\n"
        "LOG_LEVEL: debug  # inline\n"
        "DATA_DIR: '/srv/data'\n"
        "EMPTY:\n"
        "not a pair\n",
        encoding="utf-8",
    )
    assert settings.read_config_file(str(path)) == {"LOG_LEVEL": "debug", "DATA_DIR": "/srv/data"}
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}


def test_defaults():
    assert settings.DEFAULT_FALLBACK_CONFIDENCE == 0.2
    assert settings.DEFAULT_RECLASSIFY_WORKERS == 4
