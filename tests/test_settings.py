import pytest

from madspild.config.settings import get_settings


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_packaged_defaults(fresh_settings, monkeypatch):
    monkeypatch.delenv("MADSPILD_CONFIG_PATH", raising=False)
    settings = fresh_settings()

    assert settings.search.max_radius_km == 25
    assert settings.search.viewport_buffer_factor == 1.2
    assert settings.search.min_radius_km == 1
    assert settings.search.default_center.lat == 55.6761
    assert len(settings.filters.quick_filters) == 18
    assert settings.filters.quick_filters[0].model_dump() == {"en": "bread", "da": "brød"}


def test_env_overrides_credential_and_log_level(fresh_settings, monkeypatch):
    monkeypatch.delenv("MADSPILD_CONFIG_PATH", raising=False)
    monkeypatch.setenv("SALLING_API_KEY", "from-env")
    monkeypatch.setenv("MADSPILD_LOG_LEVEL", "DEBUG")

    settings = fresh_settings()

    assert settings.food_waste.api_key == "from-env"
    assert settings.app.log_level == "DEBUG"


def test_external_config_file(fresh_settings, monkeypatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("search:\n  max_radius_km: 15\n", encoding="utf-8")
    monkeypatch.setenv("MADSPILD_CONFIG_PATH", str(path))

    settings = fresh_settings()

    assert settings.search.max_radius_km == 15
    assert settings.filters.quick_filters == []


def test_invalid_yaml_root_is_rejected(fresh_settings, monkeypatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("MADSPILD_CONFIG_PATH", str(path))

    with pytest.raises(ValueError, match="expected a mapping"):
        fresh_settings()
