import pytest

from taskshare_api.settings import Settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "API_STATE_FILE",
        "API_CORS_ALLOW_ORIGINS",
        "API_CORS_ALLOW_ORIGIN_REGEX",
        "API_LOG_LEVEL",
        "API_DEFAULT_PAGE_SIZE",
        "API_MAX_PAGE_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.state_file is None
    assert settings.cors_allow_origins == ["null"]
    assert settings.log_level == "INFO"
    assert settings.default_page_size == 10
    assert settings.max_page_size == 100


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_STATE_FILE", "/tmp/taskshare/state.json")
    monkeypatch.setenv("API_CORS_ALLOW_ORIGINS", " http://a.test , ,http://b.test ")
    monkeypatch.setenv("API_LOG_LEVEL", "debug")
    monkeypatch.setenv("API_DEFAULT_PAGE_SIZE", "25")
    monkeypatch.setenv("API_MAX_PAGE_SIZE", "50")

    settings = Settings.from_env()

    assert settings.state_file == "/tmp/taskshare/state.json"
    assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
    assert settings.log_level == "DEBUG"
    assert settings.default_page_size == 25
    assert settings.max_page_size == 50


def test_settings_reject_inconsistent_page_sizes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_DEFAULT_PAGE_SIZE", "60")
    monkeypatch.setenv("API_MAX_PAGE_SIZE", "50")

    with pytest.raises(ValueError):
        Settings.from_env()

    monkeypatch.setenv("API_DEFAULT_PAGE_SIZE", "ten")
    with pytest.raises(ValueError, match="API_DEFAULT_PAGE_SIZE"):
        Settings.from_env()
