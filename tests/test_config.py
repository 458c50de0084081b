from tutor_scheduler.config import load_settings


def test_defaults(monkeypatch):
    for name in ("CORS_ORIGINS", "LOG_LEVEL", "SEED_DEMO_DATA", "RESCHEDULE_CONFLICT_RETRIES",
                 "MAX_AGENDA_RANGE_DAYS", "PORT"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.cors_origins == ("*",)
    assert settings.log_level == "INFO"
    assert settings.seed_demo_data is False
    assert settings.reschedule_conflict_retries == 1
    assert settings.max_agenda_range_days == 400
    assert settings.port == 8765


def test_overrides_from_environment(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173, https://app.example.org")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("SEED_DEMO_DATA", "yes")
    monkeypatch.setenv("RESCHEDULE_CONFLICT_RETRIES", "-3")

    settings = load_settings()

    assert settings.cors_origins == ("http://localhost:5173", "https://app.example.org")
    assert settings.log_level == "DEBUG"
    assert settings.seed_demo_data is True
    assert settings.reschedule_conflict_retries == 0
