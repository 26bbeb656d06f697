from hoa_admin.config import Settings


def test_settings_defaults_are_usable_for_local_development(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_url.startswith("sqlite:///")
    assert settings.jwt_algorithm == "HS256"
    assert settings.log_format == "text"


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://hoa:secret@db/hoa")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("CORS_ORIGINS", '["https://hoa.example.com"]')

    settings = Settings(_env_file=None)

    assert settings.database_url == "postgresql://hoa:secret@db/hoa"
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.cors_origins == ["https://hoa.example.com"]
