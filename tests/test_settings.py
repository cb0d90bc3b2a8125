import logging
import logging.handlers

from rafin.internal.env_settings import Settings
from rafin.util.log import setup_logging


def test_defaults():
    settings = Settings()
    assert settings.lookup.cache_ttl == 24 * 60 * 60
    assert settings.lookup.request_timeout == 10.0
    assert settings.lookup.search_result_limit == 10


def test_nested_environment_overrides(monkeypatch):
    monkeypatch.setenv("RAFIN_LOOKUP__CACHE_TTL", "60")
    monkeypatch.setenv("RAFIN_LOOKUP__GOOGLE_BOOKS_API_KEY", "secret")
    monkeypatch.setenv("RAFIN_APP__LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.lookup.cache_ttl == 60
    assert settings.lookup.google_books_api_key == "secret"
    assert settings.lookup.request_timeout == 10.0
    assert settings.app.log_level == "DEBUG"


def test_request_headers_are_browser_like():
    headers = Settings().request_headers()
    assert headers["User-Agent"].startswith("Mozilla/5.0")
    assert headers["Accept-Language"].startswith("tr-TR")


def test_setup_logging_with_file(tmp_path):
    setup_logging(log_level="DEBUG", log_file="lookup.log", config_dir=str(tmp_path))

    assert (tmp_path / "logs").is_dir()
    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
    assert logging.getLogger("aiohttp.client").level == logging.WARNING

    setup_logging()
