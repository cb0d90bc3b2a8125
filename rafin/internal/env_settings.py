from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class LookupSettings(BaseModel):
    cache_ttl: int = 24 * 60 * 60
    """Seconds a lookup result (positive or negative) is reused (default: 24 hours)"""
    cache_maxsize: int | None = None
    """Optional upper bound on cached lookups. If not set, the cache only expires by TTL"""

    request_timeout: float = 10.0
    """Total timeout (seconds) for a single upstream request"""

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    """Browser-like User-Agent sent to the scraped sites"""
    accept_language: str = "tr-TR,tr;q=0.9,en-US;q=0.8,en;q=0.7"

    google_books_api_key: str = ""
    """Optional Google Books API key (works without key but has rate limits)"""

    search_result_limit: int = 10
    """Maximum number of title search results taken from each source"""

    idefix_cover_size: str = "600/0/"
    """Width/height segment substituted into İdefix image templates (600 wide, auto height)"""


class ApplicationSettings(BaseModel):
    debug: bool = False
    openapi_enabled: bool = False
    config_dir: str = "/config"
    version: str = "local"
    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)"""
    log_format: str = "text"
    """Log format: 'text' for human-readable, 'json' for machine-readable"""
    log_file: str | None = None
    """Optional log file path (relative to config_dir/logs/). If not set, logs to stdout only"""
    base_url: str = ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        env_prefix="RAFIN_",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        env_file=(".env.local", ".env"),
        extra="ignore",
    )

    app: ApplicationSettings = ApplicationSettings()
    lookup: LookupSettings = LookupSettings()

    def request_headers(self) -> dict[str, str]:
        """Headers the scraped catalogs expect from a browser."""
        return {
            "User-Agent": self.lookup.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": self.lookup.accept_language,
        }
