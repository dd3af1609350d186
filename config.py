from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # API Keys - Primary and Fallback
    anthropic_api_key: str = ""  # Primary key
    anthropic_api_key_fallback: str = ""  # Fallback key if primary fails

    # Text generation
    llm_model: str = "claude-sonnet-4-20250514"
    llm_timeout: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Timeouts (seconds)
    api_timeout: int = 30
    fetch_timeout: int = 15  # Single page fetch
    search_timeout: int = 15  # Single web search request
    dns_timeout: float = 5.0  # MX lookup lifetime
    discovery_timeout: int = 120  # Whole strategy phase of one request

    # Email checker
    mx_cache_ttl_hours: int = 24

    # Crawl bounds
    max_sites_per_search: int = 5
    max_pages_per_site: int = 4  # Root + team/about pages
    max_profile_candidates: int = 15

    # Browser rendering (Playwright) for directory listings
    use_browser: bool = False

    # Discovery
    default_limit: int = 20

    # Persistence (prospect store + run stats)
    data_dir: str = "data"
    persist_generated: bool = False  # Store synthetic/static records too

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
