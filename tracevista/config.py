from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider credentials
    serpapi_api_key: str = ""
    hunter_api_key: str = ""
    scraperapi_api_key: str = ""
    tavily_api_key: str = ""

    # Web search provider
    search_provider: str = "serpapi"  # serpapi | tavily
    search_fallback_to_tavily: bool = True
    search_max_results: int = 20

    # Query planning
    planner_max_queries: int = 8

    # Fan-out scheduling
    provider_timeout_seconds: float = 5.0
    max_in_flight: int = 1
    delay_base_seconds: float = 1.0
    delay_factor: float = 1.5
    delay_cap_seconds: float = 5.0
    early_stop_enabled: bool = True
    early_stop_min_providers: int = 3
    early_stop_min_entity_types: int = 3

    # Scoring / compilation
    low_results_threshold: int = 5
    verify_threshold: int = 70
    session_history_limit: int = 20

    # Scraping
    scrape_mode: str = "standard"  # light | standard | deep | stealth
    scrape_country: str = "us"
    default_max_credits: int = 200

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
