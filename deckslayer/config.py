"""
Centralized Configuration System
Environment-aware settings for agents, persistence, payments and rate limiting.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # GENERATION PROVIDER
    # ============================================
    gemini_api_key: str = ""

    # ============================================
    # MODEL SELECTION (by agent role)
    # ============================================
    analysis_model: str = "google-gla:gemini-2.5-flash"
    orchestrator_model: str = "google-gla:gemini-2.5-flash"
    synthesis_model: str = "google-gla:gemini-2.5-flash"
    adversarial_model: str = "google-gla:gemini-2.5-flash"

    # ============================================
    # ANALYSIS RULES
    # ============================================
    a2a_protocol: str = "a2aproject-v1.0"
    max_deck_chars: int = 8000  # Provider input budget per deck
    analysis_credit_cost: int = 1
    comparison_credit_cost: int = 2
    stream_debounce_chars: int = 0  # 0 = emit a partial on every changed chunk

    # ============================================
    # MONGODB
    # ============================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "deckslayer"
    mongodb_max_pool_size: int = 50
    mongodb_min_pool_size: int = 5
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # AUTH BACKEND
    # ============================================
    supabase_url: str = ""
    supabase_anon_key: str = ""
    auth_cookie_name: str = "sb-access-token"

    # ============================================
    # PAYMENTS
    # ============================================
    payments_environment: Literal["test_mode", "live_mode"] = "test_mode"
    dodo_api_key_test: str | None = None
    dodo_api_key_live: str | None = None
    dodo_webhook_secret: str | None = None
    dodo_test_base_url: str = "https://test.dodopayments.com"
    dodo_live_base_url: str = "https://live.dodopayments.com"
    default_product_id: str = "p_single"
    webhook_tolerance_seconds: int = 300

    public_base_url: str = "http://localhost:3000"
    admin_emails: str = ""  # Comma separated allow-list for internal views

    # ============================================
    # RATE LIMITING
    # ============================================
    rate_limit_analysis_max_requests: int = 10
    rate_limit_analysis_window_seconds: int = 60
    rate_limit_rebuttal_max_requests: int = 30
    rate_limit_rebuttal_window_seconds: int = 60
    rate_limit_sweep_interval_seconds: float = 300.0

    # ============================================
    # BACKGROUND TASKS
    # ============================================
    background_max_concurrent: int = 5
    background_shutdown_timeout_seconds: float = 30.0

    # ============================================
    # OBSERVABILITY
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "staging", "production", "test"] = "development"

    @property
    def admin_email_list(self) -> list[str]:
        """Normalized admin allow-list."""
        return [
            email.strip().lower()
            for email in self.admin_emails.split(",")
            if email.strip()
        ]

    @property
    def dodo_api_key(self) -> str | None:
        """Payment credential for the active environment."""
        if self.payments_environment == "live_mode":
            return self.dodo_api_key_live
        return self.dodo_api_key_test

    @property
    def dodo_base_url(self) -> str:
        if self.payments_environment == "live_mode":
            return self.dodo_live_base_url
        return self.dodo_test_base_url


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
