"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # Comma-separated list, e.g. http://localhost:3000,https://teach.example.com. Empty = default list in main.
    cors_origins: str = ""
    trusted_proxy_ips: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # PAYMENTS (Stripe)
    # ===========================================
    stripe_secret_key: str  # Required, no default
    stripe_webhook_secret: str = ""
    # One price point: 100 minor units of GBP = £1.00 per package
    unit_price_amount: int = 100
    unit_price_currency: str = "gbp"
    payment_reference_max_length: int = 255

    # ===========================================
    # GENERATION POLICY
    # ===========================================
    topic_min_length: int = 3
    topic_max_length: int = 500
    generation_id_topic_max_length: int = 50
    image_count: int = 3
    narration_max_chars: int = 4000
    # Redemptions per user per minute above which a warning is logged (never blocks)
    generation_rate_warn_per_minute: int = 10
    # A run still "running" this long after consumption outlived the worker hard time limit
    generation_stale_after_seconds: int = 1900

    # ===========================================
    # CONTENT SYNTHESIS - PROVIDER SELECTION
    # ===========================================
    lesson_provider: str = "openai"  # openai, gemini
    audio_provider: str = "openai"  # openai
    image_provider: str = "gemini"  # openai, gemini

    # ===========================================
    # OPENAI API (Provider: openai)
    # ===========================================
    openai_api_key: str = ""
    openai_lesson_model: str = "gpt-4o"
    openai_tts_model: str = "tts-1-hd"
    openai_tts_voice: str = "nova"
    openai_tts_speed: float = 0.95
    openai_image_model: str = "dall-e-3"
    openai_request_timeout: float = 120.0

    # ===========================================
    # GOOGLE GEMINI (Provider: gemini)
    # ===========================================
    gemini_api_key: str = ""  # Get from https://aistudio.google.com/apikey
    gemini_api_endpoint: str = "https://generativelanguage.googleapis.com"
    gemini_lesson_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "gemini-2.5-flash-image"
    gemini_timeout: float = 180.0

    # ===========================================
    # CONTENT SYNTHESIS - COMMON SETTINGS
    # ===========================================
    synthesis_retry_max_attempts: int = 2
    synthesis_retry_backoff_seconds: float = 2.0
    synthesis_retry_respect_retry_after: bool = True
    image_size: str = "1024x1024"

    # ===========================================
    # STORAGE
    # ===========================================
    storage_base_path: str = "/data/generations"

    # ===========================================
    # SESSIONS
    # ===========================================
    session_secret: str  # Required, no default
    session_ttl: int = 60 * 60 * 24 * 7
    session_cookie_secure: bool = False  # Set True in production (HTTPS)
    session_cookie_samesite: str = "lax"

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("unit_price_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Ledger currencies are lowercase ISO codes."""
        return v.strip().lower()

    @field_validator("unit_price_amount")
    @classmethod
    def validate_price(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("unit_price_amount must be positive")
        return v

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password", "admin"):
            raise ValueError("session_secret is too weak, please change it")
        return v

    @property
    def trusted_proxy_ips_set(self) -> set[str]:
        """Get trusted proxy IPs as a set."""
        return {ip.strip() for ip in self.trusted_proxy_ips.split(",") if ip.strip()}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
