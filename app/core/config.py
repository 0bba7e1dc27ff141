from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # PostgreSQL (usage counters)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "direitai"
    postgres_password: str = "changeme"
    postgres_db: str = "direitai"

    @property
    def postgres_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # OpenRouter (primary provider)
    openrouter_api_key: str = ""
    openrouter_api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_premium_model: str = "anthropic/claude-3.5-sonnet"
    openrouter_free_models: list[str] = [
        "meta-llama/llama-3.3-70b-instruct:free",
        "google/gemini-2.0-flash-exp:free",
        "nvidia/llama-3.1-nemotron-ultra-253b-v1:free",
        "google/gemma-3-27b-it:free",
        "qwen/qwq-32b:free",
        "deepseek/deepseek-chat-v3-0324:free",
        "google/gemini-2.5-pro-exp-03-25:free",
        "mistralai/mistral-small-3.1-24b-instruct:free",
        "meta-llama/llama-4-maverick:free",
        "meta-llama/llama-4-scout:free",
    ]
    # Free models with the most recent knowledge cutoff, tried first for current-affairs questions
    openrouter_current_topic_models: list[str] = [
        "google/gemini-2.5-pro-exp-03-25:free",
        "meta-llama/llama-4-maverick:free",
        "meta-llama/llama-4-scout:free",
        "google/gemini-2.0-flash-exp:free",
        "deepseek/deepseek-chat-v3-0324:free",
    ]
    # Models that accept image_url content parts
    openrouter_vision_models: list[str] = [
        "google/gemini-2.0-flash-exp:free",
        "google/gemini-2.5-pro-exp-03-25:free",
    ]

    # Together.ai (alternate provider, last resort)
    together_api_key: str = ""
    together_api_url: str = "https://api.together.xyz/v1/chat/completions"
    together_model: str = "meta-llama/Meta-Llama-3.1-8B-Instruct-Turbo"

    # Per-attempt generation parameters
    llm_timeout_seconds: float = 25.0
    llm_max_tokens: int = 500
    llm_temperature: float = 0.7

    # Attribution headers sent to OpenRouter
    app_referer: str = "https://direitai.com"
    app_title: str = "DireitaGPT"

    default_system_prompt: str = (
        "Você é o DireitaGPT, o assistente de IA da plataforma DireitAI. "
        "Responda de forma clara, objetiva e respeitosa."
    )

    # Quota day boundary: "utc" or "local" (server process timezone)
    quota_day_boundary: str = "utc"

    # App
    app_env: str = "development"
    app_debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.quota_day_boundary not in ("utc", "local"):
        errors.append("QUOTA_DAY_BOUNDARY must be 'utc' or 'local'")

    if not settings.openrouter_api_key and not settings.together_api_key:
        errors.append("At least one of OPENROUTER_API_KEY / TOGETHER_API_KEY must be set")

    if settings.llm_timeout_seconds <= 0:
        errors.append("LLM_TIMEOUT_SECONDS must be positive")

    if settings.app_env == "production":
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")
        if settings.postgres_password == "changeme":
            errors.append("POSTGRES_PASSWORD must be changed in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
