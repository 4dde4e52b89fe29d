from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://mindwell:mindwell@db:5432/mindwell"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://portal.mindwell.app,https://api.mindwell.app"
    CORS_ORIGINS: str = "*"

    # External sentiment classifier. Empty key = rule-based analysis only.
    LLM_API_KEY: str = ""
    LLM_API_URL: str = "https://api.anthropic.com/v1/messages"
    LLM_MODEL: str = "claude-3-haiku-20240307"
    LLM_TIMEOUT_SECONDS: float = 30.0

    # Periodic goal sweeps. Only ONE process per deployment may run them.
    ENABLE_SCHEDULER: bool = False
    EXPIRING_GOALS_HOUR: int = 8
    INCOMPLETE_GOALS_HOUR: int = 9
    GOAL_HISTORY_CLEANUP_HOUR: int = 3
    GOAL_HISTORY_RETENTION_DAYS: int = 90

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def llm_enabled(self) -> bool:
        key = self.LLM_API_KEY.strip()
        return bool(key) and key != "your_api_key_here"


settings = Settings()
