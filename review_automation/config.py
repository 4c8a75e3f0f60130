"""Review automation configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AutomationSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///review_automation.db"
    echo_sql: bool = False
    log_level: str = "INFO"

    anthropic_api_key: str = ""
    ai_model: str = "claude-sonnet-4-5-20250929"
    ai_decision_timeout_seconds: float = 10.0
    ai_generation_timeout_seconds: float = 60.0
    ai_analysis_timeout_seconds: float = 60.0

    sendgrid_api_key: str | None = None
    sendgrid_from_email: str | None = None
    sendgrid_from_name: str | None = None
    slack_webhook_url: str | None = None
    notification_timeout_seconds: float = 10.0

    default_report_days: int = 30

    model_config = {"env_prefix": "RA_", "env_file": ".env", "extra": "ignore"}

    @property
    def ai_configured(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def sendgrid_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.sendgrid_from_email)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = AutomationSettings()
