from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./receptionist.db"
    debug: bool = False
    log_level: str = "INFO"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1/chat/completions"
    completion_timeout_seconds: float = 20.0
    completion_temperature: float = 0.6
    history_limit: int = 20
    fallback_reply: str = "Sorry, I couldn't process that right now. A team member will get back to you shortly."

    provider_timeout_seconds: float = 15.0
    telegram_api_base: str = "https://api.telegram.org"
    graph_api_base: str = "https://graph.facebook.com"
    graph_api_version: str = "v20.0"

    redis_url: Optional[str] = None
    dedup_ttl_seconds: int = 86400

    conversation_idle_timeout_minutes: int = 1440

    public_base_url: Optional[str] = None
    cors_allow_origins: str = "*"

    alert_bot_token: Optional[str] = None
    alert_chat_id: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
