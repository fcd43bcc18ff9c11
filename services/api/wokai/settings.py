from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_url: str = "redis://localhost:6379/0"

    # AI (recipe structuring)
    ai_mode: str = "mock"  # "mock" or "gemini"
    gemini_api_key: Optional[str] = None
    gemini_text_model: str = "gemini-2.5-flash"

    # Conversational agent (ElevenLabs)
    elevenlabs_agent_id: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_api_base: str = "https://api.elevenlabs.io"

    # Cook session core
    timer_tick_seconds: float = 1.0
    tool_history_limit: int = 50
    sse_keepalive_seconds: float = 15.0

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost",
        "http://127.0.0.1",
    ]


settings = Settings()
