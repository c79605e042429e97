# settings.py
from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class Settings(BaseSettings):
    # Credentials are optional: a missing key only fails that provider's calls
    OPENAI_API_KEY: Optional[str] = None
    CLAUDE_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None

    OPENAI_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible API root (OpenRouter works too)"
    )
    ANTHROPIC_BASE_URL: str = "https://api.anthropic.com/v1"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    ALLOWED_ORIGINS: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins, or *"
    )
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    REQUEST_TIMEOUT: float = 60.0
    MAX_OUTPUT_TOKENS: int = 2048

    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    DEFAULT_MODEL_ID: str = "claude-sonnet-4"
    model_catalog: List[Dict[str, str]] = [
        {"id": "claude-sonnet-4-5", "provider": "claude",
         "model": "claude-sonnet-4-5-20250929", "displayName": "Claude Sonnet 4.5 (Latest)"},
        {"id": "claude-haiku-4-5", "provider": "claude",
         "model": "claude-haiku-4-5", "displayName": "Claude Haiku 4.5 (Fast)"},
        {"id": "claude-sonnet-4", "provider": "claude",
         "model": "claude-sonnet-4-20250514", "displayName": "Claude Sonnet 4"},
        {"id": "gpt-5", "provider": "openai", "model": "gpt-5", "displayName": "GPT-5 (Latest)"},
        {"id": "gpt-5.1", "provider": "openai", "model": "gpt-5.1", "displayName": "GPT-5.1"},
        {"id": "gpt-4", "provider": "openai", "model": "gpt-4", "displayName": "GPT-4"},
        {"id": "gpt-4o-mini", "provider": "openai", "model": "gpt-4o-mini", "displayName": "GPT-4o Mini (Fast)"},
        {"id": "gemini-2.5-flash", "provider": "gemini",
         "model": "gemini-2.5-flash", "displayName": "Gemini 2.5 Flash"},
        {"id": "gemini-2.5-pro", "provider": "gemini",
         "model": "gemini-2.5-pro", "displayName": "Gemini 2.5 Pro"},
    ]

    @property
    def allowed_origins(self) -> List[str]:
        origins = [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]
        return [o for o in origins if o]

    class Config:
        env_file = ".env"
        extra = "ignore"
        protected_namespaces = ()

settings = Settings()
