"""
Application configuration via environment variables.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment / .env file."""

    # App
    app_name: str = "AI Medicine Safety Checker"
    version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False
    # Serve canned reports when every provider fails
    degraded_mode: bool = False

    # CORS
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:5174",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:5174",
    ]
    cors_origin: str = ""  # Production frontend URL

    # Per-client request limit: rate_limit_max requests per rate_limit_window minutes
    rate_limit_enabled: bool = True
    rate_limit_window: int = 15
    rate_limit_max: int = 100

    # Gemini (primary) via Google's OpenAI-compatible endpoint
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"

    # Perplexity (fallback)
    perplexity_api_key: str = ""
    perplexity_model: str = "llama-3.1-sonar-large-128k-online"
    perplexity_base_url: str = "https://api.perplexity.ai"

    # Hugging Face (secondary fallback)
    hf_token: str = ""
    hf_model: str = "meta-llama/Meta-Llama-3.1-8B-Instruct"
    hf_base_url: str = "https://router.huggingface.co/v1/chat/completions"

    # Orchestration
    primary_timeout_seconds: float = 25.0
    api_timeout_ms: int = 30000
    provider_max_retries: int = 2
    provider_retry_delay_seconds: float = 1.0
    health_check_timeout_seconds: float = 10.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def default_timeout_seconds(self) -> float:
        return self.api_timeout_ms / 1000

    @property
    def allowed_origins(self) -> List[str]:
        if self.cors_origin:
            return [*self.cors_origins, self.cors_origin]
        return list(self.cors_origins)


settings = Settings()
