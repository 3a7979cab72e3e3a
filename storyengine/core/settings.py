import logging

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    ollama_host: HttpUrl = "http://localhost:11434"
    ollama_model: str = "gemma3:4b"
    story_temperature: float = 0.9
    quiz_temperature: float = 1.0
    max_tokens: int = 600
    max_attempts: int = Field(default=1, ge=1)   # one shot per user action
    auto_pull: bool = True
    image_base_url: str = "https://image.pollinations.ai/prompt"
    image_width: int = 1024
    image_height: int = 576
    inline_images: bool = False
    image_timeout: float = 30.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        validate_assignment=True,
    )

settings = Settings()
logger.debug("Loaded settings for model %s at %s", settings.ollama_model, settings.ollama_host)
