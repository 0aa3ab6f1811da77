# config.py
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import ValidationError

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    @property
    def patched_database_url(self):
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    database_url: str = "sqlite:///./visaboard.db"
    redis_url: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    openai_timeout_seconds: float = 15.0
    app_base_url: str = "http://localhost:3000"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    def validate(self):
        required_vars = ['secret_key', 'database_url']
        for var in required_vars:
            if not getattr(self, var, None):
                raise ValueError(f"Missing required config: {var}")

try:
    settings = Settings()
    settings.validate()
except ValidationError as ve:
    print("Config validation failed:", ve)
    raise
