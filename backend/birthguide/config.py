"""
BirthGuide - Configuration Management

Centralized configuration using Pydantic Settings.
Environment-specific values are loaded from environment variables.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # --- Application ---
    app_env: str = "development"
    app_debug: bool = True
    app_log_level: str = "INFO"
    log_json_format: bool = False  # Always JSON in production
    
    # --- Server ---
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000
    
    # --- Session State Store ---
    # "memory" = process-local (tests, demos)
    # "file" = one JSON record per session key on local disk
    state_backend: str = "file"
    state_dir: str = "./data/state"
    session_key: str = "labor_state"  # Single active session per device
    
    # --- Decision Engine ---
    retained_placenta_minutes: int = 60
    # False = unknown answers are recorded without escalation or progression
    strict_answers: bool = True
    
    # --- Security ---
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    
    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    
    Use dependency injection in routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()


# Convenience export
settings = get_settings()
