from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./horizon_infra.db"

    # API
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Marketplace (management plugins)
    MARKETPLACE_URL: Optional[str] = None
    MARKETPLACE_TIMEOUT: float = 10.0

    # Connectors
    SSH_CONNECT_TIMEOUT: float = 10.0
    SSH_COMMAND_TIMEOUT: float = 30.0
    DOCKER_API_TIMEOUT: float = 10.0
    DOCKER_DEFAULT_PORT: int = 2375
    HTTP_PROBE_TIMEOUT: float = 5.0
    MAX_SESSIONS_PER_INSTANCE: int = 4

    # Discovery and health
    DISCOVERY_TIMEOUT: float = 120.0
    HEALTH_CHECK_TIMEOUT: float = 30.0
    HEALTH_CHECK_INTERVAL_SECONDS: int = 0  # 0 disables the background loop
    HEALTH_CHECK_CONCURRENCY: int = 5

    # Tags
    TAG_CACHE_TTL_SECONDS: int = 120

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
