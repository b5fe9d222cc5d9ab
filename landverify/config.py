from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "LandVerify"
    DEBUG: bool = False
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://landverify:landverify_pass@db:5432/landverify"

    # JWT (tokens are issued by the identity provider)
    JWT_SECRET_KEY: str = "change-this-to-a-secure-random-string"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Land registry (read-only facts about the land being verified)
    LAND_REGISTRY_URL: str = "http://land-registry:8000/api/v1"
    LAND_REGISTRY_TIMEOUT_SECONDS: float = 5.0

    # Notification provider (console, webhook)
    NOTIFICATION_PROVIDER: str = "console"
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_WEBHOOK_TOKEN: Optional[str] = None

    # Workflow
    REQUIRE_PAYMENT_BEFORE_WORK: bool = True

    # Background jobs (SLA sweep + notification outbox)
    SCHEDULER_ENABLED: bool = True
    SLA_SWEEP_INTERVAL_SECONDS: int = 300

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    model_config = {"env_file": ".env", "case_sensitive": True}


settings = Settings()
