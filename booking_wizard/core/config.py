from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    BACKEND_URL: str = "http://localhost:8090"
    BACKEND_TIMEOUT: float = 15.0  # seconds, applies to every backend call

    REDIS_URL: Optional[str] = None
    DISTANCE_CACHE_TTL: int = 300  # 5 minutes

    DEFAULT_PRICE_PER_KM: float = 2.0
    REDIRECT_DELAY_SECONDS: float = 1.5
    WIZARD_TTL: int = 3600  # abandoned wizards are dropped after 1 hour

    AUTH_PATH: str = "/auth"
    USER_DASHBOARD_PATH: str = "/dashboard/user"
    ADMIN_DASHBOARD_PATH: str = "/dashboard/admin"
    VEHICLES_PATH: str = "/vehicles"

    API_TITLE: str = "Vehicle Rental Booking Wizard"
    API_DESCRIPTION: str = "Multi-step booking wizard with dynamic fare computation"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
