"""API configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://petal:petal@db:5432/petal"
    REDIS_URL: str = "redis://redis:6379/0"
    SQL_ECHO: bool = False

    # Geocoding (DaData suggestions API)
    DADATA_API_KEY: str = ""
    GEOCODE_TIMEOUT_SEC: float = 5.0
    GEOCODE_CACHE_TTL: int = 30 * 60

    # Routing (OSRM)
    OSRM_URL: str = "https://router.project-osrm.org"
    ROUTING_TIMEOUT_SEC: float = 3.0

    # Service region
    REGION_CITY: str = "Челябинск"
    REGION_AREA: str = "Челябинская область"

    # Tariff ladder "km=price,km=price,..."; empty means the built-in ladder
    TARIFFS: str = ""

    # Distance corrections, tuned for one city
    ROAD_DISTANCE_COEFFICIENT: float = 1.6
    ROUTING_CORRECTION_MAX: float = 1.24
    ROUTING_CORRECTION_START_KM: float = 5.0
    ROUTING_CORRECTION_END_KM: float = 12.0

    COURIER_MAX_ACTIVE_ORDERS: int = 3

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
