from typing import Any, List, Optional
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path


class GeoProviderConfig(BaseModel):
    """One geolocation provider and the mapping of its JSON payload."""

    name: str
    # URL template for an explicit IP, e.g. "http://ip-api.com/json/{ip}"
    lookup_url: Optional[str] = None
    # URL that geolocates the caller's own origin
    self_url: Optional[str] = None
    timeout: float = 3.0

    country_field: Optional[str] = None
    city_field: Optional[str] = None
    ip_field: Optional[str] = None

    # Payload is rejected unless payload[success_field] == success_value
    success_field: Optional[str] = None
    success_value: Any = True
    # Payload is rejected when payload[error_field] is truthy
    error_field: Optional[str] = None


DEFAULT_GEO_PROVIDERS = [
    GeoProviderConfig(
        name="ip-api",
        lookup_url="http://ip-api.com/json/{ip}",
        self_url="http://ip-api.com/json",
        timeout=3.0,
        country_field="country",
        city_field="city",
        ip_field="query",
        success_field="status",
        success_value="success",
    ),
    GeoProviderConfig(
        name="ipapi.co",
        lookup_url="https://ipapi.co/{ip}/json/",
        self_url="https://ipapi.co/json/",
        timeout=3.0,
        country_field="country_name",
        city_field="city",
        ip_field="ip",
        error_field="error",
    ),
    GeoProviderConfig(
        name="ipify",
        self_url="https://api.ipify.org?format=json",
        timeout=2.0,
        ip_field="ip",
    ),
]


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Link Tracker"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DEV_MODE: bool = False
    DATABASE_URL: Optional[str] = None
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "linktracker"
    MYSQL_PASSWORD: str = "your_secure_password"
    MYSQL_DATABASE: str = "linktracker"

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    # Geolocation
    GEO_PROVIDERS: List[GeoProviderConfig] = DEFAULT_GEO_PROVIDERS
    GEO_CACHE_TTL: int = 86400  # 24 hours

    # Tracking
    BLANK_REDIRECT_URL: str = "about:blank"

    # Analytics
    TIMEZONE: str = "UTC"
    RECENT_CLICKS_LIMIT: int = 10

    # Header set by the upstream identity provider
    IDENTITY_HEADER: str = "X-User-Id"

    # Slugs that collide with fixed routes
    RESERVED_SLUGS: List[str] = [
        "api", "l", "health", "docs", "redoc", "openapi.json",
        "favicon.ico", "robots.txt", "sitemap.xml"
    ]

    class Config:
        # Resolve backend/.env relative to this file so settings load correctly
        env_file = str(Path(__file__).resolve().parents[1] / ".env")
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
