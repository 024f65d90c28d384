"""
Core settings and environment variables for Crime Report Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Crime Report Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Dashboard URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # Mock DB mode for local development without Firebase credentials
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: Optional[str] = "./mock_db.json"

    # Geocoding (address -> coordinates)
    # - GEOCODING_PROVIDER: "nominatim" (default, no API key) or "google"
    # - GOOGLE_MAPS_API_KEY: required when provider is "google"
    GEOCODING_PROVIDER: str = "nominatim"
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    GEOCODING_TIMEOUT_SECONDS: float = 5.0

    # Access gate: custom claim on the Firebase ID token holding the role
    AUTH_ROLE_CLAIM: str = "role"

    # When true, orphan cleanup failures after a delete are reported back
    # to the caller as warnings instead of only being logged.
    STRICT_DELETE_CLEANUP: bool = False

    @property
    def cors_origins_list(self):
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


# Global settings instance
settings = Settings()
