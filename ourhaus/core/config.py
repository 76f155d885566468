from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "OurHaus API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Household membership and home history API"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Document store: "mongo" or "memory"
    STORE_BACKEND: str = "mongo"
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "ourhaus"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT
    SECRET_KEY: str = "change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Invitations
    INVITATION_TTL_DAYS: int = 7
    INVITATION_TOKEN_BYTES: int = 32
    INVITATION_TOKEN_ATTEMPTS: int = 5
    RESTRICT_INVITE_ROLE_ELEVATION: bool = False

    # Profiles
    HOUSEHOLD_NAME_MAX_LENGTH: int = 100

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
