import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Learner Social Hub"
    API_V1_STR: str = "/api/v1"
    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

    # "firestore" for deployments, "memory" for local development and tests
    STORE_BACKEND: Literal["firestore", "memory"] = "firestore"

    # GCP and Firebase Settings
    GCP_PROJECT_ID: Optional[str] = None
    # For live deployment, ensure FIRESTORE_EMULATOR_HOST environment variable is NOT set.
    FIRESTORE_EMULATOR_HOST: Optional[str] = None # e.g., "localhost:8080"
    # For live deployment, ensure PUBSUB_EMULATOR_HOST environment variable is NOT set.
    PUBSUB_EMULATOR_HOST: Optional[str] = None # e.g., "localhost:8085"
    NOTIFICATION_TOPIC_NAME: str = "learner-hub-notifications"
    INSTANCE_ID: str = os.getenv("K_REVISION", "local") # Unique identifier for each Cloud Run instance

    # JWT Settings (tokens are minted by the identity provider)
    SECRET_KEY: str = "secret_key"
    ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # Surface sizes
    NOTIFICATION_PANEL_LIMIT: int = 20
    NOTIFICATION_DRAWER_LIMIT: int = 10
    NOTIFICATION_DRAWER_WINDOW_HOURS: int = 24
    FRIEND_SEARCH_LIMIT: int = 10

    model_config = SettingsConfigDict(case_sensitive=True)


settings = Settings()
