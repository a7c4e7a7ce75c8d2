from typing import List, Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Campus Grievance API"
    DATABASE_URL: str = "sqlite:///./grievance.db"
    LOG_LEVEL: str = "INFO"

    # "openai" calls the hosted model, "fallback" never leaves the process
    CLASSIFIER_BACKEND: str = "openai"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    CLASSIFIER_TIMEOUT_SECONDS: float = 12.0

    ENFORCE_STATUS_GRAPH: bool = True
    ADMIN_LIST_LIMIT: int = 100
    USER_LIST_LIMIT: int = 50
    RECENT_TICKETS: int = 5

    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"

settings = Settings()

# Routing targets the classifier may pick from.
DEPARTMENTS = {
    "hostel": "Hostel Administration",
    "academics": "Academic Affairs",
    "transport": "Transport Services",
    "it": "IT Support",
    "admin": "General Administration",
    "security": "Campus Security",
}
