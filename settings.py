# settings.py

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    # Hosted document store; the in-process store is used when unset
    MONGO_URI: str | None = None
    MONGO_DB: str = "axion"

    # Shared secret for the technical-reviewer console
    REVIEWER_SECRET: str = "change-me"

    # Public URL sent to collaborators in the invitation message
    APP_URL: str = "http://127.0.0.1:8050"

    # Dashboard refresh period for live views
    LIVE_REFRESH_MS: int = 3000

    HOST: str = "127.0.0.1"
    PORT: int = 8050
    DEBUG: bool = False

    class Config:
        env_prefix = "AXION_"
        case_sensitive = False


SETTINGS = Settings()
