from pydantic_settings import BaseSettings
import os

class Settings(BaseSettings):
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./chess_arena.db"
    )
    DEBUG: bool = os.getenv("DEBUG", "True") == "True"
    # Echoing every statement drowns the move log, so it is opt-in
    SQL_ECHO: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Waiting tickets older than this are neither matched nor kept
    MATCHMAKING_TICKET_TTL_SECONDS: int = 300

    DEFAULT_RATING: int = 1200
    ELO_K_FACTOR: int = 32

    class Config:
        env_file = ".env"

settings = Settings()
