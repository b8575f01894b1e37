"""
Application configuration settings
FILE: lecture_qa/core/config.py
"""
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "lecture_qa"

    # Record answer and score credit in one transaction (needs a replica set)
    mongodb_use_transactions: bool = False

    # "memory" keeps sessions in-process; lectures come from lecture_seed_file
    storage_backend: Literal["mongo", "memory"] = "mongo"
    lecture_seed_file: Optional[str] = None

    # Live quiz rules
    access_code_length: int = 6
    access_code_max_attempts: int = 10
    host_sessions_limit: int = 10

    # HTTP
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:4000",
    ]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False  # This allows case-insensitive matching
        extra = "allow"  # This allows extra fields


settings = Settings()
