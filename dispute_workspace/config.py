"""
Configuration for the Dispute Workspace Service
===============================================

Environment variables:
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./disputes.db)
- SQL_ECHO: Echo SQL statements (default: false)
- DB_CONNECT_TIMEOUT: Connect timeout in seconds for PostgreSQL (default: 5)
- CASE_NUMBER_PREFIX: Tag prepended to generated case numbers (default: SD-)
- CASE_NUMBER_LENGTH: Hex characters in a generated case number (default: 8)
- CASE_NUMBER_MAX_ATTEMPTS: Candidates probed before giving up (default: 8)
- DEFAULT_CURRENCY: Currency applied when a case omits one (default: GBP)
- AUDIT_RESOURCE: Resource name stamped on audit events (default: serviceman.control)
- LOG_LEVEL: Root logging level (default: INFO)
"""

import logging
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Database
    database_url: str = "sqlite:///./disputes.db"
    sql_echo: bool = False
    db_connect_timeout: int = 5

    # Case numbers
    case_number_prefix: str = "SD-"
    case_number_length: int = 8
    case_number_max_attempts: int = 8

    # Case defaults
    default_currency: str = "GBP"

    # Audit
    audit_resource: str = "serviceman.control"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def validate_case_number_config(self) -> List[str]:
        """Validate case number settings, return list of warnings"""
        warnings = []

        if self.case_number_max_attempts < 1:
            warnings.append("CASE_NUMBER_MAX_ATTEMPTS must be at least 1")

        if not 1 <= self.case_number_length <= 32:
            warnings.append("CASE_NUMBER_LENGTH must be between 1 and 32 (UUID hex digits)")

        # Column is String(32)
        if len(self.case_number_prefix) + self.case_number_length > 32:
            warnings.append("CASE_NUMBER_PREFIX + CASE_NUMBER_LENGTH exceeds 32 characters")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def configure_logging(level: str = None) -> None:
    """Configure root logging with the service format"""
    level = level or get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
