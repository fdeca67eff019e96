"""
Application settings loaded from environment variables and the .env file.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Record store
    database_url: str = Field(
        default="sqlite:///./data/labdocs.db",
        description="SQLAlchemy URL of the record store"
    )

    # Rendered documents
    certificates_path: Path = Field(
        default=Path("./certificates"),
        description="Directory of rendered certificate PDFs"
    )
    services_path: Path = Field(
        default=Path("./services"),
        description="Directory of rendered service report PDFs"
    )
    assets_path: Path = Field(default=Path("./assets"), description="Directory of layout images")
    logo_file: str = Field(default="rps.png", description="Logo image file name")
    banner_file: str = Field(default="handf.png", description="Header/footer banner image file name")
    pdf_invariant: bool = Field(default=False, description="Produce byte-identical PDFs for identical input")

    # Certificate numbering
    counter_file: Path = Field(default=Path("./counter.json"), description="Fiscal counter file")
    certificate_prefix: str = Field(default="RPS/CERT", description="Certificate number prefix")
    strict_numbering: bool = Field(
        default=False,
        description="Fail certificate creation when the counter cannot be persisted"
    )

    # HTTP API
    api_key: Optional[str] = Field(default=None, description="Bearer token required by the API")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Path = Field(default=Path("./logs/labdocs.log"), description="Log file path")

    debug: bool = Field(default=False, description="Debug mode")

    @property
    def logo_path(self) -> Path:
        """Returns the full path of the logo image."""
        return self.assets_path / self.logo_file

    @property
    def banner_path(self) -> Path:
        """Returns the full path of the banner image."""
        return self.assets_path / self.banner_file

    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Validates the logging level name."""
        level = v.upper().strip()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator('certificate_prefix')
    def validate_prefix(cls, v):
        """The prefix must not be empty or end with a separator."""
        prefix = v.strip()
        if not prefix or prefix.endswith("/"):
            raise ValueError(f"Invalid certificate prefix: {v!r}")
        return prefix

    def create_directories(self):
        """Creates the log directory and reports directories that are not writable."""
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

        for directory in (self.certificates_path, self.services_path):
            if directory.exists() and not os.access(directory, os.W_OK):
                logger.warning(f"No write permission on {directory}")


# Global settings
settings = Settings()


def get_settings() -> Settings:
    """Returns the settings object."""
    return settings


def create_env_example():
    """Writes an example .env file."""
    env_example_content = """# Record store
DATABASE_URL=sqlite:///./data/labdocs.db

# Rendered documents
CERTIFICATES_PATH=./certificates
SERVICES_PATH=./services
ASSETS_PATH=./assets
PDF_INVARIANT=false

# Certificate numbering
COUNTER_FILE=./counter.json
CERTIFICATE_PREFIX=RPS/CERT
STRICT_NUMBERING=false

# HTTP API
API_KEY=

# Logging
LOG_LEVEL=INFO
LOG_FILE=./logs/labdocs.log
"""

    with open(".env.example", "w", encoding="utf-8") as f:
        f.write(env_example_content)

    print("Created .env.example with an example configuration")


if __name__ == "__main__":
    create_env_example()
