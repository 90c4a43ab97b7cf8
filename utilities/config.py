"""
Configuration management using environment variables.
Handles catalog, storage and logging settings with validation and defaults.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pathlib import Path


class CatalogConfig(BaseSettings):
    """
    Configuration class for the catalog core.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="book_library")
    users_collection: str = Field(default="users")
    books_collection: str = Field(default="books")

    # Object storage
    storage_dir: str = Field(default="uploads")
    storage_public_url: str = Field(default="http://localhost:8000/uploads")
    max_upload_bytes: int = Field(default=100 * 1024 * 1024)

    # Catalog behaviour
    special_set_size: int = Field(default=6)
    bcrypt_rounds: int = Field(default=10)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    debug: bool = Field(default=False)

    @field_validator('special_set_size')
    @classmethod
    def validate_special_set_size(cls, v):
        """Ensure special set size is positive."""
        if v < 1:
            raise ValueError('special_set_size must be at least 1')
        return v

    @field_validator('bcrypt_rounds')
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """Ensure bcrypt cost stays in the range bcrypt accepts."""
        if v < 4 or v > 31:
            raise ValueError('bcrypt_rounds must be between 4 and 31')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_storage_path(self) -> Path:
        """Get object storage directory as Path object."""
        return Path(self.storage_dir)


# Global configuration instance
config = CatalogConfig()
