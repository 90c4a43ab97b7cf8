"""
HTTP surface settings: server binding, token signing and CORS.
Read from ``API_``-prefixed environment variables or ``.env``.
"""

from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    api_title: str = "Book Library API"
    api_version: str = "1.0.0"

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    debug: bool = False
    log_level: str = "INFO"

    # Token signing
    secret_key: str = "change-me-book-library-secret"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60 * 24, ge=1)

    cors_origins: Union[List[str], str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    @field_validator('algorithm')
    @classmethod
    def validate_algorithm(cls, v):
        """Only HMAC signing is supported with a shared secret."""
        if v.upper() not in ('HS256', 'HS384', 'HS512'):
            raise ValueError('algorithm must be one of HS256, HS384, HS512')
        return v.upper()

    @field_validator('cors_origins')
    @classmethod
    def split_origins(cls, v):
        # API_CORS_ORIGINS=http://a.example,http://b.example
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    model_config = {
        "env_prefix": "API_",
        "env_file": ".env",
        "extra": "ignore",
    }


# Global config instance
config = APIConfig()
