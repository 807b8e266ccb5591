"""Configuration for the OpenAPI MCP adapter."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPENAPI_MCP_", case_sensitive=False)

    service_name: str = Field(default="openapi-mcp-adapter")

    schema_path: str = Field(default="")
    base_url: Optional[str] = Field(default=None)
    additional_headers: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=30)
    verify_ssl: bool = Field(default=True)
    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)

    transport: str = Field(default="stdio")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    max_concurrency: int = Field(default=20)

    log_level: str = Field(default="INFO")

    def headers(self) -> Dict[str, str]:
        if not self.additional_headers:
            return {}
        parsed = json.loads(self.additional_headers)
        if not isinstance(parsed, dict):
            raise ValueError("additional_headers must be a JSON object")
        return {str(key): str(value) for key, value in parsed.items()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
