"""Configuration for the OpenGIN explorer server."""

import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .client.wire_value import WireHeaderMode
from .models import APIConfiguration


class ServerConfig(BaseSettings):
    """Server settings loaded from ``OPENGIN_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="OPENGIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:8000", description="OpenGIN read/write API base URL")
    api_key: SecretStr | None = Field(default=None, description="Optional bearer token")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    # The dashboard historically hit both /count and /counts.
    counts_path: str = Field(default="/counts")
    page_size: int = Field(default=50, ge=1, le=1000)
    max_tree_depth: int = Field(default=64, ge=1)
    wire_header_mode: WireHeaderMode = Field(default=WireHeaderMode.DETECT)
    log_level: str = Field(default="INFO")

    @field_validator("counts_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def get_api_config(self) -> APIConfiguration:
        """Build the client-facing API configuration."""
        return APIConfiguration(
            base_url=self.api_base_url,
            api_key=self.api_key,
            timeout=self.timeout,
            counts_path=self.counts_path,
        )


def setup_logging(level: str = "INFO") -> None:
    """Route standard logging to stderr; stdout belongs to the MCP stdio transport."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    has_console = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root.handlers
    )
    if not has_console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
