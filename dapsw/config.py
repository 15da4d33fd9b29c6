"""
Configuration management for the secret webhook using Pydantic v2.
"""

import json
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("/etc/dap-secret-webhook/config.json")


class ServerConfig(BaseSettings):
    # Server configuration
    bind_address: str = Field(default="0.0.0.0", alias="WEBHOOK_BIND_ADDRESS")
    port: int = Field(default=443, ge=1, le=65535, alias="WEBHOOK_SERVICE_PORT")

    # TLS configuration
    tls_cert_path: Optional[Path] = Field(default=None, alias="TLS_SERVER_CERT_FILE")
    tls_key_path: Optional[Path] = Field(default=None, alias="TLS_SERVER_KEY_FILE")
    client_ca_path: Optional[Path] = Field(default=None, alias="TLS_CLIENT_CA_FILE")
    mtls_required: bool = Field(default=False, alias="MTLS_REQUIRED")
    require_tls: bool = Field(default=True, alias="REQUIRE_TLS")

    # Debug mode
    debug: bool = Field(default=False, alias="DEBUG")

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("tls_cert_path", "tls_key_path", "client_ca_path", mode="after")
    @classmethod
    def validate_paths(cls, v: Optional[Path]) -> Optional[Path]:
        """Validate that paths exist if specified."""
        if v and not v.exists():
            raise ValueError(f"Path does not exist: {v}")
        return v


class WebhookConfig(ServerConfig):
    """Configuration for the secret injection webhook."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Secret API (MLP) configuration
    mlp_api_host: str = Field(..., alias="MLP_API_HOST")
    mlp_timeout: float = Field(default=30.0, alias="MLP_TIMEOUT", gt=0)
    mlp_google_auth: bool = Field(default=True, alias="MLP_GOOGLE_AUTH")

    # Kubernetes configuration
    in_cluster: bool = Field(default=True, alias="IN_CLUSTER")
    k8s_timeout: float = Field(default=30.0, alias="K8S_TIMEOUT", gt=0)

    # Webhook endpoint
    mutate_path: str = Field(default="/mutate", alias="WEBHOOK_MUTATE_PATH")

    # Metrics configuration
    metrics_enabled: bool = Field(default=True, alias="PROMETHEUS_ENABLED")

    # Config file support
    config_file: Optional[Path] = Field(default=None, alias="CONFIG_FILE")

    @field_validator("mlp_api_host", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("mutate_path", mode="after")
    @classmethod
    def validate_mutate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Mutate path must start with '/': {v}")
        return v

    def __init__(self, **kwargs):
        """Initialize config with support for config file."""
        config_file_path = kwargs.get("config_file") or kwargs.get("CONFIG_FILE")
        if not config_file_path:
            config_file_path = DEFAULT_CONFIG_FILE

        # Load from config file if it exists
        file_config = {}
        if config_file_path and Path(config_file_path).exists():
            with open(config_file_path, "r") as f:
                file_config = json.load(f)

        # Merge configurations (kwargs take precedence over file)
        merged_config = {**file_config, **kwargs}

        super().__init__(**merged_config)

    def export_json(self) -> str:
        """Export configuration as JSON."""
        return self.model_dump_json(indent=2, exclude_unset=False)

    def export_dict(self) -> dict:
        """Export configuration as dictionary."""
        return self.model_dump(exclude_unset=False)
