"""
Configuration management for the lifecycle manager.

Supports YAML config files with environment variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreConfig(BaseModel):
    """Where the log store lives and how much disk it has."""

    endpoint: str = Field(
        default="https://tigera-secure-es-http.tigera-elasticsearch.svc:9200",
        description="HTTPS endpoint of the log store",
    )
    external: bool = Field(default=False, description="Store is external and requires mTLS")
    storage_request: str | None = Field(
        default=None, description="Storage request quantity (e.g. 100Gi); default 10Gi"
    )
    cluster_id: str = Field(default="cluster", description="Cluster identifier used in names")
    tenant_id: str = Field(default="", description="Tenant identifier used in names")


class RetentionConfig(BaseModel):
    """Retention in days per configurable log category (None uses the default)."""

    flows: int | None = Field(default=8, description="Flow log retention in days")
    dns_logs: int | None = Field(default=8, description="DNS log retention in days")
    bgp_logs: int | None = Field(default=8, description="BGP log retention in days")
    audit_reports: int | None = Field(default=91, description="Audit log retention in days")
    snapshots: int | None = Field(default=91, description="Snapshot retention in days")
    compliance_reports: int | None = Field(
        default=91, description="Compliance report retention in days"
    )


class ConnectionConfig(BaseModel):
    """Configuration for the store client bootstrap."""

    max_attempts: int = Field(default=10, ge=1, description="Client construction attempts")
    retry_interval_seconds: float = Field(
        default=0.5, ge=0.0, description="Delay between construction attempts"
    )
    timeout_seconds: float = Field(default=30.0, description="Per-request timeout")
    healthcheck: bool = Field(default=False, description="Ping the store when creating a client")
    ca_override_file: str | None = Field(
        default=None, description="Operator-supplied CA bundle (PEM) replacing the CA secret"
    )


class SecretsConfig(BaseModel):
    """Names and location of the secrets the bootstrapper reads."""

    directory: str = Field(default="/etc/logstore/secrets", description="Mounted secrets root")
    credentials: str = Field(
        default="tigera-secure-es-elastic-user", description="Admin credentials secret"
    )
    internal_ca: str = Field(
        default="tigera-secure-es-http-certs-public", description="Internal store CA secret"
    )
    external_ca: str = Field(
        default="tigera-secure-external-es-public-cert", description="External store CA secret"
    )
    client_certificate: str = Field(
        default="tigera-secure-external-es-client-certs",
        description="mTLS client certificate secret (external mode)",
    )
    principal_passwords: str = Field(
        default="tigera-ee-principal-passwords",
        description="Passwords of the built-in principals, keyed by username",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json, plain)")
    file: str | None = Field(default=None, description="Log file path (None for stdout)")


class Config(BaseSettings):
    """Main configuration for the lifecycle manager."""

    model_config = SettingsConfigDict(
        env_prefix="LOGSTORE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    store: StoreConfig = Field(default_factory=StoreConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with path.open() as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, config_path: str | None = None) -> Config:
        """
        Load configuration with precedence:
        1. Environment variables (highest)
        2. Config file
        3. Defaults (lowest)
        """
        if config_path is None:
            config_path = os.getenv("LOGSTORE_CONFIG")

        if config_path is None:
            for candidate in [
                "logstore-lifecycle.yaml",
                "logstore-lifecycle.yml",
                "config/logstore-lifecycle.yaml",
                ".logstore-lifecycle.yaml",
            ]:
                if Path(candidate).exists():
                    config_path = candidate
                    break

        if config_path and Path(config_path).exists():
            return cls.from_yaml(config_path)

        return cls()

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config | None) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
