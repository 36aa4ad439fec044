"""
Configuration management.

Uses Pydantic Settings for environment variable handling and validation,
with an optional config.yaml providing defaults.
"""

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "../../config.yaml",  # Project root from src/metricstack
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


class RateLimitSettings(BaseSettings):
    """Admission limiter configuration."""

    max_requests: int = Field(
        default=300,
        validation_alias=AliasChoices("METRICSTACK_RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_MAX"),
        description="Maximum requests per source identity per window",
    )
    window_seconds: int = Field(default=60, description="Fixed window length")
    max_identities: int = Field(default=10000, description="Maximum tracked identities before LRU eviction")
    sweep_interval_seconds: int = Field(default=60, description="Interval between expired bucket sweeps")

    @field_validator("max_requests", mode="before")
    def parse_max_requests(cls, v: Any) -> Any:
        """Treat an empty environment value as unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return 300
        return v

    class Config:
        env_prefix = "METRICSTACK_RATE_LIMIT_"


class CodecSettings(BaseSettings):
    """Obfuscation codec keys.

    The outbound server key and the key used to peek at the client's config
    token are independent of each other and of the caller-supplied ``v``
    token used on the ingestion path.
    """

    server_key: str = Field(default="calypso", description="Key for encoding config responses")
    config_request_key: str = Field(default="calypso", description="Key for decoding the client config token")

    class Config:
        env_prefix = "METRICSTACK_CODEC_"


class StoreSettings(BaseSettings):
    """Document store configuration."""

    backend: str = Field(default="jsonl", description="Store backend: jsonl or none")
    root_path: Path = Field(default=Path("./data"), description="Root directory for JSON lines collections")
    collection: str = Field(default="telemetry", description="Collection receiving accepted envelopes")
    disk_free_min_ratio: float = Field(default=0.05, description="Minimum disk free ratio for readiness")

    @field_validator("backend")
    def validate_backend(cls, v: str) -> str:
        backend = v.strip().lower()
        if backend not in {"jsonl", "none"}:
            raise ValueError(f"Unknown store backend '{v}', expected 'jsonl' or 'none'")
        return backend

    class Config:
        env_prefix = "METRICSTACK_STORE_"


class RemoteConfigSettings(BaseSettings):
    """Fixed-shape configuration handed back to clients."""

    config_id: str = Field(default="EpXo90y2oMhQ5e43WrYP", description="Configuration identifier")
    tasks: List[Dict[str, Any]] = Field(default_factory=list, description="Task list for clients")
    concurrency: int = Field(default=4, description="Client concurrency hint")
    background_check: bool = Field(default=True, description="Feature flag: background checks")
    wl: bool = Field(default=False, description="Feature flag: wl")
    flush_interval_ms: int = Field(default=11000, description="Client flush interval")
    t2_offset_ms: int = Field(default=1000, description="Offset of the second timestamp")

    class Config:
        env_prefix = "METRICSTACK_REMOTE_CONFIG_"


class Settings(BaseSettings):
    """Main application settings."""

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("METRICSTACK_PORT", "PORT"),
        description="Server port",
    )
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Component settings
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    codec: CodecSettings = Field(default_factory=CodecSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    remote_config: RemoteConfigSettings = Field(default_factory=RemoteConfigSettings)

    class Config:
        env_prefix = "METRICSTACK_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""
    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    return Settings()


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        ("server", "host"): "METRICSTACK_HOST",
        ("server", "port"): "METRICSTACK_PORT",
        ("server", "debug"): "METRICSTACK_DEBUG",
        ("server", "log_level"): "METRICSTACK_LOG_LEVEL",
        ("rate_limit", "max_requests"): "METRICSTACK_RATE_LIMIT_MAX_REQUESTS",
        ("rate_limit", "window_seconds"): "METRICSTACK_RATE_LIMIT_WINDOW_SECONDS",
        ("rate_limit", "max_identities"): "METRICSTACK_RATE_LIMIT_MAX_IDENTITIES",
        ("rate_limit", "sweep_interval_seconds"): "METRICSTACK_RATE_LIMIT_SWEEP_INTERVAL_SECONDS",
        ("codec", "server_key"): "METRICSTACK_CODEC_SERVER_KEY",
        ("codec", "config_request_key"): "METRICSTACK_CODEC_CONFIG_REQUEST_KEY",
        ("store", "backend"): "METRICSTACK_STORE_BACKEND",
        ("store", "root_path"): "METRICSTACK_STORE_ROOT_PATH",
        ("store", "collection"): "METRICSTACK_STORE_COLLECTION",
        ("store", "disk_free_min_ratio"): "METRICSTACK_STORE_DISK_FREE_MIN_RATIO",
        ("remote_config", "config_id"): "METRICSTACK_REMOTE_CONFIG_CONFIG_ID",
        ("remote_config", "concurrency"): "METRICSTACK_REMOTE_CONFIG_CONCURRENCY",
        ("remote_config", "background_check"): "METRICSTACK_REMOTE_CONFIG_BACKGROUND_CHECK",
        ("remote_config", "wl"): "METRICSTACK_REMOTE_CONFIG_WL",
        ("remote_config", "flush_interval_ms"): "METRICSTACK_REMOTE_CONFIG_FLUSH_INTERVAL_MS",
        ("remote_config", "t2_offset_ms"): "METRICSTACK_REMOTE_CONFIG_T2_OFFSET_MS",
    }

    for (section, key), env_var in mappings.items():
        if env_var not in os.environ:
            value = config_data.get(section, {}).get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Task list is complex, pass it through as JSON
    if "METRICSTACK_REMOTE_CONFIG_TASKS" not in os.environ:
        tasks = config_data.get("remote_config", {}).get("tasks")
        if tasks:
            os.environ["METRICSTACK_REMOTE_CONFIG_TASKS"] = json.dumps(tasks)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
