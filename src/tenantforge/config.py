"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class RegistryConfig:
    schemas_dir: str = ""  # empty = built-in registry
    templates_dir: str = ""  # empty = built-in templates


@dataclass
class VoiceConfig:
    min_sample_size: int = 5
    min_confidence: float = 0.5


@dataclass
class CredentialConfig:
    # provider kind -> already-issued shared credential id (reply_engine, metrics_store)
    shared: dict[str, str] = field(default_factory=dict)


@dataclass
class EngineConfig:
    base_url: str = "http://localhost:5678"
    api_key: str = ""
    timeout: float = 30.0
    max_retries: int = 3


@dataclass
class StorageConfig:
    sqlite_path: str = "tenantforge.db"


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    credentials: CredentialConfig = field(default_factory=CredentialConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge_dict(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _dict_to_config(data: dict) -> Config:
    """Convert a raw dict to a Config dataclass, handling nested structures."""
    from dacite import Config as DaciteConfig, from_dict

    return from_dict(data_class=Config, data=data, config=DaciteConfig(cast=[float]))


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    # 1. Environment variable
    env_path = os.environ.get("TENANTFORGE_CONFIG")
    if env_path:
        p = Path(env_path)
        if p.exists():
            return p

    # 2. Current directory
    local = Path("tenantforge.yaml")
    if local.exists():
        return local

    # 3. XDG config dir
    xdg = Path.home() / ".config" / "tenantforge" / "config.yaml"
    if xdg.exists():
        return xdg

    return None


def _load_dotenv() -> None:
    """Load .env file from current directory if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        # Don't overwrite already-set env vars
        if key not in os.environ:
            os.environ[key] = value


def _apply_env_overrides(config: Config) -> Config:
    """Override config values from environment variables.

    Supports:
        TENANTFORGE_ENGINE_URL      -> config.engine.base_url
        TENANTFORGE_ENGINE_API_KEY  -> config.engine.api_key
        TENANTFORGE_DB              -> config.storage.sqlite_path
    """
    if os.environ.get("TENANTFORGE_ENGINE_URL"):
        config.engine.base_url = os.environ["TENANTFORGE_ENGINE_URL"]
    if os.environ.get("TENANTFORGE_ENGINE_API_KEY"):
        config.engine.api_key = os.environ["TENANTFORGE_ENGINE_API_KEY"]
    if os.environ.get("TENANTFORGE_DB"):
        config.storage.sqlite_path = os.environ["TENANTFORGE_DB"]
    return config


def load_config(path: str | Path | None = None, overrides: dict | None = None) -> Config:
    """Load configuration from YAML file, merging with defaults.

    ``overrides`` is deep-merged over the file contents. Also loads .env
    and applies environment variable overrides.
    """
    _load_dotenv()

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        config_path = _find_config_file()

    raw: dict = {}
    if config_path is not None:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    if overrides:
        raw = _merge_dict(raw, overrides)

    return _apply_env_overrides(_dict_to_config(raw))
