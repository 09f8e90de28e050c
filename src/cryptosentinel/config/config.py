"""
Configuration system for CryptoSentinel.

This module provides a configuration system that can load settings from:
- Environment variables (and a local .env file)
- YAML files
- Python dictionaries
- Programmatic configuration
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, validator, root_validator
from loguru import logger

from .defaults import (
    DEFAULT_RETRY_POLICIES,
    DEFAULT_LLM_CONFIG,
    DEFAULT_COLLECTOR_CONFIG,
    DEFAULT_LOGGING_CONFIG,
    DEFAULT_SOLANA_RPC_URL,
    DEFAULT_HELIUS_RPC_URL,
)


class LLMConfig(BaseModel):
    """Configuration for the completion backend used by the report synthesizer."""
    provider: str = DEFAULT_LLM_CONFIG["provider"]
    model: str = DEFAULT_LLM_CONFIG["model"]
    temperature: float = DEFAULT_LLM_CONFIG["temperature"]
    max_tokens: Optional[int] = DEFAULT_LLM_CONFIG["max_tokens"]
    api_key: Optional[str] = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    api_base: Optional[str] = None
    timeout: float = DEFAULT_LLM_CONFIG["timeout"]

    @validator('temperature')
    def validate_temperature(cls, v):
        if not 0.0 <= v <= 2.0:
            raise ValueError('Temperature must be between 0.0 and 2.0')
        return v

    @validator('provider')
    def validate_provider(cls, v):
        valid_providers = ['openai', 'anthropic', 'azure', 'custom', 'openrouter']
        if v.lower() not in valid_providers:
            logger.warning(f"Provider '{v}' not in standard list: {valid_providers}")
        return v.lower()


class DataSourcesConfig(BaseModel):
    """Credentials and endpoints for the upstream data providers."""
    solana_rpc_url: str = Field(default_factory=lambda: os.getenv("SOLANA_RPC_URL", DEFAULT_SOLANA_RPC_URL))
    helius_rpc_url: str = DEFAULT_HELIUS_RPC_URL
    helius_api_key: Optional[str] = Field(default_factory=lambda: os.getenv("HELIUS_API_KEY"))
    twitter_bearer_token: Optional[str] = Field(default_factory=lambda: os.getenv("TWITTER_BEARER_TOKEN"))
    github_token: Optional[str] = Field(default_factory=lambda: os.getenv("GITHUB_TOKEN"))
    http_timeout: float = 30.0

    @validator('solana_rpc_url', 'helius_rpc_url')
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"RPC URL must start with http:// or https://, got '{v}'")
        return v.rstrip("/")


class RetryConfig(BaseModel):
    """Per-upstream overrides for the backoff presets in ``defaults.py``."""
    policies: Dict[str, Dict[str, float]] = Field(default_factory=dict)

    def get_policy(self, name: str):
        """Build the RetryPolicy for ``name`` (falls back to the "default" preset)."""
        from ..toolkits.utils.retry import RetryPolicy

        base = dict(DEFAULT_RETRY_POLICIES.get(name, DEFAULT_RETRY_POLICIES["default"]))
        base.update(self.policies.get(name, {}))
        return RetryPolicy(**base)


class HolderCollectionConfig(BaseModel):
    """Configuration for paginated holder enumeration."""
    page_size: int = DEFAULT_COLLECTOR_CONFIG["page_size"]
    max_pages: int = DEFAULT_COLLECTOR_CONFIG["max_pages"]
    delay_between_pages: float = DEFAULT_COLLECTOR_CONFIG["delay_between_pages"]
    save_to_file: bool = False
    output_dir: str = "data/holders"

    @validator('page_size')
    def validate_page_size(cls, v):
        if not 1 <= v <= 1000:
            raise ValueError("page_size must be between 1 and 1000")
        return v

    @validator('max_pages')
    def validate_max_pages(cls, v):
        if v < 0:
            raise ValueError("max_pages must be >= 0 (0 means unlimited)")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging."""
    level: str = DEFAULT_LOGGING_CONFIG["level"]
    file_path: Optional[str] = DEFAULT_LOGGING_CONFIG["file_path"]
    file_rotation: str = DEFAULT_LOGGING_CONFIG["file_rotation"]
    file_retention: int = DEFAULT_LOGGING_CONFIG["file_retention"]
    enable_console: bool = DEFAULT_LOGGING_CONFIG["enable_console"]
    enable_file: bool = DEFAULT_LOGGING_CONFIG["enable_file"]
    module_levels: Optional[Dict[str, str]] = None
    console_style: str = "clean"  # "clean", "timestamp", or "detailed"

    @validator('level')
    def validate_level(cls, v):
        valid_levels = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    def get_log_file_path(self) -> Optional[Path]:
        """Get the log file path."""
        return Path(self.file_path) if self.file_path else None


class WebServerConfig(BaseModel):
    """Configuration for the FastAPI server."""
    host: str = Field(default_factory=lambda: os.getenv("SENTINEL_HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("SENTINEL_PORT", 3001)))
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @validator('port')
    def validate_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


class SentinelConfig(BaseModel):
    """Main configuration class for CryptoSentinel."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    data_sources: DataSourcesConfig = Field(default_factory=DataSourcesConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    collector: HolderCollectionConfig = Field(default_factory=HolderCollectionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web_server: WebServerConfig = Field(default_factory=WebServerConfig)

    environment: str = Field(default_factory=lambda: os.getenv("SENTINEL_ENV", "development"))

    class Config:
        extra = "allow"
        validate_assignment = True

    @root_validator(pre=False, skip_on_failure=True)
    def check_retry_overrides(cls, values):
        retry = values.get('retry')
        if retry:
            unknown = set(retry.policies) - set(DEFAULT_RETRY_POLICIES)
            if unknown:
                logger.warning(f"Retry overrides for unknown upstreams: {sorted(unknown)}")
        return values

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SentinelConfig":
        """
        Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            SentinelConfig instance

        Raises:
            FileNotFoundError: If the config file doesn't exist
            yaml.YAMLError: If the YAML is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            if data is None:
                data = {}

            logger.info(f"Loaded configuration from {path}")
            return cls(**data)
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in configuration file {path}: {e}")
            raise

    @classmethod
    def from_env(cls, prefix: str = "SENTINEL_") -> "SentinelConfig":
        """
        Load configuration from environment variables.

        Credentials (HELIUS_API_KEY, TWITTER_BEARER_TOKEN, ...) are always read
        by their field default factories; the prefixed variables below tune
        everything else.

        Args:
            prefix: Prefix for environment variables (default: "SENTINEL_")

        Returns:
            SentinelConfig instance with values from environment
        """
        config = cls()

        env_mappings = {
            f"{prefix}LLM_PROVIDER": ("llm", "provider"),
            f"{prefix}LLM_MODEL": ("llm", "model"),
            f"{prefix}LLM_TEMPERATURE": ("llm", "temperature"),
            f"{prefix}LLM_API_BASE": ("llm", "api_base"),
            f"{prefix}HTTP_TIMEOUT": ("data_sources", "http_timeout"),
            f"{prefix}HOLDER_PAGE_SIZE": ("collector", "page_size"),
            f"{prefix}HOLDER_MAX_PAGES": ("collector", "max_pages"),
            f"{prefix}HOLDER_PAGE_DELAY": ("collector", "delay_between_pages"),
            f"{prefix}HOLDER_SAVE_ENABLED": ("collector", "save_to_file"),
            f"{prefix}LOG_LEVEL": ("logging", "level"),
            f"{prefix}LOG_FILE": ("logging", "file_path"),
            f"{prefix}LOG_FILE_ENABLED": ("logging", "enable_file"),
            f"{prefix}ENVIRONMENT": ("environment",),
        }

        for env_var, config_path in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    if env_var.endswith('_ENABLED'):
                        value = value.lower() in ('true', '1', 'yes', 'on')
                    elif env_var.endswith(('_PAGE_SIZE', '_MAX_PAGES')):
                        value = int(value)
                    elif env_var.endswith(('_TEMPERATURE', '_TIMEOUT', '_DELAY')):
                        value = float(value)

                    if len(config_path) == 1:
                        setattr(config, config_path[0], value)
                    else:
                        section = getattr(config, config_path[0])
                        setattr(section, config_path[1], value)

                    logger.debug(f"Set config from {env_var}: {config_path} = {value}")
                except (ValueError, AttributeError) as e:
                    logger.warning(f"Failed to set config from {env_var}: {e}")

        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SentinelConfig":
        """Create configuration from a dictionary."""
        return cls(**data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """
        Save configuration to a YAML file. Credentials are left out.

        Args:
            path: Path where to save the configuration
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.to_dict()
        data.get("llm", {}).pop("api_key", None)
        for secret in ("helius_api_key", "twitter_bearer_token", "github_token"):
            data.get("data_sources", {}).pop(secret, None)

        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, indent=2, sort_keys=True)

        logger.info(f"Configuration saved to {path}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.dict(exclude_none=True)

    def merge_with(self, other: "SentinelConfig") -> "SentinelConfig":
        """
        Merge this configuration with another, with other taking precedence.

        Args:
            other: Another SentinelConfig to merge with

        Returns:
            New SentinelConfig with merged values
        """
        def deep_merge(base: dict, overlay: dict) -> dict:
            result = base.copy()
            for key, value in overlay.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value
            return result

        merged_dict = deep_merge(self.to_dict(), other.to_dict())
        return SentinelConfig.from_dict(merged_dict)

    def validate_api_keys(self) -> List[str]:
        """
        List the credentials that are missing.

        None of them is fatal at startup: every adapter degrades on its own
        (basic holders via public RPC, generated social data, ...).

        Returns:
            List of missing API key names
        """
        missing_keys = []

        if self.llm.provider == "openai" and not self.llm.api_key:
            missing_keys.append("OPENAI_API_KEY")
        if not self.data_sources.helius_api_key:
            missing_keys.append("HELIUS_API_KEY")
        if not self.data_sources.twitter_bearer_token:
            missing_keys.append("TWITTER_BEARER_TOKEN")

        return missing_keys

    def setup_logging(self) -> None:
        """Configure logging based on the current settings."""
        from ..core.logging_config import setup_logging

        setup_logging(self.logging)


def load_config(
    config_file: Optional[Union[str, Path]] = None,
    use_env: bool = True,
    env_prefix: str = "SENTINEL_",
    configure_logging: bool = True
) -> SentinelConfig:
    """
    Load configuration using the standard precedence:
    1. Default configuration
    2. Environment variables, including a local .env file (if use_env=True)
    3. Configuration file (if provided)

    Args:
        config_file: Optional path to YAML configuration file
        use_env: Whether to load from environment variables
        env_prefix: Prefix for environment variables
        configure_logging: Whether to install the logging sinks

    Returns:
        SentinelConfig instance
    """
    if use_env:
        from dotenv import load_dotenv
        load_dotenv()
        config = SentinelConfig.from_env(env_prefix)
    else:
        config = SentinelConfig()

    if config_file:
        file_config = SentinelConfig.from_yaml(config_file)
        config = config.merge_with(file_config)

    missing_keys = config.validate_api_keys()
    if missing_keys:
        logger.warning(f"Missing API keys: {', '.join(missing_keys)}")

    if configure_logging:
        config.setup_logging()
    return config
