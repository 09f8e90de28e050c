"""
Configuration module for CryptoSentinel.

Exports:
    - SentinelConfig: The main Pydantic model for all configuration settings.
    - LLMConfig, DataSourcesConfig, RetryConfig, HolderCollectionConfig,
      LoggingConfig, WebServerConfig: Sub-models for specific sections.
    - load_config: Load configuration from .env, environment and YAML.
"""
from .config import (
    SentinelConfig,
    LLMConfig,
    DataSourcesConfig,
    RetryConfig,
    HolderCollectionConfig,
    LoggingConfig,
    WebServerConfig,
    load_config
)

__all__ = [
    "SentinelConfig",
    "LLMConfig",
    "DataSourcesConfig",
    "RetryConfig",
    "HolderCollectionConfig",
    "LoggingConfig",
    "WebServerConfig",
    "load_config",
]
