"""Configuration utilities for twinbridge."""

from .loader import (
    ApiUrlsConfig,
    BaseChainConfig,
    BridgeConfig,
    ConfigError,
    ContractsConfig,
    DefaultsConfig,
    ProgramsConfig,
    RetryConfig,
    SolanaChainConfig,
    TokenConfig,
    TokensConfig,
    load_config,
)

__all__ = [
    "ApiUrlsConfig",
    "BaseChainConfig",
    "BridgeConfig",
    "ConfigError",
    "ContractsConfig",
    "DefaultsConfig",
    "ProgramsConfig",
    "RetryConfig",
    "SolanaChainConfig",
    "TokenConfig",
    "TokensConfig",
    "load_config",
]
