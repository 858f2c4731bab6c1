"""Configuration primitives for ms-graph-devtools."""
from .config import AzureConfig, ConfigHolder, get_config_holder, resolve_config

__all__ = ["AzureConfig", "ConfigHolder", "get_config_holder", "resolve_config"]
