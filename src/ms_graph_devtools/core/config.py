"""
Shared configuration for ms-graph-devtools.

This module defines the configuration shape accepted by every service,
the holder that keeps the process-wide shared configuration, and the
field-level merge applied when an instance is built.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Awaitable, Callable, List, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Receives the authorization URL, returns the authorization code
TokenProvider = Callable[[str], Union[str, Awaitable[str]]]
ConfigListener = Callable[[Optional["AzureConfig"]], None]

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_scopes(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    scopes = [s for s in raw.replace(",", " ").split() if s]
    return scopes or None


@dataclass
class AzureConfig:
    """Configuration for Microsoft Graph authentication.

    Every field is optional. Unset fields fall back to the shared
    configuration installed with ConfigHolder.configure().
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_provider: Optional[TokenProvider] = field(default=None, repr=False)
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    tenant_id: Optional[str] = None
    scopes: Optional[List[str]] = None
    allow_insecure: Optional[bool] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AzureConfig":
        """
        Build a configuration from AZURE_* environment variables.

        A .env file is loaded first (existing variables are not overridden).

        Args:
            dotenv_path: Explicit .env path. Defaults to python-dotenv's search.

        Returns:
            AzureConfig with every variable that was set.
        """
        load_dotenv(dotenv_path)
        allow_insecure = os.getenv("AZURE_ALLOW_INSECURE")
        config = cls(
            access_token=os.getenv("AZURE_ACCESS_TOKEN") or None,
            refresh_token=os.getenv("AZURE_REFRESH_TOKEN") or None,
            client_id=os.getenv("AZURE_CLIENT_ID") or None,
            client_secret=os.getenv("AZURE_CLIENT_SECRET") or None,
            tenant_id=os.getenv("AZURE_TENANT_ID") or None,
            scopes=_parse_scopes(os.getenv("AZURE_SCOPES")),
            allow_insecure=(
                allow_insecure.strip().lower() in _TRUTHY if allow_insecure else None
            ),
        )
        logger.debug("Loaded Azure configuration from environment")
        return config


def resolve_config(
    explicit: Optional[AzureConfig] = None, holder: Optional["ConfigHolder"] = None
) -> AzureConfig:
    """
    Merge an explicit configuration over the shared one, field by field.

    Args:
        explicit: Configuration passed to the instance being built
        holder: Holder of the shared configuration (default: process holder)

    Returns:
        A new AzureConfig; neither input is mutated.
    """
    shared = (holder or get_config_holder()).config
    if explicit is None:
        return replace(shared) if shared else AzureConfig()
    if shared is None:
        return replace(explicit)

    merged = {}
    for f in fields(AzureConfig):
        value = getattr(explicit, f.name)
        merged[f.name] = value if value is not None else getattr(shared, f.name)
    return AzureConfig(**merged)


class ConfigHolder:
    """Holds the shared configuration and notifies dependents when it changes."""

    def __init__(self, config: Optional[AzureConfig] = None) -> None:
        self._config = config
        self._listeners: List[ConfigListener] = []

    @property
    def config(self) -> Optional[AzureConfig]:
        return self._config

    def configure(self, config: AzureConfig) -> None:
        """Replace the shared configuration."""
        self._config = config
        logger.info("Shared Azure configuration replaced")
        self._notify()

    def reset(self) -> None:
        """Clear the shared configuration."""
        self._config = None
        logger.info("Shared Azure configuration cleared")
        self._notify()

    def subscribe(self, listener: ConfigListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ConfigListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._config)


# Global configuration holder
_config_holder: Optional[ConfigHolder] = None


def get_config_holder() -> ConfigHolder:
    """Get the process-wide configuration holder."""
    global _config_holder

    if _config_holder is None:
        _config_holder = ConfigHolder()

    return _config_holder
