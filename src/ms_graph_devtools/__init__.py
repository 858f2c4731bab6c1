"""ms-graph-devtools - Microsoft Graph helpers with managed authentication.

This package keeps a valid bearer token for Microsoft Graph from an access
token, a refresh token, or an interactive token provider, persists renewable
credentials per tenant/client, and wraps Outlook, Calendar, Teams and
SharePoint calls with a single 401-triggered retry.
"""
from .core.config import AzureConfig, ConfigHolder, get_config_holder
from .auth import AzureAuth, AuthMode, get_credential_store, set_credential_store
from .client import Outlook, MailBuilder, Calendar, Teams, AdaptiveCardBuilder, Tag, SharePoint
from .facade import Azure, azure
from .utils import errors

__version__ = "0.1.0"
__all__ = [
    "AzureConfig",
    "ConfigHolder",
    "get_config_holder",
    "AzureAuth",
    "AuthMode",
    "get_credential_store",
    "set_credential_store",
    "Outlook",
    "MailBuilder",
    "Calendar",
    "Teams",
    "AdaptiveCardBuilder",
    "Tag",
    "SharePoint",
    "Azure",
    "azure",
    "errors",
]
