"""
OAuth Configuration for ms-graph-devtools.

This module centralizes the identity platform endpoints and the redirect
convention so no other module hardcodes them.
"""

from typing import Sequence
from urllib.parse import urlencode

from .scopes import format_scopes

# Microsoft identity platform
AUTHORITY_HOST = "https://login.microsoftonline.com"

# Redirect URI registered on the app; the provider reads the code from it
REDIRECT_URI = "https://oauth.pstmn.io/v1/callback"

# Microsoft Graph
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

# Seconds before an outbound request gives up
HTTP_TIMEOUT_SECONDS = 30.0


def get_token_url(tenant_id: str) -> str:
    """Get the v2.0 token endpoint for a tenant."""
    return f"{AUTHORITY_HOST}/{tenant_id}/oauth2/v2.0/token"


def get_authorize_url(tenant_id: str) -> str:
    """Get the v2.0 authorization endpoint for a tenant."""
    return f"{AUTHORITY_HOST}/{tenant_id}/oauth2/v2.0/authorize"


def build_authorization_url(
    tenant_id: str,
    client_id: str,
    scopes: Sequence[str],
    redirect_uri: str = REDIRECT_URI,
) -> str:
    """
    Build the URL the interactive provider has to open.

    Args:
        tenant_id: Directory (tenant) ID
        client_id: Application (client) ID
        scopes: Requested scopes, in order
        redirect_uri: Where the authorization server sends the code

    Returns:
        Fully-formed authorization URL
    """
    query = urlencode(
        {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "response_mode": "query",
            "scope": format_scopes(scopes),
        }
    )
    return f"{get_authorize_url(tenant_id)}?{query}"
