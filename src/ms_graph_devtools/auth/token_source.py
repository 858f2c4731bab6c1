"""
Token endpoint exchanges for ms-graph-devtools.

Two grants are supported against the Microsoft identity platform v2.0
token endpoint: refresh_token and authorization_code. Both post a
form-url-encoded body and expect HTTP 200 with a JSON token payload.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

import httpx

from .oauth_config import REDIRECT_URI, get_token_url
from .scopes import format_scopes

logger = logging.getLogger(__name__)


class AuthMode(str, Enum):
    """How an AzureAuth obtains bearer tokens."""

    ACCESS_TOKEN_ONLY = "access_token_only"
    REFRESH_TOKEN = "refresh_token"
    PROVIDER = "provider"


@dataclass
class TokenResponse:
    """Successful token endpoint payload."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenResponse":
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise ValueError("Token endpoint response did not contain an access_token")

        expires_in = payload.get("expires_in")
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_in=float(expires_in) if expires_in else None,
        )


async def _post_token_request(
    client: httpx.AsyncClient, tenant_id: str, form: Dict[str, str]
) -> TokenResponse:
    response = await client.post(get_token_url(tenant_id), data=form)
    if response.status_code != 200:
        raise httpx.HTTPStatusError(
            f"Token endpoint returned HTTP {response.status_code}",
            request=response.request,
            response=response,
        )
    return TokenResponse.from_payload(response.json())


async def exchange_refresh_token(
    client: httpx.AsyncClient,
    *,
    tenant_id: str,
    client_id: str,
    client_secret: str,
    refresh_token: str,
    scopes: Sequence[str],
) -> TokenResponse:
    """
    Redeem a refresh token for a new access token.

    Raises:
        httpx.HTTPStatusError: The endpoint answered with anything but 200
        httpx.HTTPError: Transport failure
        ValueError: The body was not a token payload
    """
    form = {
        "client_id": client_id,
        "scope": format_scopes(scopes),
        "refresh_token": refresh_token,
        "redirect_uri": REDIRECT_URI,
        "grant_type": "refresh_token",
        "client_secret": client_secret,
    }
    logger.debug(f"Requesting refresh_token grant for tenant {tenant_id}")
    return await _post_token_request(client, tenant_id, form)


async def exchange_authorization_code(
    client: httpx.AsyncClient,
    *,
    tenant_id: str,
    client_id: str,
    client_secret: str,
    code: str,
    scopes: Sequence[str],
) -> TokenResponse:
    """Redeem an authorization code. Raises like exchange_refresh_token."""
    form = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "redirect_uri": REDIRECT_URI,
        "grant_type": "authorization_code",
        "scope": format_scopes(scopes),
    }
    logger.debug(f"Requesting authorization_code grant for tenant {tenant_id}")
    return await _post_token_request(client, tenant_id, form)
