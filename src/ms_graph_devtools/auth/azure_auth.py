"""
Token lifecycle for Microsoft Graph.

AzureAuth turns whatever credential material it was configured with (an
access token, a refresh token, or an interactive token provider) into a
valid bearer token, persists renewable credentials, and recovers from
HTTP 401 responses with a single retry.

Concurrent callers on the same event loop share one in-flight operation
per key: "acquire" (storage load then provider), "refresh" and "recover".
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Dict, List, NoReturn, Optional, TypeVar

import httpx

from ..core.config import AzureConfig, ConfigHolder, get_config_holder, resolve_config
from ..utils.errors import (
    AccessTokenInvalidError,
    ConfigurationError,
    NoCredentialsError,
    TokenProviderError,
    TokenRenewalError,
    UnrecoverableAuthenticationError,
    extract_server_message,
    format_error,
    get_status_code,
    handle_http_error,
)
from .credential_store import CredentialStore, StoredCredentials, get_credential_store
from .oauth_config import HTTP_TIMEOUT_SECONDS, build_authorization_url
from .scopes import get_scopes
from .token_source import (
    AuthMode,
    TokenResponse,
    exchange_authorization_code,
    exchange_refresh_token,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Refresh this many seconds before the recorded expiry
REFRESH_EXPIRY_BUFFER_SECONDS = 60

ACQUIRE = "acquire"
REFRESH = "refresh"
RECOVER = "recover"


class AzureAuth:
    """Credential state and token lifecycle for one tenant/client pair."""

    def __init__(
        self,
        config: Optional[AzureConfig] = None,
        *,
        holder: Optional[ConfigHolder] = None,
        store: Optional[CredentialStore] = None,
    ) -> None:
        """
        Initialize from an explicit configuration merged over the shared one.

        Args:
            config: Explicit configuration; its set fields win
            holder: Configuration holder (default: process holder)
            store: Credential store (default: process store)
        """
        self._holder = holder or get_config_holder()
        self._store = store or get_credential_store()

        self.access_token = ""
        self.refresh_token = ""
        self.expires_at: Optional[float] = None
        self.client_id = ""
        self.client_secret = ""
        self.tenant_id = ""
        self.scopes: List[str] = get_scopes()
        self.access_token_only = False
        self.allow_insecure = False
        self.token_provider = None

        self._scopes_configured = False
        self._retrying = False
        self._in_flight: Dict[str, asyncio.Future] = {}

        self.configure(resolve_config(config, self._holder))

    @classmethod
    def from_auth(cls, other: "AzureAuth") -> "AzureAuth":
        """Copy another instance's credential state. In-flight work is not shared."""
        auth = cls(AzureConfig(), holder=ConfigHolder(), store=other._store)
        auth._holder = other._holder
        auth.access_token = other.access_token
        auth.refresh_token = other.refresh_token
        auth.expires_at = other.expires_at
        auth.client_id = other.client_id
        auth.client_secret = other.client_secret
        auth.tenant_id = other.tenant_id
        auth.scopes = list(other.scopes)
        auth.access_token_only = other.access_token_only
        auth.allow_insecure = other.allow_insecure
        auth.token_provider = other.token_provider
        auth._scopes_configured = other._scopes_configured
        return auth

    def configure(self, config: AzureConfig) -> None:
        """Apply every set field of a configuration. Scopes are only set once."""
        if config.access_token:
            self.access_token = config.access_token
            self.access_token_only = True
        if config.refresh_token:
            self.refresh_token = config.refresh_token
        if config.token_provider:
            self.token_provider = config.token_provider
        if config.client_id:
            self.client_id = config.client_id
        if config.client_secret:
            self.client_secret = config.client_secret
        if config.tenant_id:
            self.tenant_id = config.tenant_id
        if config.scopes and not self._scopes_configured:
            self.scopes = get_scopes(config.scopes)
            self._scopes_configured = True
        if config.allow_insecure is not None:
            self.allow_insecure = config.allow_insecure

    @property
    def mode(self) -> AuthMode:
        if self.access_token_only:
            return AuthMode.ACCESS_TOKEN_ONLY
        if self.token_provider is not None:
            return AuthMode.PROVIDER
        return AuthMode.REFRESH_TOKEN

    @property
    def storage_path(self) -> str:
        return self._store.resolve_file_path(self.tenant_id or None, self.client_id or None)

    def get_http_client(self) -> httpx.AsyncClient:
        """Create an HTTP client honoring allow_insecure. Caller closes it."""
        return httpx.AsyncClient(verify=not self.allow_insecure, timeout=HTTP_TIMEOUT_SECONDS)

    async def get_access_token(self) -> str:
        """Get a valid access token, acquiring or refreshing as needed."""
        await self.check_token()
        return self.access_token

    async def check_token(self) -> None:
        if self.access_token_only:
            return

        self._ensure_credentials()
        await self.ensure_refresh_token()

        if self._needs_refresh():
            await self._run_shared(REFRESH, self._refresh_if_needed)

    async def ensure_refresh_token(self) -> None:
        """
        Make sure a refresh token is held.

        Sources, in order: memory, the credential store, the token provider.

        Raises:
            NoCredentialsError: No source produced a refresh token
        """
        if self.refresh_token:
            return
        await self._run_shared(ACQUIRE, self._acquire_refresh_token)

    async def refresh(self) -> None:
        """
        Redeem the refresh token for a new access token.

        Raises:
            TokenRenewalError: The exchange failed for any reason
        """
        try:
            async with self.get_http_client() as client:
                result = await exchange_refresh_token(
                    client,
                    tenant_id=self.tenant_id,
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                    refresh_token=self.refresh_token,
                    scopes=self.scopes,
                )
        except httpx.HTTPStatusError as e:
            detail = extract_server_message(e) or "no detail"
            logger.error(f"Failed to refresh access token: {e.response.status_code} {detail}")
            raise TokenRenewalError() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error refreshing access token: {e}")
            raise TokenRenewalError() from e

        self._apply_token_response(result)
        logger.info(f"Access token refreshed for tenant {self.tenant_id}")

    async def forge(self) -> None:
        """
        Obtain tokens through the interactive provider.

        The provider receives the authorization URL and returns the
        authorization code, which is redeemed at the token endpoint.
        Exceptions raised by the provider itself propagate unchanged.

        Raises:
            TokenProviderError: No provider, no code, or a rejected exchange
        """
        if self.token_provider is None:
            raise TokenProviderError("No token_provider configured")

        url = build_authorization_url(self.tenant_id, self.client_id, self.scopes)
        code = self.token_provider(url)
        if inspect.isawaitable(code):
            code = await code
        if not code:
            raise TokenProviderError("token_provider returned no authorization code")

        try:
            async with self.get_http_client() as client:
                result = await exchange_authorization_code(
                    client,
                    tenant_id=self.tenant_id,
                    client_id=self.client_id,
                    client_secret=self.client_secret,
                    code=code,
                    scopes=self.scopes,
                )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = extract_server_message(e) or "no detail"
            raise TokenProviderError(
                f"Authorization code exchange failed (HTTP {status}): {detail}", status_code=status
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TokenProviderError(f"Authorization code exchange failed: {e}") from e

        if not result.refresh_token:
            raise TokenProviderError(
                "Token endpoint returned no refresh token; request the offline_access scope"
            )

        self._apply_token_response(result)
        logger.info("Loaded refresh token from token provider")

    def invalidate(self) -> None:
        """Forget the current access token and its expiry."""
        self.access_token = ""
        self.expires_at = None

    async def with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an authenticated call, recovering once from HTTP 401.

        Args:
            operation: Zero-argument coroutine function performing one call.
                       It must fetch its bearer token itself so the retry
                       picks up the recovered token.

        Returns:
            Whatever the operation returns.
        """
        try:
            return await operation()
        except Exception as error:
            if get_status_code(error) != 401 or self._retrying:
                normalized = handle_http_error(error)
                if normalized is error:
                    raise
                raise normalized from error
            first_error = error

        if self.access_token_only:
            raise AccessTokenInvalidError() from first_error

        self._retrying = True
        try:
            await self._run_shared(RECOVER, self._recover)
            return await operation()
        except Exception as error:
            normalized = handle_http_error(error)
            if normalized is error:
                raise
            raise normalized from error
        finally:
            self._retrying = False

    def handle_api_error(self, error: Exception) -> NoReturn:
        """Normalize an error from a call made outside with_retry and raise it."""
        if self.access_token_only and get_status_code(error) == 401:
            raise AccessTokenInvalidError() from error
        normalized = handle_http_error(error)
        if normalized is error:
            raise error
        raise normalized from error

    def _ensure_credentials(self) -> None:
        missing = [
            name
            for name, value in (
                ("client_id", self.client_id),
                ("client_secret", self.client_secret),
                ("tenant_id", self.tenant_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)

    def _needs_refresh(self) -> bool:
        if self.expires_at is None:
            return True
        return time.time() >= self.expires_at - REFRESH_EXPIRY_BUFFER_SECONDS

    def _apply_token_response(self, result: TokenResponse) -> None:
        self.access_token = result.access_token
        if result.expires_in:
            self.expires_at = round(time.time() + result.expires_in, 3)
        if result.refresh_token:
            self.refresh_token = result.refresh_token

    def _apply_stored(self, record: StoredCredentials) -> None:
        self.refresh_token = record.refresh_token
        self.access_token = record.access_token
        self.expires_at = record.expires_at
        if record.client_id:
            self.client_id = record.client_id
        if record.tenant_id:
            self.tenant_id = record.tenant_id

    async def _persist(self) -> None:
        if self.access_token_only or not self.refresh_token:
            return
        await self._store.save(
            StoredCredentials(
                refresh_token=self.refresh_token,
                access_token=self.access_token,
                expires_at=self.expires_at,
                client_id=self.client_id,
                tenant_id=self.tenant_id,
            )
        )

    async def _acquire_refresh_token(self) -> None:
        if self.refresh_token:
            return

        record = await self._store.load(self.tenant_id or None, self.client_id or None)
        if record is not None and record.refresh_token:
            self._apply_stored(record)
            return

        if self.token_provider is not None:
            await self.forge()
            await self._persist()
            return

        raise NoCredentialsError(self.storage_path)

    async def _refresh_if_needed(self) -> None:
        # Another caller's refresh may have finished first
        if not self._needs_refresh():
            logger.debug("Access token still valid, skipping refresh")
            return
        await self.refresh()
        await self._persist()

    async def _recover(self) -> None:
        self.invalidate()

        cause: Optional[Exception] = None
        if self.refresh_token:
            try:
                await self.refresh()
                await self._persist()
                return
            except TokenRenewalError as e:
                logger.warning(f"{format_error('Token refresh during recovery', e)}; trying token provider")
                cause = e

        if self.token_provider is None:
            raise UnrecoverableAuthenticationError(
                "Authentication failed and no refresh token or token_provider could recover it",
                status_code=401,
            ) from cause

        try:
            await self.forge()
        except Exception as e:
            raise UnrecoverableAuthenticationError(
                f"Authentication failed and the token provider could not recover it: {e}",
                status_code=401,
            ) from e
        await self._persist()

    async def _run_shared(self, key: str, factory: Callable[[], Awaitable[None]]) -> None:
        """Join the in-flight operation for key, or start it."""
        future = self._in_flight.get(key)
        if future is None:
            future = asyncio.ensure_future(factory())
            self._in_flight[key] = future
            future.add_done_callback(lambda done: self._settle(key, done))
        await asyncio.shield(future)

    def _settle(self, key: str, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]
        if not future.cancelled():
            # Consume the result when every waiter was cancelled
            future.exception()
