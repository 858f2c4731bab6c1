"""Custom exceptions for ms-graph-devtools.

This module provides structured error handling with specific exception types
for different failure scenarios. All exceptions inherit from GraphError.
"""
from typing import Optional, Any, List


class GraphError(Exception):
    """Base exception for all ms-graph-devtools errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status that caused the error, when there was one.
        resource: Optional URL or identifier related to the error.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        resource: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.resource = resource
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message, optionally including the resource."""
        if self.resource:
            return f"{self.message} (resource: {self.resource})"
        return self.message


class ConfigurationError(GraphError):
    """Raised when required OAuth parameters are missing."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = missing
        lines = ["Missing required credentials. Please provide:"]
        lines.extend(f"  - {name}" for name in missing)
        lines.append("")
        lines.append("Provide via:")
        lines.append(
            "1. Outlook(AzureConfig(client_id='...', client_secret='...', tenant_id='...'))"
        )
        lines.append(
            "2. azure.config(AzureConfig(client_id='...', client_secret='...', tenant_id='...'))"
        )
        lines.append(
            "3. AzureConfig.from_env() with AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, AZURE_TENANT_ID"
        )
        super().__init__("\n".join(lines))


class NoCredentialsError(GraphError):
    """Raised when no refresh token can be obtained from any source."""

    def __init__(self, storage_path: str) -> None:
        self.storage_path = storage_path
        message = (
            "No refresh token available. Please provide one via:\n"
            "1. Outlook(AzureConfig(refresh_token='your-token'))\n"
            "2. azure.config(AzureConfig(refresh_token='your-token'))\n"
            f"3. Saved storage file at: {storage_path}\n"
            "4. token_provider function (receives the authorization URL, "
            "returns the authorization code)\n\n"
            "See documentation for how to obtain a refresh token."
        )
        super().__init__(message)


class TokenRenewalError(GraphError):
    """Raised when the authorization server rejects a refresh token exchange."""

    def __init__(self, message: str = "Failed to refresh access token") -> None:
        super().__init__(message)


class TokenProviderError(GraphError):
    """Raised when the interactive provider exchange cannot produce tokens."""
    pass


class AuthenticationError(GraphError):
    """Raised when the API rejects the bearer token (HTTP 401)."""
    pass


class AccessTokenInvalidError(AuthenticationError):
    """Raised on HTTP 401 when only an access token was supplied."""

    def __init__(self) -> None:
        message = (
            "Access token is invalid or expired.\n\n"
            "To continue:\n"
            "  1. Provide a new access token: Outlook(AzureConfig(access_token='new-token'))\n"
            "  2. For automatic renewal, configure a refresh token or a token_provider "
            "together with client_id, client_secret and tenant_id\n"
        )
        super().__init__(message, status_code=401)


class UnrecoverableAuthenticationError(AuthenticationError):
    """Raised when recovery after an HTTP 401 could not obtain a new token."""
    pass


class PermissionDeniedError(GraphError):
    """Raised when access to a resource is denied (HTTP 403)."""
    pass


class ResourceNotFoundError(GraphError):
    """Raised when a requested resource doesn't exist (HTTP 404)."""
    pass


class ConflictError(GraphError):
    """Raised when the request conflicts with the resource state (HTTP 409)."""
    pass


class ServerError(GraphError):
    """Raised when the upstream service fails (HTTP 5xx)."""
    pass


class GraphApiError(GraphError):
    """Raised for any other unsuccessful HTTP status."""
    pass


def get_status_code(error: Any) -> Optional[int]:
    """Extract the HTTP status code from an httpx error, if it carries one."""
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    return None


def extract_server_message(error: Any) -> Optional[str]:
    """Pull the human-readable message out of a Graph or identity error body.

    Graph responds with ``{"error": {"code": ..., "message": ...}}``; the
    identity platform responds with ``{"error": ..., "error_description": ...}``.
    """
    response = getattr(error, "response", None)
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "")
        return text.strip() or None

    if not isinstance(body, dict):
        return None
    inner = body.get("error")
    if isinstance(inner, dict) and inner.get("message"):
        return str(inner["message"])
    if body.get("error_description"):
        return str(body["error_description"])
    if isinstance(inner, str) and inner:
        return inner
    return None


def handle_http_error(error: Any, resource: Optional[str] = None) -> Exception:
    """Convert an HTTP failure to a specific exception.

    Errors that are already a GraphError, and errors that do not carry an HTTP
    response (network failures, programming errors), are returned unchanged.

    Args:
        error: The exception raised by the outbound call.
        resource: Optional URL for context.

    Returns:
        An appropriate GraphError subclass, or the original error.
    """
    if isinstance(error, GraphError):
        return error

    status = get_status_code(error)
    if status is None:
        return error

    if resource is None:
        request = getattr(error, "request", None)
        url = getattr(request, "url", None) if request is not None else None
        resource = str(url) if url is not None else None

    detail = extract_server_message(error)
    suffix = f": {detail}" if detail else ""

    if status == 401:
        return AuthenticationError(f"Authentication failed{suffix}", status, resource)
    elif status == 403:
        return PermissionDeniedError(
            f"Permission denied. Check the granted scopes or request admin consent{suffix}",
            status,
            resource,
        )
    elif status == 404:
        return ResourceNotFoundError(f"Resource not found{suffix}", status, resource)
    elif status == 409:
        return ConflictError(f"Conflict with the current resource state{suffix}", status, resource)
    elif status >= 500:
        return ServerError(f"Microsoft Graph server error (HTTP {status}){suffix}", status, resource)
    else:
        return GraphApiError(f"API error (HTTP {status}){suffix}", status, resource)


# Standard error message format helper
def format_error(action: str, error: Exception) -> str:
    """Format an error message consistently.

    Args:
        action: The action that failed (e.g., "Send mail", "Refresh").
        error: The exception that occurred.

    Returns:
        Formatted error string.
    """
    if isinstance(error, GraphError):
        return f"{action} failed: {error.message}"
    return f"{action} failed: {str(error)}"
