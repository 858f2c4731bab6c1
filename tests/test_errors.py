"""Unit tests for the error taxonomy."""
import httpx

from conftest import http_status_error
from ms_graph_devtools.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    GraphError,
    NoCredentialsError,
    ResourceNotFoundError,
    extract_server_message,
    format_error,
    handle_http_error,
)


class TestHandleHttpError:
    """Tests for HTTP error mapping."""

    def test_resource_taken_from_request(self):
        error = http_status_error(404, url="https://graph.microsoft.com/v1.0/me/calendars/x")

        mapped = handle_http_error(error)

        assert isinstance(mapped, ResourceNotFoundError)
        assert mapped.resource == "https://graph.microsoft.com/v1.0/me/calendars/x"
        assert "resource: https://graph.microsoft.com/v1.0/me/calendars/x" in str(mapped)

    def test_401_is_authentication_error(self):
        assert isinstance(handle_http_error(http_status_error(401)), AuthenticationError)

    def test_graph_error_unchanged(self):
        error = GraphError("already mapped")
        assert handle_http_error(error) is error

    def test_plain_exception_unchanged(self):
        error = RuntimeError("boom")
        assert handle_http_error(error) is error


class TestExtractServerMessage:
    """Tests for reading server-supplied error detail."""

    def test_graph_error_body(self):
        error = http_status_error(400, {"error": {"code": "BadRequest", "message": "Invalid filter"}})
        assert extract_server_message(error) == "Invalid filter"

    def test_identity_error_body(self):
        error = http_status_error(400, {"error": "invalid_grant", "error_description": "AADSTS50173"})
        assert extract_server_message(error) == "AADSTS50173"

    def test_plain_text_body(self):
        request = httpx.Request("GET", "https://graph.microsoft.com/v1.0/me")
        response = httpx.Response(502, text="Bad gateway\n", request=request)
        error = httpx.HTTPStatusError("502", request=request, response=response)
        assert extract_server_message(error) == "Bad gateway"

    def test_no_response(self):
        assert extract_server_message(ValueError("x")) is None


class TestMessages:
    """Tests for prescriptive error messages."""

    def test_configuration_error_lists_missing(self):
        error = ConfigurationError(["client_id", "tenant_id"])
        text = str(error)
        assert "  - client_id" in text
        assert "  - tenant_id" in text
        assert "  - client_secret" not in text
        assert "AzureConfig.from_env()" in text

    def test_no_credentials_lists_four_paths(self):
        text = str(NoCredentialsError("/tmp/tokens.json"))
        for marker in ["1.", "2.", "3.", "4."]:
            assert marker in text
        assert "/tmp/tokens.json" in text

    def test_format_error(self):
        assert format_error("Send mail", GraphError("quota")) == "Send mail failed: quota"
        assert format_error("Send mail", ValueError("bad")) == "Send mail failed: bad"
