import sys
from pathlib import Path

import httpx
import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ms_graph_devtools.auth.credential_store import set_credential_store
from ms_graph_devtools.core.config import get_config_holder

TENANT_ID = "t1"
CLIENT_ID = "c1"
CLIENT_SECRET = "s1"
TOKEN_URL = f"https://login.microsoftonline.com/{TENANT_ID}/oauth2/v2.0/token"
GRAPH = "https://graph.microsoft.com/v1.0"

AZURE_ENV_VARS = [
    "AZURE_CLIENT_ID",
    "AZURE_CLIENT_SECRET",
    "AZURE_TENANT_ID",
    "AZURE_REFRESH_TOKEN",
    "AZURE_ACCESS_TOKEN",
    "AZURE_SCOPES",
    "AZURE_ALLOW_INSECURE",
]


@pytest.fixture(autouse=True)
def storage_dir(tmp_path, monkeypatch) -> Path:
    """Point credential storage at a temp directory and reset shared state."""
    directory = tmp_path / "ms-graph-devtools"
    monkeypatch.setenv("MS_GRAPH_DEVTOOLS_HOME", str(directory))
    for name in AZURE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    set_credential_store(None)
    get_config_holder().reset()
    yield directory
    get_config_holder().reset()
    set_credential_store(None)


def http_status_error(status: int, body=None, url: str = f"{GRAPH}/me") -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    response = httpx.Response(status, json=body if body is not None else {}, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)
