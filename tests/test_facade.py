"""Unit tests for the Azure service locator."""
import json
import os

import pytest

import ms_graph_devtools
from ms_graph_devtools.facade import Azure
from ms_graph_devtools.core.config import AzureConfig, ConfigHolder, get_config_holder


@pytest.fixture
def facade():
    instance = Azure(holder=ConfigHolder())
    yield instance
    instance.close()


class TestServiceCache:
    """Tests for lazily built, shared services."""

    def test_services_share_one_auth(self, facade):
        facade.config(AzureConfig(access_token="at"))

        assert facade.outlook is facade.outlook
        assert facade.outlook.auth is facade.auth
        assert facade.calendar.auth is facade.auth
        assert facade.teams.auth is facade.auth
        assert facade.sharepoint.auth is facade.auth
        assert facade.auth.access_token == "at"

    def test_config_rebuilds_services(self, facade):
        facade.config(AzureConfig(access_token="first"))
        outlook = facade.outlook

        facade.config(AzureConfig(access_token="second"))

        assert facade.outlook is not outlook
        assert facade.outlook.auth.access_token == "second"

    def test_same_config_twice_keeps_auth_state(self, facade):
        config = AzureConfig(client_id="c1", client_secret="s1", tenant_id="t1", refresh_token="rt")
        facade.config(config)
        outlook, auth = facade.outlook, facade.auth
        state = (auth.client_id, auth.client_secret, auth.tenant_id, auth.refresh_token, auth.scopes, auth.mode)

        facade.config(AzureConfig(client_id="c1", client_secret="s1", tenant_id="t1", refresh_token="rt"))

        assert facade.outlook is not outlook
        assert facade.auth is not auth
        rebuilt = facade.auth
        assert (
            rebuilt.client_id, rebuilt.client_secret, rebuilt.tenant_id, rebuilt.refresh_token, rebuilt.scopes, rebuilt.mode
        ) == state

    def test_reset_drops_shared_config(self, facade):
        facade.config(AzureConfig(client_id="c1"))
        auth = facade.auth

        facade.reset()

        assert facade.auth is not auth
        assert facade.auth.client_id == ""

    def test_close_stops_following_holder(self):
        holder = ConfigHolder()
        instance = Azure(holder=holder)
        instance.close()
        holder.configure(AzureConfig(access_token="a"))
        auth = instance.auth
        holder.configure(AzureConfig(access_token="b"))
        assert instance.auth is auth


class TestDefaultInstance:
    """Tests for the exported process-level instance."""

    def test_default_instance_follows_process_holder(self):
        ms_graph_devtools.azure.config(AzureConfig(access_token="global"))

        assert get_config_holder().config.access_token == "global"
        assert ms_graph_devtools.azure.outlook.auth.access_token == "global"

    def test_version(self):
        assert ms_graph_devtools.__version__


class TestStoredCredentials:
    """Tests for listing and clearing through the facade."""

    @pytest.mark.asyncio
    async def test_list_and_clear(self, facade, storage_dir):
        storage_dir.mkdir(parents=True)
        for name in ["tokens.t1.c1.json", "tokens.t2.c2.json", "tokens.json"]:
            (storage_dir / name).write_text(json.dumps({"refreshToken": "x"}))

        entries = await facade.list_stored_credentials()
        assert len(entries) == 3

        await facade.clear_stored_credentials("t1", "c1")
        await facade.clear_stored_credentials("t1", "c1")

        assert sorted(os.listdir(storage_dir)) == ["tokens.json", "tokens.t2.c2.json"]
