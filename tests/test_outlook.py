"""Unit tests for the Outlook service and MailBuilder."""
import base64
import json
import time
from datetime import date

import httpx
import pytest
import respx

from conftest import CLIENT_ID, CLIENT_SECRET, GRAPH, TENANT_ID, TOKEN_URL
from ms_graph_devtools.auth.azure_auth import AzureAuth
from ms_graph_devtools.client import GraphClientBase, Outlook
from ms_graph_devtools.core.config import AzureConfig
from ms_graph_devtools.html_converter import convert_html_to_text


def message(subject, content, sender="alice@example.com"):
    return {
        "from": {"emailAddress": {"address": sender, "name": "Alice"}},
        "subject": subject,
        "body": {"contentType": "html", "content": content},
        "receivedDateTime": "2024-01-15T09:00:00Z",
    }


class TestConstruction:
    """Tests for config/auth discrimination."""

    def test_config_builds_own_auth(self):
        outlook = Outlook(AzureConfig(access_token="at"))
        assert outlook.auth.access_token == "at"

    def test_auth_is_shared(self):
        auth = AzureAuth(AzureConfig(access_token="at"))
        assert Outlook(auth=auth).auth is auth

    def test_both_rejected(self):
        auth = AzureAuth(AzureConfig(access_token="at"))
        with pytest.raises(ValueError):
            GraphClientBase(AzureConfig(access_token="other"), auth=auth)


class TestOutlook:
    """Tests for mail operations."""

    @pytest.mark.asyncio
    async def test_get_me_sends_bearer(self):
        outlook = Outlook(AzureConfig(access_token="at"))

        with respx.mock:
            route = respx.get(f"{GRAPH}/me").mock(
                return_value=httpx.Response(200, json={"displayName": "Alice"})
            )
            assert await outlook.get_me() == {"displayName": "Alice"}

        assert route.calls.last.request.headers["Authorization"] == "Bearer at"

    @pytest.mark.asyncio
    async def test_get_mails_follows_pages_and_converts_html(self):
        outlook = Outlook(AzureConfig(access_token="at"))
        next_link = f"{GRAPH}/me/messages?$skiptoken=page2"

        with respx.mock:
            route = respx.get(f"{GRAPH}/me/messages").mock(
                side_effect=[
                    httpx.Response(
                        200,
                        json={
                            "value": [message("Invoice 1", "<p>Total: <b>10</b></p><p>Thanks</p>")],
                            "@odata.nextLink": next_link,
                        },
                    ),
                    httpx.Response(
                        200,
                        json={"value": [message("", "ignored"), message("Invoice 2", "plain")]},
                    ),
                ]
            )
            mails = await outlook.get_mails("2024-01-15", "invoice")

        assert route.call_count == 2
        first_params = route.calls[0].request.url.params
        assert first_params["$search"] == '"received:2024/01/15 AND subject:invoice"'
        assert first_params["$select"] == "from,subject,body,receivedDateTime"
        assert route.calls[1].request.url.params["$skiptoken"] == "page2"

        assert [m["subject"] for m in mails] == ["Invoice 1", "Invoice 2"]
        assert mails[0]["body"] == "Total: 10\nThanks"
        assert mails[0]["from"] == {"address": "alice@example.com", "name": "Alice"}

    @pytest.mark.asyncio
    async def test_get_mails_accepts_date_without_subject(self):
        outlook = Outlook(AzureConfig(access_token="at"))

        with respx.mock:
            route = respx.get(f"{GRAPH}/me/messages").mock(
                return_value=httpx.Response(200, json={"value": []})
            )
            assert await outlook.get_mails(date(2024, 3, 5)) == []

        assert route.calls.last.request.url.params["$search"] == '"received:2024/03/05"'

    @pytest.mark.asyncio
    async def test_get_mails_tolerates_null_sender(self):
        outlook = Outlook(AzureConfig(access_token="at"))
        draft = dict(message("Draft", "x"), **{"from": None})

        with respx.mock:
            respx.get(f"{GRAPH}/me/messages").mock(return_value=httpx.Response(200, json={"value": [draft]}))
            mails = await outlook.get_mails("2024-01-15")

        assert mails[0]["from"] == {}
        assert mails[0]["subject"] == "Draft"

    @pytest.mark.asyncio
    async def test_401_recovers_and_retries(self, storage_dir):
        auth = AzureAuth(
            AzureConfig(
                client_id=CLIENT_ID, client_secret=CLIENT_SECRET, tenant_id=TENANT_ID, refresh_token="rt"
            )
        )
        auth.access_token = "stale"
        auth.expires_at = time.time() + 3600
        outlook = Outlook(auth=auth)

        with respx.mock:
            respx.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json={"access_token": "renewed", "expires_in": 3600})
            )
            route = respx.get(f"{GRAPH}/me").mock(
                side_effect=[httpx.Response(401), httpx.Response(200, json={"id": "me"})]
            )
            assert await outlook.get_me() == {"id": "me"}

        assert route.call_count == 2
        assert route.calls[0].request.headers["Authorization"] == "Bearer stale"
        assert route.calls[1].request.headers["Authorization"] == "Bearer renewed"


class TestMailBuilder:
    """Tests for the fluent payload builder."""

    @pytest.mark.asyncio
    async def test_defaults(self):
        payload = await Outlook(AzureConfig(access_token="at")).compose().get_payload()

        assert payload == {
            "message": {
                "subject": "",
                "body": {"contentType": "Text", "content": ""},
                "toRecipients": [],
                "attachments": [],
                "importance": "normal",
                "isReadReceiptRequested": False,
            },
            "saveToSentItems": "true",
        }

    @pytest.mark.asyncio
    async def test_full_message(self):
        builder = (
            Outlook(AzureConfig(access_token="at"))
            .compose()
            .subject("Report")
            .body("<h1>Hi</h1>", "HTML")
            .to(["a@example.com"])
            .cc(["b@example.com"])
            .bcc(["c@example.com"])
            .reply_to(["d@example.com"])
            .from_("shared@example.com", "Shared")
            .mention(["a@example.com"])
            .importance("high")
            .categories(["Blue"])
            .request_read_receipt()
            .save_to_sent_items(False)
            .flag()
        )

        payload = await builder.get_payload()
        msg = payload["message"]

        assert msg["subject"] == "Report"
        assert msg["body"] == {"contentType": "HTML", "content": "<h1>Hi</h1>"}
        assert msg["toRecipients"] == [{"emailAddress": {"address": "a@example.com"}}]
        assert msg["ccRecipients"] == [{"emailAddress": {"address": "b@example.com"}}]
        assert msg["bccRecipients"] == [{"emailAddress": {"address": "c@example.com"}}]
        assert msg["replyTo"] == [{"emailAddress": {"address": "d@example.com"}}]
        assert msg["from"] == {"emailAddress": {"address": "shared@example.com", "name": "Shared"}}
        assert msg["internetMessageHeaders"] == [{"name": "X-Mentions", "value": "a@example.com"}]
        assert msg["importance"] == "high"
        assert msg["categories"] == ["Blue"]
        assert msg["isReadReceiptRequested"] is True
        assert msg["flag"] == {"flagStatus": "flagged"}
        assert payload["saveToSentItems"] == "false"

    def test_invalid_importance(self):
        with pytest.raises(ValueError):
            Outlook(AzureConfig(access_token="at")).compose().importance("urgent")

    @pytest.mark.asyncio
    async def test_attachments_from_path_and_bytes(self, tmp_path):
        report = tmp_path / "report.pdf"
        report.write_bytes(b"%PDF-1.4")
        builder = Outlook(AzureConfig(access_token="at")).compose().attachments(
            [str(report), ("data.json", b"{}"), ("blob", b"\x00", "application/x-custom")]
        )

        attachments = (await builder.get_payload())["message"]["attachments"]

        assert attachments[0] == {
            "@odata.type": "#microsoft.graph.fileAttachment",
            "name": "report.pdf",
            "contentType": "application/pdf",
            "contentBytes": base64.b64encode(b"%PDF-1.4").decode(),
        }
        assert attachments[1]["contentType"] == "application/json"
        assert attachments[2]["contentType"] == "application/x-custom"

    @pytest.mark.asyncio
    async def test_unknown_extension_is_octet_stream(self):
        builder = Outlook(AzureConfig(access_token="at")).compose().attachments([("blob.zzz9", b"x")])
        attachments = (await builder.get_payload())["message"]["attachments"]
        assert attachments[0]["contentType"] == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_missing_attachment_file(self, tmp_path):
        builder = Outlook(AzureConfig(access_token="at")).compose().attachments([str(tmp_path / "nope.txt")])
        with pytest.raises(ValueError, match="Failed to process attachment"):
            await builder.get_payload()

    @pytest.mark.asyncio
    async def test_send_posts_payload(self):
        builder = Outlook(AzureConfig(access_token="at")).compose().subject("Hello").to(["a@example.com"])

        with respx.mock:
            route = respx.post(f"{GRAPH}/me/sendMail").mock(return_value=httpx.Response(202))
            response = await builder.send()

        assert response.status_code == 202
        body = json.loads(route.calls.last.request.content)
        assert body["message"]["subject"] == "Hello"
        assert body["saveToSentItems"] == "true"


class TestHtmlConverter:
    """Tests for mail body conversion."""

    def test_strips_markup_and_styles(self):
        html = "<html><head><style>p {color: red}</style></head><body><div>Hello&nbsp;<i>there</i></div><br>Bye</body></html>"
        assert convert_html_to_text(html) == "Hello there\nBye"

    def test_table_cells_share_a_line(self):
        html = "<table><tr><td>a</td><td>b</td></tr><tr><td>c</td><td>d</td></tr></table>"
        assert convert_html_to_text(html) == "a b\nc d"

    def test_empty(self):
        assert convert_html_to_text("") == ""
