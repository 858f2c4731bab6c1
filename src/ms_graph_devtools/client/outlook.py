"""Outlook mail operations for Microsoft Graph."""
import base64
import copy
import logging
import mimetypes
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import aiofiles
import httpx

from ..html_converter import convert_html_to_text
from .base import GraphClientBase

logger = logging.getLogger(__name__)

FILE_ATTACHMENT_TYPE = "#microsoft.graph.fileAttachment"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# A path, or (name, content) / (name, content, content_type)
Attachment = Union[str, os.PathLike, Tuple[str, bytes], Tuple[str, bytes, str]]


def _search_date(value: Union[str, date, datetime]) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value.strftime("%Y/%m/%d")


def guess_mime_type(file_name: str) -> str:
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or DEFAULT_CONTENT_TYPE


def _recipients(addresses: Sequence[str]) -> List[Dict[str, Any]]:
    return [{"emailAddress": {"address": address}} for address in addresses]


class Outlook(GraphClientBase):
    """Mail operations for the signed-in user."""

    async def get_me(self) -> Dict[str, Any]:
        """Get the signed-in user's profile."""
        return await self._get_json("me")

    async def send_mail(self, payload: Dict[str, Any]) -> httpx.Response:
        """Send a message.

        Args:
            payload: sendMail body in Graph format ({"message": {...}, "saveToSentItems": ...}).

        Returns:
            The Graph response (202 Accepted, empty body).
        """
        response = await self._request("POST", "me/sendMail", json=payload)
        logger.info(f"Mail sent: {payload.get('message', {}).get('subject', '')!r}")
        return response

    async def get_mails(
        self, received: Union[str, date, datetime], subject_filter: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get messages received on a date, with plain-text bodies.

        Args:
            received: The day to search (ISO string, date or datetime).
            subject_filter: Optional subject search term.

        Returns:
            List of dicts with 'from', 'subject', 'body', 'receivedDateTime'.
        """
        terms = [f"received:{_search_date(received)}"]
        if subject_filter:
            terms.append(f"subject:{subject_filter}")

        params = {
            "$search": f'"{" AND ".join(terms)}"',
            "$select": "from,subject,body,receivedDateTime",
        }
        messages = await self._get_all_pages("me/messages", params)

        return [
            {
                "from": (message.get("from") or {}).get("emailAddress", {}),
                "subject": message["subject"],
                "body": convert_html_to_text(message.get("body", {}).get("content", "")),
                "receivedDateTime": message.get("receivedDateTime"),
            }
            for message in messages
            if message.get("subject")
        ]

    def compose(self) -> "MailBuilder":
        """Start a fluent message builder bound to this service."""
        return MailBuilder(self)


class MailBuilder:
    """Fluent builder for sendMail payloads. Use via Outlook.compose()."""

    def __init__(self, outlook: Outlook) -> None:
        self._outlook = outlook
        self._attachments: List[Attachment] = []
        self._payload: Dict[str, Any] = {
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

    @property
    def _message(self) -> Dict[str, Any]:
        return self._payload["message"]

    def subject(self, subject: str) -> "MailBuilder":
        self._message["subject"] = subject
        return self

    def body_preview(self, preview: str) -> "MailBuilder":
        self._message["bodyPreview"] = preview
        return self

    def body(self, content: str, content_type: str = "Text") -> "MailBuilder":
        """Set the body. content_type is 'Text' or 'HTML'."""
        self._message["body"] = {"contentType": content_type, "content": content}
        return self

    def unique_body(self, content: str, content_type: str = "Text") -> "MailBuilder":
        self._message["uniqueBody"] = {"contentType": content_type, "content": content}
        return self

    def from_(self, address: str, name: Optional[str] = None) -> "MailBuilder":
        """Send as another address (requires Send As permission)."""
        email_address = {"address": address}
        if name:
            email_address["name"] = name
        self._message["from"] = {"emailAddress": email_address}
        return self

    def mention(self, recipients: Sequence[str]) -> "MailBuilder":
        """Add X-Mentions headers."""
        self._message["internetMessageHeaders"] = [
            {"name": "X-Mentions", "value": recipient} for recipient in recipients
        ]
        return self

    def reply_to(self, recipients: Sequence[str]) -> "MailBuilder":
        self._message["replyTo"] = _recipients(recipients)
        return self

    def to(self, recipients: Sequence[str]) -> "MailBuilder":
        self._message["toRecipients"] = _recipients(recipients)
        return self

    def cc(self, recipients: Sequence[str]) -> "MailBuilder":
        self._message["ccRecipients"] = _recipients(recipients)
        return self

    def bcc(self, recipients: Sequence[str]) -> "MailBuilder":
        self._message["bccRecipients"] = _recipients(recipients)
        return self

    def attachments(self, items: Sequence[Attachment]) -> "MailBuilder":
        """Queue file attachments.

        Paths are read when the payload is built. In-memory attachments are
        (name, content) or (name, content, content_type) tuples; a missing
        content type is inferred from the file name.
        """
        self._attachments.extend(items)
        return self

    def save_to_sent_items(self, save: bool) -> "MailBuilder":
        self._payload["saveToSentItems"] = "true" if save else "false"
        return self

    def importance(self, importance: str) -> "MailBuilder":
        """Set importance: 'low', 'normal' or 'high'."""
        if importance not in ("low", "normal", "high"):
            raise ValueError(f"Invalid importance: {importance!r}")
        self._message["importance"] = importance
        return self

    def categories(self, categories: Sequence[str]) -> "MailBuilder":
        self._message["categories"] = list(categories)
        return self

    def request_read_receipt(self, request: bool = True) -> "MailBuilder":
        self._message["isReadReceiptRequested"] = request
        return self

    def flag(self) -> "MailBuilder":
        self._message["flag"] = {"flagStatus": "flagged"}
        return self

    async def get_payload(self) -> Dict[str, Any]:
        """Build the sendMail payload, reading queued attachment files."""
        payload = copy.deepcopy(self._payload)
        for item in self._attachments:
            payload["message"]["attachments"].append(await self._encode_attachment(item))
        return payload

    async def send(self) -> httpx.Response:
        return await self._outlook.send_mail(await self.get_payload())

    async def _encode_attachment(self, item: Attachment) -> Dict[str, Any]:
        if isinstance(item, tuple):
            name, content = item[0], item[1]
            content_type = item[2] if len(item) > 2 else guess_mime_type(name)
        else:
            path = os.fspath(item)
            name = os.path.basename(path)
            content_type = guess_mime_type(name)
            try:
                async with aiofiles.open(path, "rb") as f:
                    content = await f.read()
            except OSError as e:
                logger.error(f"Error reading attachment {path}: {e}")
                raise ValueError(f"Failed to process attachment: {path}") from e

        return {
            "@odata.type": FILE_ATTACHMENT_TYPE,
            "name": name,
            "contentType": content_type,
            "contentBytes": base64.b64encode(content).decode("ascii"),
        }
