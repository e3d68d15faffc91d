import asyncio
import base64
import logging
import re
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Dict, List, Optional, Sequence

from app.integrations.google.api_client import GoogleApiClient

logger = logging.getLogger(__name__)

GMAIL_BASE = "/gmail/v1/users/me"
THREAD_DETAIL_BATCH_SIZE = 10

_ANGLE_EMAIL_RE = re.compile(r"<([^>]+)>")


@dataclass
class EmailAttachment:
    attachment_id: str
    filename: str
    mime_type: str
    size: int


@dataclass
class ParsedEmail:
    id: str
    thread_id: str
    from_address: str
    from_email: str
    to: List[str]
    cc: List[str]
    subject: str
    date: str
    snippet: str
    body_text: str = ""
    body_html: str = ""
    is_unread: bool = False
    labels: List[str] = field(default_factory=list)
    attachments: List[EmailAttachment] = field(default_factory=list)


@dataclass
class EmailThread:
    id: str
    snippet: str
    messages: List[ParsedEmail]


def decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode()).decode("utf-8", errors="replace")


def encode_base64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def extract_email_address(value: str) -> str:
    match = _ANGLE_EMAIL_RE.search(value or "")
    return (match.group(1) if match else value or "").strip()


def _split_addresses(value: str) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _walk_parts(payload: Dict[str, Any], message: ParsedEmail) -> None:
    mime_type = payload.get("mimeType", "")
    body = payload.get("body") or {}
    filename = payload.get("filename")

    if filename and body.get("attachmentId"):
        message.attachments.append(
            EmailAttachment(
                attachment_id=body["attachmentId"],
                filename=filename,
                mime_type=mime_type,
                size=body.get("size", 0),
            )
        )
    elif body.get("data"):
        text = decode_base64url(body["data"])
        if mime_type == "text/html" and not message.body_html:
            message.body_html = text
        elif mime_type == "text/plain" and not message.body_text:
            message.body_text = text

    for part in payload.get("parts") or []:
        _walk_parts(part, message)


def parse_message(raw: Dict[str, Any]) -> ParsedEmail:
    """Flatten a Gmail API message resource."""
    payload = raw.get("payload") or {}
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers") or []}
    labels = raw.get("labelIds") or []
    from_address = headers.get("from", "")

    message = ParsedEmail(
        id=raw.get("id", ""),
        thread_id=raw.get("threadId", ""),
        from_address=from_address,
        from_email=extract_email_address(from_address),
        to=_split_addresses(headers.get("to", "")),
        cc=_split_addresses(headers.get("cc", "")),
        subject=headers.get("subject") or "(No subject)",
        date=headers.get("date", ""),
        snippet=raw.get("snippet", ""),
        is_unread="UNREAD" in labels,
        labels=list(labels),
    )
    _walk_parts(payload, message)
    return message


def build_raw_message(
    to: Sequence[str],
    subject: str,
    body: str,
    html: Optional[str] = None,
    cc: Sequence[str] = (),
    bcc: Sequence[str] = (),
    reply_to_message_id: Optional[str] = None,
) -> str:
    """Build an RFC 2822 message and return it base64url-encoded without padding."""
    msg = EmailMessage()
    msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    if bcc:
        msg["Bcc"] = ", ".join(bcc)
    msg["Subject"] = subject
    if reply_to_message_id:
        msg["In-Reply-To"] = reply_to_message_id
        msg["References"] = reply_to_message_id
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")
    return encode_base64url(msg.as_bytes())


class GmailService:
    def __init__(self, client: GoogleApiClient) -> None:
        self._client = client

    async def get_message(self, message_id: str) -> ParsedEmail:
        raw = await self._client.get(f"{GMAIL_BASE}/messages/{message_id}", params={"format": "full"})
        return parse_message(raw)

    async def get_thread(self, thread_id: str) -> EmailThread:
        raw = await self._client.get(f"{GMAIL_BASE}/threads/{thread_id}", params={"format": "full"})
        messages = [parse_message(m) for m in raw.get("messages") or []]
        return EmailThread(id=raw.get("id", thread_id), snippet=raw.get("snippet", ""), messages=messages)

    async def list_threads(
        self,
        query: Optional[str] = None,
        max_results: int = 20,
        page_token: Optional[str] = None,
        label_ids: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """List threads, fetching thread details concurrently in small batches."""
        listing = await self._client.get(
            f"{GMAIL_BASE}/threads",
            params={
                "q": query,
                "maxResults": max_results,
                "pageToken": page_token,
                "labelIds": list(label_ids) if label_ids else None,
            },
        )
        ids = [t["id"] for t in listing.get("threads") or []]
        threads: List[EmailThread] = []
        for start in range(0, len(ids), THREAD_DETAIL_BATCH_SIZE):
            batch = ids[start:start + THREAD_DETAIL_BATCH_SIZE]
            threads.extend(await asyncio.gather(*(self.get_thread(t) for t in batch)))
        return {
            "threads": threads,
            "next_page_token": listing.get("nextPageToken"),
            "result_size_estimate": listing.get("resultSizeEstimate", 0),
        }

    async def send(
        self,
        to: Sequence[str],
        subject: str,
        body: str,
        html: Optional[str] = None,
        cc: Sequence[str] = (),
        bcc: Sequence[str] = (),
        thread_id: Optional[str] = None,
        reply_to_message_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        raw = build_raw_message(to, subject, body, html, cc, bcc, reply_to_message_id)
        payload: Dict[str, Any] = {"raw": raw}
        if thread_id:
            payload["threadId"] = thread_id
        return await self._client.post(f"{GMAIL_BASE}/messages/send", payload)

    async def _modify(self, message_id: str, add: Sequence[str] = (), remove: Sequence[str] = ()) -> Any:
        return await self._client.post(
            f"{GMAIL_BASE}/messages/{message_id}/modify",
            {"addLabelIds": list(add), "removeLabelIds": list(remove)},
        )

    async def mark_as_read(self, message_id: str) -> Any:
        return await self._modify(message_id, remove=["UNREAD"])

    async def mark_as_unread(self, message_id: str) -> Any:
        return await self._modify(message_id, add=["UNREAD"])

    async def archive(self, message_id: str) -> Any:
        return await self._modify(message_id, remove=["INBOX"])

    async def search(self, query: str, max_results: int = 20) -> Dict[str, Any]:
        return await self.list_threads(query=query, max_results=max_results)

    async def get_emails_for_contact(self, email: str, max_results: int = 20) -> Dict[str, Any]:
        return await self.list_threads(query=f"from:{email} OR to:{email}", max_results=max_results)
