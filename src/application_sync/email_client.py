import base64
import binascii
import logging
import re
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .errors import ProviderApiError
from .models import BodyPart, EmailContent, RawMessage
from .settings import GMAIL_QUERY

logger = logging.getLogger(__name__)

def _provider_error(e: HttpError) -> ProviderApiError:
    content = e.content or b""
    body = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else str(content)
    return ProviderApiError(int(e.resp.status), body)

# raised by execute() when no HTTP response came back
TRANSPORT_ERRORS = (httplib2.HttpLib2Error, TransportError, OSError)

def _execute(request) -> Dict[str, Any]:
    try:
        return request.execute()
    except HttpError as e:
        raise _provider_error(e) from e
    except TRANSPORT_ERRORS as e:
        raise ProviderApiError(0, f"transport error: {e}") from e

class GmailClient:
    """Read-only Gmail access bound to a single bearer token."""

    def __init__(self, access_token: Optional[str] = None, service=None, query: str = GMAIL_QUERY,
                 max_results: int = 25, max_pages: int = 1):
        if service is None:
            creds = Credentials(token=access_token)
            service = build("gmail", "v1", credentials=creds, cache_discovery=False)
        self._service = service
        self.query = query
        self.max_results = int(max_results)
        self.max_pages = max(1, int(max_pages))

    def list_candidates(self) -> List[str]:
        ids: List[str] = []
        page_token = None
        for _ in range(self.max_pages):
            params: Dict[str, Any] = {"userId": "me", "q": self.query, "maxResults": self.max_results}
            if page_token:
                params["pageToken"] = page_token
            resp = _execute(self._service.users().messages().list(**params))
            ids.extend(m["id"] for m in resp.get("messages", []))
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        logger.info("[Gmail] %d candidate messages", len(ids))
        return ids

    def fetch_full(self, msg_id: str) -> RawMessage:
        resp = _execute(self._service.users().messages().get(userId="me", id=msg_id, format="full"))
        return RawMessage.from_gmail(resp)

    def profile_email(self) -> str:
        return _execute(self._service.users().getProfile(userId="me"))["emailAddress"]

def _decode_payload(data: str) -> str:
    # Gmail returns base64url-encoded data
    missing_padding = len(data) % 4
    if missing_padding:
        data += "=" * (4 - missing_padding)
    try:
        return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""

def strip_html(html: str) -> str:
    text = re.sub(r"<[^>]+>", " ", html)
    return re.sub(r"\s+", " ", text).strip()

def _leaf_text(part: BodyPart) -> str:
    decoded = _decode_payload(part.data or "")
    if part.mime_type == "text/html":
        return strip_html(decoded)
    return decoded

def extract_text(payload: BodyPart) -> str:
    """First non-empty text in the body tree, depth-first in delivered order."""
    stack = [payload]
    while stack:
        part = stack.pop()
        if part.is_leaf:
            text = _leaf_text(part)
            if text:
                return text
            continue
        stack.extend(reversed(part.parts))
    return ""

def email_content(message: RawMessage) -> EmailContent:
    return EmailContent(
        subject=message.header("Subject"),
        sender=message.header("From"),
        snippet=message.snippet,
        body=extract_text(message.payload),
    )
