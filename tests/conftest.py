import base64
import time

import httplib2
import pytest
from googleapiclient.errors import HttpError

from application_sync.models import LinkedAccount
from application_sync.settings import Settings, _merge
from application_sync.store import ApplicationStore


def b64(text):
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def gmail_message(msg_id, subject="", sender="", snippet="", date=None, body=None, mime="text/plain"):
    headers = [{"name": "Subject", "value": subject}, {"name": "From", "value": sender}]
    if date is not None:
        headers.append({"name": "Date", "value": date})
    payload = {"mimeType": mime, "headers": headers, "body": {}}
    if body is not None:
        payload["body"] = {"data": b64(body)}
    return {"id": msg_id, "threadId": "t-" + msg_id, "snippet": snippet, "payload": payload}


def http_error(status, content=b"error"):
    return HttpError(httplib2.Response({"status": status}), content)


class _Request:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


class FakeGmailService:
    """Just enough of users().messages() for the client."""

    def __init__(self, messages=(), list_error=None, get_errors=None, page_size=None):
        self.messages_by_id = {m["id"]: m for m in messages}
        self.order = [m["id"] for m in messages]
        self.list_error = list_error
        self.get_errors = get_errors or {}
        self.page_size = page_size
        self.list_calls = []

    def users(self):
        return self

    def messages(self):
        return self

    def list(self, **params):
        self.list_calls.append(params)
        if self.list_error is not None:
            return _Request(error=self.list_error)
        ids = self.order
        if self.page_size:
            start = int(params.get("pageToken") or 0)
            page = ids[start:start + self.page_size]
            resp = {"messages": [{"id": i} for i in page]}
            if start + self.page_size < len(ids):
                resp["nextPageToken"] = str(start + self.page_size)
            return _Request(resp)
        resp = {"messages": [{"id": i} for i in ids[:params["maxResults"]]]} if ids else {}
        return _Request(resp)

    def get(self, userId, id, format):
        assert format == "full"
        if id in self.get_errors:
            return _Request(error=self.get_errors[id])
        return _Request(self.messages_by_id[id])


@pytest.fixture
def settings(monkeypatch):
    for name in ("LLM_PROVIDER", "OPENAI_MODEL", "OLLAMA_BASE_URL", "OLLAMA_MODEL", "APPSYNC_DB"):
        monkeypatch.delenv(name, raising=False)
    return Settings(**_merge({}), google_client_id="cid", google_client_secret="secret", openai_api_key=None)


@pytest.fixture
def store(tmp_path):
    s = ApplicationStore(str(tmp_path / "apps.db"))
    yield s
    s.close()


@pytest.fixture
def linked_user(store):
    user_id = store.ensure_user("me@example.com", "Me")
    store.save_linked_account(LinkedAccount(
        user_id=user_id,
        provider="google",
        provider_account_id="me@example.com",
        access_token="live-token",
        refresh_token="refresh",
        expires_at=int(time.time()) + 3600,
    ))
    return user_id
