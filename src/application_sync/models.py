from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

APPLIED = "applied"
ACCEPTED = "accepted"
REJECTED = "rejected"
STATUSES = (APPLIED, ACCEPTED, REJECTED)

@dataclass
class ApplicationRecord:
    company: str
    role: str
    status: str = APPLIED
    source_message_id: Optional[str] = None
    created_at: Optional[datetime] = None   # None -> store default (insert time)
    user_id: Optional[str] = None
    id: Optional[str] = None                # assigned by the store

@dataclass
class LinkedAccount:
    user_id: str
    provider: str
    provider_account_id: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None        # epoch seconds
    token_type: Optional[str] = None
    scope: Optional[str] = None

@dataclass
class BodyPart:
    """One node of a message body tree: a leaf carries data, a branch carries parts."""
    mime_type: str = ""
    data: Optional[str] = None
    parts: List["BodyPart"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return bool(self.data)

    @classmethod
    def from_gmail(cls, payload: Optional[Dict[str, Any]]) -> "BodyPart":
        payload = payload or {}
        return cls(
            mime_type=payload.get("mimeType", ""),
            data=(payload.get("body") or {}).get("data"),
            parts=[cls.from_gmail(p) for p in payload.get("parts") or []],
        )

@dataclass
class RawMessage:
    id: str
    thread_id: str = ""
    snippet: str = ""
    headers: List[Tuple[str, str]] = field(default_factory=list)
    payload: BodyPart = field(default_factory=BodyPart)

    def header(self, name: str) -> str:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return ""

    @classmethod
    def from_gmail(cls, message: Dict[str, Any]) -> "RawMessage":
        payload = message.get("payload") or {}
        headers = [(h.get("name", ""), h.get("value", "")) for h in payload.get("headers") or []]
        return cls(
            id=message["id"],
            thread_id=message.get("threadId", ""),
            snippet=message.get("snippet", ""),
            headers=headers,
            payload=BodyPart.from_gmail(payload),
        )

@dataclass
class EmailContent:
    subject: str
    sender: str
    snippet: str
    body: str

@dataclass
class ClassificationResult:
    is_job: bool
    company: str = ""
    role: str = ""
    status: str = APPLIED
    source: str = ""                        # heuristic | openai | ollama

@dataclass
class SyncResult:
    created: int = 0
    checked: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "checked": self.checked,
            "failed": [{"id": msg_id, "error": err} for msg_id, err in self.failed],
        }
