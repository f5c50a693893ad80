import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Protocol

import dateparser

from .models import ApplicationRecord, ClassificationResult, RawMessage
from .nlp_rules import extract_company

logger = logging.getLogger(__name__)

class RecordSink(Protocol):
    def insert_if_absent(self, record: ApplicationRecord) -> bool: ...

def _known(value: str) -> bool:
    return bool(value) and value.lower() != "unknown"

def parse_date_header(value: str) -> Optional[datetime]:
    """Date header as an aware UTC datetime, or None if it doesn't parse."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        dt = dateparser.parse(value, settings={"RETURN_AS_TIMEZONE_AWARE": True, "TO_TIMEZONE": "UTC"})
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def build_record(message: RawMessage, classification: ClassificationResult,
                 user_id: Optional[str] = None) -> ApplicationRecord:
    subject = message.header("Subject")
    company = classification.company if _known(classification.company) else extract_company(message.header("From"))
    role = classification.role if _known(classification.role) else (subject or message.snippet or "Unknown role")
    return ApplicationRecord(
        company=company or "Unknown",
        role=role or "Unknown role",
        status=classification.status,
        source_message_id=message.id,
        created_at=parse_date_header(message.header("Date")),
        user_id=user_id,
    )

def merge(message: RawMessage, classification: Optional[ClassificationResult], records: RecordSink,
          user_id: Optional[str] = None) -> bool:
    """Insert a record for a job-related message. True only on an actual new insert."""
    if classification is None or not classification.is_job:
        return False
    record = build_record(message, classification, user_id)
    created = records.insert_if_absent(record)
    if created:
        logger.info("[MERGE] %s | %s | %s", record.company, record.role, record.status)
    else:
        logger.debug("[MERGE] %s already recorded", message.id)
    return created
