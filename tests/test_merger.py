from datetime import datetime, timezone

from application_sync.merger import build_record, merge, parse_date_header
from application_sync.models import ClassificationResult, RawMessage

from conftest import gmail_message


class MemoryRecords:
    def __init__(self):
        self.rows = {}

    def insert_if_absent(self, record):
        if record.source_message_id in self.rows:
            return False
        self.rows[record.source_message_id] = record
        return True


def message(**kwargs):
    kwargs.setdefault("subject", "Your application to Acme")
    kwargs.setdefault("sender", '"Jane Recruiter" <jane@acme.io>')
    kwargs.setdefault("snippet", "Thanks for applying")
    return RawMessage.from_gmail(gmail_message("m1", **kwargs))


HEURISTIC = ClassificationResult(is_job=True, status="applied", source="heuristic")


def test_company_from_display_name_when_inference_silent():
    assert build_record(message(), HEURISTIC).company == "Jane Recruiter"


def test_company_from_domain_without_display_name():
    assert build_record(message(sender="noreply@acme.io"), HEURISTIC).company == "acme"


def test_unknown_inference_company_uses_header():
    result = ClassificationResult(True, company="UNKNOWN", role="unknown", status="accepted", source="openai")
    record = build_record(message(), result)
    assert record.company == "Jane Recruiter"
    assert record.role == "Your application to Acme"
    assert record.status == "accepted"


def test_inference_fields_win():
    result = ClassificationResult(True, company="Acme Corp", role="Backend Engineer", status="rejected")
    record = build_record(message(), result, user_id="u1")
    assert (record.company, record.role, record.status) == ("Acme Corp", "Backend Engineer", "rejected")
    assert record.source_message_id == "m1"
    assert record.user_id == "u1"


def test_role_falls_back_to_snippet_then_default():
    assert build_record(message(subject=""), HEURISTIC).role == "Thanks for applying"
    assert build_record(message(subject="", snippet=""), HEURISTIC).role == "Unknown role"


def test_company_default_when_from_missing():
    assert build_record(message(sender=""), HEURISTIC).company == "Unknown"


def test_date_header_overrides_created_at():
    record = build_record(message(date="Tue, 01 Jan 2024 00:00:00 GMT"), HEURISTIC)
    assert record.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_missing_or_bad_date_leaves_created_at_unset():
    assert build_record(message(), HEURISTIC).created_at is None
    assert build_record(message(date="%%%"), HEURISTIC).created_at is None


def test_parse_date_header_normalises_to_utc():
    assert parse_date_header("Mon, 15 Apr 2024 09:30:00 -0400") == datetime(2024, 4, 15, 13, 30, tzinfo=timezone.utc)


def test_merge_skips_non_job_and_unclassified():
    records = MemoryRecords()
    assert merge(message(), None, records) is False
    assert merge(message(), ClassificationResult(is_job=False), records) is False
    assert records.rows == {}


def test_merge_is_idempotent_on_source_message():
    records = MemoryRecords()
    assert merge(message(), HEURISTIC, records) is True
    assert merge(message(subject="Different subject"), HEURISTIC, records) is False
    assert len(records.rows) == 1
