import logging
import os
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import gspread

from .errors import PersistenceError
from .models import ApplicationRecord, STATUSES

logger = logging.getLogger(__name__)

HEADERS = ["Id", "Company", "Role", "Status", "SourceMessageId", "CreatedAt", "UserId"]
ID_COLUMN = HEADERS.index("Id") + 1
STATUS_COLUMN = HEADERS.index("Status") + 1
SOURCE_COLUMN = HEADERS.index("SourceMessageId") + 1

def _get_client(client_secret_file: str):
    sa_path = os.getenv("GSPREAD_SERVICE_ACCOUNT_JSON", "").strip()
    if sa_path:
        return gspread.service_account(filename=sa_path)
    credentials_dir = os.path.dirname(client_secret_file)
    return gspread.oauth(
        credentials_filename=client_secret_file,
        authorized_user_filename=os.path.join(credentials_dir, "sheets_token.json"),
    )

def ensure_sheet(spreadsheet_name: str, worksheet_name: str, client_secret_file: str):
    gc = _get_client(client_secret_file)
    try:
        sh = gc.open(spreadsheet_name)
    except gspread.SpreadsheetNotFound:
        sh = gc.create(spreadsheet_name)
    try:
        ws = sh.worksheet(worksheet_name)
    except gspread.WorksheetNotFound:
        ws = sh.add_worksheet(title=worksheet_name, rows=1000, cols=len(HEADERS))
        ws.append_row(HEADERS)
    first_row = ws.row_values(1)
    if first_row != HEADERS:
        if not first_row:
            ws.append_row(HEADERS)
        else:
            ws.delete_rows(1)
            ws.insert_row(HEADERS, index=1)
    return ws

class SheetsRecordStore:
    """Application records kept as rows of a Google Sheets worksheet."""

    def __init__(self, ws):
        self.ws = ws

    def insert_if_absent(self, record: ApplicationRecord) -> bool:
        try:
            if record.source_message_id and self.ws.findall(record.source_message_id, in_column=SOURCE_COLUMN):
                return False
            record.id = record.id or uuid.uuid4().hex
            created_at = record.created_at or datetime.now(timezone.utc)
            record.created_at = created_at
            row = {
                "Id": record.id,
                "Company": record.company,
                "Role": record.role,
                "Status": record.status,
                "SourceMessageId": record.source_message_id or "",
                "CreatedAt": created_at.isoformat(timespec="seconds"),
                "UserId": record.user_id or "",
            }
            self.ws.append_row([row[h] for h in HEADERS])
        except gspread.exceptions.GSpreadException as e:
            raise PersistenceError("Sheets write failed", str(e)) from e
        return True

    def update_status(self, record_id: str, status: str) -> bool:
        if status not in STATUSES:
            raise ValueError(f"Invalid status {status!r}; expected one of {', '.join(STATUSES)}")
        try:
            cells = self.ws.findall(str(record_id), in_column=ID_COLUMN)
            if not cells:
                return False
            self.ws.update_cell(cells[0].row, STATUS_COLUMN, status)
        except gspread.exceptions.GSpreadException as e:
            raise PersistenceError("Sheets write failed", str(e)) from e
        return True

    def list_applications(self, user_id: Optional[str] = None) -> List[ApplicationRecord]:
        records = []
        for row in self.ws.get_all_records():
            if user_id is not None and row.get("UserId") != user_id:
                continue
            created = row.get("CreatedAt")
            records.append(ApplicationRecord(
                id=str(row.get("Id", "")),
                company=str(row.get("Company", "")),
                role=str(row.get("Role", "")),
                status=str(row.get("Status", "")),
                source_message_id=str(row.get("SourceMessageId", "")) or None,
                created_at=datetime.fromisoformat(created) if created else None,
                user_id=str(row.get("UserId", "")) or None,
            ))
        return records
