import argparse
import json
import logging
import sys

import pytz

from .errors import SyncError
from .settings import Settings, load_settings
from .sheets_writer import SheetsRecordStore, ensure_sheet
from .store import ApplicationStore
from .sync import run_sync
from .token_provider import link_google_account

def _record_sink(cfg: Settings, store: ApplicationStore):
    if cfg.storage.get("records", "sqlite") == "sheets":
        ws = ensure_sheet(cfg.sheets["spreadsheet_name"], cfg.sheets["worksheet_name"],
                          cfg.gmail["client_secret_file"])
        return SheetsRecordStore(ws)
    return store

def cmd_link(cfg: Settings, store: ApplicationStore, args) -> int:
    account = link_google_account(store, cfg.gmail["client_secret_file"])
    print(f"[LINK] {account.provider_account_id}")
    return 0

def cmd_sync(cfg: Settings, store: ApplicationStore, args) -> int:
    result = run_sync(args.user, store, cfg, records=_record_sink(cfg, store))
    print(json.dumps(result.as_dict()))
    return 0

def cmd_list(cfg: Settings, store: ApplicationStore, args) -> int:
    tz = pytz.timezone(cfg.app.get("timezone", "UTC"))
    user_id = None
    if args.user:
        user_id = store.get_user_by_email(args.user)
        if not user_id:
            print(f"[ERROR] User not found: {args.user}", file=sys.stderr)
            return 1
    for rec in _record_sink(cfg, store).list_applications(user_id):
        created = rec.created_at.astimezone(tz).date().isoformat() if rec.created_at else ""
        print(f"{rec.id}\t{created}\t{rec.status}\t{rec.company}\t{rec.role}")
    return 0

def cmd_set_status(cfg: Settings, store: ApplicationStore, args) -> int:
    if not _record_sink(cfg, store).update_status(args.id, args.status):
        print(f"[ERROR] No application with id {args.id}", file=sys.stderr)
        return 1
    print(f"[STATUS] {args.id} -> {args.status}")
    return 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync job applications from Gmail")
    parser.add_argument("--config", help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("link", help="Link a Google account (opens a browser)").set_defaults(func=cmd_link)

    p = sub.add_parser("sync", help="Import application emails for a user")
    p.add_argument("--user", required=True, help="Email of the linked user")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("list", help="List application records")
    p.add_argument("--user", help="Only records for this user")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("set-status", help="Move an application to another status")
    p.add_argument("id")
    p.add_argument("status", choices=["applied", "accepted", "rejected"])
    p.set_defaults(func=cmd_set_status)
    return parser

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, str(cfg.app.get("log_level", "INFO")).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        store = ApplicationStore(cfg.storage["db_path"])
    except SyncError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    try:
        return args.func(cfg, store, args)
    except SyncError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

if __name__ == "__main__":
    sys.exit(main())
