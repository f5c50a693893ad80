import logging
from typing import Callable, Optional

from .classifier import ClassificationPipeline, build_pipeline
from .email_client import GmailClient, email_content
from .errors import AccountNotLinkedError, AuthenticationError
from .merger import RecordSink, merge
from .models import SyncResult
from .settings import Settings
from .token_provider import ensure_access_token

logger = logging.getLogger(__name__)

def gmail_client_factory(settings: Settings) -> Callable[[str], GmailClient]:
    gmail = settings.gmail

    def factory(access_token: str) -> GmailClient:
        return GmailClient(
            access_token,
            query=gmail["query"],
            max_results=gmail.get("max_results", 25),
            max_pages=gmail.get("max_pages", 1),
        )
    return factory

def run_sync(identity: Optional[str], store, settings: Settings, records: Optional[RecordSink] = None,
             client_factory: Optional[Callable[[str], GmailClient]] = None,
             pipeline: Optional[ClassificationPipeline] = None) -> SyncResult:
    """Pull candidate messages for one user and record the job-related ones.

    `store` holds users and linked accounts; `records` receives application
    records and defaults to `store`.
    """
    if not identity:
        raise AuthenticationError("Not authenticated")
    user_id = store.get_user_by_email(identity)
    if not user_id:
        raise AuthenticationError("User not found", identity)

    account = store.get_linked_account(user_id, "google")
    if account is None:
        raise AccountNotLinkedError("Google account not linked", identity)

    access_token = ensure_access_token(account, store, settings.google_client_id, settings.google_client_secret)

    records = records if records is not None else store
    client_factory = client_factory or gmail_client_factory(settings)
    pipeline = pipeline or build_pipeline(settings)

    client = client_factory(access_token)
    candidates = client.list_candidates()
    result = SyncResult(checked=len(candidates))

    for msg_id in candidates:
        # fetch errors are ProviderApiError and end the run
        message = client.fetch_full(msg_id)
        try:
            classification = pipeline.classify(email_content(message))
            if merge(message, classification, records, user_id=user_id):
                result.created += 1
        except Exception as e:
            logger.exception("Skipping message %s", msg_id)
            result.failed.append((msg_id, str(e)))

    logger.info("[SYNC] %s: created=%d checked=%d failed=%d",
                identity, result.created, result.checked, len(result.failed))
    return result
