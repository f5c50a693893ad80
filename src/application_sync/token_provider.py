import calendar
import logging
import time
from typing import List, Optional, Protocol

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .email_client import GmailClient
from .errors import MissingCredentialError, TokenRefreshError
from .models import LinkedAccount

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
SAFETY_MARGIN = 60
DEFAULT_LIFETIME = 3600

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/gmail.readonly",
]

class AccountStore(Protocol):
    def update_account_token(self, user_id: str, provider: str, provider_account_id: str,
                             access_token: str, expires_at: int) -> None: ...

def ensure_access_token(account: LinkedAccount, accounts: AccountStore, client_id: Optional[str],
                        client_secret: Optional[str], now: Optional[float] = None) -> str:
    """Return a usable access token, refreshing and persisting it when close to expiry."""
    now = time.time() if now is None else now
    if account.access_token and (account.expires_at or 0) > now + SAFETY_MARGIN:
        logger.debug("Reusing access token for %s", account.provider_account_id)
        return account.access_token

    if not account.refresh_token:
        raise MissingCredentialError("Missing refresh token. Re-authenticate with Google.")

    creds = Credentials(
        token=None,
        refresh_token=account.refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id or "",
        client_secret=client_secret or "",
    )
    try:
        creds.refresh(Request())
    except GoogleAuthError as e:
        # RefreshError for provider rejections, TransportError for network failures
        raise TokenRefreshError("Token refresh failed", str(e)) from e
    if not creds.token:
        raise TokenRefreshError("Token refresh failed", "no access token in response")

    # google-auth keeps expiry as naive UTC
    if creds.expiry is not None:
        expires_at = calendar.timegm(creds.expiry.utctimetuple())
    else:
        expires_at = int(now) + DEFAULT_LIFETIME

    accounts.update_account_token(account.user_id, account.provider, account.provider_account_id,
                                  creds.token, expires_at)
    account.access_token = creds.token
    account.expires_at = expires_at
    logger.info("Refreshed access token for %s", account.provider_account_id)
    return creds.token

def link_google_account(store, client_secret_file: str, scopes: List[str] = SCOPES) -> LinkedAccount:
    """Run the installed-app OAuth flow and save the resulting account."""
    flow = InstalledAppFlow.from_client_secrets_file(client_secret_file, scopes)
    # offline + consent so Google hands back a refresh token
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")

    email = GmailClient(creds.token).profile_email()
    user_id = store.ensure_user(email)
    expires_at = calendar.timegm(creds.expiry.utctimetuple()) if creds.expiry else None
    account = LinkedAccount(
        user_id=user_id,
        provider="google",
        provider_account_id=email,
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expires_at=expires_at,
        token_type="Bearer",
        scope=" ".join(creds.scopes or scopes),
    )
    store.save_linked_account(account)
    logger.info("Linked Google account %s", email)
    return account
