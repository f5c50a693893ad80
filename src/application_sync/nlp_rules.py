import re

from .models import ACCEPTED, APPLIED, REJECTED

POSITIVE_SIGNALS = [
    "application", "applied", "interview", "assessment", "offer",
    "rejection", "position", "role", "candidate", "resume",
]
NEGATIVE_SIGNALS = [
    "sale", "discount", "promo", "order", "receipt", "newsletter",
    "subscription", "shipping", "invoice", "advert", "deal",
]

# first match wins, rejection before acceptance
STATUS_RULES = [
    (REJECTED, ["rejected", "not selected", "unfortunately", "declined"]),
    (ACCEPTED, ["offer", "accepted", "congratulations"]),
]

def _haystack(subject: str, snippet: str) -> str:
    return f"{subject or ''} {snippet or ''}".lower()

def is_likely_job_email(subject: str, snippet: str) -> bool:
    text = _haystack(subject, snippet)
    has_positive = any(word in text for word in POSITIVE_SIGNALS)
    has_negative = any(word in text for word in NEGATIVE_SIGNALS)
    return has_positive and not has_negative

def classify_status(subject: str, snippet: str) -> str:
    text = _haystack(subject, snippet)
    for label, words in STATUS_RULES:
        if any(word in text for word in words):
            return label
    return APPLIED

def _domain_label(address: str) -> str:
    if "@" not in address:
        return ""
    return address.split("@", 1)[1].split(".")[0].strip()

def extract_company(from_header: str) -> str:
    """Company from a From header: display name, else the sender's domain label."""
    from_header = from_header or ""
    m = re.search(r"^(.*)<(.+)>", from_header)
    if m:
        display = re.sub(r'^"|"$', "", m.group(1).strip())
        if display:
            return display
        return _domain_label(m.group(2)) or "Unknown"
    if "@" in from_header:
        return _domain_label(from_header) or "Unknown"
    return from_header.strip() or "Unknown"
