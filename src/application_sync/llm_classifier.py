"""
Language-model classification tiers.

Both tiers send the same prompt and expect strict JSON back:
``{"isJob": bool, "company": str, "role": str, "status": "applied|accepted|rejected"}``.
Anything else raises :class:`ClassificationUnusable` so the pipeline can fall
back to the keyword rules.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import openai
import requests

from .errors import ClassificationUnusable
from .models import ClassificationResult, EmailContent, STATUSES

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You classify whether an email is a job application-related message. "
    "Respond with strict JSON: "
    '{"isJob":true|false,"company":"...", "role":"...", "status":"applied|accepted|rejected"}.'
)


def build_prompt(email: EmailContent, max_body_chars: int = 4000) -> str:
    """Render the user prompt with the email embedded as JSON."""
    payload = {
        "subject": email.subject,
        "from": email.sender,
        "snippet": email.snippet,
        "body": (email.body or "")[:max_body_chars],
    }
    return (
        SYSTEM_PROMPT
        + " Only set isJob true for actual job application/interview/offer/rejection emails. "
        "If isJob is false, keep company/role/status as empty strings.\n\n"
        f"Email:\n{json.dumps(payload)}"
    )


def _text_field(parsed: dict, key: str) -> str:
    value = parsed.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_classification(content: Any, source: str = "") -> ClassificationResult:
    """
    Validate a model reply against the JSON contract.

    Args:
        content: Raw text returned by the model.
        source: Tier name recorded on the result.

    Returns:
        The parsed classification. ``isJob: false`` is a definitive result.

    Raises:
        ClassificationUnusable: reply is not JSON, not an object, or has a bad
            ``isJob``/``status`` field.
    """
    if not content:
        raise ClassificationUnusable("empty reply")
    if not isinstance(content, str):
        raise ClassificationUnusable(f"reply is not text: {type(content).__name__}")
    try:
        parsed: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ClassificationUnusable(f"reply is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ClassificationUnusable("reply is not a JSON object")

    is_job = parsed.get("isJob", True)
    if not isinstance(is_job, bool):
        raise ClassificationUnusable(f"isJob is not a boolean: {is_job!r}")
    if is_job is False:
        return ClassificationResult(is_job=False, source=source)

    status = parsed.get("status")
    if status not in STATUSES:
        raise ClassificationUnusable(f"status outside contract: {status!r}")

    return ClassificationResult(
        is_job=True,
        company=_text_field(parsed, "company"),
        role=_text_field(parsed, "role"),
        status=status,
        source=source,
    )


class OpenAIClassifier:
    """Chat-completion tier backed by the OpenAI API."""

    name = "openai"

    def __init__(self, api_key: Optional[str], model: str = "gpt-4o-mini", max_body_chars: int = 4000,
                 timeout: float = 30, client: Any = None) -> None:
        self._api_key = api_key
        self._model = model
        self._max_body_chars = max_body_chars
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def classify(self, email: EmailContent) -> ClassificationResult:
        if not self._api_key and self._client is None:
            raise ClassificationUnusable("OPENAI_API_KEY not configured")
        try:
            response = self._get_client().chat.completions.create(
                model=self._model,
                temperature=0.2,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(email, self._max_body_chars)},
                ],
            )
        except openai.OpenAIError as exc:
            LOGGER.warning("OpenAI classification request failed: %s", str(exc)[:200])
            raise ClassificationUnusable(str(exc)) from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        return parse_classification(content, source=self.name)


class OllamaClassifier:
    """Tier backed by a locally hosted Ollama ``/api/generate`` endpoint."""

    name = "ollama"

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "llama3.1:8b",
                 max_body_chars: int = 4000, timeout: float = 30) -> None:
        self._url = base_url.rstrip("/") + "/api/generate"
        self._model = model
        self._max_body_chars = max_body_chars
        self._timeout = timeout

    def classify(self, email: EmailContent) -> ClassificationResult:
        body = {
            "model": self._model,
            "prompt": build_prompt(email, self._max_body_chars),
            "format": "json",
            "stream": False,
        }
        try:
            resp = requests.post(self._url, json=body, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.warning("Ollama request failed: %s", str(exc)[:200])
            raise ClassificationUnusable(str(exc)) from exc

        if not resp.ok:
            LOGGER.info("Ollama request failed with HTTP %s", resp.status_code)
            raise ClassificationUnusable(f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise ClassificationUnusable("Ollama envelope is not JSON") from exc
        return parse_classification(data.get("response") if isinstance(data, dict) else None, source=self.name)
