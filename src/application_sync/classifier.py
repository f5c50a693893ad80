import logging
from typing import List, Optional, Protocol

from .errors import ClassificationUnusable
from .llm_classifier import OllamaClassifier, OpenAIClassifier
from .models import ClassificationResult, EmailContent
from .nlp_rules import classify_status, is_likely_job_email
from .settings import Settings

logger = logging.getLogger(__name__)

class Tier(Protocol):
    name: str

    def classify(self, email: EmailContent) -> ClassificationResult: ...

class HeuristicClassifier:
    """Keyword rules over subject + snippet. Never unusable."""

    name = "heuristic"

    def classify(self, email: EmailContent) -> ClassificationResult:
        if not is_likely_job_email(email.subject, email.snippet):
            return ClassificationResult(is_job=False, source=self.name)
        return ClassificationResult(
            is_job=True,
            status=classify_status(email.subject, email.snippet),
            source=self.name,
        )

class ClassificationPipeline:
    """Tries each tier in order; the first usable result wins."""

    def __init__(self, tiers: List[Tier]):
        self.tiers = list(tiers)

    def classify(self, email: EmailContent) -> Optional[ClassificationResult]:
        for tier in self.tiers:
            try:
                result = tier.classify(email)
            except ClassificationUnusable as e:
                logger.info("%s tier unusable, falling back: %s", tier.name, e)
                continue
            logger.debug("%s tier: is_job=%s status=%s", tier.name, result.is_job, result.status)
            return result
        return None

def build_pipeline(settings: Settings) -> ClassificationPipeline:
    llm = settings.llm
    provider = llm.get("provider", "disabled")
    max_chars = int(llm.get("max_body_chars", 4000))
    timeout = float(llm.get("timeout", 30))

    tiers: List[Tier] = []
    if provider == "openai":
        tiers.append(OpenAIClassifier(settings.openai_api_key, llm.get("openai_model", "gpt-4o-mini"),
                                      max_body_chars=max_chars, timeout=timeout))
    elif provider == "ollama":
        tiers.append(OllamaClassifier(llm.get("ollama_base_url", "http://localhost:11434"),
                                      llm.get("ollama_model", "llama3.1:8b"),
                                      max_body_chars=max_chars, timeout=timeout))
    elif provider != "disabled":
        logger.warning("Unknown llm.provider %r, using keyword rules only", provider)
    tiers.append(HeuristicClassifier())
    logger.info("LLM classification: provider=%s", provider)
    return ClassificationPipeline(tiers)
