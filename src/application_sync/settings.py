import os
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from dotenv import load_dotenv

CONFIG_PATH = os.environ.get(
    "APPSYNC_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "config.yaml")
)

GMAIL_QUERY = (
    'newer_than:2y (application OR interview OR offer OR rejection '
    'OR "thank you for applying" OR "we received") '
    '-category:promotions -category:social'
)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "app": {"timezone": "UTC", "log_level": "INFO"},
    "gmail": {
        "query": GMAIL_QUERY,
        "max_results": 25,
        "max_pages": 1,
        "client_secret_file": os.path.join("credentials", "client_secret.json"),
    },
    "llm": {
        "provider": "disabled",
        "openai_model": "gpt-4o-mini",
        "ollama_base_url": "http://localhost:11434",
        "ollama_model": "llama3.1:8b",
        "max_body_chars": 4000,
        "timeout": 30,
    },
    "storage": {"db_path": os.path.join("data", "applications.db"), "records": "sqlite"},
    "sheets": {"spreadsheet_name": "Job Applications", "worksheet_name": "Applications"},
}

# env var -> (block, key)
ENV_OVERRIDES = {
    "LLM_PROVIDER": ("llm", "provider"),
    "OPENAI_MODEL": ("llm", "openai_model"),
    "OLLAMA_BASE_URL": ("llm", "ollama_base_url"),
    "OLLAMA_MODEL": ("llm", "ollama_model"),
    "APPSYNC_DB": ("storage", "db_path"),
}

load_dotenv()

@dataclass
class Settings:
    app: Dict[str, Any]
    gmail: Dict[str, Any]
    llm: Dict[str, Any]
    storage: Dict[str, Any]
    sheets: Dict[str, Any]
    google_client_id: Optional[str] = field(default_factory=lambda: os.environ.get("GOOGLE_CLIENT_ID"))
    google_client_secret: Optional[str] = field(default_factory=lambda: os.environ.get("GOOGLE_CLIENT_SECRET"))
    openai_api_key: Optional[str] = field(default_factory=lambda: os.environ.get("OPENAI_API_KEY"))

def _merge(cfg: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    merged = {}
    for block, defaults in DEFAULTS.items():
        merged[block] = {**defaults, **(cfg.get(block) or {})}
    for env_name, (block, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            merged[block][key] = value
    merged["llm"]["provider"] = str(merged["llm"]["provider"]).lower()
    return merged

def load_settings(path: Optional[str] = None) -> Settings:
    path = path or CONFIG_PATH
    cfg: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    return Settings(**_merge(cfg))
