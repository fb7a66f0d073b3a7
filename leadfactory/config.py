# leadfactory/config.py
from __future__ import annotations
import os
from dataclasses import dataclass

def _as_bool(v: str | None, default: bool = False) -> bool:
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")

@dataclass
class Settings:
    # Ollama / stage agents
    ollama_base: str = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "qwen3:0.6b")
    ollama_think: bool = _as_bool(os.getenv("OLLAMA_THINK"), False)
    llm_timeout_seconds: int = int(os.getenv("LLM_TIMEOUT_SECONDS", "600"))

    # Collector fetches intake links as plain text
    fetch_links: bool = _as_bool(os.getenv("FETCH_LINKS"), True)

    # Sender relay (send + tracking + unsubscribe endpoints live behind this base)
    sender_base: str = os.getenv("SENDER_BASE", "http://localhost:8787").rstrip("/")
    sender_timeout_seconds: int = int(os.getenv("SENDER_TIMEOUT_SECONDS", "30"))

    # Persistence: JSON array of workspace records
    workspaces_file: str = os.getenv("WORKSPACES_FILE", "data/workspaces.json")

    # Autopilot gap used when the template delays are not increasing
    autopilot_default_gap_days: int = int(os.getenv("AUTOPILOT_DEFAULT_GAP_DAYS", "2"))

    tracking_port: int = int(os.getenv("TRACKING_PORT", "8787"))
    api_port: int = int(os.getenv("API_PORT", "8000"))

_settings: Settings | None = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
