"""
Configuration and environment loading for the Nara Chess coach.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used by the server (LLM credentials, model, timeouts) and the
  client (server URL, retry policy, chat window).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")


def _repo_root() -> str:
    # this file: src/narachess/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    model: str
    temperature: float
    llm_timeout_s: float

    # Server
    server_port: int
    client_origin: str
    max_body_bytes: int

    # Client
    server_url: str
    request_timeout_s: float
    max_retries: int
    retry_delay_s: float
    chat_window: int


SETTINGS = Settings(
    llm_api_key=_get("NARA_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("NARA_LLM_BASE_URL", "https://api.openai.com/v1"),
    model=_get("NARA_LLM_MODEL", "gpt-4o-mini"),
    temperature=float(_get("NARA_LLM_TEMPERATURE", 0.4, cast=float)),
    llm_timeout_s=float(_get("NARA_LLM_TIMEOUT_S", 60.0, cast=float)),
    server_port=int(_get("NARA_SERVER_PORT", 42069, cast=int)),
    client_origin=_get("NARA_CLIENT_ORIGIN", "http://localhost:5173"),
    max_body_bytes=int(_get("NARA_MAX_BODY_BYTES", 1 << 20, cast=int)),
    server_url=_get("NARA_SERVER_URL", "http://localhost:42069"),
    request_timeout_s=float(_get("NARA_REQUEST_TIMEOUT_S", 90.0, cast=float)),
    max_retries=int(_get("NARA_MAX_RETRIES", 3, cast=int)),
    retry_delay_s=float(_get("NARA_RETRY_DELAY_S", 1.0, cast=float)),
    chat_window=int(_get("NARA_CHAT_WINDOW", 10, cast=int)),
)
