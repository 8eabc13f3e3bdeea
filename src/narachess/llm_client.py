from __future__ import annotations
"""
LLM client facade used by the coach server (OpenAI-compatible chat completions; configurable base URL).

The server should not care which SDK is in use. This module sends `model` + `messages`, asks for a
JSON object back, and maps SDK failures onto the errors module: missing credentials raise
ConfigurationError, timeouts OracleTimeout, other API failures OracleUnavailable and unusable
output OracleResponseError.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from .config import SETTINGS
from .errors import ConfigurationError, OracleResponseError, OracleTimeout, OracleUnavailable
from .prompting import PromptConfig, build_chat_messages, build_move_messages
from .protocol import ChatReply, ChatRequest, MoveRequest, MoveSuggestion

log = logging.getLogger("llm_client")

_CLIENT: Optional[OpenAI] = None


def _client() -> OpenAI:
    global _CLIENT
    if not SETTINGS.llm_api_key:
        raise ConfigurationError("NARA_LLM_API_KEY (or OPENAI_API_KEY) is not set")
    if _CLIENT is None:
        # The client's move loop owns the retry policy; the SDK must not retry behind it.
        _CLIENT = OpenAI(api_key=SETTINGS.llm_api_key, base_url=SETTINGS.api_base or None, max_retries=0)
    return _CLIENT


# ------------------------- Chat wrappers -------------------------
def request_json(messages: List[Dict[str, str]], model: Optional[str] = None) -> Dict[str, Any]:
    """Send one chat completion and return the decoded JSON object from the reply."""
    client = _client()
    model = model or SETTINGS.model
    try:
        rsp = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=SETTINGS.temperature,
            response_format={"type": "json_object"},
            timeout=SETTINGS.llm_timeout_s,
        )
    except openai.APITimeoutError as exc:
        raise OracleTimeout(f"{model} did not answer within {SETTINGS.llm_timeout_s:.0f}s") from exc
    except openai.OpenAIError as exc:
        raise OracleUnavailable(f"{model} request failed: {type(exc).__name__}") from exc

    text = _strip_code_fence(_extract_text(rsp))
    if not text:
        raise OracleResponseError("empty response from model")
    log.debug("Raw JSON received from model: %s", text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise OracleResponseError(f"model returned invalid JSON: {text[:200]!r}") from exc
    if not isinstance(data, dict):
        raise OracleResponseError("model returned JSON that is not an object")
    return data


def suggest_move(req: MoveRequest, prompt_cfg: Optional[PromptConfig] = None, model: Optional[str] = None) -> MoveSuggestion:
    messages = build_move_messages(req, prompt_cfg)
    log.info("Requesting move suggestion. FEN: %s", req.fen)
    suggestion = MoveSuggestion.from_dict(request_json(messages, model=model))
    log.info("Suggested move: %s", suggestion.move)
    return suggestion


def chat_reply(req: ChatRequest, prompt_cfg: Optional[PromptConfig] = None, model: Optional[str] = None) -> ChatReply:
    messages = build_chat_messages(req, prompt_cfg)
    log.info("Requesting chat reply. FEN: %s", req.game_state.fen)
    return ChatReply.from_dict(request_json(messages, model=model))


def _strip_code_fence(raw: str) -> str:
    raw = (raw or "").strip()
    if raw.startswith("```") and raw.endswith("```"):
        inner = raw.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return raw


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    msg = rsp.choices[0].message
    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
