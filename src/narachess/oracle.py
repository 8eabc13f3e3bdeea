"""
Client-side oracle capability: ask the coach server for a move or a chat reply.

Oracle is the interface the move loop and the chat protocol depend on; tests inject
scripted fakes. HttpOracle talks to server.py over aiohttp and maps every failure onto
the OracleError taxonomy so callers only ever see one family of exceptions.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from .config import SETTINGS
from .errors import OracleResponseError, OracleTimeout, OracleUnavailable
from .protocol import ChatReply, ChatRequest, MoveRequest, MoveSuggestion

log = logging.getLogger("oracle")

MOVE_PATH = "/submitMove"
CHAT_PATH = "/chat"


class Oracle:
    """Interface for anything that can suggest coach moves and chat replies.

    Subclasses must implement suggest_move and chat; close is optional.
    Implementations should raise only OracleError subclasses; the move loop and the
    chat protocol still treat anything else as a failed request.
    """

    async def suggest_move(self, request: MoveRequest) -> MoveSuggestion:
        raise NotImplementedError

    async def chat(self, request: ChatRequest) -> ChatReply:
        raise NotImplementedError

    async def close(self) -> None:
        return


class HttpOracle(Oracle):
    def __init__(self, base_url: Optional[str] = None, timeout_s: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or SETTINGS.server_url).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else SETTINGS.request_timeout_s
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpOracle":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s))
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    async def _post(self, path: str, body: dict) -> Any:
        url = f"{self.base_url}{path}"
        log.debug("POST %s %s", url, body)
        try:
            async with self._client().post(url, json=body) as resp:
                try:
                    text = await resp.text()
                except (UnicodeDecodeError, LookupError) as exc:
                    raise OracleResponseError(f"coach returned an undecodable body: {exc}") from exc
                if resp.status == 504:
                    raise OracleTimeout(f"coach timed out ({text.strip() or resp.reason})")
                if resp.status >= 400:
                    raise OracleUnavailable(f"coach returned {resp.status}: {text.strip() or resp.reason}", status=resp.status)
        except asyncio.TimeoutError as exc:
            raise OracleTimeout(f"no answer from {url} within {self.timeout_s:.0f}s") from exc
        except aiohttp.ClientError as exc:
            raise OracleUnavailable(f"cannot reach {url}: {exc}") from exc
        try:
            return json.loads(text)
        except ValueError as exc:
            raise OracleResponseError(f"coach returned malformed JSON: {text[:200]!r}") from exc

    async def suggest_move(self, request: MoveRequest) -> MoveSuggestion:
        data = await self._post(MOVE_PATH, request.to_dict())
        return MoveSuggestion.from_dict(data)

    async def chat(self, request: ChatRequest) -> ChatReply:
        data = await self._post(CHAT_PATH, request.to_dict())
        return ChatReply.from_dict(data)
