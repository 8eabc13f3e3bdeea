"""
Chat sub-protocol: free conversation with the coach alongside the game.

Each user message is appended to the ChatLog and sent once (no retries) with a sliding
window of recent entries and the current game state. A reply appends a Coach entry and,
when it carries arrows, replaces the session's annotations. Failures are logged and leave
both the session and the move loop untouched.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import OracleError
from .oracle import Oracle
from .protocol import ROLE_MODEL, ROLE_USER, ChatMessage, ChatRequest, GameState
from .session import GameSession

log = logging.getLogger("chat")


class Role(str, enum.Enum):
    USER = "user"
    COACH = "coach"

    @property
    def wire(self) -> str:
        return ROLE_USER if self is Role.USER else ROLE_MODEL


@dataclass(frozen=True)
class ChatEntry:
    content: str
    role: Role

    def to_message(self) -> ChatMessage:
        return ChatMessage(content=self.content, role=self.role.wire)


class ChatLog:
    """Ordered chat transcript; survives moves and game resets."""

    def __init__(self) -> None:
        self._entries: List[ChatEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def append(self, entry: ChatEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> List[ChatEntry]:
        return list(self._entries)

    def window(self, size: int) -> List[ChatMessage]:
        """Most recent `size` entries in wire form, oldest first."""
        if size <= 0:
            return []
        return [e.to_message() for e in self._entries[-size:]]


class ChatSubProtocol:
    def __init__(self, oracle: Oracle, chat_log: ChatLog, get_session: Callable[[], GameSession], window: int):
        self.oracle = oracle
        self.chat_log = chat_log
        self.get_session = get_session
        self.window = window

    async def send(self, message: str) -> Optional[ChatEntry]:
        """Post one user message; returns the coach's entry, or None if the request failed."""
        message = (message or "").strip()
        if not message:
            return None
        session = self.get_session()
        self.chat_log.append(ChatEntry(content=message, role=Role.USER))
        request = ChatRequest(
            message_history=self.chat_log.window(self.window),
            game_state=GameState(move_history=list(session.move_history), fen=session.fen),
            player_side=session.human_side,
        )
        try:
            reply = await self.oracle.chat(request)
        except OracleError as exc:
            log.warning("Chat request failed: %s", exc)
            return None
        except Exception:
            log.exception("Unexpected error from coach chat")
            return None

        entry = ChatEntry(content=reply.response, role=Role.COACH)
        self.chat_log.append(entry)
        current = self.get_session()
        if reply.arrows and current is session and current.generation == session.generation:
            current.set_annotations(reply.arrows)
        return entry
