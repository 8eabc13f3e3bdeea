"""
CoachController: the one object a UI talks to.

Owns the current GameSession, the chat log, the move loop and the chat protocol, and funnels
every mutation through them. A reset replaces the session with a new generation so answers
still in flight for the old game are ignored.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .acquisition import AcquisitionState, MoveAcquisitionLoop
from .chat import ChatEntry, ChatLog, ChatSubProtocol
from .config import SETTINGS
from .oracle import Oracle
from .session import GameSession, MoveResult

log = logging.getLogger("controller")


class CoachController:
    def __init__(
        self,
        oracle: Oracle,
        human_side: str = "white",
        chat_window: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.oracle = oracle
        self.chat_window = chat_window if chat_window is not None else SETTINGS.chat_window
        self.chat_log = ChatLog()
        self.session = GameSession(human_side=human_side)
        self.acquisition = MoveAcquisitionLoop(
            oracle,
            get_session=lambda: self.session,
            get_chat_window=lambda: self.chat_log.window(self.chat_window),
            max_retries=max_retries,
            retry_delay=retry_delay,
            sleep=sleep,
        )
        self.chat = ChatSubProtocol(oracle, self.chat_log, lambda: self.session, self.chat_window)

    # ---------------- Display helpers -----------------
    @property
    def state(self) -> AcquisitionState:
        return self.acquisition.state

    @property
    def is_loading(self) -> bool:
        return self.acquisition.state == AcquisitionState.AWAITING_RESPONSE

    @property
    def comment(self) -> str:
        s = self.acquisition.last_suggestion
        return s.comment if s else ""

    @property
    def title(self) -> str:
        s = self.acquisition.last_suggestion
        return s.title if s else ""

    def snapshot(self) -> dict:
        data = self.session.snapshot()
        data.update({
            "acquisition_state": self.acquisition.state.value,
            "attempt_count": self.acquisition.attempt_count,
            "comment": self.comment,
            "title": self.title,
            "chat": [{"role": e.role.value, "content": e.content} for e in self.chat_log],
        })
        return data

    # ---------------- Actions -----------------
    def begin(self) -> None:
        """Kick off the game; the coach moves first when the pupil plays black."""
        self.acquisition.start()

    def submit_human_move(self, from_square: str, to_square: str, promotion: Optional[str] = None) -> MoveResult:
        if self.acquisition.is_busy():
            return MoveResult(ok=False, reason="coach_thinking", raw=f"{from_square}{to_square}{promotion or ''}")
        result = self.session.apply_human_move(from_square, to_square, promotion)
        if result:
            log.info("Pupil played %s", result.san)
            self.acquisition.reset()
            self.acquisition.start()
        return result

    async def send_chat(self, message: str) -> Optional[ChatEntry]:
        return await self.chat.send(message)

    def retry(self) -> bool:
        return self.acquisition.retry() is not None

    def reset(self, human_side: Optional[str] = None) -> GameSession:
        side = human_side or self.session.human_side
        self.session = GameSession(human_side=side, generation=self.session.generation + 1)
        log.info("New game (generation %d), pupil plays %s", self.session.generation, side)
        self.acquisition.reset()
        self.acquisition.start()
        return self.session

    async def wait_idle(self) -> Optional[MoveResult]:
        return await self.acquisition.wait()
