"""
MoveAcquisitionLoop: get a legal move out of the coach when it is the coach's turn.

States: IDLE -> AWAITING_RESPONSE -> VALIDATING_MOVE -> IDLE on success. A rejected
suggestion or a failed request moves to RETRYING; after max_retries failed attempts the
loop parks in FAILED and only retry() (or a game reset) gets it out. Between attempts the
loop sleeps a fixed retry_delay and re-asks with the rejected moves attached as wrong_move /
wrong_moves so the coach does not repeat itself.

Every attempt is tagged with the session generation it was issued for; an answer that comes
back after the game was reset is dropped without touching any state.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .config import SETTINGS
from .errors import OracleError, OracleResponseError, OracleTimeout
from .oracle import Oracle
from .protocol import ChatMessage, MoveRequest, MoveSuggestion
from .session import GameSession, MoveResult, TurnOwner

log = logging.getLogger("acquisition")

MSG_ILLEGAL = "The coach suggested an illegal move ({move}). Asking again..."
MSG_UNREACHABLE = "The coach is unreachable or timed out ({error}). Retrying..."
MSG_BAD_RESPONSE = "The coach sent an unusable answer ({error}). Retrying..."
MSG_EXHAUSTED = "The coach could not produce a legal move after {attempts} attempts. Press Retry to ask again."


class AcquisitionState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    VALIDATING_MOVE = "validating_move"
    RETRYING = "retrying"
    FAILED = "failed"


@dataclass
class AcquisitionAttempt:
    attempt_number: int
    request: MoveRequest
    generation: int
    outcome: Optional[str] = None  # accepted | illegal_move | timeout | unreachable | bad_response | stale


Listener = Callable[[AcquisitionState, AcquisitionState], None]


class MoveAcquisitionLoop:
    def __init__(
        self,
        oracle: Oracle,
        get_session: Callable[[], GameSession],
        get_chat_window: Optional[Callable[[], List[ChatMessage]]] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.oracle = oracle
        self.get_session = get_session
        self.get_chat_window = get_chat_window or (lambda: [])
        self.max_retries = max_retries if max_retries is not None else SETTINGS.max_retries
        self.retry_delay = retry_delay if retry_delay is not None else SETTINGS.retry_delay_s
        self._sleep = sleep

        self.state = AcquisitionState.IDLE
        self.attempt_count = 0
        self.rejected_moves: List[str] = []
        self.current_attempt: Optional[AcquisitionAttempt] = None
        self.attempts_log: List[AcquisitionAttempt] = []
        self.last_suggestion: Optional[MoveSuggestion] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []

    # ---------------- Observers -----------------
    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _transition(self, new_state: AcquisitionState) -> None:
        old = self.state
        if old == new_state:
            return
        self.state = new_state
        log.debug("Acquisition %s -> %s (attempt %d)", old.value, new_state.value, self.attempt_count)
        for listener in list(self._listeners):
            listener(old, new_state)

    # ---------------- Control -----------------
    def is_busy(self) -> bool:
        return self.state in (AcquisitionState.AWAITING_RESPONSE, AcquisitionState.VALIDATING_MOVE, AcquisitionState.RETRYING)

    def should_start(self) -> bool:
        if self.state != AcquisitionState.IDLE:
            return False
        session = self.get_session()
        if session.is_game_over() or session.turn_owner != TurnOwner.ORACLE:
            return False
        # The coach only opens the game when it plays white; otherwise it waits for a human move.
        return bool(session.move_history) or session.oracle_side == "white"

    def start(self) -> Optional[asyncio.Task]:
        """Begin acquiring the coach's move if it is the coach's turn. Must run inside an event loop."""
        if not self.should_start():
            return None
        self.attempt_count = 0
        self.rejected_moves = []
        return self._launch()

    def retry(self) -> Optional[asyncio.Task]:
        """Manual retry: the only way out of FAILED."""
        if self.state != AcquisitionState.FAILED:
            return None
        session = self.get_session()
        if session.turn_owner != TurnOwner.ORACLE or session.is_game_over():
            self._transition(AcquisitionState.IDLE)
            return None
        log.info("Manual retry requested for generation %d", session.generation)
        self.attempt_count = 0
        return self._launch()

    def reset(self) -> None:
        """Forget the current turn; an in-flight request finishes but is discarded as stale."""
        self.attempt_count = 0
        self.rejected_moves = []
        self.current_attempt = None
        self._task = None
        self._transition(AcquisitionState.IDLE)

    async def wait(self) -> Optional[MoveResult]:
        task = self._task
        if task is None:
            return None
        return await task

    def _launch(self) -> asyncio.Task:
        generation = self.get_session().generation
        self._transition(AcquisitionState.AWAITING_RESPONSE)
        self._task = asyncio.get_running_loop().create_task(self._run(generation))
        return self._task

    # ---------------- Protocol -----------------
    def _is_stale(self, generation: int) -> bool:
        return self.get_session().generation != generation

    def _build_request(self, session: GameSession) -> MoveRequest:
        return MoveRequest(
            move_history=list(session.move_history),
            fen=session.fen,
            wrong_move=self.rejected_moves[-1] if self.rejected_moves else None,
            wrong_moves=list(self.rejected_moves),
            chat_history=list(self.get_chat_window()),
        )

    async def _run(self, generation: int) -> Optional[MoveResult]:
        while True:
            session = self.get_session()
            attempt = AcquisitionAttempt(
                attempt_number=self.attempt_count + 1,
                request=self._build_request(session),
                generation=generation,
            )
            self.current_attempt = attempt
            self.attempts_log.append(attempt)
            self._transition(AcquisitionState.AWAITING_RESPONSE)
            log.info("Requesting coach move (attempt %d/%d) fen=%s", attempt.attempt_number, self.max_retries, session.fen)

            suggestion: Optional[MoveSuggestion] = None
            message = MSG_BAD_RESPONSE.format(error="no suggestion")
            try:
                suggestion = await self.oracle.suggest_move(attempt.request)
            except OracleTimeout as exc:
                attempt.outcome = "timeout"
                message = MSG_UNREACHABLE.format(error=exc)
            except OracleResponseError as exc:
                attempt.outcome = "bad_response"
                message = MSG_BAD_RESPONSE.format(error=exc)
            except OracleError as exc:
                attempt.outcome = "unreachable"
                message = MSG_UNREACHABLE.format(error=exc)
            except Exception as exc:
                log.exception("Unexpected error from coach oracle (attempt %d)", attempt.attempt_number)
                attempt.outcome = "unreachable"
                message = MSG_UNREACHABLE.format(error=exc)

            if self._is_stale(generation):
                attempt.outcome = "stale"
                log.info("Dropping coach answer for superseded game generation %d", generation)
                return None

            if suggestion is not None:
                self._transition(AcquisitionState.VALIDATING_MOVE)
                result = session.apply_oracle_move(suggestion.move)
                if result:
                    attempt.outcome = "accepted"
                    self.last_suggestion = suggestion
                    session.set_annotations(suggestion.arrows)
                    session.set_error(None)
                    log.info("Coach played %s after %d attempt(s)", result.san, attempt.attempt_number)
                    self._finish_turn()
                    return result
                attempt.outcome = "illegal_move"
                if suggestion.move not in self.rejected_moves:
                    self.rejected_moves.append(suggestion.move)
                message = MSG_ILLEGAL.format(move=suggestion.move)
            else:
                attempt.outcome = attempt.outcome or "bad_response"
                log.warning("Coach request failed (attempt %d): %s", attempt.attempt_number, attempt.outcome)

            session.set_error(message)
            self._transition(AcquisitionState.RETRYING)
            self.attempt_count += 1
            if self.attempt_count >= self.max_retries:
                log.error("Coach failed %d times in a row; waiting for manual retry", self.attempt_count)
                session.set_error(MSG_EXHAUSTED.format(attempts=self.attempt_count))
                self.current_attempt = None
                self._transition(AcquisitionState.FAILED)
                return None
            await self._sleep(self.retry_delay)
            if self._is_stale(generation):
                log.info("Game reset during retry delay; abandoning generation %d", generation)
                return None

    def _finish_turn(self) -> None:
        self.attempt_count = 0
        self.rejected_moves = []
        self.current_attempt = None
        self._transition(AcquisitionState.IDLE)
