"""
GameSession: the single source of truth for one coached game.

- Owns a python-chess Board (the Position), the SAN move history and the arrows
  currently drawn on the board.
- Exposes the only two transitions allowed to change the position:
  apply_human_move() for UI input and apply_oracle_move() for coach suggestions.
- Both return a MoveResult and never raise; the board is replaced, not mutated,
  on every accepted move.
- Also emits PGN and a render snapshot for the UI layer.
"""
from __future__ import annotations

import datetime
import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import chess
import chess.pgn

from .move_validator import ParsedMove, move_from_squares, parse_san_move

log = logging.getLogger("session")

Arrow = tuple[str, str]


class TurnOwner(str, enum.Enum):
    HUMAN = "human"
    ORACLE = "oracle"


@dataclass(frozen=True)
class MoveResult:
    ok: bool
    san: Optional[str] = None
    uci: Optional[str] = None
    reason: Optional[str] = None
    raw: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def from_parsed(cls, parsed: ParsedMove) -> "MoveResult":
        return cls(
            ok=bool(parsed.get("ok")),
            san=parsed.get("san"),
            uci=parsed.get("uci"),
            reason=parsed.get("reason"),
            raw=parsed.get("raw", ""),
        )


class GameSession:
    """Canonical game state shared by the controller, the move loop and the chat."""

    def __init__(self, human_side: str = "white", generation: int = 0, starting_fen: str | None = None):
        human_side = str(human_side).lower()
        if human_side not in ("white", "black"):
            raise ValueError(f"human_side must be 'white' or 'black', got {human_side!r}")
        self.human_side = human_side
        self.generation = generation
        self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()
        self.move_history: list[str] = []
        self.annotations: tuple[Arrow, ...] = ()
        self.error_message: Optional[str] = None

    # ---------------- Derived state -----------------
    @property
    def fen(self) -> str:
        return self.board.fen()

    @property
    def oracle_side(self) -> str:
        return "black" if self.human_side == "white" else "white"

    @property
    def side_to_move(self) -> str:
        return "white" if self.board.turn == chess.WHITE else "black"

    @property
    def turn_owner(self) -> TurnOwner:
        return TurnOwner.HUMAN if self.side_to_move == self.human_side else TurnOwner.ORACLE

    def is_game_over(self) -> bool:
        return self.board.is_game_over()

    def status(self) -> str:
        if self.board.is_game_over():
            return self.board.result()
        return "*"

    # ---------------- Move Application -----------------
    def apply_human_move(self, from_square: str, to_square: str, promotion: Optional[str] = None) -> MoveResult:
        raw = f"{from_square}{to_square}{promotion or ''}"
        if self.is_game_over():
            return MoveResult(ok=False, reason="game_over", raw=raw)
        if self.turn_owner != TurnOwner.HUMAN:
            return MoveResult(ok=False, reason="not_human_turn", raw=raw)
        result = MoveResult.from_parsed(move_from_squares(self.board, from_square, to_square, promotion))
        if not result:
            log.debug("Rejected human move %s: %s", raw, result.reason)
            return result
        self._push(result)
        self.annotations = ()
        self.error_message = None
        return result

    def apply_oracle_move(self, san: str) -> MoveResult:
        raw = san if isinstance(san, str) else ""
        if self.is_game_over():
            return MoveResult(ok=False, reason="game_over", raw=raw)
        if self.turn_owner != TurnOwner.ORACLE:
            return MoveResult(ok=False, reason="not_oracle_turn", raw=raw)
        result = MoveResult.from_parsed(parse_san_move(raw, self.board))
        if not result:
            log.info("Rejected coach move %r in %s: %s", raw, self.fen, result.reason)
            return result
        self._push(result)
        return result

    def _push(self, result: MoveResult) -> None:
        board = self.board.copy()
        board.push_uci(result.uci)
        self.board = board
        self.move_history.append(result.san)

    # ---------------- Annotations / messages -----------------
    def set_annotations(self, arrows: Iterable[Arrow]) -> None:
        self.annotations = tuple(arrows)

    def set_error(self, message: Optional[str]) -> None:
        self.error_message = message

    # ---------------- PGN / Rendering -----------------
    def formatted_history(self) -> str:
        parts: list[str] = []
        for idx, san in enumerate(self.move_history):
            if idx % 2 == 0:
                parts.append(f"{idx // 2 + 1}. {san}")
            else:
                parts.append(san)
        return " ".join(parts)

    def pgn(self) -> str:
        game = chess.pgn.Game.from_board(self.board)
        game.headers["Event"] = "Nara Chess coaching game"
        game.headers["Date"] = datetime.date.today().strftime("%Y.%m.%d")
        game.headers["White"] = "Pupil" if self.human_side == "white" else "Coach"
        game.headers["Black"] = "Coach" if self.human_side == "white" else "Pupil"
        game.headers["Result"] = self.status()
        exporter = chess.pgn.StringExporter(headers=True, variations=False, comments=False)
        return game.accept(exporter)

    def snapshot(self) -> dict:
        return {
            "generation": self.generation,
            "fen": self.fen,
            "move_history": list(self.move_history),
            "turn_owner": self.turn_owner.value,
            "human_side": self.human_side,
            "annotations": [list(a) for a in self.annotations],
            "error_message": self.error_message,
            "status": self.status(),
        }
