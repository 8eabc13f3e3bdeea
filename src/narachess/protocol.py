"""
Wire bodies exchanged between the client and the coach server.

Move suggestion:  POST /submitMove  {move_history, fen, wrong_move?, wrong_moves?, chat_history?}
                  -> {comment, move, arrows?, title?}
Chat:             POST /chat        {message_history, game_state: {move_history, fen}, player_side}
                  -> {response, arrows?}

Requests are parsed strictly (unknown fields rejected) on the server; responses are parsed
leniently on the client but must carry their required field.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import OracleResponseError, ProtocolError
from .move_validator import is_square

MAX_ARROWS = 3
ROLE_USER = "user"
ROLE_MODEL = "model"


def normalize_arrows(raw: Any) -> List[tuple[str, str]]:
    """Keep well-formed [from, to] square pairs, at most MAX_ARROWS of them."""
    arrows: List[tuple[str, str]] = []
    if not isinstance(raw, list):
        return arrows
    for item in raw:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            continue
        src, dst = (str(s).strip().lower() for s in item)
        if is_square(src) and is_square(dst) and src != dst:
            arrows.append((src, dst))
        if len(arrows) >= MAX_ARROWS:
            break
    return arrows


def _check_keys(data: Any, allowed: set[str], what: str) -> dict:
    if not isinstance(data, dict):
        raise ProtocolError(f"{what} must be a JSON object")
    unknown = set(data) - allowed
    if unknown:
        raise ProtocolError(f"{what} has unknown fields: {', '.join(sorted(unknown))}")
    return data


def _str_list(value: Any, what: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ProtocolError(f"{what} must be a list of strings")
    return list(value)


@dataclass(frozen=True)
class ChatMessage:
    content: str
    role: str

    def to_dict(self) -> Dict[str, str]:
        return {"content": self.content, "role": self.role}

    @classmethod
    def from_dict(cls, data: Any) -> "ChatMessage":
        data = _check_keys(data, {"content", "role"}, "chat message")
        content = data.get("content", "")
        role = data.get("role", "")
        if not isinstance(content, str) or not isinstance(role, str):
            raise ProtocolError("chat message content and role must be strings")
        return cls(content=content, role=role)


def _messages(value: Any, what: str) -> List[ChatMessage]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProtocolError(f"{what} must be a list")
    return [ChatMessage.from_dict(m) for m in value]


@dataclass(frozen=True)
class MoveRequest:
    move_history: List[str]
    fen: str
    wrong_move: Optional[str] = None
    wrong_moves: List[str] = field(default_factory=list)
    chat_history: List[ChatMessage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"move_history": list(self.move_history), "fen": self.fen}
        if self.wrong_move:
            body["wrong_move"] = self.wrong_move
        if self.wrong_moves:
            body["wrong_moves"] = list(self.wrong_moves)
        if self.chat_history:
            body["chat_history"] = [m.to_dict() for m in self.chat_history]
        return body

    @classmethod
    def from_dict(cls, data: Any) -> "MoveRequest":
        data = _check_keys(data, {"move_history", "fen", "wrong_move", "wrong_moves", "chat_history"}, "move request")
        fen = data.get("fen") or ""
        wrong_move = data.get("wrong_move") or None
        if not isinstance(fen, str) or (wrong_move is not None and not isinstance(wrong_move, str)):
            raise ProtocolError("fen and wrong_move must be strings")
        return cls(
            move_history=_str_list(data.get("move_history"), "move_history"),
            fen=fen,
            wrong_move=wrong_move,
            wrong_moves=_str_list(data.get("wrong_moves"), "wrong_moves"),
            chat_history=_messages(data.get("chat_history"), "chat_history"),
        )


@dataclass(frozen=True)
class MoveSuggestion:
    comment: str
    move: str
    arrows: List[tuple[str, str]] = field(default_factory=list)
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comment": self.comment,
            "move": self.move,
            "arrows": [list(a) for a in self.arrows],
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "MoveSuggestion":
        if not isinstance(data, dict):
            raise OracleResponseError("move suggestion must be a JSON object")
        move = data.get("move")
        if not isinstance(move, str) or not move.strip():
            raise OracleResponseError("move suggestion has an empty 'move' field")
        comment = data.get("comment")
        title = data.get("title")
        return cls(
            comment=comment if isinstance(comment, str) else "",
            move=move.strip(),
            arrows=normalize_arrows(data.get("arrows")),
            title=title if isinstance(title, str) else "",
        )


@dataclass(frozen=True)
class GameState:
    move_history: List[str]
    fen: str

    def to_dict(self) -> Dict[str, Any]:
        return {"move_history": list(self.move_history), "fen": self.fen}

    @classmethod
    def from_dict(cls, data: Any) -> "GameState":
        # game_state shares the move request's shape.
        req = MoveRequest.from_dict(data if data is not None else {})
        return cls(move_history=req.move_history, fen=req.fen)


@dataclass(frozen=True)
class ChatRequest:
    message_history: List[ChatMessage]
    game_state: GameState
    player_side: str = "white"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_history": [m.to_dict() for m in self.message_history],
            "game_state": self.game_state.to_dict(),
            "player_side": self.player_side,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ChatRequest":
        data = _check_keys(data, {"message_history", "game_state", "player_side"}, "chat request")
        side = data.get("player_side") or "white"
        if not isinstance(side, str):
            raise ProtocolError("player_side must be a string")
        return cls(
            message_history=_messages(data.get("message_history"), "message_history"),
            game_state=GameState.from_dict(data.get("game_state")),
            player_side=side.lower(),
        )


@dataclass(frozen=True)
class ChatReply:
    response: str
    arrows: List[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"response": self.response, "arrows": [list(a) for a in self.arrows]}

    @classmethod
    def from_dict(cls, data: Any) -> "ChatReply":
        if not isinstance(data, dict):
            raise OracleResponseError("chat reply must be a JSON object")
        response = data.get("response")
        if not isinstance(response, str) or not response.strip():
            raise OracleResponseError("chat reply has an empty 'response' field")
        return cls(response=response.strip(), arrows=normalize_arrows(data.get("arrows")))
