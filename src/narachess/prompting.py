"""
Prompt builders for the coach's move and chat requests.

Callers get chat-style message lists (system + user). Templates use {PLACEHOLDER} tokens that
are substituted per request; unknown tokens are left intact.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .errors import ProtocolError
from .protocol import ROLE_MODEL, ChatMessage, ChatRequest, MoveRequest

COACH_SYSTEM = (
    "You are a strong chess player, commentator and coach playing an educational game against your pupil. "
    "Refer to yourself as \"I\" and to the pupil as \"you\"; never use \"we\", \"us\" or \"our\". "
    "Always answer with a single JSON object and nothing else."
)

MOVE_TEMPLATE = """You are playing as {COACH_SIDE}.
Your pupil is playing as {PUPIL_SIDE}.
Your pupil just moved; it is your turn.

1. Choose the best legal move for {COACH_SIDE}.
2. Evaluate the position for both sides from your pupil's point of view.
3. Explain your move and one concrete idea the pupil can learn from (pins, open files, weak squares, king safety).

Only add arrows when the position calls for deeper analysis, and only for future moves, threats or plans
you describe in the comment. For textbook positions and the early opening return no arrows.

FEN: {FEN}
Move History: {SAN_HISTORY}
{RECENT_CHAT}
Respond with JSON in exactly this shape:
{
  "comment": "1-3 sentences of coaching for your pupil",
  "move": "your move in SAN, e.g. Nf3, O-O, e8=Q+",
  "arrows": [["e2", "e4"]],
  "title": "short name for the game so far, e.g. Italian Game"
}"""

WRONG_MOVE_TEMPLATE = "\n\nHere, {MOVE} is an INVALID MOVE. Do not use this in your response."
WRONG_MOVES_TEMPLATE = "\nMoves already rejected as illegal in this position: {MOVES}. Pick a different legal move."

CHAT_TEMPLATE = """You are playing as {COACH_SIDE}.
Your pupil is playing as {PUPIL_SIDE}.

Continue the conversation naturally as the coach: answer questions, give insight on the game, or just chat.
Speak in a friendly, direct tone and use concrete chess reasoning.
Optionally include up to 3 arrows that illustrate what you say. Never draw arrows for moves already played.

FEN: {FEN}
Move History: {SAN_HISTORY}
Chat History (most recent messages last):
{CHAT_HISTORY}
Respond with JSON in exactly this shape:
{
  "response": "your reply to the pupil",
  "arrows": [["g1", "f3"]]
}"""


@dataclass
class PromptConfig:
    """Templates used to shape coach requests."""

    system_instructions: str = COACH_SYSTEM
    move_template: str = MOVE_TEMPLATE
    chat_template: str = CHAT_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def infer_sides_from_fen(fen: str) -> Tuple[str, str]:
    """Return (coach_side, pupil_side): the side to move in the FEN is the coach."""
    parts = (fen or "").split(" ")
    if len(parts) < 2:
        raise ProtocolError("invalid FEN: not enough parts")
    if parts[1] == "w":
        return "White", "Black"
    if parts[1] == "b":
        return "Black", "White"
    raise ProtocolError(f"invalid FEN turn field: {parts[1]}")


def sides_for_player(player_side: str) -> Tuple[str, str]:
    """Return (coach_side, pupil_side) for the pupil's declared color."""
    if str(player_side).lower() == "white":
        return "Black", "White"
    return "White", "Black"


def format_chat_history(messages: Sequence[ChatMessage]) -> str:
    lines = []
    for msg in messages:
        sender = "Coach" if msg.role == ROLE_MODEL else "Pupil"
        lines.append(f"{sender}: {msg.content}")
    return "\n".join(lines)


def build_move_messages(req: MoveRequest, cfg: PromptConfig | None = None) -> List[Dict[str, str]]:
    cfg = cfg or PromptConfig()
    coach_side, pupil_side = infer_sides_from_fen(req.fen)
    recent_chat = ""
    if req.chat_history:
        recent_chat = "Recent chat with your pupil:\n" + format_chat_history(req.chat_history) + "\n"
    user = render_custom_prompt(cfg.move_template, {
        "COACH_SIDE": coach_side,
        "PUPIL_SIDE": pupil_side,
        "FEN": req.fen,
        "SAN_HISTORY": " ".join(req.move_history) or "(none)",
        "RECENT_CHAT": recent_chat,
    })
    if req.wrong_move:
        user += render_custom_prompt(WRONG_MOVE_TEMPLATE, {"MOVE": req.wrong_move})
    earlier = [m for m in req.wrong_moves if m != req.wrong_move]
    if earlier:
        user += render_custom_prompt(WRONG_MOVES_TEMPLATE, {"MOVES": ", ".join(req.wrong_moves)})
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": user},
    ]


def build_chat_messages(req: ChatRequest, cfg: PromptConfig | None = None) -> List[Dict[str, str]]:
    cfg = cfg or PromptConfig()
    coach_side, pupil_side = sides_for_player(req.player_side)
    user = render_custom_prompt(cfg.chat_template, {
        "COACH_SIDE": coach_side,
        "PUPIL_SIDE": pupil_side,
        "FEN": req.game_state.fen,
        "SAN_HISTORY": " ".join(req.game_state.move_history) or "(none)",
        "CHAT_HISTORY": format_chat_history(req.message_history) or "(no messages yet)",
    })
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": user},
    ]
