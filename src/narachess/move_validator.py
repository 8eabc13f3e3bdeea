"""
Move parsing/validation helpers for human input and coach suggestions.

- Coach moves arrive as SAN (e4, Nf3, O-O, e8=Q+). Zero-style castling, move
  numbers and trailing annotation glyphs are tolerated.
- Human moves arrive as (from, to, promotion) square triples from the board UI;
  a pawn dropped on the last rank without a piece choice becomes a queen.
"""
from __future__ import annotations

import re
from typing import Optional, TypedDict

import chess

CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "o-o": "O-O", "o-o-o": "O-O-O"}
MOVE_NUMBER_RE = re.compile(r"^\d+\.(\.\.)?\s*")
SQUARE_RE = re.compile(r"^[a-h][1-8]$")
PROMOTION_PIECES = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}


class ParsedMove(TypedDict, total=False):
    ok: bool
    uci: str
    san: str
    reason: str
    raw: str


def clean_san_token(raw: str) -> str:
    """Strip whitespace, a leading move number and trailing !/? glyphs from a SAN token."""
    token = (raw or "").strip()
    token = MOVE_NUMBER_RE.sub("", token).strip()
    token = token.rstrip("!?")
    return CASTLE_ZERO.get(token.lower(), token)


def parse_san_move(raw: str, board: chess.Board) -> ParsedMove:
    """Resolve a SAN string against the board. Never raises."""
    token = clean_san_token(raw)
    if not token:
        return {"ok": False, "reason": "empty_move", "raw": raw or ""}
    try:
        mv = board.parse_san(token)
    except ValueError:
        return {"ok": False, "reason": "illegal_move", "raw": raw}
    if mv not in board.legal_moves:
        return {"ok": False, "reason": "illegal_move", "raw": raw}
    return {"ok": True, "uci": mv.uci(), "san": board.san(mv), "raw": raw}


def is_square(name: str) -> bool:
    return bool(SQUARE_RE.match(name or ""))


def move_from_squares(board: chess.Board, from_square: str, to_square: str, promotion: Optional[str] = None) -> ParsedMove:
    """Build and check a move from UI square names. Never raises."""
    raw = f"{from_square}{to_square}{promotion or ''}"
    from_square = (from_square or "").strip().lower()
    to_square = (to_square or "").strip().lower()
    if not (is_square(from_square) and is_square(to_square)):
        return {"ok": False, "reason": "bad_square", "raw": raw}
    src = chess.parse_square(from_square)
    dst = chess.parse_square(to_square)

    promo_type = None
    if promotion:
        promo_type = PROMOTION_PIECES.get(promotion.strip().lower()[:1])
        if promo_type is None:
            return {"ok": False, "reason": "bad_promotion", "raw": raw}
    else:
        piece = board.piece_at(src)
        last_rank = 7 if board.turn == chess.WHITE else 0
        if piece and piece.piece_type == chess.PAWN and chess.square_rank(dst) == last_rank:
            promo_type = chess.QUEEN

    mv = chess.Move(src, dst, promotion=promo_type)
    if mv not in board.legal_moves:
        return {"ok": False, "reason": "illegal_move", "raw": raw}
    return {"ok": True, "uci": mv.uci(), "san": board.san(mv), "raw": raw}


def parse_human_input(raw: str, board: chess.Board) -> ParsedMove:
    """Accept UCI (e2e4, e7e8q) or SAN from a text prompt, as the terminal client does."""
    raw = (raw or "").strip()
    if len(raw) in (4, 5) and is_square(raw[:2]) and is_square(raw[2:4]):
        return move_from_squares(board, raw[:2], raw[2:4], raw[4:] or None)
    return parse_san_move(raw, board)


__all__ = [
    "ParsedMove",
    "clean_san_token",
    "parse_san_move",
    "move_from_squares",
    "parse_human_input",
    "is_square",
]
