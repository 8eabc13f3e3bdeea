"""
Minimal Flask API that proxies board state and chat to the coach LLM.

Endpoints:
- POST /submitMove -> ask the coach for its next move (+ comment, arrows, title)
- POST /chat       -> continue the conversation with the coach (+ optional arrows)
- GET  /health     -> liveness probe

Each request carries its complete game state; the server keeps no per-game state.
Run with: python server.py  (port from NARA_SERVER_PORT, default 42069)
"""
from __future__ import annotations

import json
import logging

from flask import Flask, abort, jsonify, request

from narachess import llm_client
from narachess.config import SETTINGS
from narachess.errors import ConfigurationError, OracleError, OracleResponseError, OracleTimeout, ProtocolError
from narachess.prompting import infer_sides_from_fen
from narachess.protocol import ChatRequest, MoveRequest

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("server")

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = SETTINGS.max_body_bytes


def _error(message: str, status: int, detail: str | None = None):
    body = {"error": message}
    if detail:
        body["detail"] = detail
    return jsonify(body), status


def _json_body():
    """Decode the request body; raises ProtocolError on anything that is not JSON."""
    if request.content_length and request.content_length > SETTINGS.max_body_bytes:
        abort(413)
    raw = request.get_data(cache=False)
    try:
        return json.loads(raw or b"")
    except ValueError as exc:
        raise ProtocolError("body is not valid JSON") from exc


def _llm_failure(exc: Exception, what: str):
    """Translate an LLM-side failure into the HTTP status the client sees."""
    if isinstance(exc, ConfigurationError):
        log.error("Server configuration error: %s", exc)
        return _error("Server configuration error", 500)
    if isinstance(exc, OracleTimeout):
        log.warning("%s timed out: %s", what, exc)
        return _error("Analysis request timed out", 504)
    if isinstance(exc, OracleResponseError):
        log.warning("%s returned an unusable answer: %s", what, exc)
        return _error(f"Failed to parse {what}", 500, str(exc))
    log.error("%s failed: %s", what, exc)
    return _error(f"Failed to get {what} from service", 500)


@app.route("/submitMove", methods=["POST"])
def submit_move():
    try:
        req = MoveRequest.from_dict(_json_body())
    except ProtocolError as exc:
        log.info("Rejected move request: %s", exc)
        return _error("Invalid JSON", 400, str(exc))
    if not req.move_history and not req.fen:
        return _error("Request must contain either move_history or fen", 400)
    if not req.fen:
        return _error("Request must contain the current board state FEN (fen field)", 400)
    try:
        infer_sides_from_fen(req.fen)
    except ProtocolError as exc:
        log.info("Error parsing FEN for side inference: %s", exc)
        return _error("Invalid FEN", 400, str(exc))

    try:
        suggestion = llm_client.suggest_move(req)
    except (ConfigurationError, OracleError) as exc:
        return _llm_failure(exc, "move suggestion")
    return jsonify(suggestion.to_dict())


@app.route("/chat", methods=["POST"])
def chat():
    try:
        req = ChatRequest.from_dict(_json_body())
    except ProtocolError as exc:
        log.info("Rejected chat request: %s", exc)
        return _error("Invalid JSON", 400, str(exc))
    if not req.game_state.fen:
        return _error("Request must contain the current board state FEN (fen field)", 400)
    if req.player_side not in ("white", "black"):
        return _error("player_side must be 'white' or 'black'", 400)

    try:
        reply = llm_client.chat_reply(req)
    except (ConfigurationError, OracleError) as exc:
        return _llm_failure(exc, "chat reply")
    log.info("Successfully processed chat request")
    return jsonify(reply.to_dict())


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "model": SETTINGS.model})


@app.errorhandler(413)
def body_too_large(_exc):
    return _error("Request body too large", 413)


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = SETTINGS.client_origin
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


if __name__ == "__main__":
    log.info("Serving at 127.0.0.1:%d", SETTINGS.server_port)
    app.run(host="127.0.0.1", port=SETTINGS.server_port)
