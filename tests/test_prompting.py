import unittest

from narachess.errors import ProtocolError
from narachess.prompting import (
    build_chat_messages,
    build_move_messages,
    format_chat_history,
    infer_sides_from_fen,
    render_custom_prompt,
)
from narachess.protocol import ChatMessage, ChatRequest, GameState, MoveRequest

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


class PromptingTests(unittest.TestCase):
    def test_infer_sides_from_fen(self):
        self.assertEqual(infer_sides_from_fen(AFTER_E4), ("Black", "White"))
        self.assertEqual(infer_sides_from_fen(AFTER_E4.replace(" b ", " w ")), ("White", "Black"))
        for bad in ("", "rnbqkbnr/pppppppp", "8/8/8/8/8/8/8/8 x - - 0 1"):
            with self.assertRaises(ProtocolError):
                infer_sides_from_fen(bad)

    def test_render_leaves_unknown_tokens(self):
        self.assertEqual(render_custom_prompt("{A} and {B}", {"A": "x"}), "x and {B}")

    def test_move_prompt_contents(self):
        msgs = build_move_messages(MoveRequest(move_history=["e4"], fen=AFTER_E4))
        self.assertEqual([m["role"] for m in msgs], ["system", "user"])
        user = msgs[1]["content"]
        self.assertIn("You are playing as Black.", user)
        self.assertIn(f"FEN: {AFTER_E4}", user)
        self.assertIn("Move History: e4", user)
        self.assertNotIn("INVALID MOVE", user)

    def test_move_prompt_lists_rejected_moves(self):
        req = MoveRequest(move_history=["e4"], fen=AFTER_E4, wrong_move="Qh5", wrong_moves=["Ke7", "Qh5"])
        user = build_move_messages(req)[1]["content"]
        self.assertIn("Qh5 is an INVALID MOVE", user)
        self.assertIn("Ke7, Qh5", user)

    def test_chat_prompt_uses_player_side_and_labels(self):
        req = ChatRequest(
            message_history=[ChatMessage("Is e4 good?", "user"), ChatMessage("Yes.", "model")],
            game_state=GameState(move_history=["e4"], fen=AFTER_E4),
            player_side="white",
        )
        user = build_chat_messages(req)[1]["content"]
        self.assertIn("Your pupil is playing as White.", user)
        self.assertIn("Pupil: Is e4 good?\nCoach: Yes.", user)

    def test_format_chat_history_empty(self):
        self.assertEqual(format_chat_history([]), "")


if __name__ == "__main__":
    unittest.main()
