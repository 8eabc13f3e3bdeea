import unittest

import chess

from narachess.move_validator import clean_san_token, move_from_squares, parse_human_input, parse_san_move


class MoveValidatorTests(unittest.TestCase):
    def test_clean_san_token(self):
        self.assertEqual(clean_san_token("  Nf3 "), "Nf3")
        self.assertEqual(clean_san_token("1. e4"), "e4")
        self.assertEqual(clean_san_token("12... Qxd5!?"), "Qxd5")
        self.assertEqual(clean_san_token("0-0"), "O-O")
        self.assertEqual(clean_san_token("0-0-0"), "O-O-O")
        self.assertEqual(clean_san_token(""), "")

    def test_parse_san_move_zero_castling(self):
        board = chess.Board("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        parsed = parse_san_move("0-0", board)
        self.assertTrue(parsed["ok"])
        self.assertEqual(parsed["san"], "O-O")
        self.assertEqual(parsed["uci"], "e1g1")

    def test_parse_san_move_rejections(self):
        board = chess.Board()
        self.assertEqual(parse_san_move("", board)["reason"], "empty_move")
        self.assertEqual(parse_san_move("Ke2", board)["reason"], "illegal_move")
        self.assertEqual(parse_san_move("Zz9", board)["reason"], "illegal_move")

    def test_move_from_squares(self):
        board = chess.Board()
        parsed = move_from_squares(board, "G1", "f3")
        self.assertTrue(parsed["ok"])
        self.assertEqual(parsed["san"], "Nf3")
        self.assertEqual(move_from_squares(board, "g1", "g3")["reason"], "illegal_move")
        self.assertEqual(move_from_squares(board, "i1", "g3")["reason"], "bad_square")

    def test_parse_human_input_accepts_uci_and_san(self):
        board = chess.Board()
        self.assertEqual(parse_human_input("e2e4", board)["san"], "e4")
        self.assertEqual(parse_human_input("Nc3", board)["uci"], "b1c3")
        self.assertFalse(parse_human_input("e2e5", board)["ok"])


if __name__ == "__main__":
    unittest.main()
