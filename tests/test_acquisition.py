import asyncio
import unittest
from unittest.mock import AsyncMock

from narachess.acquisition import AcquisitionState, MoveAcquisitionLoop
from narachess.errors import OracleResponseError, OracleTimeout, OracleUnavailable
from narachess.protocol import ChatMessage, MoveSuggestion
from narachess.session import GameSession, TurnOwner

from scripted_oracle import ScriptedOracle

S = AcquisitionState


class AcquisitionLoopTests(unittest.IsolatedAsyncioTestCase):
    def make_loop(self, oracle, session=None, **kwargs):
        self.session = session or GameSession()
        self.sleep = AsyncMock()
        loop = MoveAcquisitionLoop(
            oracle,
            get_session=lambda: self.session,
            max_retries=kwargs.pop("max_retries", 3),
            retry_delay=kwargs.pop("retry_delay", 1.0),
            sleep=self.sleep,
            **kwargs,
        )
        self.transitions = [loop.state]
        loop.add_listener(lambda old, new: self.transitions.append(new))
        return loop

    async def test_idle_until_human_has_moved(self):
        loop = self.make_loop(ScriptedOracle())
        self.assertIsNone(loop.start())
        self.assertEqual(loop.state, S.IDLE)

    async def test_first_answer_legal(self):
        oracle = ScriptedOracle(["e5"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        fen_after_human = self.session.fen
        loop.start()
        result = await loop.wait()

        self.assertEqual(result.san, "e5")
        self.assertEqual(self.session.move_history, ["e4", "e5"])
        self.assertEqual(self.session.turn_owner, TurnOwner.HUMAN)
        self.assertEqual(loop.state, S.IDLE)
        self.assertEqual(self.transitions, [S.IDLE, S.AWAITING_RESPONSE, S.VALIDATING_MOVE, S.IDLE])
        req = oracle.move_requests[0]
        self.assertEqual(req.move_history, ["e4"])
        self.assertEqual(req.fen, fen_after_human)
        self.assertIsNone(req.wrong_move)
        self.sleep.assert_not_awaited()

    async def test_illegal_then_legal(self):
        oracle = ScriptedOracle(["Qh5", "Nf6"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        fen_after_human = self.session.fen
        loop.start()
        await loop.wait()

        self.assertEqual(self.transitions, [
            S.IDLE, S.AWAITING_RESPONSE, S.VALIDATING_MOVE, S.RETRYING,
            S.AWAITING_RESPONSE, S.VALIDATING_MOVE, S.IDLE,
        ])
        self.assertEqual(self.session.move_history, ["e4", "Nf6"])
        self.assertEqual(oracle.move_requests[0].fen, fen_after_human)
        self.assertEqual(oracle.move_requests[1].wrong_move, "Qh5")
        self.assertEqual(oracle.move_requests[1].wrong_moves, ["Qh5"])
        self.sleep.assert_awaited_once_with(1.0)
        self.assertIsNone(self.session.error_message)
        self.assertEqual(loop.attempt_count, 0)

    async def test_exhausts_after_max_retries(self):
        oracle = ScriptedOracle([OracleUnavailable("down"), OracleTimeout("slow"), OracleUnavailable("down")])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("d2", "d4")
        loop.start()
        self.assertIsNone(await loop.wait())

        self.assertEqual(loop.state, S.FAILED)
        self.assertEqual(len(oracle.move_requests), 3)
        self.assertEqual(self.session.move_history, ["d4"])
        self.assertEqual(self.session.turn_owner, TurnOwner.ORACLE)
        self.assertIn("Retry", self.session.error_message)
        self.assertEqual(self.sleep.await_count, 2)
        # No further automatic requests.
        self.assertIsNone(loop.start())
        await asyncio.sleep(0)
        self.assertEqual(len(oracle.move_requests), 3)

    async def test_manual_retry_from_failed(self):
        oracle = ScriptedOracle(["Ke2", "Ke2", "Ke2", "d5"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("d2", "d4")
        loop.start()
        await loop.wait()
        self.assertEqual(loop.state, S.FAILED)
        self.assertEqual(oracle.move_requests[2].wrong_moves, ["Ke2"])

        task = loop.retry()
        self.assertIsNotNone(task)
        self.assertEqual(loop.state, S.AWAITING_RESPONSE)
        self.assertEqual(loop.attempt_count, 0)
        result = await loop.wait()
        self.assertEqual(result.san, "d5")
        self.assertEqual(loop.state, S.IDLE)
        self.assertEqual(self.session.move_history, ["d4", "d5"])

    async def test_retry_only_from_failed(self):
        loop = self.make_loop(ScriptedOracle())
        self.assertIsNone(loop.retry())
        self.assertEqual(loop.state, S.IDLE)

    async def test_distinct_error_messages(self):
        messages = []
        oracle = ScriptedOracle(["Ke7", OracleTimeout("slow"), "e5"])
        loop = self.make_loop(oracle)
        loop.add_listener(lambda old, new: messages.append(self.session.error_message) if new == S.RETRYING else None)
        self.session.apply_human_move("e2", "e4")
        loop.start()
        await loop.wait()
        self.assertIn("illegal move (Ke7)", messages[0])
        self.assertIn("unreachable or timed out", messages[1])

    async def test_bad_response_is_retried(self):
        oracle = ScriptedOracle([OracleResponseError("empty move"), "c5"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        loop.start()
        result = await loop.wait()
        self.assertEqual(result.san, "c5")
        self.assertEqual([a.outcome for a in loop.attempts_log], ["bad_response", "accepted"])

    async def test_unexpected_oracle_error_is_retried(self):
        oracle = ScriptedOracle([ConnectionResetError("boom"), "e5"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        loop.start()
        with self.assertLogs("acquisition", level="ERROR"):
            result = await loop.wait()
        self.assertEqual(result.san, "e5")
        self.assertEqual(loop.state, S.IDLE)
        self.assertEqual([a.outcome for a in loop.attempts_log], ["unreachable", "accepted"])
        self.assertEqual(self.transitions, [S.IDLE, S.AWAITING_RESPONSE, S.RETRYING, S.AWAITING_RESPONSE, S.VALIDATING_MOVE, S.IDLE])

    async def test_unexpected_errors_exhaust_to_failed_and_allow_retry(self):
        oracle = ScriptedOracle([RuntimeError("x"), KeyError("y"), UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad"), "d5"])
        loop = self.make_loop(oracle)
        self.session.apply_human_move("d2", "d4")
        loop.start()
        with self.assertLogs("acquisition", level="ERROR"):
            self.assertIsNone(await loop.wait())
        self.assertEqual(loop.state, S.FAILED)
        self.assertFalse(loop.is_busy())
        self.assertIn("Retry", self.session.error_message)

        self.assertIsNotNone(loop.retry())
        result = await loop.wait()
        self.assertEqual(result.san, "d5")
        self.assertEqual(self.session.move_history, ["d4", "d5"])

    async def test_arrows_and_comment_applied_on_success(self):
        suggestion = MoveSuggestion(comment="Solid.", move="e5", arrows=[("g8", "f6")], title="Open Game")
        loop = self.make_loop(ScriptedOracle([suggestion]))
        self.session.apply_human_move("e2", "e4")
        loop.start()
        await loop.wait()
        self.assertEqual(self.session.annotations, (("g8", "f6"),))
        self.assertEqual(loop.last_suggestion.title, "Open Game")

    async def test_no_duplicate_request_while_awaiting(self):
        oracle = ScriptedOracle(["e5"])
        oracle.gate = asyncio.Event()
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        self.assertIsNotNone(loop.start())
        self.assertIsNone(loop.start())
        await asyncio.sleep(0)
        self.assertEqual(loop.state, S.AWAITING_RESPONSE)
        self.assertEqual(len(oracle.move_requests), 1)
        oracle.gate.set()
        await loop.wait()
        self.assertEqual(self.session.move_history, ["e4", "e5"])

    async def test_stale_response_is_discarded(self):
        oracle = ScriptedOracle(["e5"])
        oracle.gate = asyncio.Event()
        loop = self.make_loop(oracle)
        self.session.apply_human_move("e2", "e4")
        loop.start()
        await asyncio.sleep(0)

        old_task = loop._task
        self.session = GameSession(generation=1)
        loop.reset()
        oracle.gate.set()
        self.assertIsNone(await old_task)

        self.assertEqual(self.session.move_history, [])
        self.assertEqual(loop.state, S.IDLE)
        self.assertEqual(loop.attempts_log[-1].outcome, "stale")

    async def test_chat_window_is_sent(self):
        window = [ChatMessage(content="why e5?", role="user")]
        oracle = ScriptedOracle(["e5"])
        loop = self.make_loop(oracle, get_chat_window=lambda: window)
        self.session.apply_human_move("e2", "e4")
        loop.start()
        await loop.wait()
        self.assertEqual(oracle.move_requests[0].chat_history, window)

    async def test_coach_opens_when_pupil_plays_black(self):
        oracle = ScriptedOracle(["e4"])
        loop = self.make_loop(oracle, session=GameSession(human_side="black"))
        loop.start()
        await loop.wait()
        self.assertEqual(self.session.move_history, ["e4"])
        self.assertEqual(self.session.turn_owner, TurnOwner.HUMAN)


if __name__ == "__main__":
    unittest.main()
