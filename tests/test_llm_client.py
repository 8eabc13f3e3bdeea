import dataclasses
import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import openai

from narachess import llm_client
from narachess.errors import ConfigurationError, OracleResponseError, OracleTimeout, OracleUnavailable
from narachess.protocol import ChatMessage, ChatRequest, GameState, MoveRequest

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class LLMClientTests(unittest.TestCase):
    def setUp(self):
        self.fake = MagicMock()
        patcher = patch("narachess.llm_client._client", return_value=self.fake)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_suggest_move_parses_json(self):
        self.fake.chat.completions.create.return_value = completion(json.dumps({
            "comment": "Classical reply.", "move": "e5", "arrows": [["g8", "f6"]], "title": "Open Game",
        }))
        s = llm_client.suggest_move(MoveRequest(move_history=["e4"], fen=AFTER_E4))
        self.assertEqual(s.move, "e5")
        self.assertEqual(s.arrows, [("g8", "f6")])
        kwargs = self.fake.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertIn(AFTER_E4, kwargs["messages"][1]["content"])

    def test_code_fenced_json_is_accepted(self):
        self.fake.chat.completions.create.return_value = completion('```json\n{"response": "Nice!"}\n```')
        reply = llm_client.chat_reply(ChatRequest(
            message_history=[ChatMessage("hi", "user")],
            game_state=GameState(move_history=[], fen=AFTER_E4),
            player_side="white",
        ))
        self.assertEqual(reply.response, "Nice!")

    def test_empty_move_is_response_error(self):
        self.fake.chat.completions.create.return_value = completion('{"comment": "hmm", "move": ""}')
        with self.assertRaises(OracleResponseError):
            llm_client.suggest_move(MoveRequest(move_history=["e4"], fen=AFTER_E4))

    def test_invalid_json_is_response_error(self):
        for content in ("I think e5", "", "[1, 2]"):
            self.fake.chat.completions.create.return_value = completion(content)
            with self.assertRaises(OracleResponseError):
                llm_client.request_json([{"role": "user", "content": "x"}])

    def test_timeout_and_api_errors_are_mapped(self):
        req = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
        self.fake.chat.completions.create.side_effect = openai.APITimeoutError(request=req)
        with self.assertRaises(OracleTimeout):
            llm_client.request_json([{"role": "user", "content": "x"}])
        self.fake.chat.completions.create.side_effect = openai.APIConnectionError(request=req)
        with self.assertRaises(OracleUnavailable):
            llm_client.request_json([{"role": "user", "content": "x"}])


class LLMClientConfigTests(unittest.TestCase):
    def test_missing_api_key_is_configuration_error(self):
        settings = dataclasses.replace(llm_client.SETTINGS, llm_api_key="")
        with patch("narachess.llm_client.SETTINGS", settings):
            with self.assertRaises(ConfigurationError):
                llm_client.request_json([{"role": "user", "content": "x"}])


if __name__ == "__main__":
    unittest.main()
