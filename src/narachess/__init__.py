"""
Nara Chess coach package.

Components:
- session: GameSession, the canonical position/history and the two legality-checked move transitions
- acquisition: MoveAcquisitionLoop, retry-governed state machine that gets a legal move from the coach
- chat: chat log and the single-shot chat sub-protocol
- controller: CoachController tying session, move loop and chat together for a UI
- oracle/protocol: client transport (aiohttp) and the JSON bodies exchanged with the server
- prompting/llm_client: server-side prompt building and OpenAI-compatible transport
"""
# Package exports are intentionally minimal; import modules directly as needed.
