import argparse
import asyncio
import logging

from narachess.acquisition import AcquisitionState
from narachess.config import SETTINGS
from narachess.controller import CoachController
from narachess.move_validator import parse_human_input
from narachess.oracle import HttpOracle

HELP = """Commands:
  <move>        play a move in UCI (e2e4, e7e8q) or SAN (e4, Nf3, O-O)
  /chat <text>  talk to the coach
  /retry        ask the coach again after it gave up
  /reset [side] start a new game (optionally as white or black)
  /pgn          print the game so far as PGN
  /quit         leave"""


def render(ctl: CoachController) -> None:
    session = ctl.session
    print()
    print(session.board.unicode(invert_color=True, borders=True, orientation=session.human_side == "white"))
    if ctl.title:
        print(f"[{ctl.title}]")
    if session.move_history:
        print("Moves:", session.formatted_history())
    if ctl.comment:
        print("Coach:", ctl.comment)
    if session.annotations:
        print("Arrows:", ", ".join(f"{a}->{b}" for a, b in session.annotations))
    if session.error_message:
        print("!!", session.error_message)
    if session.is_game_over():
        print("Game over:", session.status())


async def handle_line(ctl: CoachController, line: str) -> bool:
    """Process one line of input; returns False when the user wants to quit."""
    if not line:
        return True
    if line in ("/quit", "/exit"):
        return False
    if line == "/help":
        print(HELP)
    elif line == "/retry":
        if not ctl.retry():
            print("Nothing to retry.")
    elif line.startswith("/reset"):
        parts = line.split()
        ctl.reset(parts[1].lower() if len(parts) > 1 else None)
    elif line == "/pgn":
        print(ctl.session.pgn())
    elif line.startswith("/chat"):
        entry = await ctl.send_chat(line[len("/chat"):])
        print("Coach:", entry.content if entry else "(no answer, try again)")
        if entry and ctl.session.annotations:
            print("Arrows:", ", ".join(f"{a}->{b}" for a, b in ctl.session.annotations))
    else:
        parsed = parse_human_input(line, ctl.session.board)
        if not parsed.get("ok"):
            print(f"Illegal move: {line}")
            return True
        uci = parsed["uci"]
        result = ctl.submit_human_move(uci[:2], uci[2:4], uci[4:] or None)
        if not result:
            print(f"Move rejected ({result.reason}).")
    return True


async def main(args) -> None:
    log = logging.getLogger("play_one")
    async with HttpOracle(base_url=args.server) as oracle:
        ctl = CoachController(oracle, human_side=args.side)
        ctl.acquisition.add_listener(
            lambda old, new: print("Coach is thinking...") if new == AcquisitionState.AWAITING_RESPONSE else None
        )
        log.info("Starting game against %s as %s", oracle.base_url, args.side)
        print(HELP)
        ctl.begin()
        running = True
        while running:
            await ctl.wait_idle()
            render(ctl)
            if ctl.state == AcquisitionState.FAILED:
                print("Type /retry to ask the coach again.")
            line = (await asyncio.to_thread(input, "> ")).strip()
            running = await handle_line(ctl, line)
        print(ctl.session.pgn())


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Play a coached game against the Nara Chess server.")
    ap.add_argument("--server", default=SETTINGS.server_url, help="Coach server base URL")
    ap.add_argument("--side", choices=["white", "black"], default="white", help="Which side you play")
    ap.add_argument("--log-level", default="WARNING", help="Python logging level (e.g., INFO, DEBUG)")
    args = ap.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(main(args))
    except (KeyboardInterrupt, EOFError):
        pass
