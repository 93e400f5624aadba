"""CLI entry point for the parts support assistant.

A terminal chat loop for development.  For production, use the FastAPI
server (``parts_assistant/server.py``).

Usage:
    python -m parts_assistant.main            # normal mode (quiet)
    python -m parts_assistant.main --debug    # show facts and routing per turn
"""

from __future__ import annotations

import argparse
import logging
import uuid

from dotenv import load_dotenv

from parts_assistant.agent import create_parts_assistant

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("parts_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_tool_payload(payload: dict) -> None:
    data = payload.get("data") or {}
    for part in data.get("suggested_parts") or []:
        print(f"    [part] {part['name']} #{part['part_number']} ${part['price']}")
    if data.get("video_url"):
        print(f"    [video] {data['video_url']}")


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Parts assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including extracted facts and routing",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  PartSelect Parts Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    assistant = create_parts_assistant()
    session_id = str(uuid.uuid4())
    logger.info("Started new session: %s", session_id)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye!")
            break

        if user_input.lower() == "new":
            assistant.end_session(session_id)
            session_id = str(uuid.uuid4())
            print(f"\n>> New session started: {session_id[:8]}...\n")
            continue

        result = assistant.handle_turn(session_id, user_input)
        print(f"\nAgent: {result['response_text']}")
        if result["tool_payload"]:
            _print_tool_payload(result["tool_payload"])
        print()


if __name__ == "__main__":
    main()
