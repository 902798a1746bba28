"""CLI entry point for the Gutshof assistant.

A terminal chat for trying out prompts and context locally; it goes through
the same ``Assistant`` (caches, context assembly, Claude) as the API.  For
production, use the FastAPI server (src/server.py).

Usage:
    python -m src.main                # normal mode (quiet)
    python -m src.main --debug        # debug mode (shows HTTP calls)
    python -m src.main --refresh      # scrape the source pages before chatting
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from src.assistant import Assistant, create_assistant
from src.errors import AssistantError

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


async def _refresh(assistant: Assistant) -> None:
    try:
        pages = await assistant.content.refresh_content()
    except AssistantError as e:
        print(f">> Refresh failed: {e}\n")
        return
    print(f">> {len(pages)} pages scraped.\n")


async def _chat_loop(refresh_first: bool) -> None:
    assistant = create_assistant()
    try:
        if refresh_first:
            await _refresh(assistant)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, "Sie: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nAuf Wiedersehen!")
                break

            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit", "q"):
                print("\nAuf Wiedersehen!")
                break
            if user_input.lower() == "refresh":
                await _refresh(assistant)
                continue

            try:
                reply = await assistant.reply(user_input)
            except AssistantError as e:
                logger.exception("Error processing message")
                print(f"\nEmil: {e}\n")
                continue
            print(f"\nEmil: {reply}\n")
    finally:
        await assistant.aclose()


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Gutshof assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--refresh", action="store_true",
        help="Scrape the source pages before the first message",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Gutshof-KI Emil - CLI Chat")
    print("=" * 60)
    print("  Nachricht eingeben und Enter drücken.")
    print("  Befehle: 'quit' beendet, 'refresh' lädt die Webseiten neu.")
    print("=" * 60 + "\n")

    try:
        asyncio.run(_chat_loop(refresh_first=args.refresh))
    except KeyboardInterrupt:
        print("\n\nAuf Wiedersehen!")


if __name__ == "__main__":
    main()
