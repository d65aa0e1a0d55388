"""
Mavens - Main Entry Point
=========================

Interactive terminal loop around the Orchestrator. It:
1. Loads configuration
2. Creates the orchestrator (agents, router, context, learning)
3. Reads one request per line and prints the aggregated answer

Slash commands:
    /context    Show what this session remembers
    /learning   Show the routing confidence report
    /clear      Forget this session's history
    /exit       Quit

Ctrl+C while a request is running cancels it; at the prompt it quits.

Run with:
    python -m mavens.main

Or after installing:
    mavens
"""

import asyncio
import json
import os
import signal
import sys
import uuid

from mavens.agent import Orchestrator
from mavens.errors import RequestValidationError
from mavens.models import Request, Response, Status
from mavens.utils.config import get_config
from mavens.utils.logger import Logger

main_logger = Logger("Main")

PROMPT = "mavens> "

HELP_TEXT = """Commands:
  /context    show what this session remembers
  /learning   show routing confidence
  /clear      forget this session's history
  /exit       quit"""


def render(response: Response, max_length: int) -> str:
    """Terminal rendering of a response: content plus a status line when not successful."""
    text = response.display_content(max_length)
    if response.status != Status.SUCCESS:
        text = f"{text}\n[{response.status.value}]"
    return text


def handle_command(orchestrator: Orchestrator, session_id: str, line: str) -> bool:
    """
    Run a slash command.

    Returns:
        False when the loop should stop
    """
    command = line.split()[0].lower()

    if command in ("/exit", "/quit"):
        return False
    if command == "/clear":
        orchestrator.clear_session(session_id)
        print("Session history cleared.")
    elif command == "/learning":
        print(orchestrator.learning_report())
    elif command == "/context":
        print(json.dumps(orchestrator.context_summary(session_id), indent=2))
    else:
        print(HELP_TEXT)
    return True


async def ask(orchestrator: Orchestrator, request: Request) -> Response:
    """
    Process one request, cancelling it on Ctrl+C.

    SIGINT is routed to the request's cancel event only while the request
    runs; at the prompt it keeps its default KeyboardInterrupt behaviour.
    """
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False

    try:
        return await orchestrator.process(request, cancel)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def main():
    """
    Main entry point.

    Initializes the orchestrator and runs the read-eval-print loop.
    """
    config = get_config()
    main_logger.info(f"Using {config.llm.provider} at {config.llm.base_url}")

    loop = asyncio.new_event_loop()
    orchestrator = Orchestrator()
    session_id = uuid.uuid4().hex[:12]

    print("Mavens ready. Type /help for commands, /exit to quit.")

    try:
        while True:
            try:
                line = input(PROMPT).strip()
            except EOFError:
                break
            if not line:
                continue
            if line.startswith("/"):
                if not handle_command(orchestrator, session_id, line):
                    break
                continue

            request = Request(message=line, working_directory=os.getcwd(), session_id=session_id)
            try:
                response = loop.run_until_complete(ask(orchestrator, request))
            except RequestValidationError as e:
                print(e.user_message())
                continue

            print(render(response, config.response.max_content_length))
    except KeyboardInterrupt:
        print()
    finally:
        loop.run_until_complete(orchestrator.close())
        loop.close()
        main_logger.info("Shutdown complete")


def run():
    """
    Synchronous entry point.

    This is called when running with `mavens` command.
    """
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        main_logger.error("Mavens stopped unexpectedly", e)
        sys.exit(1)


if __name__ == "__main__":
    run()
