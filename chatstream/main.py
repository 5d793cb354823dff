"""Command-line entry point: stream a single chat reply to stdout.

Usage: chatstream "prompt text" [system prompt]
"""

from __future__ import annotations

import logging
import sys

from chatstream.client import Client
from chatstream.config.loader import get_config
from chatstream.core.errors import ChatStreamError
from chatstream.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    config = get_config()
    setup_logging(level=config.logging.level, use_json=config.logging.json_format)
    if not args:
        print("usage: chatstream PROMPT [SYSTEM]", file=sys.stderr)
        return 2
    if not config.client.api_key:
        logger.error("OPENAI_API_KEY is required")
        return 1
    prompt = args[0]
    system = args[1] if len(args) > 1 else None
    with Client(config=config) as client:
        try:
            for token in client.generate_stream(prompt, model=config.client.model, system=system):
                sys.stdout.write(token)
                sys.stdout.flush()
        except ChatStreamError as e:
            logger.error("chat stream failed: %s", e)
            return 1
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
