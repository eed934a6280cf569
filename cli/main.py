"""CLI entry point."""

import os
import sys
from typing import Optional, Sequence

from common.logging_config import setup_logging
from cli.commands import execute
from cli.config import Config
from cli.constants import DEFAULT_CONFIG_PATH, HELP_TEXT
from cli.parser import ParseError, parse_command


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for CLI."""
    args = list(sys.argv[1:] if argv is None else argv)

    debug = '--debug' in args
    if debug:
        args = [arg for arg in args if arg != '--debug']
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'INFO')

    logger = setup_logging('cli', log_level=log_level)
    setup_logging('uploader', log_level=log_level)
    if debug:
        logger.info("Debug logging enabled")

    try:
        cmd = parse_command(args)
    except ParseError as e:
        print(f"Error: {e}\n")
        print(HELP_TEXT)
        return 2

    try:
        result = execute(cmd, Config(DEFAULT_CONFIG_PATH))
    except KeyboardInterrupt:
        logger.warning("Upload interrupted")
        print("\nUpload cancelled")
        return 130

    print(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
