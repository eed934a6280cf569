"""Command parser for CLI arguments."""

from typing import Optional, Sequence

from cli.models import CommandRequest, HelpCommand, UploadFileCommand
from uploader.policy import VALID_CHUNKING_MODES


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


_VALUE_OPTIONS = ("--token", "--url", "--chunk-size", "--concurrency", "--chunking-mode", "--paid-by")


def parse_command(tokens: Sequence[str]) -> CommandRequest:
    """Parse command line tokens into a CommandRequest object.

    Args:
        tokens: Arguments after the program name

    Returns:
        CommandRequest object (UploadFileCommand or HelpCommand)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "upload-file":
        return _parse_upload_file(list(tokens[1:]))
    elif command_name in ("help", "--help", "-h"):
        return HelpCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_int(option: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"{option} expects an integer, got '{value}'")


def _parse_upload_file(args: list[str]) -> UploadFileCommand:
    """Parse 'upload-file <path> --token TOKEN [options]' command."""
    file_path: Optional[str] = None
    values: dict[str, str] = {}
    paid_by: list[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _VALUE_OPTIONS:
            if i + 1 >= len(args):
                raise ParseError(f"{arg} requires a value")
            value = args[i + 1]
            if arg == "--paid-by":
                paid_by.append(value)
            else:
                values[arg] = value
            i += 2
            continue
        if arg.startswith("--"):
            raise ParseError(f"Unknown option: {arg}")
        if file_path is not None:
            raise ParseError(f"Unexpected argument: {arg}")
        file_path = arg
        i += 1

    if file_path is None:
        raise ParseError("upload-file requires a file path")
    if "--token" not in values:
        raise ParseError("upload-file requires --token")

    chunking_mode = values.get("--chunking-mode")
    if chunking_mode is not None and chunking_mode not in VALID_CHUNKING_MODES:
        raise ParseError(f"--chunking-mode must be one of: {', '.join(VALID_CHUNKING_MODES)}")

    chunk_byte_count = None
    if "--chunk-size" in values:
        chunk_byte_count = _parse_int("--chunk-size", values["--chunk-size"])

    max_chunk_concurrency = None
    if "--concurrency" in values:
        max_chunk_concurrency = _parse_int("--concurrency", values["--concurrency"])

    return UploadFileCommand(
        file_path=file_path,
        token=values["--token"],
        service_url=values.get("--url"),
        chunk_byte_count=chunk_byte_count,
        max_chunk_concurrency=max_chunk_concurrency,
        chunking_mode=chunking_mode,
        paid_by=tuple(paid_by),
    )
