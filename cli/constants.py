"""CLI constants and help text."""

from pathlib import Path

COMMANDS = ["upload-file", "help"]

DEFAULT_CONFIG_PATH = Path.home() / '.chunkup' / 'config.json'

GREEN = "\033[32m"
YELLOW = "\033[33m"
RESET = "\033[0m"

HELP_TEXT = """Usage: chunkup <command> [options]

Commands:
  upload-file <path> --token TOKEN    Upload a signed payload file
  help                                Show this help

Options for upload-file:
  --url URL                           Upload service URL (overrides config)
  --chunk-size BYTES                  Chunk size, 5 MiB to 500 MiB (default 5 MiB)
  --concurrency N                     Chunk requests in flight (default 5)
  --chunking-mode MODE                auto, force or disabled (default auto)
  --paid-by ADDRESS                   Payer address, repeat for several payers
  --debug                             Enable debug logging

Examples:
  chunkup upload-file payload.bin --token arweave
  chunkup upload-file payload.bin --token arweave --chunking-mode force --concurrency 8"""
