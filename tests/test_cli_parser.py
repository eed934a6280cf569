"""Tests for CLI command parser."""

import pytest

from cli.models import HelpCommand, UploadFileCommand
from cli.parser import ParseError, parse_command


def test_parse_upload_file_minimal():
    """Test parsing upload-file with only the required arguments."""
    cmd = parse_command(['upload-file', 'payload.bin', '--token', 'arweave'])

    assert cmd == UploadFileCommand(file_path='payload.bin', token='arweave')


def test_parse_upload_file_all_options():
    """Test parsing every upload-file option, in any order."""
    cmd = parse_command([
        'upload-file', '--chunking-mode', 'force', 'payload.bin',
        '--token', 'arweave',
        '--url', 'http://localhost:3000',
        '--chunk-size', '10485760',
        '--concurrency', '8',
        '--paid-by', 'addr-a',
        '--paid-by', 'addr-b',
    ])

    assert isinstance(cmd, UploadFileCommand)
    assert cmd.file_path == 'payload.bin'
    assert cmd.service_url == 'http://localhost:3000'
    assert cmd.chunk_byte_count == 10485760
    assert cmd.max_chunk_concurrency == 8
    assert cmd.chunking_mode == 'force'
    assert cmd.paid_by == ('addr-a', 'addr-b')


@pytest.mark.parametrize("tokens", [['help'], ['--help'], ['-h']])
def test_parse_help(tokens):
    """Test help aliases."""
    assert isinstance(parse_command(tokens), HelpCommand)


@pytest.mark.parametrize("tokens, message", [
    ([], "Empty command"),
    (['download'], "Unknown command"),
    (['upload-file', '--token', 'arweave'], "requires a file path"),
    (['upload-file', 'payload.bin'], "requires --token"),
    (['upload-file', 'payload.bin', '--token'], "requires a value"),
    (['upload-file', 'a.bin', 'b.bin', '--token', 'arweave'], "Unexpected argument"),
    (['upload-file', 'payload.bin', '--token', 'arweave', '--verbose'], "Unknown option"),
    (['upload-file', 'payload.bin', '--token', 'arweave', '--concurrency', 'many'], "expects an integer"),
    (['upload-file', 'payload.bin', '--token', 'arweave', '--chunking-mode', 'always'], "--chunking-mode"),
])
def test_parse_errors(tokens, message):
    """Test that malformed commands raise ParseError with a useful message."""
    with pytest.raises(ParseError, match=message):
        parse_command(tokens)
