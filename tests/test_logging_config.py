"""Tests for logging setup and payer address masking."""

import logging

from common.logging_config import MASK, SensitiveDataFilter, mask_payers, setup_logging


def make_record(msg, args=()):
    return logging.LogRecord('uploader', logging.INFO, __file__, 1, msg, args, None)


def test_filter_masks_payer_header():
    """Test that payer addresses in headers are masked."""
    record = make_record("Finalizing with headers {'x-paid-by': 'addr-a,addr-b'}")

    SensitiveDataFilter().filter(record)

    assert 'addr-a' not in record.msg
    assert MASK in record.msg


def test_filter_masks_payers_in_args():
    """Test masking of payer addresses passed as format arguments."""
    record = make_record("Finalize options: %s", ("paid_by=addr-a,addr-b",))

    SensitiveDataFilter().filter(record)

    assert 'addr-a' not in record.getMessage()
    assert record.getMessage() == f"Finalize options: paid_by={MASK}"


def test_mask_payers_ignores_non_strings():
    assert mask_payers(42) == 42
    assert mask_payers(None) is None


def test_filter_leaves_ordinary_messages():
    """Test that unrelated messages pass through unchanged."""
    record = make_record("Opened upload session [session_id=upload-1, token=arweave]")

    assert SensitiveDataFilter().filter(record) is True
    assert record.msg == "Opened upload session [session_id=upload-1, token=arweave]"


def test_setup_logging_is_idempotent():
    """Test that repeated setup reuses the handler and updates the level."""
    logger = setup_logging('chunkup-test-component', log_level='WARNING')
    again = setup_logging('chunkup-test-component', log_level='debug')

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logger.handlers[0].level == logging.DEBUG
    assert any(isinstance(f, SensitiveDataFilter) for f in logger.handlers[0].filters)
    assert logger.propagate is False


def test_setup_logging_reads_env_level(monkeypatch):
    """Test the LOG_LEVEL fallback."""
    monkeypatch.setenv('LOG_LEVEL', 'error')

    logger = setup_logging('chunkup-env-component')

    assert logger.level == logging.ERROR
