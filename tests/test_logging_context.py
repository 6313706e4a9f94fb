"""Tests for request ID propagation into log records and worker threads."""

import logging
from concurrent.futures import ThreadPoolExecutor

from availability_engine.logging_context import (
    bind_context,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)


def test_new_request_id_format():
    request_id = new_request_id()
    assert request_id.startswith("REQ-")
    assert len(request_id) == 12


def test_filter_tags_records(caplog):
    set_request_id("REQ-abc12345")
    logger = get_request_logger("availability_engine.tests")
    with caplog.at_level(logging.INFO, logger="availability_engine.tests"):
        logger.info("Generating slots")
    assert caplog.records[-1].request_id == "REQ-abc12345"


def test_filter_attached_once():
    first = get_request_logger("availability_engine.tests.once")
    second = get_request_logger("availability_engine.tests.once")
    assert first is second
    assert len(first.filters) == 1


def test_bind_context_carries_request_id_to_threads():
    set_request_id("REQ-threaded")
    wrapped = bind_context(get_request_id)
    with ThreadPoolExecutor(max_workers=2) as pool:
        seen = list(pool.map(lambda _: wrapped(), range(4)))
    assert seen == ["REQ-threaded"] * 4
