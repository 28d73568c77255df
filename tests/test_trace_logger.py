import json
import logging

import pytest

from decolide.trace_logger import TraceFormatter, log_stage_transition, trace_logger


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    handler = _Capture()
    trace_logger.addHandler(handler)
    yield handler.records
    trace_logger.removeHandler(handler)


def test_logger_is_isolated_and_configured_once():
    assert trace_logger.propagate is False
    assert sum(isinstance(h.formatter, TraceFormatter) for h in trace_logger.handlers) == 1


def test_success_record(captured):
    log_stage_transition(
        order_id="#1021", from_stage=2, to_stage=3, proof_required=True,
        proof_supplied=True, success=True, image_url="https://cdn.shopify.com/p.jpg",
    )
    record = captured[0].msg
    assert record["type"] == "stage_transition"
    assert record["to_stage"] == 3
    assert record["image_url"] == "https://cdn.shopify.com/p.jpg"
    assert "error" not in record
    assert json.loads(TraceFormatter().format(captured[0]))["order_id"] == "#1021"


def test_inline_images_and_errors(captured):
    log_stage_transition(
        order_id="#1021", from_stage=1, to_stage=None, proof_required=False,
        proof_supplied=True, success=False, image_url="data:image/jpeg;base64,AAAA",
        error="boom", error_kind="upstream",
    )
    record = captured[0].msg
    assert "image_url" not in record
    assert record["error_kind"] == "upstream"
