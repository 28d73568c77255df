"""
Structured JSON logging for stage transitions.

One flat record per advance attempt, successful or not, so the
production history can be reconstructed from logs alone. Records go to
stdout on the "decolide.trace" logger and do not reach the root logger.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

TRACE_LOGGER_NAME = "decolide.trace"


class TraceFormatter(logging.Formatter):
    """Renders dict messages as one JSON line; anything else as plain text."""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            return json.dumps(record.msg, default=str, ensure_ascii=False)
        return super().format(record)


trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
trace_logger.setLevel(logging.INFO)
trace_logger.propagate = False
if not trace_logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(TraceFormatter())
    trace_logger.addHandler(_handler)


def log_stage_transition(
    *,
    order_id: str,
    from_stage: int,
    to_stage: Optional[int],
    proof_required: bool,
    proof_supplied: bool,
    success: bool,
    image_url: Optional[str] = None,
    error: Optional[str] = None,
    error_kind: Optional[str] = None,
) -> None:
    """
    Log a single structured record for a stage advance attempt.

    Args:
        order_id: Human-readable order name (e.g. "#1021")
        from_stage: Stage index before the attempt
        to_stage: Stage index after the attempt (None when rejected)
        proof_required: Whether leaving from_stage needs a photo
        proof_supplied: Whether a photo came with the request
        success: Whether the order moved
        image_url: Resulting image URL, when one was attached
        error / error_kind: Failure description and category
    """
    record: dict[str, Any] = {
        "type": "stage_transition",
        "ts": datetime.now(timezone.utc).isoformat(),
        "order_id": order_id,
        "from_stage": from_stage,
        "to_stage": to_stage,
        "proof_required": proof_required,
        "proof_supplied": proof_supplied,
        "success": success,
    }

    # Optional fields (only include if present)
    if image_url is not None and not image_url.startswith("data:"):
        record["image_url"] = image_url

    if error is not None:
        record["error"] = error
        record["error_kind"] = error_kind

    trace_logger.info(record)
