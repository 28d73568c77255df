"""
Stalled-orders summary.

Serializes the stalled orders and asks an LLM for a short production
bottleneck summary. Failures come back as summary text; nothing is
retried and nothing is raised to the caller.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime
from typing import Iterable, Protocol

from anthropic import AsyncAnthropic

from decolide.engine.models import Order
from decolide.engine.stall import days_in_stage
from decolide.errors import ConfigurationError

logger = logging.getLogger(__name__)

NO_STALLED_SUMMARY = "No orders are currently stalled. Great job!"

SUMMARY_PROMPT = """You are a production manager tasked with identifying and addressing bottlenecks in a furniture manufacturing process. Given the following data about orders stalled at various stages, generate a concise summary highlighting key issues and potential areas for improvement. The data is provided in JSON format.

Stalled Orders Data: {data}

Focus on extracting patterns or trends related to the stalled orders. For example, are orders frequently stalling at a specific stage? How long, on average, are orders delayed?

Return ONLY the summary text."""


class SummaryGenerator(Protocol):
    async def summarize(self, stalled_orders_data: str) -> str: ...


class AnthropicSummaryGenerator:
    def __init__(self, api_key: str, model: str, max_tokens: int = 500):
        if model != "stub" and not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    async def summarize(self, stalled_orders_data: str) -> str:
        if self.model == "stub":
            return stub_summary(stalled_orders_data)

        client = AsyncAnthropic(api_key=self.api_key)
        msg = await client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": SUMMARY_PROMPT.format(data=stalled_orders_data)}],
        )
        return msg.content[0].text.strip()


def stub_summary(stalled_orders_data: str) -> str:
    """Deterministic summary for running without an API key."""
    rows = json.loads(stalled_orders_data)
    by_stage = Counter(r["currentStage"] for r in rows)
    worst_stage, worst_count = by_stage.most_common(1)[0]
    oldest = max(rows, key=lambda r: int(r["timeSinceLastUpdate"].split()[0]))
    return (
        f"{len(rows)} order(s) stalled. "
        f"Most stalled at {worst_stage} ({worst_count}). "
        f"Longest waiting: {oldest['orderId']} ({oldest['timeSinceLastUpdate']})."
    )


def serialize_stalled_orders(orders: Iterable[Order], now: datetime) -> str:
    return json.dumps([
        {
            "orderId": o.id,
            "currentStage": o.current_stage,
            "timeSinceLastUpdate": f"{days_in_stage(o, now)} days",
        }
        for o in orders
    ])


async def summarize_stalled_orders(
    stalled: list[Order],
    now: datetime,
    generator: SummaryGenerator,
) -> dict[str, str]:
    if not stalled:
        return {"summary": NO_STALLED_SUMMARY}

    try:
        summary = await generator.summarize(serialize_stalled_orders(stalled, now))
    except Exception as e:
        logger.warning("Stalled summary failed: %s", e)
        return {"summary": f"An error occurred while generating the summary: {e}"}

    if not summary:
        return {"summary": "An error occurred while generating the summary: empty response"}
    return {"summary": summary}
