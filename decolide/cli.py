"""
Terminal view of the production board.

Usage:
  python -m decolide.cli board
  python -m decolide.cli stalled
  python -m decolide.cli summary
  python -m decolide.cli advance "#1021" --image frame.jpg

Set ORDER_SOURCE_STUB=1 to run against the built-in mock orders.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from decolide.config import settings
from decolide.engine.models import ProofImage
from decolide.engine.stages import TERMINAL_INDEX, proof_required, stage_label
from decolide.engine.stall import days_in_stage
from decolide.errors import ConfigurationError
from decolide.main import get_proof_store, get_repository, get_source, get_summary_generator
from decolide.services.order_book import OrderBook
from decolide.services.summary import summarize_stalled_orders
from decolide.services.transitions import StageTransitionService

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


async def _load_book() -> OrderBook:
    book = OrderBook()
    result = await get_repository().load_orders()
    if not result.success:
        print(f"ERROR: {result.error}")
        sys.exit(1)
    book.replace(result.orders)
    return book


def _print_orders(orders, now: datetime) -> None:
    for o in orders:
        print(f"  {o.id:<10} {o.customer_name:<22} {o.product_name:<28} {days_in_stage(o, now)}d")


async def cmd_board(threshold: timedelta) -> None:
    book = await _load_book()
    now = datetime.now(timezone.utc)
    stalled = book.stalled(now, threshold)
    print(f"Stalled ({len(stalled)})")
    _print_orders(stalled, now)
    for tab in book.board(now, threshold)["stages"]:
        print(f"{tab['stage']} ({tab['count']})")
        _print_orders([book.get(c["id"]) for c in tab["orders"]], now)


async def cmd_stalled(threshold: timedelta) -> None:
    book = await _load_book()
    now = datetime.now(timezone.utc)
    rows = [
        {"orderId": o.id, "currentStage": o.current_stage, "daysInStage": days_in_stage(o, now)}
        for o in book.stalled(now, threshold)
    ]
    print(json.dumps(rows, indent=2))


async def cmd_summary(threshold: timedelta) -> None:
    book = await _load_book()
    now = datetime.now(timezone.utc)
    try:
        generator = get_summary_generator()
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    result = await summarize_stalled_orders(book.stalled(now, threshold), now, generator)
    print(result["summary"])


async def cmd_advance(order_id: str, image_path: Optional[str]) -> None:
    book = await _load_book()
    order = book.get(order_id)
    if order is None:
        print(f"ERROR: order {order_id} not found")
        sys.exit(1)

    # Only proof-gated advances are written to Shopify; anything else would be
    # lost when this process exits
    if order.current_stage_index < TERMINAL_INDEX and not proof_required(order.current_stage_index):
        print(
            f"ERROR: advancing {order_id} out of {order.current_stage} is not saved to Shopify; "
            "the HTTP service keeps this step in memory"
        )
        sys.exit(1)

    proof = None
    if image_path:
        path = Path(image_path)
        proof = ProofImage(
            content=path.read_bytes(),
            content_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            filename=path.name,
        )

    service = StageTransitionService(get_source(), get_proof_store())
    result = await service.advance_stage(order, proof)
    if not result.success:
        print(f"ERROR ({result.error_kind}): {result.error}")
        sys.exit(1)
    print(f"OK {order_id}: {stage_label(order.current_stage_index)} -> {stage_label(result.new_stage_index)}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="decolide", description="Production order board")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("board", help="orders per stage plus stalled")
    sub.add_parser("stalled", help="stalled orders as JSON")
    sub.add_parser("summary", help="AI summary of stalled orders")
    adv = sub.add_parser(
        "advance",
        help="move an order out of a photo-gated stage (Frame Ready, Foaming/Fabric Done, Dispatched)",
    )
    adv.add_argument("order_id")
    adv.add_argument("--image", help="proof photo path")
    args = parser.parse_args(argv)

    threshold = timedelta(days=settings.stall_threshold_days)
    try:
        if args.command == "board":
            asyncio.run(cmd_board(threshold))
        elif args.command == "stalled":
            asyncio.run(cmd_stalled(threshold))
        elif args.command == "summary":
            asyncio.run(cmd_summary(threshold))
        elif args.command == "advance":
            asyncio.run(cmd_advance(args.order_id, args.image))
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
