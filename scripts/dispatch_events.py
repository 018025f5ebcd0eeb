#!/usr/bin/env python3
"""
Deliver committed outbox events (domain_events) to their subscribers.

Runs one pass by default; with --loop it keeps polling. Subscribers register
on `outlet_erp.core.events.dispatcher`; events without subscribers are simply
marked processed.

Usage:
    python scripts/dispatch_events.py            # single pass
    python scripts/dispatch_events.py --loop     # poll every --interval seconds
"""

import asyncio
import logging
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from outlet_erp.core.database.session import async_session
from outlet_erp.core.events import DomainEvent, EventType, dispatcher
from outlet_erp.core.logging import configure_logging

logger = logging.getLogger("dispatch_events")


@dispatcher.subscribe(EventType.INVOICE_PAID)
async def log_invoice_paid(event: DomainEvent) -> None:
    logger.info(
        "Invoice %s paid at outlet %s (payment %s)",
        event.payload.get("document_number"),
        event.outlet_code,
        event.payload.get("payment_id"),
    )


@dispatcher.subscribe(EventType.RECEIPT_POSTED)
async def log_receipt_posted(event: DomainEvent) -> None:
    logger.info("Goods receipt %s posted at outlet %s", event.payload.get("document_number"), event.outlet_code)


async def run_once(limit: int | None = None) -> int:
    async with async_session() as session:
        return await dispatcher.dispatch_pending(session, limit)


async def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Dispatch pending outbox events")
    parser.add_argument("--loop", action="store_true", help="Keep polling")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between passes")
    parser.add_argument("--limit", type=int, default=None, help="Events per pass")
    args = parser.parse_args()

    configure_logging()
    if not args.loop:
        processed = await run_once(args.limit)
        print(f"Processed {processed} events.")
        return

    while True:
        await run_once(args.limit)
        await asyncio.sleep(args.interval)


if __name__ == "__main__":
    asyncio.run(main())
