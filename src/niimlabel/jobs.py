"""
Receiving print queue.

After a stock change is saved, one label job is printed per condition
whose count went up, one job after another.
"""

import asyncio
import logging
from dataclasses import dataclass

from .conditions import CONDITION_LABELS
from .printer import PrinterSession

logger = logging.getLogger(__name__)

# Pause after each job so the printer finishes feeding before the next one
INTER_JOB_PAUSE = 3.0


@dataclass
class QueuedLabel:
    product_code: str
    condition_label: str
    quantity: int


def build_print_queue(product_code: str, deltas: dict[str, int]) -> list[QueuedLabel]:
    """
    Turn per-condition stock deltas into print jobs.

    Args:
        product_code: Product code printed on every label
        deltas: Stock change per condition key (new, very-good, good, ...)

    Returns:
        One QueuedLabel per printable condition with a positive delta,
        in new / very-good / good order
    """
    queue = []
    for key, label in CONDITION_LABELS.items():
        delta = deltas.get(key, 0)
        if delta > 0:
            queue.append(QueuedLabel(product_code, label, delta))
    return queue


async def run_print_queue(
    session: PrinterSession,
    queue: list[QueuedLabel],
    pause: float = INTER_JOB_PAUSE,
) -> int:
    """
    Print queued labels one job at a time.

    Stops at the first failure and re-raises it; labels already printed
    stay printed.

    Returns:
        Total number of labels printed
    """
    total = sum(item.quantity for item in queue)
    logger.info("Printing %d labels in %d job(s)", total, len(queue))

    printed = 0
    for item in queue:
        await session.print_label(item.product_code, item.condition_label, item.quantity)
        printed += item.quantity
        await asyncio.sleep(pause)

    return printed
