"""
Packet cache for pre-rendered labels.

Holds the Image Packet Sets of one product code at a time, one per
condition, so a repeat print skips rasterization.
"""

import asyncio
import logging
from typing import Optional

from .conditions import CONDITION_LABELS
from .errors import RenderError
from .image import LabelRenderer

logger = logging.getLogger(__name__)


class PacketCache:
    """Per-condition packet sets for the resident product code."""

    # Pause between precache renders, yields to other tasks
    PRECACHE_PAUSE = 0.05

    def __init__(self, renderer: LabelRenderer, precache_pause: float = PRECACHE_PAUSE):
        self.renderer = renderer
        self.precache_pause = precache_pause
        self.product_code: Optional[str] = None
        self._packets: dict[str, list[bytes]] = {}
        self._precache_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._packets)

    def keys(self) -> list[str]:
        return list(self._packets)

    def get(self, product_code: str, condition_key: str) -> Optional[list[bytes]]:
        """Return the cached packets, or None when absent."""
        if product_code != self.product_code:
            return None
        return self._packets.get(condition_key)

    def put(self, product_code: str, condition_key: str, packets: list[bytes]) -> None:
        """Store packets, evicting everything cached for another product code."""
        if product_code != self.product_code:
            if self._packets:
                logger.debug("Evicting cached packets for %s", self.product_code)
            self._packets = {}
            self.product_code = product_code
        self._packets[condition_key] = packets

    def reset(self) -> None:
        self.product_code = None
        self._packets = {}

    async def fill(self, product_code: str) -> bool:
        """
        Render and store all condition variants for a product.

        Variants already resident for the product are kept; only the
        missing ones are rendered.

        Returns:
            True if the cache now holds every variant, False if rendering
            failed (the cache is then empty).
        """
        if product_code != self.product_code:
            self.reset()
            self.product_code = product_code

        missing = [
            (key, label) for key, label in CONDITION_LABELS.items()
            if key not in self._packets
        ]
        if not missing:
            logger.debug("Precache hit for %s, nothing to do", product_code)
            return True

        logger.debug("Precaching %s for %s", [key for key, _ in missing], product_code)

        try:
            for key, label in missing:
                packets = await self.renderer.render(product_code, label)
                self.put(product_code, key, packets)
                await asyncio.sleep(self.precache_pause)
        except RenderError as e:
            logger.warning("Precache failed for %s, resetting cache: %s", product_code, e)
            self.reset()
            return False

        logger.debug("Precache complete for %s", product_code)
        return True

    def precache(self, product_code: str) -> asyncio.Task:
        """
        Start filling the cache in the background.

        Returns the task; awaiting it yields the result of fill().
        """
        self._precache_task = asyncio.create_task(self.fill(product_code))
        return self._precache_task
