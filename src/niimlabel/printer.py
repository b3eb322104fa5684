"""
High-Level Label Printer Interface.

Provides a simple API for printing product labels on a Niimbot-style
printer: resolve the label's row packets (cache or render), send the setup
frames, stream the rows, and finalize the page.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .cache import PacketCache
from .conditions import condition_key
from .connection import BLEConnection
from .errors import NotConnectedError, PrinterBusyError
from .image import LabelRenderer
from .protocol import (
    Packet,
    build_frame,
    dimension_frame,
    finalize_frames,
    quantity_frame,
    setup_frames,
)

logger = logging.getLogger(__name__)


class JobState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    CONFIGURING = "configuring"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PrintJob:
    """One label print request and its progress."""
    product_code: str
    condition_label: str
    quantity: int = 1
    state: JobState = JobState.IDLE
    frames_sent: int = 0
    cache_hit: bool = False


class PrinterSession:
    """
    Owns the printer connection, the label renderer and the packet cache.

    One instance per application; it allows a single print job at a time.
    """

    # Pause after each command frame and after each image row frame.
    # The printer buffers rows internally; writing faster overruns it.
    COMMAND_DELAY_MS = 40
    ROW_DELAY_MS = 20

    # Setup parameters
    DENSITY = 3
    LABEL_TYPE = 1

    MAX_QUANTITY = 0xFFFF

    def __init__(
        self,
        connection: Optional[BLEConnection] = None,
        renderer: Optional[LabelRenderer] = None,
        cache: Optional[PacketCache] = None,
        command_delay_ms: float = COMMAND_DELAY_MS,
        row_delay_ms: float = ROW_DELAY_MS,
        font_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the session.

        Args:
            connection: BLE connection (default: a new BLEConnection)
            renderer: Label renderer (default: a new LabelRenderer)
            cache: Packet cache (default: a cache bound to the renderer)
            command_delay_ms: Pause after each setup/finalize frame
            row_delay_ms: Pause after each image row frame
            font_path: TrueType font for the label text
        """
        self.connection = connection or BLEConnection()
        self.renderer = renderer or LabelRenderer(font_path=font_path)
        self.cache = cache if cache is not None else PacketCache(self.renderer)
        self.command_delay_ms = command_delay_ms
        self.row_delay_ms = row_delay_ms
        self.current_job: Optional[PrintJob] = None

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to a printer."""
        return self.connection.is_connected

    def precache(self, product_code: str) -> asyncio.Task:
        """Pre-render all condition variants of a product in the background."""
        return self.cache.precache(product_code)

    async def _write(self, frame: bytes, delay_ms: float, job: PrintJob):
        await self.connection.write(frame)
        job.frames_sent += 1
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

    async def _resolve(self, job: PrintJob, key: str) -> list[bytes]:
        packets = self.cache.get(job.product_code, key)
        if packets is not None:
            logger.debug("Cache hit for %s/%s", job.product_code, key)
            job.cache_hit = True
            return packets

        logger.debug(
            "Cache miss for %s/%s (resident: %s %s), rendering now",
            job.product_code, key, self.cache.product_code, self.cache.keys(),
        )
        packets = await self.renderer.render(job.product_code, job.condition_label)
        self.cache.put(job.product_code, key, packets)
        return packets

    async def print_label(
        self,
        product_code: str,
        condition_label: str,
        quantity: int = 1,
    ) -> PrintJob:
        """
        Print a product label.

        Args:
            product_code: Product code (e.g. ASIN) encoded on the label
            condition_label: CN (new), FB (very good) or B (good)
            quantity: Number of copies (1-65535)

        Returns:
            The completed PrintJob

        Raises:
            NotConnectedError: If no printer is connected
            UnsupportedConditionError: If condition_label is unknown
            ValueError: If quantity is out of range
            PrinterBusyError: If another job is still running
            RenderError: If the label cannot be rendered
            TransportWriteError: If a write fails; the rest of the job is dropped
        """
        if not self.is_connected:
            raise NotConnectedError("Printer is not connected")

        key = condition_key(condition_label)

        if not 1 <= quantity <= self.MAX_QUANTITY:
            raise ValueError(f"Quantity must be between 1 and {self.MAX_QUANTITY}, got {quantity}")

        if self.current_job is not None:
            raise PrinterBusyError(
                f"Still printing {self.current_job.product_code}{self.current_job.condition_label}"
            )

        job = PrintJob(product_code, condition_label, quantity)
        self.current_job = job
        logger.info("Printing %s%s x%d", product_code, condition_label, quantity)

        try:
            job.state = JobState.RESOLVING
            packets = await self._resolve(job, key)

            job.state = JobState.CONFIGURING
            for frame in setup_frames(self.DENSITY, self.LABEL_TYPE):
                await self._write(frame, self.command_delay_ms, job)
            await self._write(
                dimension_frame(LabelRenderer.CANVAS_HEIGHT, LabelRenderer.CANVAS_WIDTH),
                self.command_delay_ms,
                job,
            )
            await self._write(quantity_frame(quantity), self.command_delay_ms, job)

            job.state = JobState.STREAMING
            logger.debug("Sending %d image packets", len(packets))
            for frame in packets:
                await self._write(frame, self.row_delay_ms, job)

            job.state = JobState.FINALIZING
            for frame in finalize_frames():
                await self._write(frame, self.command_delay_ms, job)

            job.state = JobState.DONE
            logger.info("Printed %s%s (%d frames)", product_code, condition_label, job.frames_sent)
            return job
        except Exception as e:
            job.state = JobState.FAILED
            logger.warning(
                "Print failed for %s%s after %d frames: %s",
                product_code, condition_label, job.frames_sent, e,
            )
            raise
        finally:
            self.current_job = None

    async def send_raw(self, command: int, payload: bytes = b"", timeout: float = 2.0) -> Optional[Packet]:
        """
        Send one frame and wait for the printer's reply.

        Useful for protocol testing.
        """
        if not self.is_connected:
            raise NotConnectedError("Printer is not connected")

        frame = build_frame(command, payload)
        logger.debug("TX: %s", frame.hex())
        await self.connection.write(frame)

        response = await self.connection.read_response(timeout=timeout)
        if response is None:
            return None
        logger.debug("RX: %s", response.hex())
        return Packet.decode(response)

    async def disconnect(self):
        """Disconnect from the printer."""
        await self.connection.disconnect()
        logger.debug("Disconnected")

