"""Niimbot product label printer driver."""

__version__ = "0.1.0"

from .cache import PacketCache
from .conditions import CONDITION_KEYS, CONDITION_LABELS, condition_key
from .connection import BLEConnection, ConnectionEvent, ConnectionEventType, PrinterInfo
from .errors import (
    CharacteristicNotFoundError,
    NotConnectedError,
    PrinterBusyError,
    PrinterConnectionError,
    PrinterError,
    PrintError,
    RenderError,
    TransportWriteError,
    UnsupportedConditionError,
)
from .image import LabelRenderer
from .jobs import QueuedLabel, build_print_queue, run_print_queue
from .printer import JobState, PrinterSession, PrintJob
from .protocol import Packet, PacketType, build_frame

__all__ = [
    "PrinterSession",
    "PrintJob",
    "JobState",
    "PacketCache",
    "LabelRenderer",
    "BLEConnection",
    "ConnectionEvent",
    "ConnectionEventType",
    "PrinterInfo",
    "Packet",
    "PacketType",
    "build_frame",
    "CONDITION_KEYS",
    "CONDITION_LABELS",
    "condition_key",
    "QueuedLabel",
    "build_print_queue",
    "run_print_queue",
    "PrinterError",
    "PrinterConnectionError",
    "NotConnectedError",
    "CharacteristicNotFoundError",
    "TransportWriteError",
    "PrintError",
    "UnsupportedConditionError",
    "PrinterBusyError",
    "RenderError",
]
