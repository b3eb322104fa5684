"""
Niimbot Printer Protocol Implementation.

This module implements frame encoding/decoding for Niimbot-style label
printers (D-series and compatibles).

Frame Structure:
    Head:      0x55 0x55 (constant)
    Command:   0x00-0xFF (packet identifier)
    DataLen:   Number of data bytes (0-255)
    Data:      Payload bytes
    Checksum:  XOR of Command, DataLen and every Data byte
    Tail:      0xAA 0xAA (constant)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional

HEAD = bytes([0x55, 0x55])
TAIL = bytes([0xAA, 0xAA])


class PacketType(IntEnum):
    """Command bytes used by the label print sequence."""
    # Status
    GET_INFO = 0x40
    HEARTBEAT = 0xDC

    # Label Configuration
    SET_LABEL_DENSITY = 0x21
    SET_LABEL_TYPE = 0x23
    SET_DIMENSION = 0x13
    SET_QUANTITY = 0x15

    # Print Job Control
    START_PRINT = 0x01
    START_PAGE_PRINT = 0x03
    END_PAGE_PRINT = 0xE3
    END_PRINT = 0xF3

    # Image Data
    PRINT_BITMAP_ROW = 0x85


def checksum(command: int, data: bytes) -> int:
    """XOR-fold of command, length and payload, masked to one byte."""
    value = command ^ len(data)
    for b in data:
        value ^= b
    return value & 0xFF


def build_frame(command: int, payload: Iterable[int] = b"") -> bytes:
    """
    Build one protocol frame.

    Args:
        command: Command byte (0-255)
        payload: Payload bytes (0-255 bytes, each 0-255)

    Returns:
        HEAD + CMD + LEN + DATA + CHECKSUM + TAIL
    """
    data = bytes(payload)
    return HEAD + bytes([command, len(data)]) + data + bytes([checksum(command, data)]) + TAIL


@dataclass
class Packet:
    """Represents a protocol packet."""
    command: int
    data: bytes = b""

    def encode(self) -> bytes:
        """Encode packet to bytes for transmission."""
        return build_frame(self.command, self.data)

    @classmethod
    def decode(cls, data: bytes) -> Optional["Packet"]:
        """Decode bytes into a Packet object."""
        if len(data) < 7:  # Minimum: HEAD(2) + CMD(1) + LEN(1) + CHECKSUM(1) + TAIL(2)
            return None

        if data[:2] != HEAD or data[-2:] != TAIL:
            return None

        cmd = data[2]
        data_len = data[3]

        if len(data) != 7 + data_len:
            return None

        payload = bytes(data[4:4 + data_len])
        if checksum(cmd, payload) != data[4 + data_len]:
            return None

        return cls(command=cmd, data=payload)

    def __repr__(self) -> str:
        return f"Packet(cmd=0x{self.command:02X}, data={self.data.hex()})"


# --- Fixed command frames of the print sequence ---


def setup_frames(density: int = 3, label_type: int = 1) -> list[bytes]:
    """Density, label type, start print, start page."""
    return [
        build_frame(PacketType.SET_LABEL_DENSITY, [density]),
        build_frame(PacketType.SET_LABEL_TYPE, [label_type]),
        build_frame(PacketType.START_PRINT, [1]),
        build_frame(PacketType.START_PAGE_PRINT, [1]),
    ]


def dimension_frame(height: int, width: int) -> bytes:
    """Canvas size in device pixels, big-endian height then width."""
    return build_frame(PacketType.SET_DIMENSION, [
        (height >> 8) & 0xFF, height & 0xFF,
        (width >> 8) & 0xFF, width & 0xFF,
    ])


def quantity_frame(quantity: int) -> bytes:
    """Number of copies, big-endian u16."""
    return build_frame(PacketType.SET_QUANTITY, [(quantity >> 8) & 0xFF, quantity & 0xFF])


def finalize_frames() -> list[bytes]:
    return [
        build_frame(PacketType.END_PAGE_PRINT, [1]),
        build_frame(PacketType.END_PRINT, [1]),
    ]
