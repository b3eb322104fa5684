"""
BLE Connection Handler for Niimbot Label Printers.

Handles Bluetooth Low Energy communication using the Bleak library.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from . import devices
from .errors import (
    CharacteristicNotFoundError,
    PrinterConnectionError,
    TransportWriteError,
)

logger = logging.getLogger(__name__)


@dataclass
class PrinterInfo:
    """Information about a discovered printer.

    Attributes:
        name: Device advertised name (e.g., "D110-A1B2C3")
        address: Platform-specific identifier for connecting
            (MAC address on Linux/Windows, UUID on macOS)
        rssi: Signal strength in dB
        device: Bleak device handle from the scan, if any
    """
    name: str
    address: str
    rssi: int
    device: Optional[BLEDevice] = None

    def __str__(self) -> str:
        return f"{self.name} [{self.address}] RSSI: {self.rssi} dB"


class ConnectionEventType(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CONNECT_FAILED = "connect-failed"
    DISCONNECTED = "disconnected"


@dataclass
class ConnectionEvent:
    """User-facing connection notice."""
    type: ConnectionEventType
    message: str


Chooser = Callable[[list[PrinterInfo]], Optional[PrinterInfo]]


def strongest_signal(printers: list[PrinterInfo]) -> Optional[PrinterInfo]:
    """Default chooser: the printer with the best RSSI."""
    return max(printers, key=lambda p: p.rssi) if printers else None


class BLEConnection:
    """Manages the BLE connection to one label printer."""

    # Device picker criteria
    NAME_PREFIX = "D"
    SERVICE_UUIDS = [
        "e7810a71-73ae-499d-8c15-faa9aef0c3f2",  # Niimbot vendor service
        "49535343-fe7d-4ae5-8fa9-9fafd205e455",  # Microchip UART
    ]

    DEFAULT_SCAN_TIMEOUT = 10.0

    # Response queue limits (security: prevent memory exhaustion from malicious devices)
    MAX_QUEUE_SIZE = 100  # Maximum number of queued notifications
    MAX_RESPONSE_SIZE = 4096  # Maximum size of a single notification (bytes)

    def __init__(self, scan_timeout: float = DEFAULT_SCAN_TIMEOUT):
        self.scan_timeout = scan_timeout
        self.client: Optional[BleakClient] = None
        self.device: Optional[Union[BLEDevice, str]] = None
        self.characteristic: Optional[BleakGATTCharacteristic] = None
        self.is_connecting = False
        self._response_queue: asyncio.Queue = asyncio.Queue()
        self._subscribers: list[asyncio.Queue] = []

    # --- Event stream ---

    def subscribe(self) -> asyncio.Queue:
        """Return a queue receiving every subsequent ConnectionEvent."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _emit(self, event_type: ConnectionEventType, message: str) -> None:
        if event_type in (ConnectionEventType.CONNECT_FAILED, ConnectionEventType.DISCONNECTED):
            logger.warning(message)
        else:
            logger.info(message)
        event = ConnectionEvent(event_type, message)
        for queue in self._subscribers:
            queue.put_nowait(event)

    # --- Discovery ---

    @classmethod
    def _matches(cls, name: str, service_uuids: list[str]) -> bool:
        if name.startswith(cls.NAME_PREFIX):
            return True
        return any(uuid.lower() in cls.SERVICE_UUIDS for uuid in service_uuids)

    @classmethod
    async def scan(cls, timeout: float = DEFAULT_SCAN_TIMEOUT) -> list[PrinterInfo]:
        """Scan for printers matching the picker criteria, strongest first."""
        printers = []
        found = await BleakScanner.discover(timeout=timeout, return_adv=True)

        for device, adv_data in found.values():
            name = device.name or adv_data.local_name or ""
            if not cls._matches(name, adv_data.service_uuids or []):
                continue
            printers.append(PrinterInfo(
                name=name,
                address=device.address,
                rssi=adv_data.rssi if adv_data.rssi is not None else -100,
                device=device,
            ))

        return sorted(printers, key=lambda p: p.rssi, reverse=True)

    # --- Connection ---

    @staticmethod
    def _find_characteristic(client: BleakClient) -> BleakGATTCharacteristic:
        """First characteristic supporting both write-without-response and notify."""
        for service in client.services:
            for char in service.characteristics:
                props = char.properties
                if "write-without-response" in props and "notify" in props:
                    logger.debug("Using characteristic %s (service %s)", char.uuid, service.uuid)
                    return char
        raise CharacteristicNotFoundError(
            "No characteristic supports both write-without-response and notify"
        )

    async def connect(self, device: Union[BLEDevice, str]) -> bool:
        """
        Connect to a printer.

        Args:
            device: Bleak device from a scan, or a Bluetooth address

        Returns:
            True once connected, False if another connect is in progress

        Raises:
            CharacteristicNotFoundError: If the device has no usable characteristic
            PrinterConnectionError: If the BLE connection fails
        """
        if self.is_connecting:
            logger.debug("Connect already in progress, ignoring")
            return False
        self.is_connecting = True

        name = getattr(device, "name", None) or str(device)
        client = None
        try:
            # One link at a time: drop the current printer first
            if self.client is not None:
                await self.disconnect()

            self._emit(ConnectionEventType.CONNECTING, f"Connecting to {name}...")
            client = BleakClient(device, disconnected_callback=self._handle_disconnect)
            await client.connect()
            characteristic = self._find_characteristic(client)
            await client.start_notify(characteristic, self._handle_notification)
        except (CharacteristicNotFoundError, BleakError, asyncio.TimeoutError, OSError) as e:
            self._emit(ConnectionEventType.CONNECT_FAILED, f"Connection to {name} failed: {e}")
            if client is not None and client.is_connected:
                await client.disconnect()
            if isinstance(e, PrinterConnectionError):
                raise
            raise PrinterConnectionError(f"Failed to connect to {name}: {e}") from e
        finally:
            self.is_connecting = False

        self.client = client
        self.device = device
        self.characteristic = characteristic
        self._emit(ConnectionEventType.CONNECTED, f"Connected to {name}.")
        return True

    async def discover_and_connect(self, chooser: Chooser = strongest_signal) -> bool:
        """
        Scan, let the chooser pick a printer, then connect to it.

        The chosen printer is remembered for auto_connect().

        Returns:
            True if connected, False if nothing was chosen or the connect failed
        """
        try:
            printers = await self.scan(timeout=self.scan_timeout)
        except BleakError as e:
            self._emit(ConnectionEventType.CONNECT_FAILED, f"Scan failed: {e}")
            return False

        selected = chooser(printers)
        if selected is None:
            logger.info("No printer selected")
            return False

        try:
            connected = await self.connect(selected.device or selected.address)
        except PrinterConnectionError:
            return False

        if connected:
            devices.remember_printer(selected.address, selected.name)
        return connected

    async def auto_connect(self) -> bool:
        """
        Reconnect to the remembered printer without prompting.

        Failure is not an error; it only produces a notice.
        """
        remembered = devices.load_remembered_printer()
        if remembered is None:
            return False

        try:
            device = await BleakScanner.find_device_by_address(
                remembered.address, timeout=self.scan_timeout
            )
        except BleakError as e:
            self._emit(ConnectionEventType.CONNECT_FAILED, f"Automatic reconnect failed: {e}")
            return False

        if device is None:
            self._emit(
                ConnectionEventType.CONNECT_FAILED,
                f"Automatic reconnect failed: {remembered.name} not found",
            )
            return False

        try:
            return await self.connect(device)
        except PrinterConnectionError:
            return False

    def _handle_disconnect(self, client: BleakClient) -> None:
        """Bleak disconnect observer."""
        if client is not self.client:
            return
        self.client = None
        self.device = None
        self.characteristic = None
        self._emit(ConnectionEventType.DISCONNECTED, "Printer disconnected.")

    async def disconnect(self):
        """Disconnect from the printer."""
        client, characteristic = self.client, self.characteristic
        self.client = None
        self.device = None
        self.characteristic = None

        if client and client.is_connected:
            if characteristic is not None:
                try:
                    await client.stop_notify(characteristic)
                except BleakError as e:
                    logger.debug("stop_notify failed: %s", e)
            await client.disconnect()

    @property
    def is_connected(self) -> bool:
        """Characteristic held AND the device still reports connected."""
        return (
            self.characteristic is not None
            and self.client is not None
            and self.client.is_connected
        )

    # --- I/O ---

    async def write(self, data: bytes) -> None:
        """
        Write one frame without response.

        Raises:
            TransportWriteError: If the printer is gone or the write fails
        """
        client, characteristic = self.client, self.characteristic
        if client is None or characteristic is None:
            raise TransportWriteError("Printer disconnected")

        try:
            await client.write_gatt_char(characteristic, data, response=False)
        except (BleakError, OSError) as e:
            raise TransportWriteError(f"Write failed: {e}") from e

    def _handle_notification(self, sender: BleakGATTCharacteristic, data: bytearray):
        """Handle incoming notifications from the printer."""
        # Security: reject oversized responses
        if len(data) > self.MAX_RESPONSE_SIZE:
            return

        # Security: if queue is full, drop oldest item to prevent memory exhaustion
        if self._response_queue.qsize() >= self.MAX_QUEUE_SIZE:
            try:
                self._response_queue.get_nowait()
            except asyncio.QueueEmpty:
                pass

        self._response_queue.put_nowait(bytes(data))

    async def read_response(self, timeout: float = 5.0) -> Optional[bytes]:
        """Wait for and return a notification from the printer."""
        try:
            return await asyncio.wait_for(self._response_queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
