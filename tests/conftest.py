"""
Pytest configuration for label printer tests.

Provides fixtures for mocked printer sessions and command-line options
for hardware tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from niimlabel.connection import BLEConnection
from niimlabel.image import LabelRenderer
from niimlabel.printer import PrinterSession


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--address",
        action="store",
        default=None,
        help="Bluetooth address of the printer for hardware tests",
    )


class CountingRenderer(LabelRenderer):
    """LabelRenderer that records every render call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    async def render(self, product_code, condition_label):
        self.calls.append((product_code, condition_label))
        return await super().render(product_code, condition_label)


@pytest.fixture
def renderer():
    """Label renderer with a render-call counter."""
    return CountingRenderer()


@pytest.fixture
def mock_connection():
    """Connected BLE connection whose writes are recorded."""
    conn = MagicMock(spec=BLEConnection)
    conn.is_connected = True
    conn.write = AsyncMock(return_value=None)
    conn.read_response = AsyncMock(return_value=None)
    conn.disconnect = AsyncMock(return_value=None)
    return conn


@pytest.fixture
def session(mock_connection, renderer):
    """Printer session without pacing delays."""
    return PrinterSession(
        connection=mock_connection,
        renderer=renderer,
        command_delay_ms=0,
        row_delay_ms=0,
    )


@pytest.fixture
def written(mock_connection):
    """Frames written to the mock connection, in order."""
    def _written():
        return [c.args[0] for c in mock_connection.write.call_args_list]
    return _written


@pytest.fixture
def printer_address(request):
    """Get the printer address from command line."""
    address = request.config.getoption("--address")
    if address is None:
        pytest.skip("No printer address provided (use --address=XX:XX:XX:XX:XX:XX)")
    return address


@pytest_asyncio.fixture
async def connected_session(printer_address):
    """Provide a session connected to real hardware."""
    session = PrinterSession()

    if not await session.connection.connect(printer_address):
        pytest.skip(f"Could not connect to printer at {printer_address}")

    yield session

    await session.disconnect()
