"""
Integration tests against a real printer.

These tests require real hardware and are skipped unless an address is
given:

    pytest tests/ -m hardware --address=XX:XX:XX:XX:XX:XX

Each print test feeds one label.
"""

import pytest

from niimlabel.connection import BLEConnection, PrinterInfo
from niimlabel.printer import JobState, PrinterSession


# Fixtures (printer_address, connected_session) are defined in conftest.py


class TestConnection:
    """Tests for printer connection functionality."""

    @pytest.mark.hardware
    @pytest.mark.asyncio
    async def test_scan_finds_printer(self, printer_address):
        printers = await BLEConnection.scan(timeout=5.0)

        assert all(isinstance(p, PrinterInfo) for p in printers)
        assert printer_address.upper() in [p.address.upper() for p in printers]

    @pytest.mark.hardware
    @pytest.mark.asyncio
    async def test_connect_disconnect(self, printer_address):
        session = PrinterSession()

        assert await session.connection.connect(printer_address) is True
        assert session.is_connected is True

        await session.disconnect()
        assert session.is_connected is False


class TestPrinting:
    """Tests that print labels."""

    @pytest.mark.hardware
    @pytest.mark.asyncio
    async def test_print_label(self, connected_session):
        job = await connected_session.print_label("B001TEST", "CN")

        assert job.state == JobState.DONE
        assert job.frames_sent == 248

    @pytest.mark.hardware
    @pytest.mark.asyncio
    async def test_print_after_precache(self, connected_session):
        assert await connected_session.precache("B001TEST") is True

        job = await connected_session.print_label("B001TEST", "B")

        assert job.cache_hit is True
        assert job.state == JobState.DONE
