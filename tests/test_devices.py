"""Tests for the remembered printer store."""

import json
import time

import pytest

from niimlabel.devices import (
    RememberedPrinter,
    forget_printer,
    load_remembered_printer,
    remember_printer,
)


class TestRememberedPrinter:
    """Test remembering the last chosen printer."""

    @pytest.fixture(autouse=True)
    def setup_config_dir(self, tmp_path, monkeypatch):
        """Set up temporary config directory for each test."""
        test_config_dir = tmp_path / ".config" / "niimlabel"
        test_printer_file = test_config_dir / "last_printer"

        monkeypatch.setattr("niimlabel.devices.CONFIG_DIR", test_config_dir)
        monkeypatch.setattr("niimlabel.devices.PRINTER_FILE", test_printer_file)

        self.config_dir = test_config_dir
        self.printer_file = test_printer_file

    def test_load_returns_none_when_nothing_remembered(self):
        assert load_remembered_printer() is None

    def test_remember_creates_config_dir(self):
        assert not self.config_dir.exists()
        remember_printer("AA:BB:CC:DD:EE:FF", "D110-1")
        assert self.printer_file.exists()

    def test_remember_and_load(self):
        remember_printer("AA:BB:CC:DD:EE:FF", "D110-1")
        remembered = load_remembered_printer()

        assert remembered == RememberedPrinter(
            address="AA:BB:CC:DD:EE:FF",
            name="D110-1",
            last_used=remembered.last_used,
        )
        assert remembered.last_used <= time.time()

    def test_old_record_still_loads(self):
        """Remembered printers do not expire."""
        self.config_dir.mkdir(parents=True)
        self.printer_file.write_text(json.dumps({
            "address": "AA:BB:CC:DD:EE:FF",
            "name": "D110-1",
            "last_used": time.time() - 365 * 24 * 60 * 60,
        }))

        assert load_remembered_printer() is not None

    def test_remember_overwrites(self):
        remember_printer("AA:BB:CC:DD:EE:FF", "D110-1")
        remember_printer("11:22:33:44:55:66", "D11-2")

        assert load_remembered_printer().address == "11:22:33:44:55:66"

    @pytest.mark.parametrize("content", [
        "not json {",
        json.dumps({"address": "AA:BB:CC:DD:EE:FF"}),
        json.dumps(["AA:BB:CC:DD:EE:FF"]),
    ])
    def test_invalid_file_treated_as_missing(self, content):
        self.config_dir.mkdir(parents=True)
        self.printer_file.write_text(content)

        assert load_remembered_printer() is None

    def test_forget(self):
        remember_printer("AA:BB:CC:DD:EE:FF", "D110-1")

        assert forget_printer() is True
        assert not self.printer_file.exists()
        assert load_remembered_printer() is None

    def test_forget_when_nothing_remembered(self):
        assert forget_printer() is False

    def test_record_is_plain_json(self):
        remember_printer("AA:BB:CC:DD:EE:FF", "D110-1")

        record = json.loads(self.printer_file.read_text())

        assert set(record) == {"address", "name", "last_used"}
        assert record["address"] == "AA:BB:CC:DD:EE:FF"
