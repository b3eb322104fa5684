"""
Remembered printer for silent reconnects.

The last printer picked from a scan is written to a small JSON file so the
next session can reconnect to it directly. There is no expiry; the record
stays until `niimlabel forget` or a different printer is picked.
"""

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

CONFIG_DIR = Path.home() / ".config" / "niimlabel"
PRINTER_FILE = CONFIG_DIR / "last_printer"


@dataclass
class RememberedPrinter:
    address: str
    name: str
    last_used: float


def load_remembered_printer() -> Optional[RememberedPrinter]:
    """Read the remembered printer; a missing or unreadable record yields None."""
    if not PRINTER_FILE.exists():
        return None

    try:
        record = json.loads(PRINTER_FILE.read_text())
        return RememberedPrinter(record["address"], record["name"], record["last_used"])
    except (json.JSONDecodeError, KeyError, TypeError):
        return None


def remember_printer(address: str, name: str) -> None:
    """Replace the remembered printer with this one, stamped with the current time."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    printer = RememberedPrinter(address=address, name=name, last_used=time.time())
    PRINTER_FILE.write_text(json.dumps(asdict(printer), indent=2))


def forget_printer() -> bool:
    """Delete the record. Returns False when there was nothing to forget."""
    if not PRINTER_FILE.exists():
        return False
    PRINTER_FILE.unlink()
    return True
