"""
Command-Line Interface for the label printer.

Usage:
    niimlabel scan                      - Scan for printers
    niimlabel print CODE CONDITION      - Print a product label
    niimlabel receive CODE --new N ...  - Print labels for received stock
    niimlabel preview CODE CONDITION    - Save the label image as PNG
    niimlabel raw COMMAND [PAYLOAD]     - Send one raw protocol frame
    niimlabel forget                    - Forget the remembered printer
"""

import asyncio
import logging
import re
import sys
from typing import Optional

import click
from PIL import Image, ImageOps

from . import devices
from .conditions import CONDITION_KEYS
from .connection import BLEConnection, ConnectionEventType, PrinterInfo
from .errors import (
    NotConnectedError,
    PrinterConnectionError,
    PrinterError,
    PrintError,
    RenderError,
)
from .image import LabelRenderer
from .jobs import INTER_JOB_PAUSE, build_print_queue, run_print_queue
from .printer import PrinterSession

# Bluetooth MAC address format: XX:XX:XX:XX:XX:XX (hex pairs separated by colons)
BLUETOOTH_MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$")

# macOS CoreBluetooth UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX
MACOS_UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)

LOG_FORMAT = "[%(asctime)s.%(msecs)03d] %(name)s: %(message)s"


def validate_bluetooth_address(ctx, param, value):
    """Validate Bluetooth address format.

    Accepts:
        - MAC address format: XX:XX:XX:XX:XX:XX (Linux/Windows)
        - UUID format: XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX (macOS)

    Returns:
        The validated address (uppercased for consistency)

    Raises:
        click.BadParameter: If the address format is invalid
    """
    if value is None:
        return None
    if BLUETOOTH_MAC_PATTERN.match(value) or MACOS_UUID_PATTERN.match(value):
        return value.upper()
    raise click.BadParameter(
        f"Invalid Bluetooth address format: '{value}'. "
        "Expected MAC format XX:XX:XX:XX:XX:XX or "
        "macOS UUID format XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX"
    )


def prompt_for_printer(printers: list[PrinterInfo]) -> Optional[PrinterInfo]:
    """Let the user pick one of the scanned printers.

    Auto-selects when exactly one printer was found.
    """
    if not printers:
        click.echo("No printers found.", err=True)
        return None

    if len(printers) == 1:
        printer = printers[0]
        click.echo(f"Found 1 printer: {printer.name} - using automatically")
        return printer

    click.echo(f"\nFound {len(printers)} printer(s):\n")
    for i, p in enumerate(printers, 1):
        click.echo(f"  [{i}] {p}")

    click.echo()
    while True:
        try:
            choice = click.prompt(f"Select printer (1-{len(printers)})", type=int)
            if 1 <= choice <= len(printers):
                selected = printers[choice - 1]
                click.echo(f"Selected: {selected.name}")
                return selected
            click.echo(f"Please enter a number between 1 and {len(printers)}", err=True)
        except click.Abort:
            return None


async def _echo_events(queue: asyncio.Queue):
    """Show connection notices as they arrive."""
    while True:
        event = await queue.get()
        failed = event.type in (ConnectionEventType.CONNECT_FAILED, ConnectionEventType.DISCONNECTED)
        click.echo(event.message, err=failed)


async def connect_session(session: PrinterSession, address: Optional[str]) -> bool:
    """Connect by address, else to the remembered printer, else scan and prompt."""
    if address is not None:
        return await session.connection.connect(address)

    if await session.connection.auto_connect():
        return True

    click.echo(f"Scanning for printers ({session.connection.scan_timeout}s)...")
    return await session.connection.discover_and_connect(chooser=prompt_for_printer)


async def run_with_printer(ctx, address: Optional[str], action, precache: Optional[str] = None) -> None:
    """Connect, run `action(session)`, report errors, always disconnect.

    When `precache` is a product code, its labels render while connecting.
    """
    session = PrinterSession(
        connection=BLEConnection(scan_timeout=ctx.obj["timeout"]),
        command_delay_ms=ctx.obj["command_delay"],
        row_delay_ms=ctx.obj["row_delay"],
        font_path=ctx.obj["font"],
    )
    events = session.connection.subscribe()
    echo_task = asyncio.create_task(_echo_events(events))
    if precache is not None:
        session.precache(precache)

    try:
        if not await connect_session(session, address):
            click.echo("Failed to connect!", err=True)
            sys.exit(1)

        await action(session)

    except NotConnectedError as e:
        click.echo(f"Not connected: {e}", err=True)
        sys.exit(1)
    except PrinterConnectionError as e:
        click.echo(f"Connection error: {e}", err=True)
        sys.exit(1)
    except RenderError as e:
        click.echo(f"Render error: {e}", err=True)
        sys.exit(1)
    except PrintError as e:
        click.echo(f"Print error: {e}", err=True)
        sys.exit(1)
    except PrinterError as e:
        click.echo(f"Printer error: {e}", err=True)
        sys.exit(1)
    finally:
        await session.disconnect()
        # Let pending notices reach the echo task before it stops
        await asyncio.sleep(0)
        echo_task.cancel()
        session.connection.unsubscribe(events)


ADDRESS_OPTION = click.option(
    "--address",
    "-a",
    callback=validate_bluetooth_address,
    help="Printer Bluetooth address (if omitted, uses the remembered printer or scans)",
)

CONDITION_ARGUMENT = click.argument("condition", type=click.Choice(sorted(CONDITION_KEYS)))


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
@click.option("--timeout", default=BLEConnection.DEFAULT_SCAN_TIMEOUT, help="Scan timeout in seconds")
@click.option(
    "--command-delay",
    default=PrinterSession.COMMAND_DELAY_MS,
    type=click.FloatRange(min=0),
    help="Pause after each command frame, in ms",
)
@click.option(
    "--row-delay",
    default=PrinterSession.ROW_DELAY_MS,
    type=click.FloatRange(min=0),
    help="Pause after each image row frame, in ms",
)
@click.option("--font", type=click.Path(exists=True, dir_okay=False), help="TrueType font for label text")
@click.pass_context
def main(ctx, debug, timeout, command_delay, row_delay, font):
    """Niimbot product label printer CLI."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.ERROR,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["timeout"] = timeout
    ctx.obj["command_delay"] = command_delay
    ctx.obj["row_delay"] = row_delay
    ctx.obj["font"] = font


@main.command()
@click.option(
    "--no-auto",
    is_flag=True,
    help="Don't auto-select when only one printer is found",
)
@click.pass_context
def scan(ctx, no_auto):
    """Scan for label printers.

    When exactly one printer is found, its address is printed for easy
    use with other commands. Use --no-auto to always show the full list.
    """

    async def _scan():
        timeout = ctx.obj["timeout"]
        click.echo(f"Scanning for printers ({timeout}s)...")
        printers = await BLEConnection.scan(timeout=timeout)

        if not printers:
            click.echo("No printers found.")
            return

        if len(printers) == 1 and not no_auto:
            printer = printers[0]
            click.echo(f"\nFound 1 printer: {printer.name} - using automatically")
            click.echo(f"Address: {printer.address}")
            return

        click.echo(f"\nFound {len(printers)} printer(s):\n")
        for p in printers:
            click.echo(f"  {p}")

    asyncio.run(_scan())


@main.command("print")
@click.argument("code")
@CONDITION_ARGUMENT
@ADDRESS_OPTION
@click.option("--quantity", "-q", default=1, type=click.IntRange(1, PrinterSession.MAX_QUANTITY), help="Number of copies")
@click.pass_context
def print_label(ctx, code, condition, address, quantity):
    """Print a label for product CODE in CONDITION (CN, FB or B).

    Examples:
        niimlabel print B001XYZ CN
        niimlabel print B001XYZ FB -q 3 -a AA:BB:CC:DD:EE:FF
    """

    async def _print(session: PrinterSession):
        click.echo(f"Printing {quantity} label(s) for {code}{condition}...")
        job = await session.print_label(code, condition, quantity)
        click.echo(f"Print complete! ({job.frames_sent} frames)")

    asyncio.run(run_with_printer(ctx, address, _print))


@main.command()
@click.argument("code")
@ADDRESS_OPTION
@click.option("--new", "new", default=0, type=click.IntRange(min=0), help="Units received as new (CN)")
@click.option("--very-good", default=0, type=click.IntRange(min=0), help="Units received as very good (FB)")
@click.option("--good", default=0, type=click.IntRange(min=0), help="Units received as good (B)")
@click.option("--pause", default=INTER_JOB_PAUSE, type=click.FloatRange(min=0), help="Pause between jobs in seconds")
@click.pass_context
def receive(ctx, code, address, new, very_good, good, pause):
    """Print labels for stock received of product CODE.

    One job is printed per condition with a positive count.

    Examples:
        niimlabel receive B001XYZ --new 2 --good 1
    """
    queue = build_print_queue(code, {"new": new, "very-good": very_good, "good": good})
    if not queue:
        click.echo("Nothing to print.")
        return

    async def _receive(session: PrinterSession):
        total = sum(item.quantity for item in queue)
        click.echo(f"Printing {total} label(s) for {code}...")
        printed = await run_print_queue(session, queue, pause=pause)
        click.echo(f"Printed {printed} label(s).")

    asyncio.run(run_with_printer(ctx, address, _receive, precache=code))


@main.command()
@click.argument("code")
@CONDITION_ARGUMENT
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Output PNG path (default: CODE+CONDITION.png)",
)
@click.pass_context
def preview(ctx, code, condition, output):
    """Save the label for product CODE in CONDITION as a PNG.

    The image is in printer orientation (120x240), with ink shown as
    black.
    """
    renderer = LabelRenderer(font_path=ctx.obj["font"])
    output = output or f"{code}{condition}.png"

    try:
        rows = renderer.rasterize(code, condition)
    except RenderError as e:
        click.echo(f"Render error: {e}", err=True)
        sys.exit(1)

    width = len(rows[0]) * 8
    # In PIL "1" mode a set bit is white; invert so ink shows as black
    bitmap = Image.frombytes("1", (width, len(rows)), b"".join(rows))
    bitmap = ImageOps.invert(bitmap.convert("L")).crop((0, 0, renderer.CANVAS_WIDTH, len(rows)))
    bitmap.save(output)
    click.echo(f"Saved {output} ({len(rows)} rows)")


@main.command()
@click.argument("command")
@click.argument("payload", default="")
@ADDRESS_OPTION
@click.option(
    "--force",
    is_flag=True,
    help="Acknowledge risks and skip warning prompt",
)
@click.pass_context
def raw(ctx, command, payload, address, force):
    """Send one raw protocol frame (for debugging/testing).

    COMMAND is the command byte in hex (e.g. 40), PAYLOAD the payload bytes
    in hex (e.g. 01).

    WARNING: This bypasses the print sequence and can leave the printer in
    an unexpected state.
    """
    try:
        command_byte = int(command, 16)
        data = bytes.fromhex(payload)
    except ValueError:
        click.echo("Invalid hex data!", err=True)
        sys.exit(1)

    if not 0 <= command_byte <= 0xFF or len(data) > 0xFF:
        click.echo("Command must be one byte and payload at most 255 bytes!", err=True)
        sys.exit(1)

    if not force:
        click.echo(
            "WARNING: Raw mode sends arbitrary frames directly to the printer.",
            err=True,
        )
        if not click.confirm("Do you want to continue?"):
            click.echo("Aborted.")
            return

    async def _raw(session: PrinterSession):
        click.echo(f"Sending: command 0x{command_byte:02X}, payload {data.hex() or '-'}")
        response = await session.send_raw(command_byte, data)
        if response:
            click.echo(f"Response: {response!r}")
        else:
            click.echo("No response")

    asyncio.run(run_with_printer(ctx, address, _raw))


@main.command()
def forget():
    """Forget the remembered printer."""
    if devices.forget_printer():
        click.echo("Remembered printer cleared.")
    else:
        click.echo("No printer remembered.")


if __name__ == "__main__":
    main()
