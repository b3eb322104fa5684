"""
Label Rasterizer for Niimbot Printers.

Composes the product label (QR code plus two lines of text), rotates it
into the printer's portrait orientation and converts it to one bitmap
row frame per device pixel row.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageFont

from .barcodes import generate_qr
from .errors import RenderError
from .protocol import PacketType, build_frame

logger = logging.getLogger(__name__)

# Fonts tried in order for the label text; falls back to Pillow's bundled font
BOLD_FONTS = [
    "Arial Bold.ttf",
    "arialbd.ttf",
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
]


def label_text(product_code: str, condition_label: str) -> str:
    """Text encoded in the QR code and printed beside it."""
    return f"{product_code}{condition_label}"


def split_lines(text: str, at: int = 6) -> tuple[str, str]:
    """Split the label text into its two printed lines."""
    return text[:at], text[at:]


def row_header(row: int) -> bytes:
    """6-byte bitmap row header: big-endian row index, then 0, 0, 0, 1."""
    return bytes([(row >> 8) & 0xFF, row & 0xFF, 0, 0, 0, 1])


def pack_row(bits: Sequence[int]) -> bytes:
    """
    Pack one row of pixels into bytes.

    MSB is the leftmost pixel. Ink pixels are 1, blank are 0. The last
    byte is zero-padded when the width is not a multiple of 8.
    """
    row_bytes = bytearray((len(bits) + 7) // 8)
    for col, bit in enumerate(bits):
        if bit:
            row_bytes[col // 8] |= 1 << (7 - col % 8)
    return bytes(row_bytes)


class LabelRenderer:
    """Render product labels to bitmap row frames."""

    # Logical label, landscape (width x height) before rotation
    LABEL_WIDTH = 240
    LABEL_HEIGHT = 120

    # Device canvas after rotating the label 90 degrees clockwise
    CANVAS_WIDTH = LABEL_HEIGHT   # 120 px -> 15 bytes per row
    CANVAS_HEIGHT = LABEL_WIDTH   # 240 rows

    # QR glyph (logical coordinates)
    QR_BOX_SIZE = 6
    QR_MARGIN = 2
    QR_SIZE = 85
    QR_POSITION = (15, 28)
    QR_ERROR_CORRECTION = "M"

    # Text lines (logical coordinates), left aligned, vertically centred
    FONT_SIZE = 24
    TEXT_X = QR_POSITION[0] + QR_SIZE + 15
    LINE_Y = (55, 85)
    LINE_SPLIT = 6

    # Red channel strictly above this value is ink
    THRESHOLD = 128

    def __init__(self, font_path: Optional[Union[str, Path]] = None, threshold: int = THRESHOLD):
        """
        Initialize renderer.

        Args:
            font_path: TrueType font for the text lines (default: first bold
                font found, else Pillow's bundled font)
            threshold: Red channel value above which a pixel is ink (0-255)
        """
        self.font_path = font_path
        self.threshold = threshold
        self._font = None

    def _load_font(self):
        if self._font is not None:
            return self._font

        candidates = [str(self.font_path)] if self.font_path else BOLD_FONTS
        for font_name in candidates:
            try:
                self._font = ImageFont.truetype(font_name, self.FONT_SIZE)
                logger.debug("Label font: %s", font_name)
                return self._font
            except OSError:
                continue

        self._font = ImageFont.load_default(size=self.FONT_SIZE)
        return self._font

    def compose(self, product_code: str, condition_label: str) -> Image.Image:
        """
        Draw the label in device orientation.

        Returns:
            RGB image of CANVAS_WIDTH x CANVAS_HEIGHT pixels
        """
        text = label_text(product_code, condition_label)

        label = Image.new("RGB", (self.LABEL_WIDTH, self.LABEL_HEIGHT), color="black")

        qr = generate_qr(
            text,
            box_size=self.QR_BOX_SIZE,
            margin=self.QR_MARGIN,
            error_correction=self.QR_ERROR_CORRECTION,
        )
        qr = qr.resize((self.QR_SIZE, self.QR_SIZE), Image.Resampling.BILINEAR)
        label.paste(qr.convert("RGB"), self.QR_POSITION)

        draw = ImageDraw.Draw(label)
        font = self._load_font()
        for line, y in zip(split_lines(text, self.LINE_SPLIT), self.LINE_Y):
            draw.text((self.TEXT_X, y), line, fill="white", font=font, anchor="lm")

        # 90 degrees clockwise: logical (x, y) -> device (W - 1 - y, x)
        return label.transpose(Image.Transpose.ROTATE_270)

    def iter_rows(self, image: Image.Image) -> Iterator[bytes]:
        """
        Iterate over image rows as packed bytes.

        A pixel is ink when its red channel is above the threshold.
        """
        red = image.getchannel("R") if image.mode in ("RGB", "RGBA") else image.convert("L")
        width = red.width
        pixels = red.tobytes()

        for row in range(red.height):
            line = pixels[row * width:(row + 1) * width]
            yield pack_row([1 if value > self.threshold else 0 for value in line])

    def rasterize(self, product_code: str, condition_label: str) -> list[bytes]:
        """
        Compose the label and pack it into bitmap rows.

        Raises:
            RenderError: If the QR code or text cannot be drawn
        """
        try:
            image = self.compose(product_code, condition_label)
        except Exception as e:
            raise RenderError(
                f"Failed to render label {label_text(product_code, condition_label)!r}: {e}"
            ) from e
        return list(self.iter_rows(image))

    @staticmethod
    def to_packets(rows: list[bytes]) -> list[bytes]:
        """Wrap every row as a PRINT_BITMAP_ROW frame."""
        return [
            build_frame(PacketType.PRINT_BITMAP_ROW, row_header(row) + data)
            for row, data in enumerate(rows)
        ]

    def render_sync(self, product_code: str, condition_label: str) -> list[bytes]:
        return self.to_packets(self.rasterize(product_code, condition_label))

    async def render(self, product_code: str, condition_label: str) -> list[bytes]:
        """
        Render a label to its Image Packet Set.

        Runs off the event loop. Identical arguments always produce
        identical packets.

        Raises:
            RenderError: If the QR code or text cannot be drawn
        """
        logger.debug("Rendering label for %s%s", product_code, condition_label)
        packets = await asyncio.to_thread(self.render_sync, product_code, condition_label)
        logger.debug("Rendered %d row packets for %s%s", len(packets), product_code, condition_label)
        return packets
