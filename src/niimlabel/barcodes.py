"""
QR Code Generation for product labels.
"""

from typing import Literal

import qrcode
from PIL import Image, ImageOps
from qrcode.constants import (
    ERROR_CORRECT_H,
    ERROR_CORRECT_L,
    ERROR_CORRECT_M,
    ERROR_CORRECT_Q,
)

# QR code error correction levels
QRErrorCorrection = Literal["L", "M", "Q", "H"]

EC_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}


def generate_qr(
    data: str,
    box_size: int = 6,
    margin: int = 2,
    error_correction: QRErrorCorrection = "M",
) -> Image.Image:
    """
    Generate a QR code image.

    Args:
        data: The data to encode
        box_size: Size of one QR module in pixels
        margin: White quiet zone around the symbol, in pixels (not modules)
        error_correction: Error correction level (L=7%, M=15%, Q=25%, H=30%)

    Returns:
        PIL Image in grayscale mode ("L"), black modules on white

    Raises:
        ValueError: If error_correction is invalid
        qrcode.exceptions.DataOverflowError: If data does not fit any version
    """
    if error_correction not in EC_LEVELS:
        raise ValueError(
            f"Invalid error correction: {error_correction}. "
            f"Supported levels: {list(EC_LEVELS.keys())}"
        )

    qr = qrcode.QRCode(
        version=None,  # Auto-detect version based on data
        error_correction=EC_LEVELS[error_correction],
        box_size=box_size,
        border=0,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    # Convert to PIL Image if needed (qrcode returns PilImage wrapper)
    if hasattr(img, "get_image"):
        img = img.get_image()

    img = img.convert("L")
    if margin:
        img = ImageOps.expand(img, border=margin, fill=255)
    return img
