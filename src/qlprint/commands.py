"""
Brother QL Raster Command Builders.

Command frames follow the QL series raster command reference:

    ESC @                   Initialize (also cancels a pending job)
    ESC i S                 Status information request
    ESC i a n               Switch command mode (1 = raster)
    ESC i M n               Various mode settings (bit 6 = auto cut)
    ESC i K n               Expanded mode
    ESC i A n               Cut every n labels
    ESC i d lo hi           Margin amount in dots
    ESC i z f t w l r0..r3 p 0
                            Print information
    g 0x00 n d1..dn         Raster graphics transfer, one dot column
    0x1A                    Print with feeding (last page)

Images are sent as dot columns: each raster frame carries one pixel column
of the bitmap, top row in the most-significant bit of the first byte.
"""

from typing import Iterator, Optional

from .errors import ImageTooWide
from .image import Bitmap
from .status import StatusReply

ESC = 0x1B

# 200 zero bytes clear any old or errored job out of the printer
PREAMBLE_SIZE = 200

# Raster transmission block sizes (bytes per dot column)
BLOCK_SIZE_DEFAULT = 90    # 720 dots
BLOCK_SIZE_WIDE = 162      # 1296 dots, QL-1050/1060N

# Models whose block is 162 bytes
WIDE_MODELS = (ord("P"), ord("4"))

# Models that ship in ESC/P mode and need an explicit raster switch
LEGACY_MODE_MODELS = (ord("3"), ord("4"), ord("P"), ord("Q"))

# Command modes for ESC i a
COMMAND_MODE_ESCP = 0
COMMAND_MODE_RASTER = 1
COMMAND_MODE_P_TOUCH_TEMPLATE = 3

# Print information flags (ESC i z)
PI_KIND = 0x02          # media type is valid
PI_WIDTH = 0x04         # media width is valid
PI_LENGTH = 0x08        # media length is valid
PI_QUALITY = 0x40       # give priority to print quality
PI_RECOVER = 0x80       # always on

# Expanded mode flags (ESC i K)
EXPANDED_MODE_CUT_AT_END = 0x10   # the 710/720 manual says 0x08
EXPANDED_MODE_HIGH_RES = 0x40     # QL-570/580N/700

PRINT_WITH_FEEDING = 0x1A


def block_size_for(status: StatusReply) -> int:
    """Raster block size in bytes for the printer that sent this status."""
    if status.model_code in WIDE_MODELS:
        return BLOCK_SIZE_WIDE
    return BLOCK_SIZE_DEFAULT


def needs_mode_switch(status: StatusReply) -> bool:
    """True if the printer must be told to switch to raster mode first."""
    return status.model_code in LEGACY_MODE_MODELS


def pack_column(bitmap: Bitmap, column: int, block_size: int, threshold: int) -> bytes:
    """
    Pack one pixel column into a raster block.

    Byte n holds dot rows 8n..8n+7, MSB = topmost row. A bit is set (black)
    when the pixel value is strictly below ``threshold``. Rows past the bitmap
    height are left clear.

    Args:
        bitmap: Source bitmap
        column: Pixel column to pack
        block_size: Number of bytes to produce
        threshold: Pixel values below this are black

    Returns:
        Exactly ``block_size`` bytes
    """
    out = bytearray(block_size)
    width = bitmap.width
    data = bitmap.data
    rows = min(bitmap.height, block_size * 8)

    for row in range(rows):
        if data[row * width + column] < threshold:
            out[row >> 3] |= 0x80 >> (row & 7)

    return bytes(out)


class QLCommands:
    """
    Command builders for Brother QL printers.

    Each method returns the complete bytes of one command frame.
    """

    @staticmethod
    def preamble() -> bytes:
        """Zero fill that flushes any previous job."""
        return bytes(PREAMBLE_SIZE)

    @staticmethod
    def initialize() -> bytes:
        """ESC @ - initialize / cancel."""
        return bytes([ESC, ord("@")])

    @staticmethod
    def status_request() -> bytes:
        """ESC i S - request a status frame."""
        return bytes([ESC, ord("i"), ord("S")])

    @staticmethod
    def switch_to_raster_mode() -> bytes:
        """ESC i a 1 - switch to raster command mode."""
        return bytes([ESC, ord("i"), ord("a"), COMMAND_MODE_RASTER])

    @staticmethod
    def set_mode(mode: int) -> bytes:
        """ESC i M n - various mode settings."""
        return bytes([ESC, ord("i"), ord("M"), _byte(mode, "mode")])

    @staticmethod
    def set_expanded_mode(mode: int) -> bytes:
        """ESC i K n - expanded mode settings."""
        return bytes([ESC, ord("i"), ord("K"), _byte(mode, "expanded mode")])

    @staticmethod
    def set_autocut_every_n(n: int) -> bytes:
        """ESC i A n - cut every n labels."""
        return bytes([ESC, ord("i"), ord("A"), _byte(n, "autocut count")])

    @staticmethod
    def set_margin(dots: int) -> bytes:
        """ESC i d lo hi - feed margin in dots."""
        if not 0 <= dots <= 0xFFFF:
            raise ValueError(f"Margin must be 0-65535 dots, got {dots}")
        return bytes([ESC, ord("i"), ord("d"), dots & 0xFF, dots >> 8])

    @staticmethod
    def print_information(
        width: int,
        flags: int = 0,
        media_type: Optional[int] = None,
        media_width: Optional[int] = None,
        media_length: Optional[int] = None,
        first_page: bool = True,
    ) -> bytes:
        """
        ESC i z - print information.

        Args:
            width: Image width in pixels (number of raster columns)
            flags: Combination of PI_* flags the caller specified
            media_type: Media type code, sent only if PI_KIND is set
            media_width: Media width (mm), sent only if PI_WIDTH is set
            media_length: Media length (mm), sent only if PI_LENGTH is set
            first_page: Starting page of a job (controls autocut timing)
        """
        if not 0 <= width <= 0xFFFF:
            raise ValueError(f"Image width must be 0-65535, got {width}")
        return bytes([
            ESC, ord("i"), ord("z"),
            (flags | PI_RECOVER) & 0xFF,
            (media_type or 0) if flags & PI_KIND else 0,
            (media_width or 0) if flags & PI_WIDTH else 0,
            (media_length or 0) if flags & PI_LENGTH else 0,
            width & 0xFF, width >> 8, 0, 0,
            0 if first_page else 1,
            0,
        ])

    @staticmethod
    def raster_column(packed: bytes) -> bytes:
        """g 0x00 n data - one raster column of n packed bytes."""
        return bytes([ord("g"), 0x00, _byte(len(packed), "block size")]) + packed

    @staticmethod
    def print_with_feeding() -> bytes:
        """Commit the page, feed, and cut if auto cut is armed."""
        return bytes([PRINT_WITH_FEEDING])


def check_fits(bitmap: Bitmap, block_size: int) -> None:
    """
    Reject a bitmap that does not fit one raster block.

    Raises:
        ImageTooWide: If width or height exceeds block_size * 8 dots
    """
    capacity = block_size * 8
    if bitmap.width > capacity:
        raise ImageTooWide(
            f"Image width {bitmap.width} exceeds printer capacity of {capacity} dots"
        )
    if bitmap.height > capacity:
        raise ImageTooWide(
            f"Image height {bitmap.height} exceeds printer capacity of {capacity} dots"
        )


def iter_raster_frames(
    bitmap: Bitmap,
    block_size: int,
    threshold: int = 128,
    flags: int = 0,
    media_type: Optional[int] = None,
    media_width: Optional[int] = None,
    media_length: Optional[int] = None,
    first_page: bool = True,
) -> Iterator[bytes]:
    """
    Yield the complete frame sequence for one page.

    Print information first, then one raster frame per pixel column, then the
    print-with-feeding byte. The size check happens before anything is yielded.

    Raises:
        ImageTooWide: If the bitmap does not fit the block size
    """
    check_fits(bitmap, block_size)

    yield QLCommands.print_information(
        bitmap.width,
        flags=flags,
        media_type=media_type,
        media_width=media_width,
        media_length=media_length,
        first_page=first_page,
    )
    for column in range(bitmap.width):
        yield QLCommands.raster_column(pack_column(bitmap, column, block_size, threshold))
    yield QLCommands.print_with_feeding()


def _byte(value: int, what: str) -> int:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{what} must be 0-255, got {value}")
    return value
