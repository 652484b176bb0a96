"""Brother QL Label Printer Driver for Linux/macOS."""

__version__ = "0.1.0"

from .channel import (
    DEFAULT_DEVICE,
    DeviceChannel,
    FileChannel,
    RetryPolicy,
    SerialChannel,
    deadline_after,
    open_channel,
)
from .commands import QLCommands, block_size_for, needs_mode_switch, pack_column
from .errors import (
    ChannelIOError,
    DeviceReportedError,
    DeviceUnavailable,
    DriverStateError,
    ImageLoadFailed,
    ImageTooWide,
    ProtocolTimeout,
    QLError,
)
from .image import MAX_IMAGE_DIMENSION, MAX_IMAGE_PIXELS, Bitmap, load_bitmap
from .printer import DriverState, PageResult, PrintConfig, QLPrinter
from .status import (
    DecodeSection,
    ErrorFlag,
    MediaType,
    Mode,
    StatusReply,
    StatusType,
    decode_errors,
    decode_media_type,
    decode_mode,
    decode_model,
    render_status,
)

__all__ = [
    "QLPrinter",
    "PrintConfig",
    "PageResult",
    "DriverState",
    "QLError",
    "DeviceUnavailable",
    "ChannelIOError",
    "ProtocolTimeout",
    "DeviceReportedError",
    "ImageTooWide",
    "ImageLoadFailed",
    "DriverStateError",
    "DEFAULT_DEVICE",
    "DeviceChannel",
    "FileChannel",
    "SerialChannel",
    "RetryPolicy",
    "deadline_after",
    "open_channel",
    "QLCommands",
    "block_size_for",
    "needs_mode_switch",
    "pack_column",
    "Bitmap",
    "load_bitmap",
    "MAX_IMAGE_DIMENSION",
    "MAX_IMAGE_PIXELS",
    "StatusReply",
    "StatusType",
    "MediaType",
    "Mode",
    "ErrorFlag",
    "DecodeSection",
    "decode_errors",
    "decode_media_type",
    "decode_mode",
    "decode_model",
    "render_status",
]
