"""
Exception hierarchy for the QL driver.

Every failure the driver reports derives from QLError and carries a short
``cause`` tag that a front end can map to exit codes or messages.
"""

from typing import Optional


class QLError(Exception):
    """Base exception for all driver errors."""

    cause = "error"

    def __init__(self, message: str, item: Optional[str] = None):
        super().__init__(message)
        self.item = item


class DeviceUnavailable(QLError):
    """The device path could not be opened (missing, permission denied, ...)."""

    cause = "device-unavailable"


class ChannelIOError(QLError):
    """Irrecoverable read or write failure on an open device."""

    cause = "channel-io"


class ProtocolTimeout(QLError):
    """A status read ran out of attempts or hit its deadline."""

    cause = "protocol-timeout"


class DeviceReportedError(QLError):
    """The printer reported one or more error conditions in a status frame."""

    cause = "device-error"

    def __init__(self, message: str, errors=None, status=None, item: Optional[str] = None):
        super().__init__(message, item=item)
        self.errors = errors
        self.status = status


class ImageTooWide(QLError):
    """Bitmap does not fit the printer's raster block."""

    cause = "image-too-wide"


class ImageLoadFailed(QLError):
    """The bitmap source could not produce a bitmap."""

    cause = "image-load-failed"


class DriverStateError(QLError):
    """A driver step was called out of order, or after the driver halted."""

    cause = "invalid-state"
