"""
Device Channel for Brother QL Printers.

Owns the open handle to the printer and provides the raw primitives the
driver needs: write everything, read one 32-byte status frame within a
deadline, close and reopen.

Two transports are supported:
    - FileChannel: USB printer-class character devices (/dev/usb/lp0)
    - SerialChannel: serial ttys via pyserial (/dev/ttyUSB0, /dev/cu.*, COM3)

USB printer-class devices report end-of-file when a status read finds no
data, and the kernel may invalidate the descriptor between polls. The retry
loop in DeviceChannel recovers by closing and reopening the same path, as
allowed by the RetryPolicy.
"""

import abc
import errno
import logging
import os
import re
import select
import time
from dataclasses import dataclass
from typing import Optional

import serial

from .commands import QLCommands
from .errors import ChannelIOError, DeviceUnavailable, ProtocolTimeout
from .status import STATUS_SIZE, StatusReply

log = logging.getLogger(__name__)

DEFAULT_DEVICE = "/dev/usb/lp0"
DEFAULT_BAUD_RATE = 115200

# Paths handled by pyserial rather than raw file I/O
SERIAL_PATH_PATTERN = re.compile(r"^(/dev/(tty|cu\.).+|COM\d+)$", re.IGNORECASE)


@dataclass
class RetryPolicy:
    """
    How the channel retries status reads.

    Attributes:
        max_attempts: Read attempts per read_status() call
        reopen_on_eof: Close and reopen the device when a read reports
            end-of-stream or a bad descriptor
        reopen_delay: Seconds to sleep after a reopen
        poll_interval: Seconds the driver waits between completion polls
        read_timeout: Seconds one read attempt may wait when the caller
            gives no deadline
    """
    max_attempts: int = 100
    reopen_on_eof: bool = True
    reopen_delay: float = 0.0
    poll_interval: float = 0.05
    read_timeout: float = 0.1


def deadline_after(seconds: Optional[float]) -> Optional[float]:
    """Absolute monotonic deadline ``seconds`` from now (None = no deadline)."""
    if seconds is None:
        return None
    return time.monotonic() + seconds


def remaining(deadline: Optional[float]) -> Optional[float]:
    """Seconds left until ``deadline`` (never negative), or None."""
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


def _hex(data: bytes, limit: int = 32) -> str:
    if len(data) <= limit:
        return data.hex()
    return data[:limit].hex() + "..."


class DeviceChannel(abc.ABC):
    """Base class for printer transports; implements the write and status-read loops."""

    def __init__(self, path: str, policy: Optional[RetryPolicy] = None):
        self.path = path
        self.policy = policy or RetryPolicy()
        self.preamble_sent = False

    # --- Transport hooks ---

    @abc.abstractmethod
    def _open(self) -> None:
        """Open the underlying handle. Raises OSError."""

    @abc.abstractmethod
    def _close(self) -> None:
        """Release the underlying handle. Must tolerate being called twice."""

    @abc.abstractmethod
    def _write(self, data: bytes) -> int:
        """Write some of ``data``, returning the number of bytes written."""

    @abc.abstractmethod
    def _read(self, size: int, timeout: Optional[float]) -> Optional[bytes]:
        """
        Read up to ``size`` bytes.

        Returns None if nothing arrived within ``timeout``, b"" on
        end-of-stream. Raises OSError.
        """

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        """True while a handle is held."""

    # --- Public API ---

    def open(self) -> "DeviceChannel":
        """
        Open the device and flush any stale job with a zero preamble.

        A failed preamble write is logged, not raised.

        Raises:
            DeviceUnavailable: If the device cannot be opened
        """
        try:
            self._open()
        except OSError as e:
            raise DeviceUnavailable(f"Unable to open '{self.path}': {e}") from e
        log.debug("Opened %s", self.path)

        try:
            self.write_all(QLCommands.preamble())
            self.preamble_sent = True
        except ChannelIOError as e:
            self.preamble_sent = False
            log.warning("Could not clear previous job on %s: %s", self.path, e)

        return self

    def close(self) -> None:
        """Release the device handle."""
        if self.is_open:
            self._close()
            log.debug("Closed %s", self.path)

    def reopen(self) -> None:
        """
        Close and reopen the same device path.

        Raises:
            DeviceUnavailable: If the device cannot be opened again
        """
        log.debug("Reopening %s", self.path)
        try:
            self._close()
        except OSError as e:
            # The handle is usually already invalid when we get here
            log.debug("Ignoring close error on %s: %s", self.path, e)
        try:
            self._open()
        except OSError as e:
            raise DeviceUnavailable(f"Unable to reopen '{self.path}': {e}") from e
        if self.policy.reopen_delay > 0:
            time.sleep(self.policy.reopen_delay)

    def write_all(self, data: bytes) -> None:
        """
        Write every byte of ``data``.

        Would-block and interrupted writes are retried.

        Raises:
            ChannelIOError: On any other write failure
        """
        if not self.is_open:
            raise ChannelIOError(f"Device '{self.path}' is not open")

        log.debug("TX %d bytes: %s", len(data), _hex(data))
        view = memoryview(data)
        written = 0
        while written < len(data):
            try:
                n = self._write(view[written:])
            except (BlockingIOError, InterruptedError):
                continue
            except OSError as e:
                raise ChannelIOError(
                    f"Write to '{self.path}' failed after {written}/{len(data)} bytes: {e}"
                ) from e
            if not n:
                raise ChannelIOError(
                    f"Write to '{self.path}' made no progress after {written}/{len(data)} bytes"
                )
            written += n

    def read_status(self, deadline: Optional[float] = None) -> StatusReply:
        """
        Read one status frame.

        Args:
            deadline: Absolute time.monotonic() value after which to give up,
                or None to be bounded by the attempt count only; each attempt
                then waits at most policy.read_timeout

        Returns:
            Parsed status frame

        Raises:
            ProtocolTimeout: Attempts exhausted or deadline passed
            ChannelIOError: Short frame or non-transient read error
            DeviceUnavailable: A reopen failed
        """
        for _ in range(self.policy.max_attempts):
            left = remaining(deadline)
            if left is not None and left <= 0:
                break
            if not self.is_open:
                raise ChannelIOError(f"Device '{self.path}' is not open")

            if left is None:
                left = self.policy.read_timeout

            try:
                data = self._read(STATUS_SIZE, left)
            except (BlockingIOError, InterruptedError):
                continue
            except OSError as e:
                if e.errno == errno.EBADF and self.policy.reopen_on_eof:
                    self.reopen()
                    continue
                raise ChannelIOError(f"Status read from '{self.path}' failed: {e}") from e

            if data is None:
                continue
            if len(data) == STATUS_SIZE:
                log.debug("RX status: %s", data.hex())
                return StatusReply.parse(data)
            if not data:
                if self.policy.reopen_on_eof:
                    self.reopen()
                continue
            raise ChannelIOError(
                f"Short status frame from '{self.path}': {len(data)} of {STATUS_SIZE} bytes"
            )

        raise ProtocolTimeout(f"No status from '{self.path}'")

    def __enter__(self) -> "DeviceChannel":
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileChannel(DeviceChannel):
    """Raw character device, e.g. the usblp driver's /dev/usb/lp0."""

    def __init__(self, path: str = DEFAULT_DEVICE, policy: Optional[RetryPolicy] = None):
        super().__init__(path, policy)
        self._fd: Optional[int] = None

    def _open(self) -> None:
        self._fd = os.open(self.path, os.O_RDWR)

    def _close(self) -> None:
        fd, self._fd = self._fd, None
        if fd is not None:
            os.close(fd)

    def _write(self, data: bytes) -> int:
        return os.write(self._fd, data)

    def _read(self, size: int, timeout: Optional[float]) -> Optional[bytes]:
        if timeout is not None:
            ready, _, _ = select.select([self._fd], [], [], timeout)
            if not ready:
                return None
        return os.read(self._fd, size)

    @property
    def is_open(self) -> bool:
        return self._fd is not None


class SerialChannel(DeviceChannel):
    """Serial tty via pyserial; an empty read means no data yet, not end-of-stream."""

    def __init__(
        self,
        path: str,
        policy: Optional[RetryPolicy] = None,
        baud_rate: int = DEFAULT_BAUD_RATE,
    ):
        super().__init__(path, policy)
        self.baud_rate = baud_rate
        self._serial: Optional[serial.Serial] = None

    def _open(self) -> None:
        self._serial = serial.Serial(self.path, self.baud_rate, timeout=None)

    def _close(self) -> None:
        port, self._serial = self._serial, None
        if port is not None:
            port.close()

    def _write(self, data: bytes) -> int:
        return self._serial.write(bytes(data)) or 0

    def _read(self, size: int, timeout: Optional[float]) -> Optional[bytes]:
        self._serial.timeout = timeout
        data = self._serial.read(size)
        if not data:
            return None
        return data

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open


def open_channel(
    path: str = DEFAULT_DEVICE,
    policy: Optional[RetryPolicy] = None,
    baud_rate: int = DEFAULT_BAUD_RATE,
) -> DeviceChannel:
    """
    Open the right channel type for ``path``.

    Raises:
        DeviceUnavailable: If the device cannot be opened
    """
    if SERIAL_PATH_PATTERN.match(path):
        channel: DeviceChannel = SerialChannel(path, policy, baud_rate=baud_rate)
    else:
        channel = FileChannel(path, policy)
    return channel.open()
