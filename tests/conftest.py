"""
Pytest configuration for QL printer tests.

Provides a scripted in-memory channel, status frame helpers, and the
command-line option for hardware tests.
"""

from typing import Optional

import pytest

from qlprint.channel import DeviceChannel, RetryPolicy
from qlprint.printer import QLPrinter
from qlprint.status import StatusReply, StatusType


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--device",
        action="store",
        default=None,
        help="Printer device path for hardware tests (e.g. /dev/usb/lp0)",
    )


class FakeChannel(DeviceChannel):
    """
    Channel whose reads come from a script.

    Each script entry is returned by one low-level read: bytes (a frame, a
    short read, or b"" for end-of-stream), None (no data before the
    timeout), or an exception instance to raise.
    """

    def __init__(self, reads=(), policy: Optional[RetryPolicy] = None, path: str = "/dev/fake"):
        super().__init__(path, policy or RetryPolicy(reopen_delay=0.0, poll_interval=0.0))
        self.reads = list(reads)
        self.writes: list[bytes] = []
        self.read_calls = 0
        self.read_timeouts: list[Optional[float]] = []
        self.open_count = 0
        self.close_count = 0
        self.open_error: Optional[OSError] = None
        self.write_errors: list[BaseException] = []
        self.fail_write_at: Optional[int] = None
        self.max_write_chunk: Optional[int] = None
        self._is_open = False

    def _open(self):
        if self.open_error is not None:
            raise self.open_error
        self.open_count += 1
        self._is_open = True

    def _close(self):
        self.close_count += 1
        self._is_open = False

    def _write(self, data):
        if self.write_errors:
            raise self.write_errors.pop(0)
        if self.fail_write_at is not None and len(self.writes) >= self.fail_write_at:
            raise OSError(5, "Input/output error")
        data = bytes(data)
        if self.max_write_chunk is not None:
            data = data[:self.max_write_chunk]
        self.writes.append(data)
        return len(data)

    def _read(self, size, timeout):
        self.read_calls += 1
        self.read_timeouts.append(timeout)
        if not self.reads:
            return None
        item = self.reads.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def is_open(self):
        return self._is_open

    @property
    def sent(self) -> bytes:
        """Everything written, concatenated."""
        return b"".join(self.writes)


def status_frame(**fields) -> bytes:
    """A 32-byte status frame; model defaults to QL-570."""
    fields.setdefault("model_code", ord("2"))
    return StatusReply(**fields).to_bytes()


def done_frame(**fields) -> bytes:
    """A "printing done" status frame."""
    fields.setdefault("status_type", StatusType.PRINTING_DONE)
    return status_frame(**fields)


@pytest.fixture
def fake_channel():
    """An unopened scripted channel."""
    return FakeChannel()


@pytest.fixture
def make_printer():
    """Build a QLPrinter wired to a FakeChannel."""

    def _make(channel: FakeChannel, device: str = "/dev/fake") -> QLPrinter:
        return QLPrinter(
            device,
            policy=RetryPolicy(poll_interval=0.0),
            channel_factory=lambda path, policy: channel.open(),
        )

    return _make


@pytest.fixture
def device_path(request):
    """Get the printer device from the command line."""
    device = request.config.getoption("--device")
    if device is None:
        pytest.skip("No printer device provided (use --device=/dev/usb/lp0)")
    return device
