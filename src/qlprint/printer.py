"""
High-Level Brother QL Printer Interface.

QLPrinter sequences a job the way the printer expects it:

    open -> initialize -> configure (status, margin, autocut, raster mode)
         -> print_bitmap -> wait_for_completion -> (next page) -> done

Any failure moves the driver to ERROR_HALT; from there every step raises
DriverStateError until the printer object is discarded.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, Optional, Sequence

from .channel import (
    DEFAULT_DEVICE,
    DeviceChannel,
    RetryPolicy,
    deadline_after,
    open_channel,
    remaining,
)
from .commands import (
    PI_KIND,
    PI_LENGTH,
    PI_QUALITY,
    PI_WIDTH,
    QLCommands,
    block_size_for,
    check_fits,
    iter_raster_frames,
    needs_mode_switch,
)
from .errors import (
    DeviceReportedError,
    DriverStateError,
    ImageLoadFailed,
    ProtocolTimeout,
    QLError,
)
from .image import Bitmap, BitmapLoader, ImageSource, describe_source, load_bitmap
from .status import Mode, StatusReply, StatusType, decode_errors

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 128
DEFAULT_TIMEOUT = 5.0  # seconds to wait for a page to finish


class DriverState(Enum):
    """Where the driver is in the job sequence."""
    CLOSED = "closed"
    OPENED = "opened"
    INITIALIZED = "initialized"
    MODE_CONFIGURED = "mode-configured"
    PRINTING = "printing"
    AWAITING_COMPLETION = "awaiting-completion"
    DONE = "done"
    ERROR_HALT = "error-halt"


@dataclass
class PrintConfig:
    """
    Per-page print parameters.

    Media fields left as None are not sent and the printer uses whatever is
    loaded. When set, the printer refuses to print on mismatching media.

    Attributes:
        threshold: Pixel values strictly below this print black (0-255)
        media_type: MediaType code to require
        media_width: Media width in mm to require
        media_length: Media length in mm to require
        quality_priority: Favour print quality over speed
        first_page: First page of a job; later pages delay the cut
    """
    threshold: int = DEFAULT_THRESHOLD
    media_type: Optional[int] = None
    media_width: Optional[int] = None
    media_length: Optional[int] = None
    quality_priority: bool = False
    first_page: bool = True

    def __post_init__(self):
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"Threshold must be 0-255, got {self.threshold}")
        for name in ("media_type", "media_width", "media_length"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 255:
                raise ValueError(f"{name} must be 0-255, got {value}")

    @property
    def flags(self) -> int:
        """Print information flags for the fields the caller specified."""
        flags = 0
        if self.media_type is not None:
            flags |= PI_KIND
        if self.media_width is not None:
            flags |= PI_WIDTH
        if self.media_length is not None:
            flags |= PI_LENGTH
        if self.quality_priority:
            flags |= PI_QUALITY
        return flags


@dataclass
class PageResult:
    """One successfully printed page."""
    source: str
    width: int
    height: int
    status: StatusReply


class QLPrinter:
    """
    High-level interface to a Brother QL label printer.

    One instance drives one device path; it is not safe to share between threads.
    """

    def __init__(
        self,
        device: str = DEFAULT_DEVICE,
        policy: Optional[RetryPolicy] = None,
        channel_factory: Callable[..., DeviceChannel] = open_channel,
    ):
        """
        Initialize printer interface.

        Args:
            device: Device path, e.g. /dev/usb/lp0 or /dev/ttyUSB0
            policy: Status read retry policy (default RetryPolicy())
            channel_factory: Callable(path, policy) returning an open channel
        """
        self.device = device
        self.policy = policy or RetryPolicy()
        self._channel_factory = channel_factory
        self.channel: Optional[DeviceChannel] = None
        self.status: Optional[StatusReply] = None
        self.state = DriverState.CLOSED
        self.error: Optional[QLError] = None

    # --- State handling ---

    def _require(self, *states: DriverState) -> None:
        if self.state == DriverState.ERROR_HALT:
            raise DriverStateError(f"Printer halted after {self.error.cause}: {self.error}")
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise DriverStateError(
                f"Cannot do that in state '{self.state.value}' (needs {allowed})"
            )

    def _halt(self, error: QLError) -> None:
        if self.state != DriverState.ERROR_HALT:
            log.debug("Halting in state %s: %s", self.state.value, error)
        self.state = DriverState.ERROR_HALT
        self.error = error

    @contextmanager
    def _guard(self, item: Optional[str] = None) -> Iterator[None]:
        """Move to ERROR_HALT on any driver error, tagging it with ``item``."""
        try:
            yield
        except QLError as e:
            if item is not None and e.item is None:
                e.item = item
            self._halt(e)
            raise

    @property
    def block_size(self) -> int:
        """Raster block size for the connected model (needs a status)."""
        if self.status is None:
            raise DriverStateError("No status read from printer yet")
        return block_size_for(self.status)

    # --- Steps ---

    def open(self) -> None:
        """
        Open the device channel.

        Raises:
            DeviceUnavailable: If the device path cannot be opened
        """
        self._require(DriverState.CLOSED)
        with self._guard():
            self.channel = self._channel_factory(self.device, self.policy)
        self.state = DriverState.OPENED
        log.debug("Printer channel open on %s", self.device)

    def close(self) -> None:
        """Close the device channel. A halted driver stays halted."""
        if self.channel is not None:
            self.channel.close()
            self.channel = None
        if self.state != DriverState.ERROR_HALT:
            self.state = DriverState.CLOSED

    def initialize(self) -> None:
        """Send ESC @, which also cancels anything half-received."""
        self._require(
            DriverState.OPENED,
            DriverState.INITIALIZED,
            DriverState.MODE_CONFIGURED,
            DriverState.DONE,
        )
        with self._guard():
            self.channel.write_all(QLCommands.initialize())
        self.state = DriverState.INITIALIZED

    def request_status(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> StatusReply:
        """
        Request and read one status frame.

        Args:
            timeout: Seconds to wait for the reply (None = bounded by the retry
                policy's attempts and per-read timeout)

        Returns:
            The printer's status; also kept in ``self.status``
        """
        self._require(
            DriverState.INITIALIZED,
            DriverState.MODE_CONFIGURED,
            DriverState.DONE,
        )
        with self._guard():
            self.channel.write_all(QLCommands.status_request())
            self.status = self.channel.read_status(deadline_after(timeout))
        return self.status

    def info(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> StatusReply:
        """Initialize if needed and return a fresh status."""
        if self.state == DriverState.CLOSED:
            self.open()
        if self.state == DriverState.OPENED:
            self.initialize()
        return self.request_status(timeout)

    def configure(
        self,
        margin: Optional[int] = None,
        autocut: bool = False,
        autocut_every: int = 1,
        expanded_mode: Optional[int] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> StatusReply:
        """
        Read status and put the printer into the requested mode.

        Args:
            margin: Feed margin in dots (None = printer default)
            autocut: Arm the cutter
            autocut_every: Cut after every n labels when autocut is on
            expanded_mode: Raw ESC i K byte to send (None = don't send)
            timeout: Seconds to wait for the status reply

        Returns:
            The status read before configuring
        """
        self._require(DriverState.INITIALIZED)
        status = self.request_status(timeout)

        with self._guard():
            if margin is not None:
                self.channel.write_all(QLCommands.set_margin(margin))
            if autocut:
                self.channel.write_all(QLCommands.set_mode(Mode.AUTOCUT))
                self.channel.write_all(QLCommands.set_autocut_every_n(autocut_every))
            if expanded_mode is not None:
                self.channel.write_all(QLCommands.set_expanded_mode(expanded_mode))
            if needs_mode_switch(status):
                log.debug("Switching printer to raster mode")
                self.channel.write_all(QLCommands.switch_to_raster_mode())

        self.state = DriverState.MODE_CONFIGURED
        return status

    def print_bitmap(self, bitmap: Bitmap, config: Optional[PrintConfig] = None) -> None:
        """
        Send one page: print information, one raster frame per column, then feed.

        Nothing is sent if the bitmap does not fit the printer. A write failure
        part way leaves the page incomplete; re-send the whole page after
        re-initializing.

        Raises:
            ImageTooWide: If the bitmap exceeds the printer's block capacity
            ChannelIOError: If a write fails
        """
        self._require(DriverState.MODE_CONFIGURED, DriverState.DONE)
        config = config or PrintConfig()

        with self._guard():
            block_size = self.block_size
            check_fits(bitmap, block_size)

            self.state = DriverState.PRINTING
            log.debug(
                "Sending %dx%d image, block size %d", bitmap.width, bitmap.height, block_size
            )
            for frame in iter_raster_frames(
                bitmap,
                block_size,
                threshold=config.threshold,
                flags=config.flags,
                media_type=config.media_type,
                media_width=config.media_width,
                media_length=config.media_length,
                first_page=config.first_page,
            ):
                self.channel.write_all(frame)

        self.state = DriverState.AWAITING_COMPLETION

    def wait_for_completion(self, timeout: Optional[float] = DEFAULT_TIMEOUT) -> StatusReply:
        """
        Poll status until the printer reports the page done.

        Args:
            timeout: Wall-clock seconds to allow for the page to print

        Returns:
            The "printing done" status

        Raises:
            DeviceReportedError: The printer reported an error
            ProtocolTimeout: No completion within ``timeout``
        """
        self._require(DriverState.AWAITING_COMPLETION)
        deadline = deadline_after(timeout)

        with self._guard():
            while True:
                try:
                    status = self.channel.read_status(deadline)
                except ProtocolTimeout as e:
                    if deadline is not None and remaining(deadline) > 0:
                        time.sleep(self.policy.poll_interval)
                        continue
                    raise ProtocolTimeout(
                        f"Printer stopped responding (waited {timeout}s)"
                    ) from e

                self.status = status
                if status.has_errors:
                    raise DeviceReportedError(
                        f"Printer reported error(s): {decode_errors(status)}",
                        errors=status.errors,
                        status=status,
                    )
                if status.status_type == StatusType.ERROR_OCCURRED:
                    raise DeviceReportedError(
                        "Printer reported an error without error bits",
                        errors=status.errors,
                        status=status,
                    )
                if status.printing_done:
                    break
                log.debug(
                    "Status type 0x%02x, phase 0x%02x", status.status_type, status.phase_type
                )

        self.state = DriverState.DONE
        return status

    def print_page(
        self,
        bitmap: Bitmap,
        config: Optional[PrintConfig] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> StatusReply:
        """Send one page and wait for it to finish printing."""
        self.print_bitmap(bitmap, config)
        return self.wait_for_completion(timeout)

    def print_job(
        self,
        sources: Sequence[ImageSource],
        config: Optional[PrintConfig] = None,
        copies: int = 1,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        loader: BitmapLoader = load_bitmap,
        on_page: Optional[Callable[[PageResult], None]] = None,
    ) -> list[PageResult]:
        """
        Print a list of images, ``copies`` times over.

        Each copy starts a new job for autocut purposes. Images are loaded
        just before they are sent.

        Args:
            sources: Image paths, encoded bytes, or PIL images
            config: Print parameters (first_page is managed here)
            copies: Number of times to print the whole list
            timeout: Seconds allowed per page
            loader: Turns a source into a Bitmap
            on_page: Called with each PageResult as soon as the page is done

        Returns:
            One PageResult per printed page

        Raises:
            QLError: The first failure, with ``item`` naming the source
        """
        if copies < 1:
            raise ValueError(f"Copies must be at least 1, got {copies}")
        self._require(DriverState.MODE_CONFIGURED, DriverState.DONE)
        config = config or PrintConfig()
        results = []

        for copy in range(copies):
            page_config = replace(config, first_page=True)
            for source in sources:
                item = describe_source(source)
                with self._guard(item):
                    try:
                        bitmap = loader(source)
                    except (OSError, ValueError) as e:
                        raise ImageLoadFailed(f"Failed to load image: {e}", item=item) from e
                    status = self.print_page(bitmap, page_config, timeout)

                log.info("%s (%dx%d) OK", item, bitmap.width, bitmap.height)
                result = PageResult(item, bitmap.width, bitmap.height, status)
                results.append(result)
                if on_page is not None:
                    on_page(result)
                page_config = replace(page_config, first_page=False)

            log.debug("Copy %d/%d done", copy + 1, copies)

        return results

    # --- Context manager ---

    def __enter__(self) -> "QLPrinter":
        if self.state == DriverState.CLOSED:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
