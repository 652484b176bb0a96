"""
Status frame parsing and decoding for Brother QL printers.

The printer answers a status request (ESC i S) and reports print progress with
a fixed 32-byte frame. Layout, as documented in the QL-500/550/560/570/580N/
650TD/700/1050/1060N and QL-710W/720NW raster command references:

    Offset  Length  Field
    0       1       Print head mark (0x80)
    1       1       Size (0x20)
    2       1       Fixed 'B' (0x42)
    3       1       Model class
    4       1       Model code
    5-6     2       Fixed '0' '0'
    7       1       Fixed 0x00
    8       1       Error information 1
    9       1       Error information 2
    10      1       Media width (mm)
    11      1       Media type
    12-13   2       Fixed 0x00
    14      1       Fixed 0x3f
    15      1       Mode
    16      1       Fixed 0x00
    17      1       Media length (mm)
    18      1       Status type
    19      1       Phase type
    20-21   2       Phase number (big-endian)
    22      1       Notification number
    23-31   9       Reserved (0x00)

All decoders here are pure functions of a StatusReply and return fresh strings.
"""

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag

STATUS_SIZE = 32

# Byte offsets within the status frame
OFF_PRINT_HEAD_MARK = 0
OFF_SIZE = 1
OFF_FIXED_B = 2
OFF_MODEL_CLASS = 3
OFF_MODEL_CODE = 4
OFF_ERROR_1 = 8
OFF_ERROR_2 = 9
OFF_MEDIA_WIDTH = 10
OFF_MEDIA_TYPE = 11
OFF_MODE = 15
OFF_MEDIA_LENGTH = 17
OFF_STATUS_TYPE = 18
OFF_PHASE_TYPE = 19
OFF_PHASE_NUMBER = 20
OFF_NOTIFICATION = 22

# Constant bytes the printer puts in reserved positions
_FIXED_BYTES = {
    OFF_FIXED_B: 0x42,
    5: 0x30,
    6: 0x30,
    14: 0x3F,
}


class MediaType(IntEnum):
    """Media type codes (byte 11)."""
    NO_MEDIA = 0x00
    CONTINUOUS = 0x0A
    DIECUT_LABELS = 0x0B
    # The 710/720 may report these instead
    CONTINUOUS_ALT = 0x4A
    DIECUT_LABELS_ALT = 0x4B


CONTINUOUS_MEDIA = (MediaType.CONTINUOUS, MediaType.CONTINUOUS_ALT)
DIECUT_MEDIA = (MediaType.DIECUT_LABELS, MediaType.DIECUT_LABELS_ALT)


class StatusType(IntEnum):
    """Status type codes (byte 18)."""
    REPLY = 0x00
    PRINTING_DONE = 0x01
    ERROR_OCCURRED = 0x02
    TURNED_OFF = 0x04
    NOTIFICATION = 0x05
    PHASE_CHANGE = 0x06


class PhaseType(IntEnum):
    """Phase type codes (byte 19)."""
    RECEIVING = 0x00
    PRINTING = 0x01


class Notification(IntEnum):
    """Notification codes (byte 22)."""
    NONE = 0x00
    COOLING_STARTED = 0x03
    COOLING_DONE = 0x04


class Mode(IntFlag):
    """Mode byte flags, as reported at byte 15 and set with ESC i M."""
    NO_AUTOCUT = 0x00
    AUTOCUT = 0x40


class ErrorFlag(IntFlag):
    """
    Combined error set.

    Error information 1 occupies the low byte, error information 2 the high byte.
    """
    NONE = 0
    # Error information 1 (0x08 is not defined)
    NO_MEDIA = 0x0001
    END_OF_MEDIA = 0x0002
    CUTTER_JAM = 0x0004
    PRINTER_IN_USE = 0x0010
    PRINTER_TURNED_OFF = 0x0020
    HIGH_VOLTAGE_ADAPTER = 0x0040
    FAN_MOTOR_ERROR = 0x0080
    # Error information 2
    REPLACE_MEDIA = 0x0100
    EXPANSION_BUFFER_FULL = 0x0200
    COMMUNICATION_ERROR = 0x0400
    COMMUNICATION_BUFFER_FULL = 0x0800
    COVER_OPEN = 0x1000
    CANCEL_KEY = 0x2000
    MEDIA_CANNOT_BE_FED = 0x4000
    SYSTEM_ERROR = 0x8000


# Canonical bit-scan order for rendering
ERROR_NAMES = (
    (ErrorFlag.NO_MEDIA, "no-media"),
    (ErrorFlag.END_OF_MEDIA, "end-of-media"),
    (ErrorFlag.CUTTER_JAM, "cutter-jam"),
    (ErrorFlag.PRINTER_IN_USE, "printer-in-use"),
    (ErrorFlag.PRINTER_TURNED_OFF, "printer-turned-off"),
    (ErrorFlag.HIGH_VOLTAGE_ADAPTER, "high-voltage-adapter"),
    (ErrorFlag.FAN_MOTOR_ERROR, "fan-motor-error"),
    (ErrorFlag.REPLACE_MEDIA, "replace-media"),
    (ErrorFlag.EXPANSION_BUFFER_FULL, "expansion-buffer-full"),
    (ErrorFlag.COMMUNICATION_ERROR, "communication-error"),
    (ErrorFlag.COMMUNICATION_BUFFER_FULL, "communication-buffer-full"),
    (ErrorFlag.COVER_OPEN, "cover-open"),
    (ErrorFlag.CANCEL_KEY, "cancel-key-pressed"),
    (ErrorFlag.MEDIA_CANNOT_BE_FED, "media-cannot-be-fed"),
    (ErrorFlag.SYSTEM_ERROR, "system-error"),
)

MODEL_NAMES = {
    ord("1"): "QL-560",
    ord("2"): "QL-570",
    ord("3"): "QL-580N",
    ord("4"): "QL-1060N",
    ord("5"): "QL-700",
    ord("6"): "QL-710W",
    ord("7"): "QL-720NW",
    ord("O"): "QL-500/550",
    ord("P"): "QL-1050",
    ord("Q"): "QL-650TD",
}


class DecodeSection(IntFlag):
    """Sections of the human-readable status report."""
    MODEL = 0x01
    ERROR = 0x02
    MEDIA = 0x04
    MODE = 0x08
    ALL = MODEL | ERROR | MEDIA | MODE


@dataclass
class StatusReply:
    """A decoded 32-byte status frame."""

    model_code: int = 0
    model_class: int = 0x34
    error_info_1: int = 0
    error_info_2: int = 0
    media_width_mm: int = 0
    media_type: int = MediaType.NO_MEDIA
    mode: int = 0
    media_length_mm: int = 0
    status_type: int = StatusType.REPLY
    phase_type: int = PhaseType.RECEIVING
    phase_number: int = 0
    notification: int = Notification.NONE
    print_head_mark: int = 0x80
    size: int = STATUS_SIZE
    raw_data: bytes = field(default=b"", repr=False, compare=False)

    @classmethod
    def parse(cls, data: bytes) -> "StatusReply":
        """
        Parse a raw status frame.

        Args:
            data: Exactly 32 bytes as read from the printer

        Returns:
            StatusReply instance

        Raises:
            ValueError: If data is not exactly 32 bytes long
        """
        if len(data) != STATUS_SIZE:
            raise ValueError(
                f"Status frame must be {STATUS_SIZE} bytes, got {len(data)}"
            )
        data = bytes(data)

        return cls(
            model_code=data[OFF_MODEL_CODE],
            model_class=data[OFF_MODEL_CLASS],
            error_info_1=data[OFF_ERROR_1],
            error_info_2=data[OFF_ERROR_2],
            media_width_mm=data[OFF_MEDIA_WIDTH],
            media_type=data[OFF_MEDIA_TYPE],
            mode=data[OFF_MODE],
            media_length_mm=data[OFF_MEDIA_LENGTH],
            status_type=data[OFF_STATUS_TYPE],
            phase_type=data[OFF_PHASE_TYPE],
            phase_number=int.from_bytes(
                data[OFF_PHASE_NUMBER:OFF_PHASE_NUMBER + 2], "big"
            ),
            notification=data[OFF_NOTIFICATION],
            print_head_mark=data[OFF_PRINT_HEAD_MARK],
            size=data[OFF_SIZE],
            raw_data=data,
        )

    def to_bytes(self) -> bytes:
        """Serialize back into a 32-byte frame, filling reserved bytes with their documented values."""
        frame = bytearray(STATUS_SIZE)
        for offset, value in _FIXED_BYTES.items():
            frame[offset] = value

        frame[OFF_PRINT_HEAD_MARK] = self.print_head_mark
        frame[OFF_SIZE] = self.size
        frame[OFF_MODEL_CLASS] = self.model_class
        frame[OFF_MODEL_CODE] = self.model_code
        frame[OFF_ERROR_1] = self.error_info_1
        frame[OFF_ERROR_2] = self.error_info_2
        frame[OFF_MEDIA_WIDTH] = self.media_width_mm
        frame[OFF_MEDIA_TYPE] = self.media_type
        frame[OFF_MODE] = self.mode
        frame[OFF_MEDIA_LENGTH] = self.media_length_mm
        frame[OFF_STATUS_TYPE] = self.status_type
        frame[OFF_PHASE_TYPE] = self.phase_type
        frame[OFF_PHASE_NUMBER:OFF_PHASE_NUMBER + 2] = self.phase_number.to_bytes(2, "big")
        frame[OFF_NOTIFICATION] = self.notification
        return bytes(frame)

    @property
    def errors(self) -> ErrorFlag:
        """Both error bytes combined into one flag set."""
        return ErrorFlag(self.error_info_1 | (self.error_info_2 << 8))

    @property
    def has_errors(self) -> bool:
        return bool(self.error_info_1 or self.error_info_2)

    @property
    def printing_done(self) -> bool:
        return self.status_type == StatusType.PRINTING_DONE

    @property
    def autocut(self) -> bool:
        return bool(self.mode & Mode.AUTOCUT)


def error_names(status: StatusReply) -> list[str]:
    """
    Return the names of all error conditions set, in bit-scan order.

    Bits with no defined meaning are named by value, e.g. "unknown-0x0008".
    """
    known = dict(ERROR_NAMES)
    errors = int(status.errors)
    names = []
    for bit in range(16):
        flag = 1 << bit
        if errors & flag:
            names.append(known.get(flag) or f"unknown-0x{flag:04x}")
    return names


def decode_errors(status: StatusReply) -> str:
    """Space-joined error names, or "none" when no error bit is set."""
    names = error_names(status)
    return " ".join(names) if names else "none"


def decode_model(status: StatusReply) -> str:
    """Printer model name, e.g. "QL-570"."""
    name = MODEL_NAMES.get(status.model_code)
    if name is None:
        return f"unrecognised (type code 0x{status.model_code:02x})"
    return name


def decode_mode(status: StatusReply) -> str:
    return "auto-cut" if status.autocut else "no-auto-cut"


def decode_media_type(status: StatusReply) -> str:
    media_type = status.media_type
    if media_type == MediaType.NO_MEDIA:
        return "no-media"
    if media_type in CONTINUOUS_MEDIA:
        return "continuous-length-tape"
    if media_type in DIECUT_MEDIA:
        return "die-cut-labels"
    return f"unknown (code 0x{media_type:02x})"


def render_status(status: StatusReply, sections: DecodeSection = DecodeSection.ALL) -> str:
    """
    Render a human-readable status report.

    Args:
        status: Status frame to describe
        sections: Which of model/mode/errors/media to include

    Returns:
        Newline-terminated ``key: value`` lines, keys right-aligned
    """
    lines = []

    def add(key: str, value) -> None:
        lines.append(f"{key:>17}: {value}")

    if sections & DecodeSection.MODEL:
        add("Printer", decode_model(status))
    if sections & DecodeSection.MODE:
        add("Mode", decode_mode(status))
    if sections & DecodeSection.ERROR:
        add("Errors", decode_errors(status))
    if sections & DecodeSection.MEDIA:
        add("Media type", decode_media_type(status))
        add("Media width (mm)", status.media_width_mm)
        if status.media_type not in CONTINUOUS_MEDIA:
            add("Media length (mm)", status.media_length_mm)

    return "".join(line + "\n" for line in lines)
