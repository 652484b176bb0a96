"""Tests for status frame parsing and decoding."""

import pytest

from qlprint.status import (
    DecodeSection,
    ErrorFlag,
    MediaType,
    StatusReply,
    StatusType,
    decode_errors,
    decode_media_type,
    decode_mode,
    decode_model,
    error_names,
    render_status,
)


def make_status(**fields) -> StatusReply:
    fields.setdefault("model_code", ord("2"))
    return StatusReply(**fields)


class TestStatusParsing:
    """Test the 32-byte frame layout."""

    def test_parse_reference_frame(self):
        """Parse a frame as captured from a QL-570 with 62mm tape."""
        frame = bytes([
            0x80, 0x20, 0x42, 0x34, 0x32, 0x30, 0x30, 0x00,
            0x00, 0x00, 0x3E, 0x0A, 0x00, 0x00, 0x3F, 0x40,
            0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
            0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
        ])
        status = StatusReply.parse(frame)

        assert status.print_head_mark == 0x80
        assert status.size == 32
        assert status.model_class == 0x34
        assert status.model_code == ord("2")
        assert status.media_width_mm == 62
        assert status.media_type == MediaType.CONTINUOUS
        assert status.autocut is True
        assert status.status_type == StatusType.REPLY
        assert status.has_errors is False
        assert status.raw_data == frame

    def test_roundtrip_all_fields(self):
        """Every field survives serialize then parse."""
        original = StatusReply(
            model_code=ord("P"),
            model_class=0x35,
            error_info_1=0x14,
            error_info_2=0x81,
            media_width_mm=102,
            media_type=MediaType.DIECUT_LABELS_ALT,
            mode=0x40,
            media_length_mm=152,
            status_type=StatusType.PHASE_CHANGE,
            phase_type=1,
            phase_number=0x1234,
            notification=3,
        )
        decoded = StatusReply.parse(original.to_bytes())

        assert decoded == original
        assert decoded.phase_number == 0x1234

    def test_phase_number_is_big_endian(self):
        frame = bytearray(make_status().to_bytes())
        frame[20] = 0x01
        frame[21] = 0x02
        assert StatusReply.parse(bytes(frame)).phase_number == 0x0102

    def test_to_bytes_fills_fixed_bytes(self):
        frame = make_status().to_bytes()
        assert len(frame) == 32
        assert frame[2] == ord("B")
        assert frame[5:7] == b"00"
        assert frame[14] == 0x3F
        assert frame[23:] == bytes(9)

    @pytest.mark.parametrize("length", [0, 1, 31, 33, 64])
    def test_parse_rejects_wrong_length(self, length):
        with pytest.raises(ValueError, match="32 bytes"):
            StatusReply.parse(bytes(length))

    def test_printing_done(self):
        assert make_status(status_type=StatusType.PRINTING_DONE).printing_done
        assert not make_status(status_type=StatusType.PHASE_CHANGE).printing_done


class TestErrorDecoding:
    """Test the combined error set."""

    def test_no_errors_is_none(self):
        status = make_status()
        assert status.errors == ErrorFlag.NONE
        assert decode_errors(status) == "none"

    def test_single_error(self):
        status = make_status(error_info_1=0x01)
        assert decode_errors(status) == "no-media"

    def test_two_errors_in_bit_order(self):
        status = make_status(error_info_1=0x11)
        assert decode_errors(status) == "no-media printer-in-use"
        assert error_names(status) == ["no-media", "printer-in-use"]

    def test_second_byte_maps_to_high_bits(self):
        status = make_status(error_info_2=0x10)
        assert status.errors == ErrorFlag.COVER_OPEN
        assert decode_errors(status) == "cover-open"

    def test_both_bytes_byte_one_first(self):
        status = make_status(error_info_1=0x80, error_info_2=0x01)
        assert error_names(status) == ["fan-motor-error", "replace-media"]

    def test_all_bits(self):
        status = make_status(error_info_1=0xFF, error_info_2=0xFF)
        names = error_names(status)
        assert len(names) == 16
        assert len(set(names)) == 16
        assert names[0] == "no-media"
        # 0x08 in the first byte has no meaning
        assert names[3] == "unknown-0x0008"
        assert names[-1] == "system-error"

    def test_undefined_bit_is_named_by_value(self):
        status = make_status(error_info_1=0x08)
        assert status.has_errors
        assert decode_errors(status) == "unknown-0x0008"

    def test_undefined_bit_with_known_bits(self):
        status = make_status(error_info_1=0x09)
        assert error_names(status) == ["no-media", "unknown-0x0008"]

    def test_results_are_independent(self):
        """Two decoded results can be held at the same time."""
        first = decode_errors(make_status(error_info_1=0x01))
        second = decode_errors(make_status(error_info_2=0x80))
        assert first == "no-media"
        assert second == "system-error"


class TestModelDecoding:
    """Test model name lookup."""

    @pytest.mark.parametrize("code,name", [
        ("1", "QL-560"),
        ("2", "QL-570"),
        ("3", "QL-580N"),
        ("4", "QL-1060N"),
        ("5", "QL-700"),
        ("6", "QL-710W"),
        ("7", "QL-720NW"),
        ("O", "QL-500/550"),
        ("P", "QL-1050"),
        ("Q", "QL-650TD"),
    ])
    def test_known_models(self, code, name):
        assert decode_model(make_status(model_code=ord(code))) == name

    def test_unknown_model_shows_hex(self):
        label = decode_model(make_status(model_code=0xEE))
        assert "unrecognised" in label
        assert "ee" in label


class TestMediaAndMode:
    """Test media type and mode decoding."""

    @pytest.mark.parametrize("code,label", [
        (0x00, "no-media"),
        (0x0A, "continuous-length-tape"),
        (0x4A, "continuous-length-tape"),
        (0x0B, "die-cut-labels"),
        (0x4B, "die-cut-labels"),
    ])
    def test_media_types(self, code, label):
        assert decode_media_type(make_status(media_type=code)) == label

    def test_unknown_media_type(self):
        assert decode_media_type(make_status(media_type=0x21)) == "unknown (code 0x21)"

    def test_mode(self):
        assert decode_mode(make_status(mode=0x40)) == "auto-cut"
        assert decode_mode(make_status(mode=0x00)) == "no-auto-cut"
        assert decode_mode(make_status(mode=0x3F)) == "no-auto-cut"


class TestRenderStatus:
    """Test the human-readable report."""

    def test_all_sections(self):
        status = make_status(
            media_type=MediaType.DIECUT_LABELS, media_width_mm=29, media_length_mm=90
        )
        report = render_status(status)
        lines = report.splitlines()

        assert lines == [
            "          Printer: QL-570",
            "             Mode: no-auto-cut",
            "           Errors: none",
            "       Media type: die-cut-labels",
            " Media width (mm): 29",
            "Media length (mm): 90",
        ]
        assert report.endswith("\n")

    def test_continuous_tape_has_no_length(self):
        for media in (MediaType.CONTINUOUS, MediaType.CONTINUOUS_ALT):
            report = render_status(make_status(media_type=media), DecodeSection.MEDIA)
            assert "Media width" in report
            assert "Media length" not in report

    def test_selected_sections_only(self):
        report = render_status(make_status(error_info_2=0x10), DecodeSection.ERROR)
        assert report == "           Errors: cover-open\n"

    def test_no_sections(self):
        assert render_status(make_status(), DecodeSection(0)) == ""
