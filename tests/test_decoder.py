"""
Tests for the SeiMetadata decoders.

Covers varint reading, the manual wire-format decoder, schema loading and
the schema-driven decoder.
"""

import struct

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sei_telemetry.data_models import TelemetryRecord
from sei_telemetry.decoder import (
    DEFAULT_SCHEMA_PATH,
    ManualDecoder,
    SchemaDecoder,
    TelemetryDecodeError,
    create_decoder,
    is_plausible,
    load_schema,
    read_varint,
)
from mp4_builder import encode_telemetry, encode_varint


class TestReadVarint:
    """Tests for base-128 varint decoding."""

    def test_single_byte(self):
        assert read_varint(b"\x08", 0) == (8, 1)

    def test_multi_byte(self):
        """300 encodes as 0xAC 0x02."""
        assert read_varint(b"\xac\x02", 0) == (300, 2)

    def test_offset(self):
        assert read_varint(b"\xff\x96\x01", 1) == (150, 3)

    def test_large_value(self):
        """uint64 frame sequence numbers decode without truncation."""
        value = 2**40 + 12345
        assert read_varint(encode_varint(value), 0)[0] == value

    def test_truncated_raises(self):
        with pytest.raises(TelemetryDecodeError):
            read_varint(b"\x80\x80", 0)

    def test_overlong_raises(self):
        """More than 64 bits of continuation bytes is rejected."""
        with pytest.raises(TelemetryDecodeError):
            read_varint(b"\xff" * 12 + b"\x01", 0)


class TestIsPlausible:
    """Tests for the noise filter applied to decoded messages."""

    def test_empty_rejected(self):
        assert not is_plausible({})

    def test_all_zero_rejected(self):
        assert not is_plausible({"version": 0, "vehicle_speed_mps": 0.0, "gear_state": 2})

    @pytest.mark.parametrize("fields", [
        {"version": 1},
        {"vehicle_speed_mps": 0.1},
        {"latitude_deg": -33.9},
        {"longitude_deg": 151.2},
    ])
    def test_any_signal_accepted(self, fields):
        assert is_plausible(fields)


class TestManualDecoder:
    """Tests for the hand-written wire-format decoder."""

    def test_all_fields(self, manual_decoder, sample_fields):
        """Every field 1-16 should map to its name."""
        raw = manual_decoder.decode_raw(encode_telemetry(**sample_fields))

        assert raw["version"] == 1
        assert raw["gear_state"] == 1
        assert raw["frame_seq_no"] == 1000
        assert raw["vehicle_speed_mps"] == pytest.approx(20.5)
        assert raw["accelerator_pedal_position"] == pytest.approx(0.25)
        assert raw["steering_wheel_angle"] == pytest.approx(-5.5)
        assert raw["blinker_on_left"] is False
        assert raw["blinker_on_right"] is True
        assert raw["brake_applied"] is False
        assert raw["autopilot_state"] == 2
        assert raw["latitude_deg"] == 37.7749
        assert raw["longitude_deg"] == -122.4194
        assert raw["heading_deg"] == 45.0
        assert raw["linear_acceleration_mps2_x"] == 0.5
        assert raw["linear_acceleration_mps2_y"] == -0.2
        assert raw["linear_acceleration_mps2_z"] == 9.81

    def test_length_delimited_skipped(self, manual_decoder):
        """Wire type 2 fields are skipped without being interpreted."""
        payload = encode_varint((20 << 3) | 2) + encode_varint(3) + b"abc" + encode_telemetry(version=4)
        assert manual_decoder.decode_raw(payload) == {"version": 4}

    def test_unknown_field_number_ignored(self, manual_decoder):
        payload = encode_varint((99 << 3) | 0) + encode_varint(7) + encode_telemetry(version=2)
        assert manual_decoder.decode_raw(payload) == {"version": 2}

    def test_unknown_wire_type_skips_one_byte(self, manual_decoder):
        """Wire type 3 advances a single byte and decoding continues."""
        payload = bytes([(1 << 3) | 3, 0xEE]) + encode_telemetry(version=5)
        assert manual_decoder.decode_raw(payload) == {"version": 5}

    def test_truncated_double_keeps_earlier_fields(self, manual_decoder):
        """A field that runs off the end stops decoding, keeping prior fields."""
        payload = encode_telemetry(version=1, gear_state=2)
        payload += encode_varint((11 << 3) | 1) + struct.pack("<d", 1.0)[:5]
        assert manual_decoder.decode_raw(payload) == {"version": 1, "gear_state": 2}

    def test_truncated_float_keeps_earlier_fields(self, manual_decoder):
        payload = encode_telemetry(frame_seq_no=42) + encode_varint((4 << 3) | 5) + b"\x00\x00"
        assert manual_decoder.decode_raw(payload) == {"frame_seq_no": 42}

    def test_bad_varint_stops(self, manual_decoder):
        payload = encode_telemetry(version=3) + bytes([(2 << 3) | 0]) + b"\xff" * 11
        assert manual_decoder.decode_raw(payload) == {"version": 3}

    def test_repeated_field_last_wins(self, manual_decoder):
        payload = encode_telemetry(version=1) + encode_telemetry(version=9)
        assert manual_decoder.decode_raw(payload)["version"] == 9

    def test_decode_returns_sanitized_record(self, manual_decoder, sample_fields):
        record = manual_decoder.decode(encode_telemetry(**sample_fields))
        assert record is not None
        assert record.frame_seq_no == 1000
        assert record.gear_name == "D"
        assert record.autopilot_name == "AUTOSTEER"

    def test_decode_rejects_noise(self, manual_decoder):
        """A message with no version, speed or position is discarded."""
        assert manual_decoder.decode(encode_telemetry(gear_state=1, brake_applied=True)) is None

    def test_decode_never_raises_on_garbage(self, manual_decoder):
        result = manual_decoder.decode(bytes(range(256)))
        assert result is None or isinstance(result, TelemetryRecord)


class TestLoadSchema:
    """Tests for compiling the bundled schema."""

    def test_bundled_schema_exists(self):
        assert DEFAULT_SCHEMA_PATH.is_file()

    def test_load_bundled_schema(self):
        message_class = load_schema()
        assert message_class is not None
        field_names = [f.name for f in message_class.DESCRIPTOR.fields]
        assert field_names[0] == "version"
        assert len(field_names) == 16

    def test_missing_schema_returns_none(self, tmp_path):
        assert load_schema(tmp_path / "missing.textproto") is None

    def test_invalid_schema_returns_none(self, tmp_path):
        path = tmp_path / "broken.textproto"
        path.write_text("message_type { name: ", encoding="utf-8")
        assert load_schema(path) is None

    def test_schema_without_message_returns_none(self, tmp_path):
        path = tmp_path / "other.textproto"
        path.write_text('name: "other.proto" syntax: "proto3"', encoding="utf-8")
        assert load_schema(path) is None


class TestCreateDecoder:
    """Tests for backend selection."""

    def test_schema_decoder_when_available(self):
        assert isinstance(create_decoder(use_schema=True), SchemaDecoder)

    def test_manual_when_disabled(self):
        assert isinstance(create_decoder(use_schema=False), ManualDecoder)

    def test_manual_when_schema_missing(self, tmp_path):
        decoder = create_decoder(use_schema=True, schema_path=tmp_path / "nope.textproto")
        assert isinstance(decoder, ManualDecoder)


class TestSchemaDecoder:
    """Tests for the protobuf-backed decoder."""

    @pytest.fixture
    def schema_decoder(self):
        return SchemaDecoder(load_schema())

    def test_decodes_sample(self, schema_decoder, sample_fields):
        record = schema_decoder.decode(encode_telemetry(**sample_fields))
        assert record is not None
        assert record.frame_seq_no == 1000
        assert record.vehicle_speed_mps == pytest.approx(20.5)
        assert record.latitude_deg == 37.7749
        assert record.blinker_on_right is True
        assert record.autopilot_state == 2

    def test_matches_manual_decoder(self, schema_decoder, manual_decoder, sample_fields):
        """Both backends should produce the same record."""
        payload = encode_telemetry(**sample_fields)
        assert schema_decoder.decode(payload) == manual_decoder.decode(payload)

    def test_uint64_sequence_number(self, schema_decoder):
        """Wide frame_seq_no values decode without truncation."""
        seq = 2**53 + 7
        record = schema_decoder.decode(encode_telemetry(version=1, frame_seq_no=seq))
        assert record.frame_seq_no == seq

    def test_decode_error_falls_back_to_manual(self, schema_decoder):
        """A payload protobuf rejects is decoded leniently instead."""
        payload = encode_telemetry(version=1) + bytes([(2 << 3) | 0, 0xFF])
        assert schema_decoder.decode_raw(payload) == {"version": 1}
        assert schema_decoder.once.seen("schema-error")

    def test_float32_values_match_manual(self, schema_decoder, manual_decoder):
        """Float fields keep their exact float32 value in both backends."""
        payload = encode_telemetry(version=1, vehicle_speed_mps=20.1, steering_wheel_angle=-3.3)
        schema_raw = schema_decoder.decode_raw(payload)
        manual_raw = manual_decoder.decode_raw(payload)
        expected = struct.unpack("<f", struct.pack("<f", 20.1))[0]

        assert schema_raw["vehicle_speed_mps"] == expected
        assert schema_raw == manual_raw
        assert schema_decoder.decode(payload) == manual_decoder.decode(payload)

    def test_raw_fields_are_native_types(self, schema_decoder):
        raw = schema_decoder.decode_raw(encode_telemetry(version=1, frame_seq_no=77, gear_state=3))
        assert raw == {"version": 1, "frame_seq_no": 77, "gear_state": 3}
        assert isinstance(raw["frame_seq_no"], int)
