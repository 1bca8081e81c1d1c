"""
Decoders for the Tesla SeiMetadata protobuf message.

Two interchangeable backends, chosen once when the extractor is built:

- SchemaDecoder: compiled from the dashcam schema with google.protobuf
- ManualDecoder: hand-walks the protobuf wire format, always available

Both return sanitized TelemetryRecords and drop messages that carry no
usable data.
"""

import logging
import struct
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, text_format
from google.protobuf.message import DecodeError, Message

from sei_telemetry.constants import (
    MAX_VARINT_SHIFT,
    WIRE_FIXED32,
    WIRE_FIXED64,
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
)
from sei_telemetry.data_models import TelemetryRecord
from sei_telemetry.diagnostics import LogOnce
from sei_telemetry.sanitizer import sanitize, to_number

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schema" / "dashcam.textproto"
SCHEMA_MESSAGE_NAME = "SeiMetadata"

# SeiMetadata field numbers
FIELD_NAMES = {
    1: "version",
    2: "gear_state",
    3: "frame_seq_no",
    4: "vehicle_speed_mps",
    5: "accelerator_pedal_position",
    6: "steering_wheel_angle",
    7: "blinker_on_left",
    8: "blinker_on_right",
    9: "brake_applied",
    10: "autopilot_state",
    11: "latitude_deg",
    12: "longitude_deg",
    13: "heading_deg",
    14: "linear_acceleration_mps2_x",
    15: "linear_acceleration_mps2_y",
    16: "linear_acceleration_mps2_z",
}
BOOL_FIELDS = frozenset({"blinker_on_left", "blinker_on_right", "brake_applied"})


class TelemetryDecodeError(ValueError):
    """A field of the wire-format message could not be read."""


def read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """
    Read a base-128 varint starting at `pos`.

    Returns:
        (value, position after the varint)

    Raises:
        TelemetryDecodeError: if the data ends mid-varint or the varint is
            longer than 64 bits
    """
    value = 0
    shift = 0
    while pos < len(data):
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7
        if shift > MAX_VARINT_SHIFT:
            break
    raise TelemetryDecodeError(f"Malformed varint ending at offset {pos}")


def is_plausible(raw: Dict[str, Any]) -> bool:
    """True if the message carries a version, speed or position."""
    version = to_number(raw.get("version")) or 0
    speed = to_number(raw.get("vehicle_speed_mps")) or 0
    latitude = to_number(raw.get("latitude_deg")) or 0
    longitude = to_number(raw.get("longitude_deg")) or 0
    return version > 0 or speed > 0 or latitude != 0 or longitude != 0


class TelemetryDecoder(ABC):
    """Turns a cleaned SEI payload into a TelemetryRecord."""

    name = "base"

    def __init__(self):
        self.once = LogOnce(logger)

    @abstractmethod
    def decode_raw(self, payload: bytes) -> Optional[Dict[str, Any]]:
        """Decode `payload` into a dict keyed by proto field name."""

    def decode(self, payload: bytes) -> Optional[TelemetryRecord]:
        """
        Decode and sanitize one payload.

        Returns:
            The sanitized record, or None if the message looks like noise
        """
        raw = self.decode_raw(payload)
        if not raw or not is_plausible(raw):
            return None
        self.once.debug(f"{self.name}-decoded", "%s decoder raw fields: %s", self.name, raw)
        return sanitize(raw)

    def reset_diagnostics(self) -> None:
        self.once.reset()


class ManualDecoder(TelemetryDecoder):
    """
    Minimal protobuf wire-format reader for SeiMetadata.

    Length-delimited fields are skipped and unknown wire types advance one
    byte. Decoding stops at the first unreadable field, keeping what was
    collected so far.
    """

    name = "manual"

    def decode_raw(self, payload: bytes) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        pos = 0
        while pos < len(payload):
            try:
                tag, pos = read_varint(payload, pos)
                field_number = tag >> 3
                wire_type = tag & 0x07

                if wire_type == WIRE_VARINT:
                    value, pos = read_varint(payload, pos)
                elif wire_type == WIRE_FIXED64:
                    if pos + 8 > len(payload):
                        raise TelemetryDecodeError(f"Truncated double for field {field_number}")
                    value = struct.unpack_from("<d", payload, pos)[0]
                    pos += 8
                elif wire_type == WIRE_FIXED32:
                    if pos + 4 > len(payload):
                        raise TelemetryDecodeError(f"Truncated float for field {field_number}")
                    value = struct.unpack_from("<f", payload, pos)[0]
                    pos += 4
                elif wire_type == WIRE_LENGTH_DELIMITED:
                    length, pos = read_varint(payload, pos)
                    pos += length
                    continue
                else:
                    pos += 1
                    continue
            except TelemetryDecodeError as e:
                self.once.debug("manual-stop", "Manual decode stopped early: %s", e)
                break

            name = FIELD_NAMES.get(field_number)
            if name is None:
                continue
            fields[name] = bool(value) if name in BOOL_FIELDS else value

        return fields


class SchemaDecoder(TelemetryDecoder):
    """
    Decodes payloads with a compiled protobuf message class.

    Payloads the protobuf runtime rejects are handed to the manual decoder,
    which is more forgiving of truncated messages.
    """

    name = "schema"

    def __init__(self, message_class: Type[Message]):
        super().__init__()
        self.message_class = message_class
        self.fallback = ManualDecoder()

    def decode_raw(self, payload: bytes) -> Optional[Dict[str, Any]]:
        message = self.message_class()
        try:
            message.ParseFromString(payload)
        except DecodeError as e:
            self.once.warning("schema-error", "Protobuf decode failed, using manual decoder: %s", e)
            return self.fallback.decode_raw(payload)
        # Raw field values: float32 fields keep the value the manual decoder reads
        return {field.name: value for field, value in message.ListFields()}

    def reset_diagnostics(self) -> None:
        super().reset_diagnostics()
        self.fallback.reset_diagnostics()


def load_schema(path: Union[str, Path, None] = None) -> Optional[Type[Message]]:
    """
    Compile the SeiMetadata message class from a text-format file descriptor.

    Args:
        path: Schema file; defaults to the bundled dashcam.textproto

    Returns:
        The generated message class, or None if the schema is missing or
        does not compile
    """
    schema_path = Path(path) if path is not None else DEFAULT_SCHEMA_PATH
    try:
        text = schema_path.read_text(encoding="utf-8")
        file_proto = text_format.Parse(text, descriptor_pb2.FileDescriptorProto())
        pool = descriptor_pool.DescriptorPool()
        pool.AddSerializedFile(file_proto.SerializeToString())
        descriptor = pool.FindMessageTypeByName(SCHEMA_MESSAGE_NAME)
        message_class = message_factory.GetMessageClass(descriptor)
    except (OSError, text_format.ParseError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Failed to load protobuf schema from {schema_path}, using manual decoder: {e}")
        return None

    logger.debug(f"Protobuf schema loaded from {schema_path}")
    return message_class


def create_decoder(use_schema: bool = True, schema_path: Union[str, Path, None] = None) -> TelemetryDecoder:
    """Pick the schema decoder when the schema loads, else the manual one."""
    if use_schema:
        message_class = load_schema(schema_path)
        if message_class is not None:
            return SchemaDecoder(message_class)
    return ManualDecoder()
