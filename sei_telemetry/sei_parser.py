"""
SEI (Supplemental Enhancement Information) parser for Tesla dashcam video.

Walks the length-prefixed H.264 NAL units of the mdat box, pulls the Tesla
protobuf payload out of each SEI unit and pairs it with the slice that
follows it.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional, Tuple

from sei_telemetry.constants import (
    NAL_LENGTH_SIZE,
    NAL_TYPE_MASK,
    NAL_TYPE_SEI,
    SEI_DELIMITER_BYTE,
    SEI_MIN_PADDING,
    SEI_PADDING_BYTE,
    SEI_PAYLOAD_OFFSET,
    SLICE_NAL_TYPES,
)
from sei_telemetry.data_models import TelemetryRecord

logger = logging.getLogger(__name__)


@dataclass
class ParseStats:
    """Counters collected while scanning one mdat box."""
    nal_units_scanned: int = 0
    sei_units_found: int = 0
    slices_found: int = 0
    resync_skips: int = 0
    successful_parses: int = 0


def strip_emulation_prevention_bytes(data: bytes) -> bytes:
    """Remove emulation prevention bytes (0x03 following 0x00 0x00)."""
    stripped = bytearray()
    zero_count = 0
    for byte in data:
        if zero_count >= 2 and byte == 0x03:
            zero_count = 0
            continue
        stripped.append(byte)
        zero_count = 0 if byte != 0 else zero_count + 1
    return bytes(stripped)


def extract_proto_payload(nal: bytes) -> Optional[bytes]:
    """
    Extract protobuf payload from SEI NAL unit.

    Tesla writes at least four 0x42 padding bytes starting at byte 3, then a
    single 0x69 delimiter. The payload runs from after the delimiter up to,
    but not including, the last byte of the unit.
    """
    if not isinstance(nal, (bytes, bytearray, memoryview)) or len(nal) <= SEI_PAYLOAD_OFFSET:
        return None

    i = SEI_PAYLOAD_OFFSET
    while i < len(nal) and nal[i] == SEI_PADDING_BYTE:
        i += 1

    if i - SEI_PAYLOAD_OFFSET < SEI_MIN_PADDING:
        return None
    if i + 1 >= len(nal) or nal[i] != SEI_DELIMITER_BYTE:
        return None

    payload_start = i + 1
    payload_end = len(nal) - 1
    if payload_start >= payload_end:
        return None

    return strip_emulation_prevention_bytes(bytes(nal[payload_start:payload_end]))


def iter_nal_units(
    data: bytes,
    start: int,
    end: int,
    stats: Optional[ParseStats] = None,
) -> Generator[Tuple[int, int, int], None, None]:
    """
    Yield (nal_type, unit_start, unit_end) for each NAL unit in the mdat box.

    A zero or overrunning length prefix is treated as desync: the scanner
    steps one byte past the prefix and tries again. Units lost this way are
    not recovered.
    """
    end = min(end, len(data))
    pos = start

    while pos < end - NAL_LENGTH_SIZE:
        nal_size = struct.unpack_from(">I", data, pos)[0]
        pos += NAL_LENGTH_SIZE

        if nal_size == 0 or pos + nal_size > end:
            if stats is not None:
                stats.resync_skips += 1
            pos += 1
            continue

        if stats is not None:
            stats.nal_units_scanned += 1
        yield data[pos] & NAL_TYPE_MASK, pos, pos + nal_size
        pos += nal_size


def scan_frames(
    data: bytes,
    start: int,
    end: int,
    parse_sei: Callable[[bytes], Optional[TelemetryRecord]],
    stats: Optional[ParseStats] = None,
) -> List[TelemetryRecord]:
    """
    Pair each SEI telemetry record with the slice that follows it.

    Every slice NAL (IDR or non-IDR) closes one frame and advances the frame
    counter, whether or not telemetry was pending. When several SEI units
    precede a slice only the last one parsed is kept.

    Args:
        data: Whole file contents
        start: First byte of the mdat payload
        end: End of the mdat box
        parse_sei: Turns a raw SEI NAL unit into a record, or None
        stats: Optional counters to update

    Returns:
        Records in stream order with frame_index set
    """
    frames: List[TelemetryRecord] = []
    frame_index = 0
    pending: Optional[TelemetryRecord] = None

    for nal_type, unit_start, unit_end in iter_nal_units(data, start, end, stats):
        if nal_type == NAL_TYPE_SEI:
            if stats is not None:
                stats.sei_units_found += 1
            pending = parse_sei(data[unit_start:unit_end])
            if pending is not None and stats is not None:
                stats.successful_parses += 1
        elif nal_type in SLICE_NAL_TYPES:
            if stats is not None:
                stats.slices_found += 1
            if pending is not None:
                frames.append(pending.model_copy(update={"frame_index": frame_index}))
                pending = None
            frame_index += 1

    return frames
