"""
MP4 box scanning and timing extraction.

Walks the ISO-BMFF box tree of an in-memory MP4 to locate the boxes the
extractor needs: moov (mdhd/stts timing) and mdat (H.264 NAL units).
"""

import logging
import struct
from dataclasses import dataclass
from typing import Optional

from sei_telemetry.constants import (
    BOX_HEADER_SIZE,
    CONTAINER_BOXES,
    DEFAULT_FPS,
    DEFAULT_FRAME_DURATION,
    DEFAULT_TIMESCALE,
    EXTENDED_BOX_HEADER_SIZE,
    MAX_PLAUSIBLE_FPS,
    MIN_PLAUSIBLE_FPS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Box:
    """Location of an MP4 box within the file buffer.

    Attributes:
        type: Four character box type, e.g. 'mdat'
        start: Offset of the box header
        end: Offset one past the last byte of the box
        payload_start: Offset of the first byte after the header
        size: Declared box size including header
    """
    type: str
    start: int
    end: int
    payload_start: int
    size: int


@dataclass(frozen=True)
class TimingInfo:
    """Track timing read from mdhd/stts."""
    timescale: int = DEFAULT_TIMESCALE
    frame_duration: int = DEFAULT_FRAME_DURATION
    fps: float = DEFAULT_FPS


def find_box(data: bytes, name: str, start: int, end: int) -> Optional[Box]:
    """
    Find the first box named `name` between `start` and `end`.

    Search is pre-order: known container boxes are descended into before
    moving on to their next sibling. A box declaring a size below the header
    size stops the scan of the current branch.

    Args:
        data: Whole file contents
        name: Four character box type to look for
        start: Offset to start scanning at
        end: Offset the scan must not pass

    Returns:
        The matching Box, or None if not found
    """
    end = min(end, len(data))
    pos = start

    while pos < end - BOX_HEADER_SIZE:
        size, raw_type = struct.unpack_from(">I4s", data, pos)
        box_type = raw_type.decode("latin-1")

        header_size = BOX_HEADER_SIZE
        if size == 1:
            if pos + EXTENDED_BOX_HEADER_SIZE > len(data):
                return None
            size = struct.unpack_from(">Q", data, pos + BOX_HEADER_SIZE)[0]
            header_size = EXTENDED_BOX_HEADER_SIZE
        elif size == 0:
            size = end - pos

        if size < BOX_HEADER_SIZE:
            logger.debug(f"Invalid box size {size} for '{box_type}' at offset {pos}")
            return None

        if box_type == name:
            return Box(
                type=box_type,
                start=pos,
                end=pos + size,
                payload_start=pos + header_size,
                size=size,
            )

        if box_type in CONTAINER_BOXES:
            inner = find_box(data, name, pos + header_size, pos + size)
            if inner is not None:
                return inner

        pos += size

    return None


def _read_uint32(data: bytes, offset: int) -> Optional[int]:
    if offset < 0 or offset + 4 > len(data):
        return None
    return struct.unpack_from(">I", data, offset)[0]


def compute_fps(
    timescale: int,
    frame_duration: int,
    default_fps: float = DEFAULT_FPS,
    min_fps: float = MIN_PLAUSIBLE_FPS,
    max_fps: float = MAX_PLAUSIBLE_FPS,
) -> float:
    """Frame rate from timing, replaced by `default_fps` when implausible."""
    if frame_duration <= 0:
        return default_fps
    fps = timescale / frame_duration
    if min_fps <= fps <= max_fps:
        return fps
    logger.debug(f"Implausible fps {fps:.2f} (timescale={timescale}, duration={frame_duration}), "
                 f"using {default_fps}")
    return default_fps


def extract_timing(
    data: bytes,
    moov_start: int,
    moov_end: int,
    default_fps: float = DEFAULT_FPS,
    min_fps: float = MIN_PLAUSIBLE_FPS,
    max_fps: float = MAX_PLAUSIBLE_FPS,
) -> TimingInfo:
    """
    Read timescale and nominal frame duration from the moov box.

    Only the first stts run is used, so variable frame rate tracks get the
    duration of their first run. If either value cannot be read, fps falls
    back to `default_fps`.

    Args:
        data: Whole file contents
        moov_start: Offset of the moov box
        moov_end: End offset of the moov box
        default_fps: Frame rate used when the computed one is implausible
        min_fps: Lowest plausible frame rate
        max_fps: Highest plausible frame rate

    Returns:
        TimingInfo with sanity-clamped fps
    """
    timescale = DEFAULT_TIMESCALE
    frame_duration = DEFAULT_FRAME_DURATION
    have_timescale = False
    have_duration = False

    mdhd = find_box(data, "mdhd", moov_start, moov_end)
    if mdhd is not None and mdhd.payload_start < len(data):
        # Version 1 uses 64-bit creation/modification times
        version = data[mdhd.payload_start]
        offset = 12 if version == 0 else 20
        value = _read_uint32(data, mdhd.payload_start + offset)
        if value is not None:
            timescale = value
            have_timescale = True

    stts = find_box(data, "stts", moov_start, moov_end)
    if stts is not None:
        entry_count = _read_uint32(data, stts.payload_start + 4)
        if entry_count:
            # First entry is (sample_count, sample_delta)
            value = _read_uint32(data, stts.payload_start + 12)
            if value is not None:
                frame_duration = value
                have_duration = True

    if not (have_timescale and have_duration):
        logger.debug("Timing boxes incomplete, using default fps")
        return TimingInfo(timescale=timescale, frame_duration=frame_duration, fps=default_fps)

    return TimingInfo(
        timescale=timescale,
        frame_duration=frame_duration,
        fps=compute_fps(timescale, frame_duration, default_fps, min_fps, max_fps),
    )
