"""
Time-based telemetry lookup.

Tesla stamps every frame with a monotonically increasing frame_seq_no. Using
it for synchronization avoids the drift that builds up when counting slices,
so it is the primary lookup; frame-order search is the fallback for files
where no sequence numbers were recovered.
"""

import math
from typing import Dict, Optional, Sequence, Tuple

from sei_telemetry.constants import DEFAULT_FPS, MAX_FRAME_DISTANCE, SEQ_SEARCH_WINDOW
from sei_telemetry.data_models import ExtractionResult, TelemetryRecord


def build_sequence_index(
    frames: Sequence[TelemetryRecord],
) -> Tuple[Optional[int], Dict[int, TelemetryRecord]]:
    """
    Index records by frame_seq_no.

    Only positive sequence numbers are indexed. When two records share a
    sequence number the later one wins.

    Returns:
        (base_frame_seq_no, frame_seq_no -> record). The base is the smallest
        positive sequence number seen, or None.
    """
    base: Optional[int] = None
    seq_map: Dict[int, TelemetryRecord] = {}
    for frame in frames:
        seq = frame.frame_seq_no
        if seq <= 0:
            continue
        if base is None or seq < base:
            base = seq
        seq_map[seq] = frame
    return base, seq_map


def _frame_offset(time_seconds: float, fps: float) -> int:
    return math.floor(time_seconds * fps)


def lookup_by_sequence(
    seq_map: Dict[int, TelemetryRecord],
    target_seq: int,
    window: int = SEQ_SEARCH_WINDOW,
) -> Optional[TelemetryRecord]:
    """Exact hit on `target_seq`, else the nearest hit within +/- window."""
    hit = seq_map.get(target_seq)
    if hit is not None:
        return hit

    closest = None
    min_diff = None
    for offset in range(-window, window + 1):
        candidate = seq_map.get(target_seq + offset)
        if candidate is None:
            continue
        # Strict comparison keeps the negative offset on ties
        if min_diff is None or abs(offset) < min_diff:
            min_diff = abs(offset)
            closest = candidate
    return closest


def lookup_by_frame_index(
    frames: Sequence[TelemetryRecord],
    target_frame: int,
    max_distance: int = MAX_FRAME_DISTANCE,
) -> Optional[TelemetryRecord]:
    """Binary search frames (ordered by frame_index) for the closest index."""
    left = 0
    right = len(frames) - 1
    closest = None
    min_diff = None

    while left <= right:
        mid = (left + right) // 2
        frame = frames[mid]
        diff = abs(frame.frame_index - target_frame)

        if min_diff is None or diff < min_diff:
            min_diff = diff
            closest = frame

        if frame.frame_index < target_frame:
            left = mid + 1
        elif frame.frame_index > target_frame:
            right = mid - 1
        else:
            break

    if closest is not None and min_diff <= max_distance:
        return closest
    return None


def get_telemetry_at_time(
    result: Optional[ExtractionResult],
    time_seconds: float,
    window: int = SEQ_SEARCH_WINDOW,
    max_distance: int = MAX_FRAME_DISTANCE,
) -> Optional[TelemetryRecord]:
    """
    Telemetry for playback time `time_seconds` from the start of the clip.

    Args:
        result: Output of SeiExtractor.extract_from_file
        time_seconds: Playback position in seconds
        window: Sequence numbers searched either side of the target
        max_distance: Largest frame_index distance the fallback accepts

    Returns:
        The matching record, or None if nothing is close enough. Non-finite
        times never match.
    """
    if result is None or not result.frames:
        return None

    fps = result.fps or DEFAULT_FPS
    if not math.isfinite(time_seconds * fps):
        return None
    frame_offset = _frame_offset(time_seconds, fps)

    if result.base_frame_seq_no is not None and result.frame_seq_map:
        hit = lookup_by_sequence(result.frame_seq_map, result.base_frame_seq_no + frame_offset, window)
        if hit is not None:
            return hit

    return lookup_by_frame_index(result.frames, frame_offset, max_distance)
