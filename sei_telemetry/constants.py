"""
Constants for the SEI telemetry extractor.

Centralized definitions for container box names, NAL unit types, the Tesla
SEI marker, plausibility ranges and unit conversions.
"""

from typing import Tuple


# =============================================================================
# MP4 Container Boxes
# =============================================================================

BOX_HEADER_SIZE = 8
EXTENDED_BOX_HEADER_SIZE = 16

# Boxes whose payload is a list of child boxes
CONTAINER_BOXES = frozenset({"moov", "trak", "mdia", "minf", "stbl"})

# Fallback timing when mdhd / stts are missing
DEFAULT_TIMESCALE = 30
DEFAULT_FRAME_DURATION = 1


# =============================================================================
# Frame Rate
# =============================================================================

# Tesla dashcam records at ~36 fps; anything outside this band is treated
# as a bad timing read.
DEFAULT_FPS = 36.0
MIN_PLAUSIBLE_FPS = 20.0
MAX_PLAUSIBLE_FPS = 60.0


# =============================================================================
# H.264 NAL Units
# =============================================================================

NAL_LENGTH_SIZE = 4
NAL_TYPE_MASK = 0x1F
NAL_TYPE_SLICE = 1        # Non-IDR slice (delta frame)
NAL_TYPE_IDR = 5          # IDR slice (keyframe)
NAL_TYPE_SEI = 6
SLICE_NAL_TYPES = frozenset({NAL_TYPE_SLICE, NAL_TYPE_IDR})


# =============================================================================
# Tesla SEI Marker
# =============================================================================

SEI_PAYLOAD_OFFSET = 3    # Bytes of SEI header before the marker run
SEI_PADDING_BYTE = 0x42   # 'B'
SEI_DELIMITER_BYTE = 0x69  # 'i'
SEI_MIN_PADDING = 4


# =============================================================================
# Wire Format
# =============================================================================

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5
MAX_VARINT_SHIFT = 63


# =============================================================================
# Plausibility Ranges (min, max)
# =============================================================================

SPEED_RANGE: Tuple[float, float] = (0.0, 100.0)             # m/s (~224 mph)
STEERING_RANGE: Tuple[float, float] = (-720.0, 720.0)       # degrees, two full turns
PEDAL_RANGE: Tuple[float, float] = (0.0, 1.0)
GEAR_RANGE: Tuple[int, int] = (0, 3)
AUTOPILOT_RANGE: Tuple[int, int] = (0, 10)
ACCEL_RANGE: Tuple[float, float] = (-50.0, 50.0)            # m/s^2
LATITUDE_RANGE: Tuple[float, float] = (-90.0, 90.0)
LONGITUDE_RANGE: Tuple[float, float] = (-180.0, 180.0)
HEADING_RANGE: Tuple[float, float] = (0.0, 360.0)


# =============================================================================
# Conversion Constants
# =============================================================================

MPS_TO_MPH = 2.23694  # meters per second to miles per hour
MPS_TO_KPH = 3.6
STANDARD_GRAVITY = 9.80665  # m/s^2 per g


# =============================================================================
# Time Lookup
# =============================================================================

SEQ_SEARCH_WINDOW = 5      # +/- frames searched around the target frame_seq_no
MAX_FRAME_DISTANCE = 10    # max frame_index distance accepted by the fallback
