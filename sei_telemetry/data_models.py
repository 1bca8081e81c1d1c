"""
Data models for Tesla dashcam SEI telemetry.

Pydantic models representing the 16 telemetry fields from Tesla SEI metadata
and the per-file extraction result used for time-based lookup.
"""

from enum import IntEnum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from sei_telemetry.constants import (
    DEFAULT_FPS,
    DEFAULT_FRAME_DURATION,
    DEFAULT_TIMESCALE,
    MPS_TO_KPH,
    MPS_TO_MPH,
    STANDARD_GRAVITY,
)


class GearState(IntEnum):
    """Vehicle gear state matching Tesla protobuf enum."""
    PARK = 0
    DRIVE = 1
    REVERSE = 2
    NEUTRAL = 3


class AutopilotState(IntEnum):
    """Autopilot mode matching Tesla protobuf enum."""
    NONE = 0
    SELF_DRIVING = 1  # FSD
    AUTOSTEER = 2
    TACC = 3  # Traffic-Aware Cruise Control


GEAR_NAMES = ("P", "D", "R", "N")
AUTOPILOT_NAMES = ("NONE", "FSD", "AUTOSTEER", "TACC")


def gear_name(gear_state: int) -> str:
    """Short display name for a gear state; unknown values read as park."""
    if 0 <= gear_state < len(GEAR_NAMES):
        return GEAR_NAMES[gear_state]
    return "P"


def autopilot_name(autopilot_state: int) -> str:
    """Display name for an autopilot state; unknown values read as NONE."""
    if 0 <= autopilot_state < len(AUTOPILOT_NAMES):
        return AUTOPILOT_NAMES[autopilot_state]
    return "NONE"


class TelemetryRecord(BaseModel):
    """
    Single sanitized telemetry sample attached to a video frame.

    Values are already clamped to plausible ranges (see sanitizer.sanitize),
    so overlays can render them without further checks.
    """
    model_config = ConfigDict(frozen=True)

    version: int = Field(default=0, ge=0)
    frame_seq_no: int = Field(default=0, ge=0, description="Tesla per-frame counter")
    frame_index: int = Field(default=0, ge=0, description="Slice position in stream order")

    # Controls
    gear_state: int = Field(default=0, description="0=P 1=D 2=R 3=N")
    vehicle_speed_mps: float = 0.0
    steering_wheel_angle: float = Field(default=0.0, description="Degrees (negative=left)")
    accelerator_pedal_position: float = Field(default=0.0, description="Fraction 0.0-1.0")
    brake_applied: bool = False

    # Signals and state
    blinker_on_left: bool = False
    blinker_on_right: bool = False
    autopilot_state: int = 0

    # GPS
    latitude_deg: float = 0.0
    longitude_deg: float = 0.0
    heading_deg: float = 0.0

    # Motion dynamics
    linear_acceleration_mps2_x: float = 0.0
    linear_acceleration_mps2_y: float = 0.0
    linear_acceleration_mps2_z: float = 0.0

    @computed_field
    @property
    def speed_mph(self) -> float:
        return self.vehicle_speed_mps * MPS_TO_MPH

    @computed_field
    @property
    def speed_kph(self) -> float:
        return self.vehicle_speed_mps * MPS_TO_KPH

    @computed_field
    @property
    def gear_name(self) -> str:
        return gear_name(self.gear_state)

    @computed_field
    @property
    def autopilot_name(self) -> str:
        return autopilot_name(self.autopilot_state)

    @computed_field
    @property
    def g_force_x(self) -> float:
        """Lateral acceleration in G-force."""
        return self.linear_acceleration_mps2_x / STANDARD_GRAVITY

    @computed_field
    @property
    def g_force_y(self) -> float:
        """Longitudinal acceleration in G-force."""
        return self.linear_acceleration_mps2_y / STANDARD_GRAVITY

    @computed_field
    @property
    def g_force_z(self) -> float:
        return self.linear_acceleration_mps2_z / STANDARD_GRAVITY

    @property
    def has_gps(self) -> bool:
        return self.latitude_deg != 0 or self.longitude_deg != 0


class ExtractionResult(BaseModel):
    """
    Telemetry extracted from one video file.

    Frames are ordered by frame_index. frame_seq_map indexes the same records
    by Tesla's frame_seq_no for drift-free time lookup. Frames are stored as a
    tuple so a cached result cannot be changed in place.
    """
    model_config = ConfigDict(frozen=True)

    frames: Tuple[TelemetryRecord, ...] = ()
    timescale: int = DEFAULT_TIMESCALE
    frame_duration: int = DEFAULT_FRAME_DURATION
    fps: float = DEFAULT_FPS
    base_frame_seq_no: Optional[int] = None
    frame_seq_map: Dict[int, TelemetryRecord] = Field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ExtractionResult":
        """Default result returned when nothing could be extracted."""
        return cls()

    @property
    def has_telemetry(self) -> bool:
        return len(self.frames) > 0

    @property
    def duration_seconds(self) -> float:
        """Span covered by the telemetry frames, from first to last frame index."""
        if len(self.frames) < 2 or self.fps <= 0:
            return 0.0
        return (self.frames[-1].frame_index - self.frames[0].frame_index) / self.fps
