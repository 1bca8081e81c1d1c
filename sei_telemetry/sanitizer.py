"""
Sanity checks for decoded telemetry.

Firmware occasionally emits garbage (misaligned payloads, uninitialised
fields). Every value is clamped to a physically plausible range and replaced
with its fallback otherwise, so downstream overlays never see NaN or
absurd readings.
"""

import math
from typing import Any, Mapping, Optional, Tuple

from sei_telemetry.constants import (
    ACCEL_RANGE,
    AUTOPILOT_RANGE,
    GEAR_RANGE,
    HEADING_RANGE,
    LATITUDE_RANGE,
    LONGITUDE_RANGE,
    PEDAL_RANGE,
    SPEED_RANGE,
    STEERING_RANGE,
)
from sei_telemetry.data_models import TelemetryRecord


def _lookup(raw: Mapping[str, Any], snake: str, camel: str) -> Any:
    """Field value by proto name or by its JSON (camelCase) name."""
    value = raw.get(snake)
    if value is None:
        value = raw.get(camel)
    return value


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def clamp(value: Any, valid_range: Tuple[float, float], fallback: float = 0.0) -> float:
    """Return `value` if finite and inside `valid_range`, else `fallback`."""
    number = to_number(value)
    if number is None or not math.isfinite(number):
        return fallback
    low, high = valid_range
    if number < low or number > high:
        return fallback
    return number


def clamp_int(value: Any, valid_range: Tuple[int, int], fallback: int = 0) -> int:
    """Integer enum value inside `valid_range`, else `fallback`."""
    number = clamp(value, valid_range, fallback)
    if number != int(number):
        return fallback
    return int(number)


def parse_seq_no(value: Any) -> int:
    """
    Parse frame_seq_no, which is a uint64 and may arrive as a decimal string.

    Anything negative or non-numeric becomes 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value if value >= 0 else 0
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value >= 0 else 0
    if isinstance(value, str):
        try:
            parsed = int(value.strip(), 10)
        except ValueError:
            return 0
        return parsed if parsed >= 0 else 0
    return 0


def pedal_fraction(value: Any) -> float:
    """Accelerator pedal as 0-1; values above 1 are read as a percentage."""
    number = to_number(value)
    if number is not None and number > 1:
        number = number / 100
    return clamp(number, PEDAL_RANGE)


def sanitize(raw: Mapping[str, Any]) -> TelemetryRecord:
    """
    Build a TelemetryRecord from decoded fields, clamping each value.

    Args:
        raw: Decoded message fields keyed by proto field name (snake_case)
            or JSON name (camelCase). Missing keys take their fallback.

    Returns:
        Sanitized, immutable TelemetryRecord. Passing the dump of a sanitized
        record through again yields an equal record.
    """
    return TelemetryRecord(
        version=parse_seq_no(raw.get("version")),
        frame_seq_no=parse_seq_no(_lookup(raw, "frame_seq_no", "frameSeqNo")),
        frame_index=parse_seq_no(_lookup(raw, "frame_index", "frameIndex")),
        gear_state=clamp_int(_lookup(raw, "gear_state", "gearState"), GEAR_RANGE),
        vehicle_speed_mps=clamp(_lookup(raw, "vehicle_speed_mps", "vehicleSpeedMps"), SPEED_RANGE),
        steering_wheel_angle=clamp(
            _lookup(raw, "steering_wheel_angle", "steeringWheelAngle"), STEERING_RANGE
        ),
        accelerator_pedal_position=pedal_fraction(
            _lookup(raw, "accelerator_pedal_position", "acceleratorPedalPosition")
        ),
        brake_applied=bool(_lookup(raw, "brake_applied", "brakeApplied")),
        blinker_on_left=bool(_lookup(raw, "blinker_on_left", "blinkerOnLeft")),
        blinker_on_right=bool(_lookup(raw, "blinker_on_right", "blinkerOnRight")),
        autopilot_state=clamp_int(
            _lookup(raw, "autopilot_state", "autopilotState"), AUTOPILOT_RANGE
        ),
        latitude_deg=clamp(_lookup(raw, "latitude_deg", "latitudeDeg"), LATITUDE_RANGE),
        longitude_deg=clamp(_lookup(raw, "longitude_deg", "longitudeDeg"), LONGITUDE_RANGE),
        heading_deg=clamp(_lookup(raw, "heading_deg", "headingDeg"), HEADING_RANGE),
        linear_acceleration_mps2_x=clamp(
            _lookup(raw, "linear_acceleration_mps2_x", "linearAccelerationMps2X"), ACCEL_RANGE
        ),
        linear_acceleration_mps2_y=clamp(
            _lookup(raw, "linear_acceleration_mps2_y", "linearAccelerationMps2Y"), ACCEL_RANGE
        ),
        linear_acceleration_mps2_z=clamp(
            _lookup(raw, "linear_acceleration_mps2_z", "linearAccelerationMps2Z"), ACCEL_RANGE
        ),
    )
