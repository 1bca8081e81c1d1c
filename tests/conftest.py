"""
Pytest configuration and fixtures for SEI telemetry tests.

Provides sample telemetry, synthetic dashcam clips (see mp4_builder.py)
and ready-made decoder and extractor instances.
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sei_telemetry.config import ExtractorConfig
from sei_telemetry.data_models import TelemetryRecord
from sei_telemetry.decoder import ManualDecoder
from sei_telemetry.extractor import SeiExtractor

from mp4_builder import build_mp4, slice_nal, telemetry_stream


@pytest.fixture
def sample_fields():
    """Typical driving values for one frame."""
    return {
        "version": 1,
        "gear_state": 1,
        "frame_seq_no": 1000,
        "vehicle_speed_mps": 20.5,
        "accelerator_pedal_position": 0.25,
        "steering_wheel_angle": -5.5,
        "blinker_on_left": False,
        "blinker_on_right": True,
        "brake_applied": False,
        "autopilot_state": 2,
        "latitude_deg": 37.7749,
        "longitude_deg": -122.4194,
        "heading_deg": 45.0,
        "linear_acceleration_mps2_x": 0.5,
        "linear_acceleration_mps2_y": -0.2,
        "linear_acceleration_mps2_z": 9.81,
    }


@pytest.fixture
def drive_records(sample_fields):
    """Ten consecutive frames with increasing sequence numbers and speed."""
    records = []
    for i in range(10):
        fields = dict(sample_fields)
        fields["frame_seq_no"] = 1000 + i
        fields["vehicle_speed_mps"] = 20.0 + i
        records.append(fields)
    return records


@pytest.fixture
def drive_mp4(tmp_path, drive_records):
    """Path to a synthetic clip with ten telemetry frames."""
    path = tmp_path / "2026-01-09_11-45-38-front.mp4"
    path.write_bytes(build_mp4(telemetry_stream(drive_records)))
    return path


@pytest.fixture
def empty_mp4(tmp_path):
    """Path to a synthetic clip whose slices carry no SEI telemetry."""
    path = tmp_path / "parked-front.mp4"
    path.write_bytes(build_mp4([slice_nal(idr=True), slice_nal(), slice_nal()]))
    return path


@pytest.fixture
def manual_decoder():
    return ManualDecoder()


@pytest.fixture
def extractor():
    """Extractor using the manual decoder only."""
    return SeiExtractor(ExtractorConfig(use_schema=False))


@pytest.fixture
def sample_record():
    return TelemetryRecord(
        version=1,
        frame_seq_no=1234,
        gear_state=1,
        vehicle_speed_mps=20.0,
        steering_wheel_angle=-5.0,
        accelerator_pedal_position=0.35,
        blinker_on_right=True,
        autopilot_state=2,
        latitude_deg=37.7749,
        longitude_deg=-122.4194,
        heading_deg=45.0,
        linear_acceleration_mps2_x=0.5,
        linear_acceleration_mps2_y=-0.2,
        linear_acceleration_mps2_z=9.81,
    )
