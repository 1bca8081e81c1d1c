"""
Tesla dashcam SEI telemetry extraction.

Recovers the telemetry Tesla firmware embeds in H.264 SEI units of dashcam
MP4 files and answers "what was the telemetry at playback time T" queries.
"""

from sei_telemetry.config import ExtractorConfig
from sei_telemetry.data_models import (
    AutopilotState,
    ExtractionResult,
    GearState,
    TelemetryRecord,
)
from sei_telemetry.extractor import (
    SeiExtractor,
    clear_cache,
    extract_from_file,
    has_telemetry,
)
from sei_telemetry.lookup import get_telemetry_at_time

__all__ = [
    "AutopilotState",
    "ExtractionResult",
    "ExtractorConfig",
    "GearState",
    "SeiExtractor",
    "TelemetryRecord",
    "clear_cache",
    "extract_from_file",
    "get_telemetry_at_time",
    "has_telemetry",
]
