"""
Extractor configuration.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from sei_telemetry.constants import (
    DEFAULT_FPS,
    MAX_FRAME_DISTANCE,
    MAX_PLAUSIBLE_FPS,
    MIN_PLAUSIBLE_FPS,
    SEQ_SEARCH_WINDOW,
)


class ExtractorConfig(BaseModel):
    """Settings for SeiExtractor.

    Attributes:
        use_schema: Try the protobuf schema decoder before the manual one
        schema_path: Text-format schema file; None uses the bundled schema
        seq_search_window: Frames searched either side of a missed frame_seq_no
        max_frame_distance: Largest frame_index gap the fallback lookup accepts
    """
    use_schema: bool = True
    schema_path: Optional[Path] = None
    default_fps: float = Field(default=DEFAULT_FPS, gt=0)
    min_fps: float = Field(default=MIN_PLAUSIBLE_FPS, gt=0)
    max_fps: float = Field(default=MAX_PLAUSIBLE_FPS, gt=0)
    seq_search_window: int = Field(default=SEQ_SEARCH_WINDOW, ge=0)
    max_frame_distance: int = Field(default=MAX_FRAME_DISTANCE, ge=0)

    @model_validator(mode="after")
    def check_fps_bounds(self) -> "ExtractorConfig":
        if self.min_fps > self.max_fps:
            raise ValueError(f"min_fps ({self.min_fps}) must not exceed max_fps ({self.max_fps})")
        return self
