"""
SEI telemetry extraction for Tesla dashcam MP4 files.

Ties the pipeline together (box scan -> timing -> NAL scan -> payload ->
decode -> sanitize -> sequence index) and memoizes completed extractions
per file so playback can query telemetry repeatedly without reparsing.

Usage:
    from sei_telemetry import SeiExtractor
    extractor = SeiExtractor()
    result = extractor.extract_from_file('2026-01-09_11-45-38-front.mp4')
    meta = extractor.get_telemetry_at_time(result, 12.5)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from sei_telemetry.config import ExtractorConfig
from sei_telemetry.container import TimingInfo, extract_timing, find_box
from sei_telemetry.data_models import ExtractionResult, TelemetryRecord
from sei_telemetry.decoder import TelemetryDecoder, create_decoder
from sei_telemetry.diagnostics import LogOnce
from sei_telemetry.lookup import build_sequence_index, get_telemetry_at_time
from sei_telemetry.sei_parser import (
    ParseStats,
    extract_proto_payload,
    scan_frames,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class FileIdentity:
    """Cache key for a video file: name, size and modification time."""
    name: str
    size: int
    last_modified: int

    @classmethod
    def from_path(cls, path: PathLike) -> "FileIdentity":
        st = os.stat(path)
        return cls(name=os.path.basename(os.fspath(path)), size=st.st_size, last_modified=st.st_mtime_ns)


def parse_sei_unit(
    nal: bytes,
    decoder: TelemetryDecoder,
    once: Optional[LogOnce] = None,
) -> Optional[TelemetryRecord]:
    """Decode the Tesla telemetry carried by one SEI NAL unit, if any."""
    payload = extract_proto_payload(nal)
    if payload is None:
        return None
    if once is not None:
        once.debug("payload", "Protobuf payload (%d bytes): %s", len(payload), payload[:32].hex(" "))
    return decoder.decode(payload)


def parse_container(
    data: bytes,
    decoder: TelemetryDecoder,
    config: Optional[ExtractorConfig] = None,
    stats: Optional[ParseStats] = None,
) -> ExtractionResult:
    """
    Run the full extraction pipeline over an in-memory MP4.

    Args:
        data: Whole file contents
        decoder: Backend used to decode SEI payloads
        config: Frame rate bounds; defaults to ExtractorConfig()
        stats: Optional counters updated during the NAL scan

    Returns:
        ExtractionResult; frames is empty when no mdat box or no telemetry
        was found
    """
    config = config or ExtractorConfig()
    once = LogOnce(logger)

    timing = TimingInfo(fps=config.default_fps)
    moov = find_box(data, "moov", 0, len(data))
    if moov is not None:
        timing = extract_timing(
            data, moov.start, moov.end,
            default_fps=config.default_fps,
            min_fps=config.min_fps,
            max_fps=config.max_fps,
        )
    else:
        logger.debug("No moov box found, using default timing")

    mdat = find_box(data, "mdat", 0, len(data))
    if mdat is None:
        logger.debug("No mdat box found")
        return ExtractionResult(
            timescale=timing.timescale,
            frame_duration=timing.frame_duration,
            fps=timing.fps,
        )

    frames = scan_frames(
        data,
        mdat.payload_start,
        mdat.end,
        lambda nal: parse_sei_unit(nal, decoder, once),
        stats,
    )

    base_seq, seq_map = build_sequence_index(frames)
    if base_seq is not None:
        logger.debug(f"Base frame_seq_no = {base_seq}, fps = {timing.fps:.2f}")

    return ExtractionResult(
        frames=frames,
        timescale=timing.timescale,
        frame_duration=timing.frame_duration,
        fps=timing.fps,
        base_frame_seq_no=base_seq,
        frame_seq_map=seq_map,
    )


class SeiExtractor:
    """
    Extracts and caches SEI telemetry per video file.

    Errors never escape: a file that cannot be read or parsed yields an
    empty ExtractionResult, indistinguishable from a file without telemetry.
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        decoder: Optional[TelemetryDecoder] = None,
    ):
        """
        Initialize extractor.

        Args:
            config: Extractor settings; defaults to ExtractorConfig()
            decoder: Decoder backend; built from config when omitted
        """
        self.config = config or ExtractorConfig()
        self.decoder = decoder or create_decoder(self.config.use_schema, self.config.schema_path)
        self._cache: Dict[FileIdentity, ExtractionResult] = {}
        logger.debug(f"SeiExtractor using {self.decoder.name} decoder")

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def extract_from_file(self, file: PathLike) -> ExtractionResult:
        """
        Extract telemetry from an MP4 file, using the cache when possible.

        Only results containing telemetry are cached, so files without
        telemetry are reparsed on every call.

        Args:
            file: Path to the MP4 file

        Returns:
            ExtractionResult for the file
        """
        try:
            identity = FileIdentity.from_path(file)
        except OSError as e:
            logger.error(f"Cannot stat {file}: {e}")
            return ExtractionResult.empty()

        cached = self._cache.get(identity)
        if cached is not None:
            return cached

        self.decoder.reset_diagnostics()
        logger.info(f"Extracting from {identity.name} ({identity.size / 1024 / 1024:.2f} MB)")

        stats = ParseStats()
        try:
            data = Path(file).read_bytes()
            result = parse_container(data, self.decoder, self.config, stats)
        except Exception as e:
            logger.error(f"Error extracting SEI data from {identity.name}: {e}", exc_info=True)
            return ExtractionResult.empty()

        logger.debug(
            f"{identity.name}: {stats.nal_units_scanned} NAL units, "
            f"{stats.sei_units_found} SEI ({stats.successful_parses} decoded), "
            f"{stats.slices_found} slices, {stats.resync_skips} resync skips"
        )

        if result.has_telemetry:
            self._cache[identity] = result
            logger.info(f"Extracted {len(result.frames)} frames with telemetry from {identity.name}")
        else:
            logger.info(f"No SEI telemetry found in {identity.name}")

        return result

    def has_telemetry(self, file: PathLike) -> bool:
        """True if the file carries at least one telemetry frame."""
        return self.extract_from_file(file).has_telemetry

    def get_telemetry_at_time(
        self,
        result: Optional[ExtractionResult],
        time_seconds: float,
    ) -> Optional[TelemetryRecord]:
        """Telemetry at `time_seconds` into the clip, or None."""
        return get_telemetry_at_time(
            result,
            time_seconds,
            window=self.config.seq_search_window,
            max_distance=self.config.max_frame_distance,
        )

    def clear_cache(self) -> None:
        self._cache.clear()


_default_extractor: Optional[SeiExtractor] = None


def get_extractor() -> SeiExtractor:
    """Shared extractor instance, built on first use."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = SeiExtractor()
    return _default_extractor


def extract_from_file(file: PathLike) -> ExtractionResult:
    return get_extractor().extract_from_file(file)


def has_telemetry(file: PathLike) -> bool:
    return get_extractor().has_telemetry(file)


def clear_cache() -> None:
    get_extractor().clear_cache()
