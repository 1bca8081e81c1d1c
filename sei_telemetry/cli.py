#!/usr/bin/env python3
"""
Command line entry point: extract SEI telemetry from dashcam clips.

    sei-telemetry 2026-01-09_11-45-38-front.mp4 --at 12.5
    sei-telemetry ./clips --json telemetry.json
"""

import argparse
import glob
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError
from tqdm import tqdm

from sei_telemetry.config import ExtractorConfig
from sei_telemetry.data_models import ExtractionResult
from sei_telemetry.extractor import SeiExtractor
from sei_telemetry.rich_console import (
    print_error,
    print_extraction_summary,
    print_record,
    setup_rich_logging,
)

logger = logging.getLogger(__name__)


def discover_videos(inputs: Sequence[str]) -> List[str]:
    """Expand files and directories into a sorted list of .mp4 paths."""
    videos = []
    for input_path in inputs:
        if os.path.isfile(input_path):
            videos.append(input_path)
        elif os.path.isdir(input_path):
            videos.extend(sorted(glob.glob(os.path.join(input_path, "**/*.mp4"), recursive=True)))
        else:
            raise ValueError(f"Input path {input_path} not found.")
    return videos


def result_to_dict(name: str, result: ExtractionResult) -> dict:
    """JSON-ready view of one extraction."""
    return {
        "file": name,
        "timescale": result.timescale,
        "frame_duration": result.frame_duration,
        "fps": result.fps,
        "base_frame_seq_no": result.base_frame_seq_no,
        "duration_seconds": result.duration_seconds,
        "record_count": len(result.frames),
        "records": [record.model_dump() for record in result.frames],
    }


def export_json(results: Sequence[Tuple[str, ExtractionResult]], output_path: str) -> str:
    """
    Export every extracted record to JSON.

    Args:
        results: (file name, result) pairs
        output_path: Path for output .json file

    Returns:
        Path to the created file
    """
    path = Path(output_path)
    if not path.suffix:
        path = path.with_suffix(".json")

    data = {"clips": [result_to_dict(name, result) for name, result in results]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    logger.info(f"Exported JSON to {path}")
    return str(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract Tesla SEI telemetry from dashcam MP4 files.")
    parser.add_argument("inputs", nargs="+", help="MP4 files or directories of clips")
    parser.add_argument("--at", type=float, default=None, metavar="SECONDS",
                        help="Print the telemetry at this playback time for each clip")
    parser.add_argument("--json", dest="json_output", default=None, metavar="PATH",
                        help="Write all records to a JSON file")
    parser.add_argument("--no-schema", action="store_true",
                        help="Always use the manual wire-format decoder")
    parser.add_argument("--schema", default=None, metavar="PATH",
                        help="Text-format schema file for the protobuf decoder")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_rich_logging(args.verbose)

    try:
        config = ExtractorConfig(use_schema=not args.no_schema, schema_path=args.schema)
        videos = discover_videos(args.inputs)
    except (ValidationError, ValueError) as e:
        print_error(str(e))
        return 1

    if not videos:
        print_error("No MP4 files found.", hint="Pass a clip or a folder containing *.mp4 files")
        return 1

    extractor = SeiExtractor(config)
    results = []
    for video in tqdm(videos, desc="Extracting", unit="clip", disable=len(videos) < 2):
        results.append((os.path.basename(video), extractor.extract_from_file(video)))

    print_extraction_summary(results)

    if args.at is not None:
        for name, result in results:
            if result.has_telemetry:
                print_record(extractor.get_telemetry_at_time(result, args.at), args.at)

    if args.json_output:
        export_json(results, args.json_output)

    return 0 if any(result.has_telemetry for _, result in results) else 2


if __name__ == "__main__":
    sys.exit(main())
