"""
UI Flow Capture - Main Entry Point

Turns a screen recording into a documentation-ready set of screenshots:
- Samples the video and detects UI changes
- Groups captures into flows, one per navigation state
- Writes ui_flows.zip (or video_screenshots.zip with --flat)
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from flowcapture.config import (
    DEFAULT_CONFIG_FILE,
    apply_env_overrides,
    load_config,
    validate_config
)
from flowcapture.detector import FlowDetector, RunStatus
from flowcapture.errors import InvalidInput, PackagingFailure
from flowcapture.export import FlowExporter
from flowcapture.progress import ProgressManager
from flowcapture.utils import get_video_info, setup_logging


def load_env_config() -> dict:
    """Load configuration from environment variables."""
    load_dotenv()
    return {
        'video_path': os.getenv('VIDEO_PATH'),
        'config_file': os.getenv('CONFIG_FILE', DEFAULT_CONFIG_FILE)
    }


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Capture UI flow screenshots from a screen recording.')
    parser.add_argument('video', nargs='?', help='Video file to process (defaults to $VIDEO_PATH)')
    parser.add_argument('--config', help='Path to the configuration file')
    parser.add_argument('--output', help='Output directory (overrides config)')
    parser.add_argument('--flat', action='store_true', help='Write all screenshots into one folder')
    parser.add_argument('--save-frames', action='store_true', help='Also write the flow tree to disk')
    parser.add_argument('--time-step', type=float, help='Seconds between sampled frames')
    parser.add_argument('--quiet', action='store_true', help='Hide the progress bar')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def print_video_info(info: dict) -> None:
    print(f"\nVideo: {info['file_name']} ({info['file_size']})")
    print(f"  Duration:   {info['duration_formatted']}")
    print(f"  Resolution: {info['width']}x{info['height']} @ {info['fps']:.1f} FPS")


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    env_config = load_env_config()

    video_path = args.video or env_config['video_path']
    if not video_path:
        print("Error: no video given (pass a path or set VIDEO_PATH)")
        return 1

    config_path = Path(args.config or env_config['config_file'])
    try:
        config = apply_env_overrides(load_config(config_path))
        if args.output:
            config['output']['directory'] = args.output
        if args.flat:
            config['output']['flat'] = True
        if args.save_frames:
            config['output']['save_frames'] = True
        if args.time_step is not None:
            config['sampling']['time_step'] = args.time_step
        if args.debug:
            config['processing']['log_level'] = 'DEBUG'
        validate_config(config)
    except (ValueError, TypeError) as e:
        print(f"Error: {e}")
        return 1

    processing = config['processing']
    setup_logging(
        processing.get('log_level', 'INFO'),
        processing.get('log_file'),
        processing.get('log_max_bytes', 10 * 1024 * 1024),
        processing.get('log_backup_count', 5)
    )

    detector = FlowDetector(config)
    try:
        info = get_video_info(Path(video_path))
        print_video_info(info)

        progress = ProgressManager(quiet=args.quiet)
        print("\nAnalyzing UI changes...")
        result = detector.detect(video_path, progress)
        result.video_info = info
    except InvalidInput as e:
        logging.error(f"Invalid input: {e}")
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nProcessing interrupted by user")
        return 0
    finally:
        detector.log_performance_metrics()

    print(result.message)
    if result.status in (RunStatus.INVALID_INPUT, RunStatus.NO_FRAMES):
        return 1
    if not result.flows:
        return 0

    for flow in result.flows:
        times = ", ".join(capture.formatted_time for capture in flow.captures)
        print(f"  Flow {flow.id}: {len(flow)} screens ({times})")

    try:
        archive_path = FlowExporter(config).export(result.flows, result.video_info)
    except PackagingFailure as e:
        logging.error(f"Export failed: {e}")
        print(f"\nError: {e}")
        return 1

    print(f"\nSaved {result.capture_count} screenshots to {archive_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
