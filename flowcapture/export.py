"""
Export of detected flows.

Flow layout (``ui_flows.zip``)::

    flow_1/step_1_0-00.jpg
    flow_1/step_2_0-03.jpg
    flow_2/step_1_0-12.jpg

Flat layout (``video_screenshots.zip``)::

    screenshots/shot_001_0-00.jpg
"""

import io
import json
import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import PackagingFailure
from .flows import Capture, Flow

logger = logging.getLogger(__name__)


def _time_token(capture: Capture) -> str:
    return capture.formatted_time.replace(':', '-')


def step_filename(index: int, capture: Capture) -> str:
    return f"step_{index}_{_time_token(capture)}.jpg"


def flow_entries(flows: List[Flow]) -> Dict[str, bytes]:
    """Map archive paths to image bytes, one directory per flow."""
    entries = {}
    for flow in flows:
        for index, capture in enumerate(flow.captures, 1):
            entries[f"flow_{flow.id}/{step_filename(index, capture)}"] = capture.image
    return entries


def flat_entries(flows: List[Flow]) -> Dict[str, bytes]:
    """Map archive paths to image bytes for all captures in one folder."""
    entries = {}
    captures = [capture for flow in flows for capture in flow.captures]
    for index, capture in enumerate(captures, 1):
        entries[f"screenshots/shot_{index:03d}_{_time_token(capture)}.jpg"] = capture.image
    return entries


def build_manifest(flows: List[Flow], video_info: Dict[str, Any] = None) -> Dict[str, Any]:
    """Describe the exported flows as JSON-serialisable metadata."""
    return {
        'generated_at': datetime.now().isoformat(),
        'video': video_info or {},
        'total_flows': len(flows),
        'total_captures': sum(len(flow) for flow in flows),
        'flows': [
            {
                'id': flow.id,
                'captures': [
                    {
                        'file': f"flow_{flow.id}/{step_filename(index, capture)}",
                        'timestamp': capture.timestamp,
                        'formatted_time': capture.formatted_time
                    }
                    for index, capture in enumerate(flow.captures, 1)
                ]
            }
            for flow in flows
        ]
    }


def write_archive(entries: Dict[str, bytes], destination: Union[str, Path, io.BytesIO]) -> None:
    """Write entries into a zip archive at `destination` (path or binary buffer)."""
    try:
        if isinstance(destination, (str, Path)):
            Path(destination).parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(destination, 'w', compression=zipfile.ZIP_STORED) as archive:
            for name, payload in entries.items():
                archive.writestr(name, payload)
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise PackagingFailure(f"Failed to write archive {destination}: {e}") from e


def archive_bytes(entries: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    write_archive(entries, buffer)
    return buffer.getvalue()


class FlowExporter:
    """Writes detected flows as a zip archive and, optionally, a frame tree."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(__name__)
        output = config.get('output', {})
        self.output_dir = Path(output.get('directory', 'output'))
        self.archive_name = output.get('archive_name', 'ui_flows.zip')
        self.flat_archive_name = output.get('flat_archive_name', 'video_screenshots.zip')
        self.flat = output.get('flat', False)
        self.save_frames = output.get('save_frames', False)
        self.include_metadata = output.get('include_metadata', True)

    def export_archive(self, flows: List[Flow]) -> Path:
        """Write the archive for `flows` into the output directory."""
        if self.flat:
            entries = flat_entries(flows)
            archive_path = self.output_dir / self.flat_archive_name
        else:
            entries = flow_entries(flows)
            archive_path = self.output_dir / self.archive_name

        write_archive(entries, archive_path)
        self.logger.info(f"Wrote {len(entries)} images to {archive_path}")
        return archive_path

    def write_frames(self, flows: List[Flow], video_info: Dict[str, Any] = None) -> Path:
        """Write the flow tree to disk, with a flows.json manifest if enabled."""
        frames_dir = self.output_dir / 'flows'
        try:
            for name, payload in flow_entries(flows).items():
                path = frames_dir / name
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(payload)

            if self.include_metadata:
                manifest_path = frames_dir / 'flows.json'
                manifest_path.parent.mkdir(parents=True, exist_ok=True)
                with open(manifest_path, 'w') as f:
                    json.dump(build_manifest(flows, video_info), f, indent=2)
        except OSError as e:
            raise PackagingFailure(f"Failed to write frames to {frames_dir}: {e}") from e

        self.logger.info(f"Saved {sum(len(flow) for flow in flows)} frames to {frames_dir}")
        return frames_dir

    def export(self, flows: List[Flow], video_info: Dict[str, Any] = None) -> Path:
        """Export flows per configuration. Returns the archive path."""
        archive_path = self.export_archive(flows)
        if self.save_frames:
            self.write_frames(flows, video_info)
        return archive_path
