"""Tests for archive layout and export."""

import io
import json
import zipfile

import pytest

from flowcapture.errors import PackagingFailure
from flowcapture.export import (
    FlowExporter,
    archive_bytes,
    build_manifest,
    flat_entries,
    flow_entries,
    write_archive
)
from flowcapture.flows import Capture, Flow


@pytest.fixture
def two_flows():
    return [
        Flow(id=1, captures=[Capture.at(0.0, b"a"), Capture.at(3.2, b"b")]),
        Flow(id=2, captures=[Capture.at(12.0, b"c"), Capture.at(64.4, b"d"), Capture.at(125.6, b"e")]),
    ]


def test_flow_layout(two_flows):
    archive = zipfile.ZipFile(io.BytesIO(archive_bytes(flow_entries(two_flows))))
    names = archive.namelist()
    assert names == [
        "flow_1/step_1_0-00.jpg",
        "flow_1/step_2_0-03.jpg",
        "flow_2/step_1_0-12.jpg",
        "flow_2/step_2_1-04.jpg",
        "flow_2/step_3_2-05.jpg",
    ]
    assert len([n for n in names if n.startswith("flow_1/")]) == 2
    assert len([n for n in names if n.startswith("flow_2/")]) == 3
    assert archive.read("flow_2/step_3_2-05.jpg") == b"e"


def test_flat_layout(two_flows):
    entries = flat_entries(two_flows)
    assert list(entries) == [
        "screenshots/shot_001_0-00.jpg",
        "screenshots/shot_002_0-03.jpg",
        "screenshots/shot_003_0-12.jpg",
        "screenshots/shot_004_1-04.jpg",
        "screenshots/shot_005_2-05.jpg",
    ]


def test_manifest(two_flows):
    manifest = build_manifest(two_flows, {'duration': 130.0})
    assert manifest['total_flows'] == 2
    assert manifest['total_captures'] == 5
    assert manifest['video'] == {'duration': 130.0}
    assert manifest['flows'][1]['captures'][1] == {
        'file': "flow_2/step_2_1-04.jpg",
        'timestamp': 64.4,
        'formatted_time': "1:04"
    }
    json.dumps(manifest)


def test_write_archive_to_directory_fails(temp_dir, two_flows):
    with pytest.raises(PackagingFailure):
        write_archive(flow_entries(two_flows), temp_dir)


def test_exporter_writes_flow_archive(test_config, test_output_dir, two_flows):
    archive_path = FlowExporter(test_config).export(two_flows)
    assert archive_path == test_output_dir / "ui_flows.zip"
    with zipfile.ZipFile(archive_path) as archive:
        assert len(archive.namelist()) == 5
    assert not (test_output_dir / "flows").exists()


def test_exporter_flat_archive(test_config, test_output_dir, two_flows):
    test_config['output']['flat'] = True
    archive_path = FlowExporter(test_config).export(two_flows)
    assert archive_path == test_output_dir / "video_screenshots.zip"
    with zipfile.ZipFile(archive_path) as archive:
        assert all(name.startswith("screenshots/") for name in archive.namelist())


def test_exporter_saves_frames(test_config, test_output_dir, two_flows):
    test_config['output']['save_frames'] = True
    FlowExporter(test_config).export(two_flows, {'duration': 130.0})

    frames_dir = test_output_dir / "flows"
    assert (frames_dir / "flow_1" / "step_2_0-03.jpg").read_bytes() == b"b"
    assert len(list(frames_dir.glob("flow_2/*.jpg"))) == 3
    with open(frames_dir / "flows.json") as f:
        manifest = json.load(f)
    assert manifest['total_captures'] == 5


def test_exporter_without_metadata(test_config, test_output_dir, two_flows):
    test_config['output']['include_metadata'] = False
    FlowExporter(test_config).write_frames(two_flows)
    assert not (test_output_dir / "flows" / "flows.json").exists()
