"""
Tests for the clipflow CLI.

The CLI builds its context through build_context, which is patched to
use the scripted backend so no ffmpeg is needed.
"""

import json
from unittest.mock import patch

import pytest

from clipflow import cli
from clipflow.config import Settings
from clipflow.context import build_context
from clipflow.operations.models import ExtractOptions, OperationResult, TimeSegment
from clipflow.tasks.models import Task, TaskStatus

from conftest import FakeBackend


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def patched_context(fake_backend):
    def _build(settings):
        settings = Settings.from_dict({**settings.to_dict(), "segment_pause_seconds": 0})
        return build_context(settings, backend=fake_backend)

    with patch("clipflow.cli.build_context", side_effect=_build) as mock_build:
        yield mock_build


def run_cli(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    return exc.value.code


class TestFormatsCommand:
    def test_lists_formats(self, capsys):
        assert run_cli(["formats"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert "mp4" in data["input"]
        assert "webm" in data["output"]


class TestInfoCommand:
    def test_prints_metadata(self, patched_context, source_file, capsys):
        assert run_cli(["info", str(source_file)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["duration"] == 10.0
        assert data["has_audio"] is True

    def test_missing_file(self, patched_context, tmp_path):
        assert run_cli(["info", str(tmp_path / "missing.mp4")]) == 1

    def test_probe_failure(self, patched_context, fake_backend, source_file):
        fake_backend.probe_failures.add(str(source_file))
        assert run_cli(["info", str(source_file)]) == 2


class TestOperationCommands:
    def test_extract(self, patched_context, fake_backend, source_file, tmp_path, capsys):
        output = tmp_path / "cut.mp4"

        code = run_cli([
            "extract", str(source_file), str(output),
            "--start", "00:00:01", "--end", "4.5",
            "--video-codec", "libx265",
        ])

        assert code == 0
        [task] = json.loads(capsys.readouterr().out)
        assert task["status"] == "completed"
        assert task["request"]["segment"] == {"start": 1000, "end": 4500}
        assert fake_backend.specs[0].encoding.video_codec.value == "libx265"

    def test_extract_bad_timecode(self, patched_context, source_file, tmp_path):
        code = run_cli(["extract", str(source_file), str(tmp_path / "o.mp4"), "--start", "soon", "--end", "5"])
        assert code == 1

    def test_extract_missing_input(self, patched_context, tmp_path):
        code = run_cli([
            "extract", str(tmp_path / "missing.mp4"), str(tmp_path / "o.mp4"),
            "--start", "0", "--end", "1",
        ])
        assert code == 2

    def test_concat(self, patched_context, fake_backend, source_files, tmp_path):
        code = run_cli(["concat", str(tmp_path / "joined.mp4")] + [str(p) for p in source_files])
        assert code == 0
        assert fake_backend.specs[0].stream_copy

    def test_concat_needs_both_dimensions(self, patched_context, source_files, tmp_path):
        code = run_cli(["concat", str(tmp_path / "joined.mp4"), str(source_files[0]), "--width", "640"])
        assert code == 1

    def test_split_partial_failure(self, patched_context, fake_backend, source_file, tmp_path):
        out = tmp_path / "parts"
        fake_backend.fail_outputs.add(str(out / "clip_002.mp4"))

        code = run_cli([
            "split", str(source_file), str(out),
            "--by", "segments", "--count", "3", "--pattern", "{name}_{index}.{ext}",
        ])

        assert code == 3
        assert (out / "clip_001.mp4").exists()
        assert (out / "clip_003.mp4").exists()


class TestBatchCommand:
    def test_runs_all_descriptors(self, patched_context, fake_backend, source_file, tmp_path, capsys):
        batch = tmp_path / "batch.json"
        batch.write_text(json.dumps([
            {
                "kind": "extract",
                "options": {
                    "input_path": str(source_file),
                    "output_path": str(tmp_path / f"out_{i}.mp4"),
                    "segment": {"start": 0, "end": 1000},
                },
            }
            for i in range(4)
        ]))

        assert run_cli(["batch", str(batch), "--concurrency", "2"]) == 0

        tasks = json.loads(capsys.readouterr().out)
        assert [t["status"] for t in tasks] == ["completed"] * 4
        assert fake_backend.max_running <= 2
        assert patched_context.call_args[0][0].max_concurrent_tasks == 2

    def test_only_rejected_descriptors(self, patched_context, tmp_path):
        batch = tmp_path / "batch.json"
        batch.write_text(json.dumps([{"kind": "transcode"}]))
        assert run_cli(["batch", str(batch)]) == 1

    def test_missing_file(self, tmp_path):
        assert run_cli(["batch", str(tmp_path / "nope.json")]) == 4

    def test_invalid_json(self, tmp_path):
        batch = tmp_path / "batch.json"
        batch.write_text("{not json")
        assert run_cli(["batch", str(batch)]) == 4

    def test_not_a_list(self, tmp_path):
        batch = tmp_path / "batch.json"
        batch.write_text(json.dumps({"kind": "extract"}))
        assert run_cli(["batch", str(batch)]) == 4


class TestExitCodes:
    """exit_code_for maps finished tasks to process exit codes."""

    def _task(self, status, success=False, outputs=(), rejected=False):
        result = OperationResult(success=success, output_paths=list(outputs), error=None if success else "x")
        if rejected:
            return Task(kind="extract", status=status, result=result, rejection_reason="bad")
        request = ExtractOptions(
            input_path="a.mp4",
            output_path="b.mp4",
            segment=TimeSegment(start=0, end=1),
        )
        return Task(kind="extract", status=status, result=result, request=request)

    def test_empty(self):
        assert cli.exit_code_for([]) == 0

    def test_all_success(self):
        assert cli.exit_code_for([self._task(TaskStatus.COMPLETED, True, ["o.mp4"])]) == 0

    def test_partial_output(self):
        assert cli.exit_code_for([self._task(TaskStatus.COMPLETED, False, ["o.mp4"])]) == 3

    def test_mixed(self):
        tasks = [self._task(TaskStatus.COMPLETED, True, ["o.mp4"]), self._task(TaskStatus.FAILED)]
        assert cli.exit_code_for(tasks) == 3

    def test_all_failed(self):
        assert cli.exit_code_for([self._task(TaskStatus.FAILED)]) == 2

    def test_all_rejected(self):
        assert cli.exit_code_for([self._task(TaskStatus.FAILED, rejected=True)]) == 1

    def test_success_with_error_text_is_partial(self):
        task = self._task(TaskStatus.COMPLETED, True, ["o.mp4"])
        task.result = OperationResult(success=True, output_paths=["o.mp4"], error="Partial failure: segment 2 failed")
        assert cli.exit_code_for([task]) == 3
