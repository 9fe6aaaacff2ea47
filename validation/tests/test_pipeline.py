#!/usr/bin/env python3
"""
test_pipeline.py - Tests for pipeline configuration and orchestration

Stage processes are replaced by an in-process runner that mimics each
stage's side effects, so the sequencing rules can be checked without
spawning anything.

Run with:
    PYTHONPATH=. python -m pytest validation/tests/test_pipeline.py -v
"""

import json
import os
import subprocess

import pytest
import yaml

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from horizon.core.errors import ConfigurationError
from horizon.core.results import ResultRecord, write_result_json
from horizon.pipeline import orchestrator
from horizon.pipeline.config import (
    PipelineConfig,
    build_pipeline_config,
    derive_ground_truth,
    get_default_config,
    load_config_file,
    merge_config,
)
from horizon.pipeline.orchestrator import PipelineOrchestrator

SUCCESS = ResultRecord.succeeded(
    num_edges=500, distance_m=10380000.0, altitude_m=4001863.0,
    ground_truth_m=10378137.0, error_m=1863.0, error_percent=0.01795,
)


def make_config(tmp_path, **overrides):
    settings = dict(
        position=(10378137.0, 0.0, 0.0),
        orientation=(140.0, 0.0, 0.0),
        focal_length=85e-3,
        pixel_size=20e-6,
        x_resolution=512,
        y_resolution=512,
        output_dir=tmp_path / "run",
        ground_truth_m=10378137.0,
        generator_command=("gen",),
        measure_command=("meas",),
        analyzer_command=("ana",),
    )
    settings.update(overrides)
    return PipelineConfig(**settings)


class FakeRunner:
    """
    Stand-in for subprocess.run.

    `actions` maps a stage command to a callable(argv) returning the exit
    status; it may write the files the real stage would write.
    """

    def __init__(self, **actions):
        self.actions = actions
        self.calls = []

    def __call__(self, argv, check=False, timeout=None):
        self.calls.append(argv)
        status = self.actions[argv[0]](argv)
        return subprocess.CompletedProcess(argv, status)

    @property
    def stages(self):
        return [argv[0] for argv in self.calls]


def option(argv, name):
    return argv[argv.index(name) + 1]


def produce_image(argv):
    Path(option(argv, "--filename")).write_bytes(b"png")
    return 0


def produce_result(record, status=0):
    def action(argv):
        write_result_json(record, option(argv, "--output"))
        return status
    return action


def found(name):
    return f"/usr/bin/{name}"


class TestConfiguration:
    """Test configuration layering and validation."""

    def test_ground_truth_is_position_norm(self):
        assert derive_ground_truth((10378137, 0, 0)) == 10378137.0
        assert derive_ground_truth((3.0, 4.0, 12.0)) == 13.0

    def test_defaults(self, tmp_path):
        config = build_pipeline_config(output_dir=tmp_path)
        assert config.position == (10378137.0, 0.0, 0.0)
        assert config.orientation == (140.0, 0.0, 0.0)
        assert config.ground_truth_m == 10378137.0
        assert (config.x_resolution, config.y_resolution) == (512, 512)
        assert config.generates_image
        assert config.image_file == tmp_path / "image.png"
        assert config.result_file == tmp_path / "result.json"
        assert config.report_dir == tmp_path / "report"

    def test_default_output_dir_is_timestamped(self):
        config = build_pipeline_config()
        assert config.output_dir.parent == Path("results")
        assert len(config.output_dir.name) == len("20240101_120000")

    def test_explicit_ground_truth_wins(self, tmp_path):
        config = build_pipeline_config(position=(1.0, 2.0, 3.0), ground_truth=5e6, output_dir=tmp_path)
        assert config.ground_truth_m == 5e6

    def test_zero_position_without_ground_truth(self, tmp_path):
        with pytest.raises(ConfigurationError):
            build_pipeline_config(position=(0.0, 0.0, 0.0), output_dir=tmp_path)

    @pytest.mark.parametrize("ground_truth", [0.0, -1.0])
    def test_non_positive_ground_truth(self, tmp_path, ground_truth):
        with pytest.raises(ConfigurationError):
            build_pipeline_config(ground_truth=ground_truth, output_dir=tmp_path)

    def test_supplied_image(self, tmp_path):
        config = build_pipeline_config(image=tmp_path / "earth.png", output_dir=tmp_path)
        assert not config.generates_image
        assert config.image_file == tmp_path / "earth.png"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.safe_dump({
            'commands': {'analyzer': 'my-analyzer --quiet'},
            'camera': {'focal_length': 0.05},
            'scenario': {'position': [7000000, 0, 0]},
            'stage_timeout_seconds': 30,
        }))
        config = build_pipeline_config(config_path=path, output_dir=tmp_path, x_resolution=256)

        assert config.analyzer_command == ("my-analyzer", "--quiet")
        assert config.focal_length == 0.05
        assert config.pixel_size == 20e-6
        assert config.x_resolution == 256
        assert config.ground_truth_m == 7000000.0
        assert config.stage_timeout_seconds == 30.0

    def test_yaml_unknown_key(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("camera:\n  focal_lenght: 0.05\n")
        with pytest.raises(ConfigurationError) as excinfo:
            load_config_file(path)
        assert "camera.focal_lenght" in str(excinfo.value)

    def test_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config_file(tmp_path / "nope.yaml")

    def test_merge_keeps_defaults(self):
        merged = merge_config(get_default_config(), {'output': {'results_dir': 'elsewhere'}})
        assert merged['output']['results_dir'] == 'elsewhere'
        assert merged['camera'] == get_default_config()['camera']

    def test_bundled_config_matches_defaults(self):
        path = Path(__file__).parent.parent.parent / "configs" / "pipeline.yaml"
        settings = load_config_file(path)
        defaults = get_default_config()
        assert settings['camera'] == defaults['camera']
        assert settings['scenario'] == defaults['scenario']

    @pytest.mark.parametrize("text, key", [
        ("camera:\n  focal_length: abc\n", "camera.focal_length"),
        ("camera:\n  pixel_size: [1, 2]\n", "camera.pixel_size"),
        ("camera:\n  x_resolution: 511.7\n", "camera.x_resolution"),
        ("camera:\n  y_resolution: true\n", "camera.y_resolution"),
        ("stage_timeout_seconds: abc\n", "stage_timeout_seconds"),
        ("stage_timeout_seconds: .nan\n", "stage_timeout_seconds"),
    ])
    def test_yaml_invalid_values(self, tmp_path, text, key):
        """Malformed values in the file are configuration errors naming the key."""
        path = tmp_path / "pipeline.yaml"
        path.write_text(text)
        with pytest.raises(ConfigurationError) as excinfo:
            build_pipeline_config(config_path=path, output_dir=tmp_path)
        assert excinfo.value.option == key

    def test_integral_float_resolution(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("camera:\n  x_resolution: 256.0\n")
        assert build_pipeline_config(config_path=path, output_dir=tmp_path).x_resolution == 256

    def test_invalid_resolution(self, tmp_path):
        with pytest.raises(ConfigurationError):
            make_config(tmp_path, x_resolution=0)


class TestOrchestrator:
    """Test stage sequencing and status rules."""

    def test_full_run(self, tmp_path):
        runner = FakeRunner(gen=produce_image, meas=produce_result(SUCCESS), ana=lambda argv: 0)
        config = make_config(tmp_path)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert outcome.success
        assert runner.stages == ["gen", "meas", "ana"]
        assert outcome.record == SUCCESS
        assert config.report_dir.is_dir()

        generate_argv, measure_argv, analyze_argv = runner.calls
        assert option(generate_argv, "--filename") == str(config.image_file)
        assert generate_argv[generate_argv.index("--position") + 1:][:3] == ["10378137.0", "0.0", "0.0"]
        assert option(measure_argv, "--image") == str(config.image_file)
        assert option(measure_argv, "--ground-truth") == "10378137.0"
        assert option(analyze_argv, "--result") == str(config.result_file)
        assert option(analyze_argv, "--output") == str(config.report_dir)

    def test_supplied_image_skips_generation(self, tmp_path):
        image = tmp_path / "earth.png"
        image.write_bytes(b"png")
        runner = FakeRunner(meas=produce_result(SUCCESS), ana=lambda argv: 0)
        outcome = PipelineOrchestrator(make_config(tmp_path, image_path=image), runner=runner, which=found).run()

        assert outcome.success
        assert runner.stages == ["meas", "ana"]
        assert outcome.stage("generate").status == orchestrator.STATUS_SKIPPED
        assert option(runner.calls[0], "--image") == str(image)

    def test_supplied_image_missing(self, tmp_path):
        runner = FakeRunner()
        config = make_config(tmp_path, image_path=tmp_path / "nope.png")
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert not outcome.success
        assert runner.calls == []
        assert not config.output_dir.exists()

    def test_generator_not_installed(self, tmp_path):
        runner = FakeRunner()
        outcome = PipelineOrchestrator(make_config(tmp_path), runner=runner, which=lambda name: None).run()
        assert not outcome.success
        assert runner.calls == []

    def test_generator_produced_nothing(self, tmp_path):
        runner = FakeRunner(gen=lambda argv: 0)
        config = make_config(tmp_path)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert not outcome.success
        assert runner.stages == ["gen"]
        assert outcome.stage("generate").message == f"generator did not produce {config.image_file}"

    def test_generator_exit_status(self, tmp_path):
        def broken(argv):
            produce_image(argv)
            return 1

        runner = FakeRunner(gen=broken)
        outcome = PipelineOrchestrator(make_config(tmp_path), runner=runner, which=found).run()
        assert not outcome.success
        assert runner.stages == ["gen"]

    def test_result_missing(self, tmp_path):
        runner = FakeRunner(gen=produce_image, meas=lambda argv: 1)
        config = make_config(tmp_path)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        message = outcome.stage("measure").message
        assert not outcome.success
        assert message.startswith(f"measurement stage did not produce {config.result_file}")
        assert runner.stages == ["gen", "meas"]

    def test_result_reports_failure(self, tmp_path):
        """A written failure record is distinct from a missing result."""
        runner = FakeRunner(
            gen=produce_image,
            meas=produce_result(ResultRecord.failure("No edges detected"), status=1),
        )
        config = make_config(tmp_path)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert not outcome.success
        assert outcome.record.error_message == "No edges detected"
        assert outcome.stage("measure").message == f"measurement reported failure, see {config.result_file}"
        assert runner.stages == ["gen", "meas"]

    def test_unreadable_result(self, tmp_path):
        def garbage(argv):
            Path(option(argv, "--output")).write_text("{")
            return 0

        runner = FakeRunner(gen=produce_image, meas=garbage)
        outcome = PipelineOrchestrator(make_config(tmp_path), runner=runner, which=found).run()
        assert not outcome.success
        assert outcome.stage("measure").message.startswith("measurement result is unreadable")

    def test_analyzer_not_installed(self, tmp_path):
        runner = FakeRunner(gen=produce_image, meas=produce_result(SUCCESS))
        outcome = PipelineOrchestrator(
            make_config(tmp_path), runner=runner,
            which=lambda name: None if name == "ana" else found(name),
        ).run()

        assert outcome.success
        assert runner.stages == ["gen", "meas"]
        assert outcome.stage("analyze").status == orchestrator.STATUS_SKIPPED

    def test_analyzer_failure_is_a_warning(self, tmp_path):
        runner = FakeRunner(gen=produce_image, meas=produce_result(SUCCESS), ana=lambda argv: 1)
        outcome = PipelineOrchestrator(make_config(tmp_path), runner=runner, which=found).run()

        assert outcome.success
        assert outcome.stage("analyze").status == orchestrator.STATUS_WARNING

    def test_stage_timeout_is_fatal(self, tmp_path):
        def hang(argv):
            raise subprocess.TimeoutExpired(argv, 5)

        runner = FakeRunner(gen=hang)
        config = make_config(tmp_path, stage_timeout_seconds=5.0)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert not outcome.success
        assert "timed out" in outcome.stage("generate").message
        assert runner.stages == ["gen"]

    def test_stale_outputs_are_not_reused(self, tmp_path):
        """Files from an earlier run in the same directory do not count as stage output."""
        config = make_config(tmp_path)
        first = FakeRunner(gen=produce_image, meas=produce_result(SUCCESS), ana=lambda argv: 0)
        assert PipelineOrchestrator(config, runner=first, which=found).run().success

        silent = FakeRunner(gen=lambda argv: 0, meas=lambda argv: 0, ana=lambda argv: 0)
        outcome = PipelineOrchestrator(config, runner=silent, which=found).run()

        assert not outcome.success
        assert outcome.stage("generate").message == f"generator did not produce {config.image_file}"
        assert not config.image_file.exists()

    def test_stale_result_is_not_reused(self, tmp_path):
        image = tmp_path / "earth.png"
        image.write_bytes(b"png")
        config = make_config(tmp_path, image_path=image)
        config.output_dir.mkdir(parents=True)
        write_result_json(SUCCESS, config.result_file)

        runner = FakeRunner(meas=lambda argv: 0)
        outcome = PipelineOrchestrator(config, runner=runner, which=found).run()

        assert not outcome.success
        assert outcome.stage("measure").message.startswith(
            f"measurement stage did not produce {config.result_file}"
        )
        assert image.is_file()

    def test_stage_cannot_start(self, tmp_path):
        def missing(argv):
            raise FileNotFoundError(2, "No such file or directory", argv[0])

        runner = FakeRunner(gen=produce_image, meas=missing)
        outcome = PipelineOrchestrator(make_config(tmp_path), runner=runner, which=found).run()
        assert not outcome.success
        assert outcome.stage("measure").failed


class TestPipelineCLI:
    """Test the orchestrator entry point."""

    def test_unknown_option(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as excinfo:
            orchestrator.main(["--bogus-option", "1"])
        assert excinfo.value.code == 2
        assert list(tmp_path.iterdir()) == []

    def test_zero_ground_truth(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert orchestrator.main(["--position", "0", "0", "0"]) == 2
        assert list(tmp_path.iterdir()) == []

    def test_invalid_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "bad.yaml").write_text("unknown_section: 1\n")
        assert orchestrator.main(["--config", "bad.yaml"]) == 2
        assert not (tmp_path / "results").exists()

    def test_invalid_config_value(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "bad.yaml").write_text("camera:\n  focal_length: abc\n")
        assert orchestrator.main(["--config", "bad.yaml"]) == 2
        assert not (tmp_path / "results").exists()

    def test_default_stages_end_to_end(self, tmp_path, monkeypatch):
        """Generator and measurement run as real processes with the default commands."""
        repo_root = str(Path(__file__).parent.parent.parent)
        monkeypatch.setenv("PYTHONPATH", os.pathsep.join(filter(None, [repo_root, os.environ.get("PYTHONPATH")])))
        output_dir = tmp_path / "run"

        status = orchestrator.main([
            "--output-dir", str(output_dir),
            "--orientation", "180", "0", "0",
            "--focal-length", "3e-3",
            "--x-resolution", "256", "--y-resolution", "256",
        ])

        assert status == 0
        assert (output_dir / "image.png").is_file()
        result = json.loads((output_dir / "result.json").read_text())
        assert result['success'] is True
        assert result['ground_truth_m'] == 10378137.0
        assert result['num_edges'] > 0
        assert result['error_percent'] < 1.0

    def test_runs_orchestrator(self, tmp_path, monkeypatch):
        seen = {}

        class Recorder:
            def __init__(self, config):
                seen['config'] = config

            def run(self):
                return orchestrator.PipelineOutcome(
                    stages=[orchestrator.StageResult("measure", orchestrator.STATUS_OK)], record=SUCCESS
                )

        monkeypatch.setattr(orchestrator, "PipelineOrchestrator", Recorder)
        status = orchestrator.main([
            "--image", "earth.png", "--ground-truth", "7e6", "--output-dir", str(tmp_path / "out"),
        ])

        assert status == 0
        assert seen['config'].image_path == Path("earth.png")
        assert seen['config'].ground_truth_m == 7e6
