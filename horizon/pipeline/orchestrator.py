#!/usr/bin/env python3
"""
orchestrator.py - Generate / measure / analyze pipeline

Runs the three stages of a horizon distance integration test as separate
processes:

    Step 1  generate  synthetic image from position + orientation
                      (skipped when an image is supplied)
    Step 2  measure   edge detection + distance determination → result.json
    Step 3  analyze   report from result.json (optional; skipped with a
                      warning when the analyzer is not installed)

No stage runs after an earlier stage failed. The run succeeds when the image
exists and the measurement reported success; the analysis stage never changes
the overall status.

Usage:
    python run_pipeline.py --position 10378137 0 0 --orientation 140 0 0
    python run_pipeline.py --image earth.png --ground-truth 10378137
"""

import argparse
import logging
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.errors import ConfigurationError, ResultFormatError, StageError
from ..core.results import ResultRecord, load_result, format_result
from .config import PipelineConfig, build_pipeline_config

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_WARNING = "warning"


@dataclass
class StageResult:
    """Outcome of one pipeline stage."""
    name: str
    status: str
    message: str = ""
    returncode: Optional[int] = None
    duration_s: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status == STATUS_FAILED


@dataclass
class PipelineOutcome:
    """Outcome of a complete pipeline run."""
    stages: List[StageResult] = field(default_factory=list)
    record: Optional[ResultRecord] = None

    @property
    def success(self) -> bool:
        return (
            not any(stage.failed for stage in self.stages)
            and self.record is not None
            and self.record.success
        )

    def stage(self, name: str) -> Optional[StageResult]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None


class PipelineOrchestrator:
    """
    Sequential runner of the generate, measure and analyze stages.

    The process runner and the executable lookup are injectable so the
    sequencing can be exercised without spawning processes.
    """

    def __init__(
        self,
        config: PipelineConfig,
        runner: Callable = subprocess.run,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.config = config
        self.runner = runner
        self.which = which

    def _step(self, title: str):
        logger.info(f"── {title} " + "─" * max(0, 60 - len(title)))

    def _invoke(self, name: str, argv: Sequence[str]) -> StageResult:
        """Run one stage process and capture its exit status."""
        logger.debug(f"[{name}] {' '.join(argv)}")
        start = time.time()
        try:
            completed = self.runner(
                list(argv), check=False, timeout=self.config.stage_timeout_seconds
            )
        except subprocess.TimeoutExpired:
            return StageResult(
                name, STATUS_FAILED,
                f"{name} stage timed out after {self.config.stage_timeout_seconds:.0f} s",
                duration_s=time.time() - start,
            )
        except OSError as e:
            return StageResult(
                name, STATUS_FAILED, f"{name} stage could not be started: {e}",
                duration_s=time.time() - start,
            )

        return StageResult(
            name, STATUS_OK, returncode=completed.returncode, duration_s=time.time() - start
        )

    def _clear_output(self, name: str, path) -> Optional[StageResult]:
        """Remove a stage output left by an earlier run in the same directory."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            return StageResult(name, STATUS_FAILED, f"cannot remove stale {path}: {e}")
        return None

    def preflight(self):
        """
        Check stage preconditions and create the output layout.

        Raises:
            StageError: If a supplied image is missing or the generator cannot be found
        """
        self._step("Preflight")
        config = self.config

        if config.image_path is not None:
            if not config.image_path.is_file():
                raise StageError(f"Supplied image not found: {config.image_path}", stage="preflight")
            logger.info(f"Using supplied image: {config.image_path}")
        elif self.which(config.generator_command[0]) is None:
            raise StageError(
                f"Generator not found: {config.generator_command[0]}", stage="preflight"
            )

        config.output_dir.mkdir(parents=True, exist_ok=True)
        config.report_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Output:       {config.output_dir}")
        logger.info(f"Position:     {' '.join(str(c) for c in config.position)}")
        logger.info(f"Orientation:  {' '.join(str(c) for c in config.orientation)}")
        logger.info(f"Ground truth: {config.ground_truth_m} m")

    def generate(self) -> StageResult:
        """Step 1: render the synthetic image unless one was supplied."""
        self._step("Step 1: Generate image")
        config = self.config

        if not config.generates_image:
            logger.info("Skipping, using supplied image")
            return StageResult("generate", STATUS_SKIPPED, "image supplied")

        argv = list(config.generator_command) + [
            "--position", *[str(c) for c in config.position],
            "--orientation", *[str(c) for c in config.orientation],
            "--focal-length", str(config.focal_length),
            "--pixel-size", str(config.pixel_size),
            "--x-resolution", str(config.x_resolution),
            "--y-resolution", str(config.y_resolution),
            "--filename", str(config.image_file),
        ]
        stale = self._clear_output("generate", config.image_file)
        if stale is not None:
            return stale
        result = self._invoke("generate", argv)
        if result.failed:
            return result

        # The generator exiting cleanly without an image is still a failure
        if not config.image_file.is_file():
            result.status = STATUS_FAILED
            result.message = f"generator did not produce {config.image_file}"
            return result
        if result.returncode != 0:
            result.status = STATUS_FAILED
            result.message = f"generator exited with status {result.returncode}"
            return result

        result.message = f"Image generated: {config.image_file}"
        logger.info(result.message)
        return result

    def measure(self) -> Tuple[StageResult, Optional[ResultRecord]]:
        """Step 2: run the measurement process and read back its record."""
        self._step("Step 2: Edge detection + distance")
        config = self.config

        argv = list(config.measure_command) + [
            "--image", str(config.image_file),
            "--focal-length", str(config.focal_length),
            "--pixel-size", str(config.pixel_size),
            "--ground-truth", str(config.ground_truth_m),
            "--output", str(config.result_file),
        ]
        stale = self._clear_output("measure", config.result_file)
        if stale is not None:
            return stale, None
        result = self._invoke("measure", argv)
        if result.failed:
            return result, None

        if not config.result_file.is_file():
            result.status = STATUS_FAILED
            result.message = (
                f"measurement stage did not produce {config.result_file} "
                f"(exit status {result.returncode})"
            )
            return result, None

        try:
            record = load_result(config.result_file)
        except (ResultFormatError, OSError) as e:
            result.status = STATUS_FAILED
            result.message = f"measurement result is unreadable: {e}"
            return result, None

        # A written result file is not evidence of success
        if not record.success:
            result.status = STATUS_FAILED
            result.message = f"measurement reported failure, see {config.result_file}"
            return result, record
        if result.returncode != 0:
            result.status = STATUS_FAILED
            result.message = f"measurement stage exited with status {result.returncode}"
            return result, record

        result.message = f"Result written: {config.result_file}"
        logger.info(result.message)
        return result, record

    def analyze(self) -> StageResult:
        """Step 3: best-effort report generation."""
        self._step("Step 3: Analyze results")
        config = self.config

        analyzer = config.analyzer_command[0]
        if self.which(analyzer) is None:
            message = f"{analyzer} not installed, skipping analysis"
            logger.warning(message)
            return StageResult("analyze", STATUS_SKIPPED, message)

        argv = list(config.analyzer_command) + [
            "--result", str(config.result_file),
            "--output", str(config.report_dir),
        ]
        result = self._invoke("analyze", argv)
        if result.failed or result.returncode != 0:
            result.status = STATUS_WARNING
            result.message = result.message or f"analyzer exited with status {result.returncode}"
            logger.warning(f"Analysis failed ({result.message}); continuing")
            return result

        result.message = f"Report written: {config.report_dir}/"
        logger.info(result.message)
        return result

    def run(self) -> PipelineOutcome:
        """Run preflight and the three stages in order, stopping at the first failure."""
        outcome = PipelineOutcome()

        try:
            self.preflight()
        except StageError as e:
            logger.error(f"Preflight failed: {e}")
            outcome.stages.append(StageResult("preflight", STATUS_FAILED, str(e)))
            return outcome
        except OSError as e:
            logger.error(f"Preflight failed: cannot create {self.config.output_dir}: {e}")
            outcome.stages.append(StageResult("preflight", STATUS_FAILED, str(e)))
            return outcome

        generated = self.generate()
        outcome.stages.append(generated)
        if generated.failed:
            logger.error(f"Generate stage failed: {generated.message}")
            return outcome

        measured, record = self.measure()
        outcome.stages.append(measured)
        outcome.record = record
        if measured.failed:
            logger.error(f"Measure stage failed: {measured.message}")
            return outcome

        outcome.stages.append(self.analyze())

        self._step("Summary")
        for line in format_result(record).splitlines():
            logger.info(f"  {line}")
        logger.info(f"All outputs in: {self.config.output_dir}")
        return outcome


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="horizon-pipeline",
        description="Horizon distance integration test: generate → measure → analyze",
    )
    parser.add_argument("--position", type=float, nargs=3, metavar=("X", "Y", "Z"),
                        help="Spacecraft position, m (default: 10378137 0 0)")
    parser.add_argument("--orientation", type=float, nargs=3, metavar=("RA", "DE", "ROLL"),
                        help="Spacecraft orientation, deg (default: 140 0 0)")
    parser.add_argument("--focal-length", type=float, help="Camera focal length, m (default: 85e-3)")
    parser.add_argument("--pixel-size", type=float, help="Camera pixel size, m (default: 20e-6)")
    parser.add_argument("--x-resolution", type=int, help="Image width, px (default: 512)")
    parser.add_argument("--y-resolution", type=int, help="Image height, px (default: 512)")
    parser.add_argument("--image", help="Supply an image directly, skipping Step 1")
    parser.add_argument("--output-dir", help="Where to write results (default: results/<timestamp>)")
    parser.add_argument("--ground-truth", type=float,
                        help="True distance, m (default: norm of --position)")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    # Unknown options make argparse exit with status 2 before anything runs
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = build_pipeline_config(
            position=args.position,
            orientation=args.orientation,
            focal_length=args.focal_length,
            pixel_size=args.pixel_size,
            x_resolution=args.x_resolution,
            y_resolution=args.y_resolution,
            image=args.image,
            output_dir=args.output_dir,
            ground_truth=args.ground_truth,
            config_path=args.config,
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    outcome = PipelineOrchestrator(config).run()
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
