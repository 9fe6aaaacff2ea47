"""Generate / measure / analyze orchestration."""

from .config import PipelineConfig, build_pipeline_config, derive_ground_truth, load_config_file
from .orchestrator import PipelineOrchestrator, PipelineOutcome, StageResult

__all__ = [
    'PipelineConfig',
    'build_pipeline_config',
    'derive_ground_truth',
    'load_config_file',
    'PipelineOrchestrator',
    'PipelineOutcome',
    'StageResult',
]
