from core.pipeline.reid_pipeline import (
    PipelineResult,
    PipelineTiming,
    ReidPipeline,
    UploadedImage,
)
from core.pipeline.service import ExecutionMode, ReidentificationService

__all__ = [
    "ExecutionMode",
    "PipelineResult",
    "PipelineTiming",
    "ReidPipeline",
    "ReidentificationService",
    "UploadedImage",
]
