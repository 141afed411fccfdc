"""Pipeline modules for orchestrating complex workflows."""

from .timing_pipeline import ProjectTimingPipeline, ProjectTimingPipelineConfig, rematch_project_segment

__all__ = [
    "ProjectTimingPipeline",
    "ProjectTimingPipelineConfig",
    "rematch_project_segment",
]
