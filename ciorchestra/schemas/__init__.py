"""
ciorchestra.schemas - Data structures shared by steps and the executor.

- ImageStreamTagReference / PipelineImageStreamTagReference: what links point at
- InputImageTagStepConfiguration / ReleaseTagConfiguration: concrete step settings
- JobSpec: the job (and namespace) steps act on
- NodeStatus / NodeOutcome: executor run state
"""

from .references import (
    ImageStreamTagReference,
    PipelineImageStreamTagReference,
    InputImageTagStepConfiguration,
    ReleaseTagConfiguration,
)
from .job_spec import JobSpec
from .outcome import NodeStatus, NodeOutcome

__all__ = [
    # References
    "ImageStreamTagReference",
    "PipelineImageStreamTagReference",
    "InputImageTagStepConfiguration",
    "ReleaseTagConfiguration",
    # Job
    "JobSpec",
    # Outcomes
    "NodeStatus",
    "NodeOutcome",
]
