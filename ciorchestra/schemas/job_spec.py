"""JobSpec - identity of the CI job the steps act on behalf of."""

from dataclasses import dataclass


@dataclass(frozen=True)
class JobSpec:
    """
    The running CI job.

    Attributes:
        namespace: Cluster namespace owned by this job; steps create
                   resources here
        job_name: Name of the CI job
        build_id: Build number or identifier of this run
    """
    namespace: str
    job_name: str = ""
    build_id: str = ""

    def __post_init__(self):
        if not self.namespace:
            raise ValueError("JobSpec requires a namespace")
