"""
Error classes for ciorchestra.

Errors are exceptions, not values:
- TargetError: Requested target names could not be resolved (fatal, raised
  before any step runs)
- StepError: A single step failed while probing or running
- ExecutionError: Aggregate of every step failure in one execution, and of
  its cancellation
- ClusterError: Raised by cluster clients (NotFoundError is "not done yet",
  AlreadyExistsError is treated as success by steps)

The executor catches step exceptions at the node boundary and records them.
"""


class CiOrchestraError(Exception):
    """Base exception for ciorchestra."""
    pass


class ConfigError(CiOrchestraError):
    """Configuration validation error."""
    pass


class TargetError(CiOrchestraError):
    """
    Requested targets do not map onto exactly one known step each.

    Attributes:
        names: The offending target names, in request order
    """

    def __init__(self, message: str, names: list[str]):
        self.names = list(names)
        super().__init__(message)


class UnresolvedTargetError(TargetError):
    """One or more requested names matched no (remaining) step."""

    def __init__(self, names: list[str]):
        super().__init__(
            "the following names were not found in the config or were duplicates: "
            + ", ".join(names),
            names,
        )


class AmbiguousTargetError(TargetError):
    """A requested name is carried by more than one step."""

    def __init__(self, names: list[str]):
        super().__init__(
            "the following names match more than one step: " + ", ".join(names),
            names,
        )


class GraphCycleError(CiOrchestraError):
    """Steps depend on each other in a cycle and could never start."""

    def __init__(self, steps: list[str]):
        self.steps = list(steps)
        super().__init__("dependency cycle between steps: " + ", ".join(steps))


class StepError(CiOrchestraError):
    """Raised when a single step fails."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"Step '{step}' failed: {message}")


class StepCancelledError(StepError):
    """The step was in flight when execution was cancelled."""

    def __init__(self, step: str):
        super().__init__(step, "execution cancelled")


class ExecutionError(CiOrchestraError):
    """
    Aggregate failure of an execution.

    Raised for a cancelled execution even when no node was in flight to
    record a StepCancelledError.

    Attributes:
        failures: (step description, exception) pairs for every failed node
        cancelled: Whether the execution was cancelled
    """

    def __init__(self, failures: list[tuple[str, BaseException]], cancelled: bool = False):
        self.failures = list(failures)
        self.cancelled = cancelled
        details = "; ".join(f"{step}: {error}" for step, error in self.failures)
        message = f"{len(self.failures)} step(s) failed: {details}"
        if cancelled:
            message = f"execution cancelled, {message}" if self.failures else "execution cancelled"
        super().__init__(message)


class ClusterError(CiOrchestraError):
    """Base error for cluster client operations."""
    pass


class NotFoundError(ClusterError):
    """The requested resource does not exist."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class AlreadyExistsError(ClusterError):
    """A resource with the same name already exists."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} already exists")
