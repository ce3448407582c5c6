"""
Step - the unit of work the build graph schedules.

Steps are polymorphic: the graph builder and executor only ever call the
methods below and never look inside an implementation. Remote clients are
injected into each step, never into the scheduler.

Failure contract:
- inputs(), run() and done() raise on failure
- done() returning True means the effect already exists and run() is skipped
- run() may be invoked again after a partial earlier run while done() is False
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ciorchestra.links import StepLink

# Content fingerprint of what a step consumes
InputDefinition = list[str]

# Named output parameters, evaluated on demand by consumers
ParameterMap = dict[str, Callable[[], str]]


class Step(ABC):
    """
    Abstract base class for build steps.

    Each step must implement:
    - inputs(): Fingerprint the step's inputs (memoize expensive lookups)
    - run(): Perform the step's effect, or render it when dry
    - done(): Report whether the effect already exists
    - requires() / creates(): Links consumed and produced; stable for the
      lifetime of the step
    """

    @abstractmethod
    def inputs(self, dry: bool) -> InputDefinition:
        pass

    @abstractmethod
    def run(self, dry: bool) -> None:
        pass

    @abstractmethod
    def done(self) -> bool:
        pass

    @abstractmethod
    def requires(self) -> list[StepLink]:
        pass

    @abstractmethod
    def creates(self) -> list[StepLink]:
        pass

    @property
    def name(self) -> str:
        """Target name; the empty string means the step cannot be targeted."""
        return ""

    def provides(self) -> tuple[ParameterMap, Optional[StepLink]]:
        """Parameters this step publishes and the link that gates reading them."""
        return {}, None

    def describe(self) -> str:
        """Label for logs and outcomes."""
        return self.name or type(self).__name__
