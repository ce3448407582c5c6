"""
ciorchestra - CI build graph orchestrator

Links build steps into producer/consumer graphs by the resources they
require and create, and runs them concurrently in dependency order,
skipping steps whose effect already exists.
"""

__version__ = "0.1.0"


__all__ = [
    "Step",
    "StepLink",
    "StepNode",
    "build_graph",
    "build_partial_graph",
    "Executor",
    "ExecutionResult",
    "run_steps",
    "DeferredParameters",
]

from .step import Step
from .links import StepLink
from .graph import StepNode, build_graph, build_partial_graph
from .executor import Executor, ExecutionResult, run_steps
from .parameters import DeferredParameters
