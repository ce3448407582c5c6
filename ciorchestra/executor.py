"""
Executor - run a step graph in producer -> consumer order.

The Executor implements:
- Kahn-style scheduling: a node starts once every producer it waits on has
  succeeded or was already done
- Concurrency: ready nodes run on a bounded thread pool
- Idempotency: done() True skips run()
- Failure containment: descendants of a failed node are blocked, unrelated
  subgraphs keep going (unless fail_fast)
- Cancellation: a threading.Event stops scheduling and abandons in-flight
  nodes with a cancellation failure

Execution flow per node (on a worker thread):
1. done() - True marks the node skipped
2. inputs(dry_run) - fingerprint, hashed into the outcome
3. run(dry_run)
Any exception the step raises, BaseException subclasses included, marks
the node failed.

Scheduler state (pending counts, statuses, outcomes) is only touched by the
coordinating thread; workers never share a lock across step calls.
"""

import hashlib
import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Optional, Sequence

from ciorchestra.errors import ExecutionError, StepCancelledError
from ciorchestra.graph import StepNode, build_partial_graph, iter_nodes, parent_counts
from ciorchestra.schemas import NodeOutcome, NodeStatus
from ciorchestra.step import Step

logger = logging.getLogger(__name__)

DEFAULT_PARALLELISM = 4

# How often the coordinator re-checks the cancellation event
CANCEL_POLL_SECONDS = 0.1


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _hash_inputs(inputs: Sequence[str]) -> str:
    """sha256 over the inputs fingerprint."""
    digest = hashlib.sha256()
    for item in inputs or []:
        digest.update(item.encode())
        digest.update(b"\0")
    return digest.hexdigest()


def _error_info(error: BaseException) -> dict[str, str]:
    return {"type": type(error).__name__, "message": str(error)}


class ExecutionResult:
    """Result of executing a graph."""

    def __init__(
        self,
        outcomes: list[NodeOutcome],
        failures: list[tuple[str, BaseException]],
        steps: dict[int, NodeOutcome],
        cancelled: bool = False,
    ):
        self.outcomes = outcomes
        self.failures = failures
        self.cancelled = cancelled
        self._by_step = steps

    @property
    def success(self) -> bool:
        return not self.failures and not self.cancelled

    @property
    def error(self) -> Optional[ExecutionError]:
        """Aggregate of every failure and any cancellation, or None on success."""
        if self.success:
            return None
        return ExecutionError(self.failures, cancelled=self.cancelled)

    def outcome_for(self, step: Step) -> Optional[NodeOutcome]:
        """Outcome recorded for a given step object."""
        return self._by_step.get(id(step))

    def with_status(self, status: NodeStatus) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def failed_steps(self) -> list[NodeOutcome]:
        return self.with_status(NodeStatus.FAILED)

    def raise_for_status(self) -> None:
        """Raise the aggregate ExecutionError if any node failed or the run was cancelled."""
        error = self.error
        if error is not None:
            raise error

    def summary(self) -> dict[str, int]:
        """Count of outcomes per status."""
        counts: dict[str, int] = {}
        for outcome in self.outcomes:
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
        return counts


class Executor:
    """
    Execution engine for step graphs.

    Usage:
        roots = build_partial_graph(steps, ["[images]"])
        result = Executor(parallelism=4).execute(roots, dry_run=False)
        result.raise_for_status()
    """

    def __init__(self, parallelism: int = DEFAULT_PARALLELISM, fail_fast: bool = False):
        """
        Initialize the executor.

        Args:
            parallelism: Maximum number of steps running at once
            fail_fast: Start no new steps once any step has failed
        """
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        self._parallelism = parallelism
        self._fail_fast = fail_fast

    def execute(
        self,
        roots: Sequence[StepNode],
        dry_run: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """
        Execute every node reachable from the roots.

        Args:
            roots: Root nodes from build_graph() / build_partial_graph()
            dry_run: Passed unchanged to every inputs()/run() call
            cancel: Once set, stop scheduling and abandon in-flight nodes

        Returns:
            ExecutionResult with one outcome per node
        """
        pending = parent_counts(roots)
        status = {node: NodeStatus.PENDING for node in pending}
        outcomes: list[NodeOutcome] = []
        by_step: dict[int, NodeOutcome] = {}
        failures: list[tuple[str, BaseException]] = []

        def record(node: StepNode, outcome: NodeOutcome) -> None:
            status[node] = outcome.status
            outcomes.append(outcome)
            by_step[id(node.step)] = outcome

        logger.info(
            f"Executing {len(pending)} step(s) from {len(roots)} root(s)"
            + (" (dry run)" if dry_run else ""),
            extra={"event": "execution_started"},
        )

        ready = deque(node for node, count in pending.items() if count == 0)
        in_flight: dict[Future, StepNode] = {}
        halted = False
        cancelled = False

        pool = ThreadPoolExecutor(max_workers=self._parallelism, thread_name_prefix="ciorchestra")
        try:
            while ready or in_flight:
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    break

                # Only hand the pool what it can start now, so a halt or
                # cancel leaves the rest of `ready` unstarted
                while ready and not halted and len(in_flight) < self._parallelism:
                    node = ready.popleft()
                    status[node] = NodeStatus.CHECKING
                    in_flight[pool.submit(self._run_node, node, dry_run, cancel)] = node
                if not in_flight:
                    break

                finished, _ = wait(
                    in_flight,
                    timeout=CANCEL_POLL_SECONDS if cancel is not None else None,
                    return_when=FIRST_COMPLETED,
                )
                for future in finished:
                    node = in_flight.pop(future)
                    outcome, error = future.result()
                    record(node, outcome)

                    if outcome.status.satisfies_children:
                        for child in node.children:
                            pending[child] -= 1
                            if pending[child] == 0 and status[child] == NodeStatus.PENDING:
                                ready.append(child)
                        continue

                    failures.append((outcome.step, error))
                    self._block_descendants(node, status, record)
                    if self._fail_fast and not halted:
                        halted = True
                        logger.warning(
                            "Fail-fast: no further steps will be started",
                            extra={"event": "execution_halted"},
                        )
        finally:
            # Abandoned workers finish in the background; their results are discarded
            pool.shutdown(wait=not cancelled, cancel_futures=True)

        now = _utcnow()
        for node in in_flight.values():
            error = StepCancelledError(node.step.describe())
            failures.append((node.step.describe(), error))
            record(node, NodeOutcome(
                step=node.step.describe(),
                status=NodeStatus.CANCELLED,
                completed_at=now,
                error=_error_info(error),
            ))
        for node in iter_nodes(roots):
            if status[node] == NodeStatus.PENDING:
                record(node, NodeOutcome(step=node.step.describe(), status=NodeStatus.NOT_STARTED))

        result = ExecutionResult(outcomes, failures, by_step, cancelled=cancelled)
        if result.success:
            logger.info(
                f"Execution succeeded: {result.summary()}",
                extra={"event": "execution_completed", "metadata": result.summary()},
            )
        else:
            logger.error(
                f"Execution failed: {result.error or 'cancelled'}",
                extra={"event": "execution_failed", "metadata": result.summary()},
            )
        return result

    def _block_descendants(self, failed: StepNode, status, record) -> None:
        """Mark every not-yet-started descendant of a failed node as blocked."""
        for node in iter_nodes(failed.children):
            if status[node] != NodeStatus.PENDING:
                continue
            logger.warning(
                f"Skipping {node.step.describe()}: {failed.step.describe()} failed",
                extra={"step": node.step.describe(), "event": "step_blocked"},
            )
            record(node, NodeOutcome(
                step=node.step.describe(),
                status=NodeStatus.BLOCKED,
                error={"type": "AncestorFailed", "message": f"{failed.step.describe()} failed"},
            ))

    def _run_node(
        self,
        node: StepNode,
        dry_run: bool,
        cancel: Optional[threading.Event],
    ) -> tuple[NodeOutcome, Optional[BaseException]]:
        """Probe and run one step. Never raises; failures become the outcome."""
        step = node.step
        label = step.describe()
        started_at = _utcnow()
        inputs_hash = None
        try:
            if step.done():
                logger.info(
                    f"Step {label} already done, skipping",
                    extra={"step": label, "event": "step_skipped"},
                )
                return NodeOutcome(
                    step=label,
                    status=NodeStatus.SKIPPED,
                    started_at=started_at,
                    completed_at=_utcnow(),
                ), None

            inputs_hash = _hash_inputs(step.inputs(dry_run))
            if cancel is not None and cancel.is_set():
                raise StepCancelledError(label)

            logger.info(
                f"Running step {label}",
                extra={"step": label, "event": "step_started", "metadata": {"inputs_hash": inputs_hash}},
            )
            step.run(dry_run)
        # Includes SystemExit and KeyboardInterrupt raised by the step
        except BaseException as e:
            logger.error(
                f"Step {label} failed: {e}",
                extra={"step": label, "event": "step_failed"},
            )
            return NodeOutcome(
                step=label,
                status=NodeStatus.CANCELLED if isinstance(e, StepCancelledError) else NodeStatus.FAILED,
                started_at=started_at,
                completed_at=_utcnow(),
                inputs_hash=inputs_hash,
                error=_error_info(e),
            ), e

        logger.info(
            f"Step {label} succeeded",
            extra={"step": label, "event": "step_completed"},
        )
        return NodeOutcome(
            step=label,
            status=NodeStatus.SUCCEEDED,
            started_at=started_at,
            completed_at=_utcnow(),
            inputs_hash=inputs_hash,
        ), None


def run_steps(
    steps: Sequence[Step],
    targets: Optional[Sequence[str]] = None,
    dry_run: bool = False,
    parallelism: int = DEFAULT_PARALLELISM,
    fail_fast: bool = False,
    cancel: Optional[threading.Event] = None,
) -> ExecutionResult:
    """
    Select the targeted steps (all when `targets` is empty) and execute them.

    Raises:
        TargetError: Before anything runs, if the targets cannot be resolved
    """
    roots = build_partial_graph(steps, list(targets or []))
    executor = Executor(parallelism=parallelism, fail_fast=fail_fast)
    return executor.execute(roots, dry_run=dry_run, cancel=cancel)
