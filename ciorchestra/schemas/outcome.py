"""
Outcome schemas - per-node run state recorded by the executor.

NodeStatus follows the node state machine:

    pending -> checking -> skipped                  (already done)
                        -> succeeded
                        -> failed
    pending -> blocked                              (an ancestor failed)
    pending -> not_started                          (fail-fast halt or cancellation)
    checking -> cancelled                           (cancelled while in flight)

`checking` covers a node's whole time on a worker: the done() probe, then
inputs() and run(). The coordinator only sees the node again once it has
reached a terminal state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class NodeStatus(str, Enum):
    """Status of a graph node during execution."""
    PENDING = "pending"
    CHECKING = "checking"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    NOT_STARTED = "not_started"

    @property
    def is_terminal(self) -> bool:
        return self not in (NodeStatus.PENDING, NodeStatus.CHECKING)

    @property
    def satisfies_children(self) -> bool:
        """Whether children waiting on this node may start."""
        return self in (NodeStatus.SUCCEEDED, NodeStatus.SKIPPED)


@dataclass(frozen=True)
class NodeOutcome:
    """
    The outcome of one node within an execution.

    Attributes:
        step: Description of the step (its name, or a label if untargetable)
        status: Terminal status
        started_at: When the done() probe began (None if never started)
        completed_at: When the node reached its terminal state
        inputs_hash: sha256 over the step's inputs fingerprint, when computed
        error: Error details if the node failed or was cancelled
    """
    step: str
    status: NodeStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    inputs_hash: Optional[str] = None
    error: Optional[dict[str, Any]] = None

    def __post_init__(self):
        if not self.status.is_terminal:
            raise ValueError(f"NodeOutcome requires a terminal status, got {self.status.value}")
        if self.status == NodeStatus.FAILED and self.error is None:
            raise ValueError("failed outcomes must carry error details")

    @property
    def duration_ms(self) -> Optional[int]:
        """Execution duration in milliseconds if both timestamps present."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return int(delta.total_seconds() * 1000)
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "step": self.step,
            "status": self.status.value,
        }
        if self.started_at is not None:
            result["started_at"] = self.started_at.isoformat()
        if self.completed_at is not None:
            result["completed_at"] = self.completed_at.isoformat()
        if self.inputs_hash is not None:
            result["inputs_hash"] = self.inputs_hash
        if self.error is not None:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NodeOutcome":
        """Deserialize from dictionary."""
        return cls(
            step=data["step"],
            status=NodeStatus(data["status"]),
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else None,
            completed_at=datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None,
            inputs_hash=data.get("inputs_hash"),
            error=data.get("error"),
        )
