"""
Build graph - link steps into producer -> consumer trees.

Edges point from a producer to each consumer that requires one of the
links it creates. Roots are nodes with no producer among the given steps.

build_partial_graph() restricts the steps to the named targets plus every
step whose creations (transitively) satisfy their requirements.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from ciorchestra.errors import AmbiguousTargetError, GraphCycleError, UnresolvedTargetError
from ciorchestra.links import StepLink, has_any_links
from ciorchestra.step import Step

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class StepNode:
    """A step and the nodes that consume what it creates."""
    step: Step
    children: list["StepNode"] = field(default_factory=list)

    def add_child(self, child: "StepNode") -> bool:
        """Append child unless it is already present (identity)."""
        for existing in self.children:
            if existing is child:
                return False
        self.children.append(child)
        return True

    def __repr__(self) -> str:
        return f"StepNode({self.step.describe()}, children={len(self.children)})"


def build_graph(steps: Sequence[Step]) -> list[StepNode]:
    """
    Return the root nodes of the graph(s) containing every given step.

    A requirement no step creates is not an error here; the step is simply a
    root and the missing resource surfaces when it runs.
    """
    all_nodes = [StepNode(step=step) for step in steps]

    roots = []
    for node in all_nodes:
        is_root = True
        for other in all_nodes:
            if other is node:
                continue
            for required in node.step.requires():
                for created in other.step.creates():
                    if required.matches(created):
                        is_root = False
                        other.add_child(node)
        if is_root:
            roots.append(node)

    _check_acyclic(all_nodes)
    logger.debug(f"Built graph of {len(all_nodes)} step(s) with {len(roots)} root(s)")
    return roots


def _check_acyclic(all_nodes: list[StepNode]) -> None:
    """Raise GraphCycleError if some nodes can never have all producers finish."""
    pending = {node: 0 for node in all_nodes}
    for node in all_nodes:
        for child in node.children:
            pending[child] += 1

    queue = [node for node, count in pending.items() if count == 0]
    visited = 0
    while queue:
        node = queue.pop()
        visited += 1
        for child in node.children:
            pending[child] -= 1
            if pending[child] == 0:
                queue.append(child)

    if visited != len(all_nodes):
        stuck = [node.step.describe() for node, count in pending.items() if count > 0]
        raise GraphCycleError(stuck)


def build_partial_graph(steps: Sequence[Step], names: Sequence[str]) -> list[StepNode]:
    """
    Return the graph(s) needed to run only the named steps and their prerequisites.

    Args:
        steps: All known steps
        names: Target names; empty means every step

    Returns:
        Root nodes over the selected steps

    Raises:
        AmbiguousTargetError: If a requested name is carried by several steps
        UnresolvedTargetError: If requested names are left unmatched (unknown,
                               or repeated after their first match)
    """
    if not names:
        return build_graph(steps)

    counts = Counter(step.name for step in steps if step.name)
    ambiguous = [name for name in dict.fromkeys(names) if counts[name] > 1]
    if ambiguous:
        raise AmbiguousTargetError(ambiguous)

    remaining = list(names)
    required: list[StepLink] = []
    selected = [False] * len(steps)
    for i, step in enumerate(steps):
        if step.name and step.name in remaining:
            selected[i] = True
            required.extend(step.requires())
            remaining.remove(step.name)
    if remaining:
        raise UnresolvedTargetError(remaining)

    # Pull in every step creating a link the current selection requires
    while True:
        added = 0
        for i, step in enumerate(steps):
            if selected[i]:
                continue
            if has_any_links(required, step.creates()):
                added += 1
                selected[i] = True
                required.extend(step.requires())
        if added == 0:
            break

    targeted = [step for i, step in enumerate(steps) if selected[i]]
    logger.info(
        f"Selected {len(targeted)} of {len(steps)} step(s) for targets: {', '.join(names)}"
    )
    return build_graph(targeted)


def iter_nodes(roots: Sequence[StepNode]) -> Iterator[StepNode]:
    """Yield every node reachable from the roots once, breadth first."""
    seen: set[int] = set()
    queue = list(roots)
    while queue:
        node = queue.pop(0)
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        queue.extend(node.children)


def parent_counts(roots: Sequence[StepNode]) -> dict[StepNode, int]:
    """Number of producer nodes each reachable node waits on."""
    counts = {node: 0 for node in iter_nodes(roots)}
    for node in counts:
        for child in node.children:
            counts[child] += 1
    return counts
