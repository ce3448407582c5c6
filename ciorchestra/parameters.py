"""
Deferred parameters - named values resolved lazily and shared by consumers.

Producers publish parameters with add() (a callable plus the link that gates
it) or set() (a concrete value known after running). Consumers read with
get(); each callable is evaluated at most once and the value memoized.
Failed evaluations are not cached, so a later get() retries.

Safe for concurrent use from executor worker threads.
"""

import logging
import threading
from typing import Callable, Iterable, Optional

from ciorchestra.links import StepLink
from ciorchestra.step import Step

logger = logging.getLogger(__name__)


class DeferredParameters:
    """Registry of lazily evaluated parameters."""

    def __init__(self):
        self._lock = threading.Lock()
        self._fns: dict[str, Callable[[], str]] = {}
        self._values: dict[str, str] = {}
        self._links: dict[str, list[StepLink]] = {}
        # Per-name locks so one slow lookup does not block unrelated names
        self._name_locks: dict[str, threading.Lock] = {}

    def add(self, name: str, link: Optional[StepLink], fn: Callable[[], str]) -> None:
        """Register a lazily evaluated parameter gated by `link`."""
        with self._lock:
            self._fns[name] = fn
            self._name_locks.setdefault(name, threading.Lock())
            if link is not None:
                self._links.setdefault(name, []).append(link)

    def set(self, name: str, value: str) -> None:
        """Record a concrete value, overriding any registered callable."""
        with self._lock:
            self._values[name] = value
            self._name_locks.setdefault(name, threading.Lock())

    def names(self) -> list[str]:
        with self._lock:
            return sorted(set(self._values) | set(self._fns))

    def has(self, name: str) -> bool:
        with self._lock:
            return name in self._values or name in self._fns

    def links(self, name: str) -> list[StepLink]:
        """Links gating the named parameter."""
        with self._lock:
            return list(self._links.get(name, []))

    def all_links(self) -> list[StepLink]:
        """Every link gating any parameter."""
        with self._lock:
            return [link for links in self._links.values() for link in links]

    def get(self, name: str) -> str:
        """
        Resolve a parameter, evaluating its callable on first use.

        Raises:
            KeyError: If the parameter was never registered
            Exception: Whatever the producer's callable raised
        """
        with self._lock:
            if name in self._values:
                return self._values[name]
            if name not in self._fns:
                raise KeyError(f"unknown parameter: {name}")
            name_lock = self._name_locks[name]

        with name_lock:
            with self._lock:
                if name in self._values:
                    return self._values[name]
                fn = self._fns[name]
            value = fn()
            with self._lock:
                self._values.setdefault(name, value)
                return self._values[name]

    def map(self) -> dict[str, str]:
        """Resolve every parameter; the first failing callable raises."""
        return {name: self.get(name) for name in self.names()}


def register_provided(steps: Iterable[Step], params: DeferredParameters) -> None:
    """Publish every step's provided parameters under the link that gates them."""
    for step in steps:
        provided, link = step.provides()
        for name, fn in (provided or {}).items():
            logger.debug(f"Parameter {name} provided by {step.describe()}")
            params.add(name, link, fn)
