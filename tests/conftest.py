import threading

import pytest

from ciorchestra.cluster import IMAGE_STREAM, IMAGE_STREAM_TAG, ROUTE, InMemoryClusterClient
from ciorchestra.schemas import JobSpec
from ciorchestra.step import Step


class FakeStep(Step):
    """Step with scripted links and behavior that records every call."""

    def __init__(self, label, requires=(), creates=(), name="", done=False, fail=None,
                 inputs=None, log=None, on_run=None):
        self.label = label
        self._requires = list(requires)
        self._creates = list(creates)
        self._name = name
        self._done = done
        self._fail = fail
        self._inputs = inputs if inputs is not None else [label]
        self._on_run = on_run
        # Shared across steps so tests can assert global ordering
        self.log = log if log is not None else []
        self._lock = threading.Lock()
        self.run_calls = []
        self.input_calls = []
        self.done_calls = 0

    @property
    def name(self):
        return self._name

    def describe(self):
        return self._name or self.label

    def inputs(self, dry):
        with self._lock:
            self.input_calls.append(dry)
        return list(self._inputs)

    def run(self, dry):
        with self._lock:
            self.run_calls.append(dry)
            self.log.append(self.label)
        if self._on_run is not None:
            self._on_run()
        if self._fail is not None:
            raise self._fail

    def done(self):
        with self._lock:
            self.done_calls += 1
        return self._done

    def requires(self):
        return list(self._requires)

    def creates(self):
        return list(self._creates)


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def make_step(call_log):
    """Factory for FakeSteps sharing one ordering log."""
    def _make(label, **kwargs):
        kwargs.setdefault("log", call_log)
        return FakeStep(label, **kwargs)
    return _make


@pytest.fixture
def job_spec():
    return JobSpec(namespace="ci-op-1234", job_name="pull-ci-origin", build_id="42")


@pytest.fixture
def cluster():
    """In-memory cluster seeded with a base image and a release."""
    client = InMemoryClusterClient()
    client.add(IMAGE_STREAM_TAG, "openshift", {
        "metadata": {"name": "release:golang-1.10"},
        "image": {"metadata": {"name": "sha256:base"}},
    })
    client.add(IMAGE_STREAM, "ci-op-1234", {
        "metadata": {"name": "origin"},
        "status": {"publicDockerImageRepository": "registry.example.com/ci-op-1234/origin"},
    })
    client.add(ROUTE, "openshift", {
        "metadata": {"name": "rpm-repo"},
        "spec": {"host": "rpms.example.com"},
    })
    return client
