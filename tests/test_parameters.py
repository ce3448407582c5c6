"""Tests for deferred parameters."""

import threading
import time

import pytest

from ciorchestra.links import images_ready_link, rpm_repo_link
from ciorchestra.parameters import DeferredParameters, register_provided


class TestDeferredParameters:

    def test_value_is_evaluated_lazily_and_once(self):
        calls = []

        def fn():
            calls.append(1)
            return "value"

        params = DeferredParameters()
        params.add("NAME", None, fn)
        assert calls == []

        assert params.get("NAME") == "value"
        assert params.get("NAME") == "value"
        assert calls == [1]

    def test_set_overrides_callable(self):
        params = DeferredParameters()
        params.add("NAME", None, lambda: "lazy")
        params.set("NAME", "concrete")
        assert params.get("NAME") == "concrete"

    def test_unknown_name_raises_key_error(self):
        with pytest.raises(KeyError):
            DeferredParameters().get("MISSING")

    def test_failed_evaluation_is_retried(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("not yet")
            return "ok"

        params = DeferredParameters()
        params.add("FLAKY", None, flaky)

        with pytest.raises(RuntimeError):
            params.get("FLAKY")
        assert params.get("FLAKY") == "ok"

    def test_links_are_tracked_per_name(self):
        params = DeferredParameters()
        params.add("A", images_ready_link(), lambda: "a")
        params.add("B", rpm_repo_link(), lambda: "b")
        params.add("C", None, lambda: "c")

        assert len(params.links("A")) == 1
        assert params.links("C") == []
        assert len(params.all_links()) == 2

    def test_names_and_map(self):
        params = DeferredParameters()
        params.add("B", None, lambda: "b")
        params.set("A", "a")

        assert params.names() == ["A", "B"]
        assert params.has("A") and not params.has("Z")
        assert params.map() == {"A": "a", "B": "b"}

    def test_concurrent_get_evaluates_once(self):
        calls = []

        def slow():
            calls.append(1)
            time.sleep(0.05)
            return "slow"

        params = DeferredParameters()
        params.add("SLOW", None, slow)
        results = []
        threads = [threading.Thread(target=lambda: results.append(params.get("SLOW"))) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["slow"] * 8
        assert calls == [1]


class TestRegisterProvided:

    def test_registers_step_parameters_under_their_link(self, make_step):
        step = make_step("P")
        step.provides = lambda: ({"IMAGE_FORMAT": lambda: "fmt"}, images_ready_link())
        plain = make_step("Q")

        params = DeferredParameters()
        register_provided([step, plain], params)

        assert params.names() == ["IMAGE_FORMAT"]
        assert params.get("IMAGE_FORMAT") == "fmt"
        assert params.links("IMAGE_FORMAT")[0].matches(images_ready_link())
