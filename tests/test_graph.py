"""Tests for graph building and partial selection.

Tests cover:
- Producer -> consumer edges and roots
- Steps with no links form a forest of singletons
- Partial selection by target name with transitive prerequisites
- Unresolved, duplicate and ambiguous targets
- Cycle detection
"""

import pytest

from ciorchestra.errors import (
    AmbiguousTargetError,
    GraphCycleError,
    TargetError,
    UnresolvedTargetError,
)
from ciorchestra.graph import build_graph, build_partial_graph, iter_nodes, parent_counts
from ciorchestra.links import internal_image_link, rpm_repo_link


def _labels(nodes):
    return sorted(node.step.label for node in nodes)


@pytest.fixture
def xyz(make_step):
    """X creates L1, Y requires L1 and creates L2, Z requires L2."""
    l1 = internal_image_link("l1")
    l2 = internal_image_link("l2")
    x = make_step("X", creates=[l1], name="x")
    y = make_step("Y", requires=[internal_image_link("l1")], creates=[l2], name="y")
    z = make_step("Z", requires=[internal_image_link("l2")], name="z")
    return x, y, z


class TestBuildGraph:
    """Tests for build_graph()."""

    def test_chain(self, xyz):
        x, y, z = xyz
        roots = build_graph([z, y, x])

        assert len(roots) == 1
        assert roots[0].step is x
        assert [c.step for c in roots[0].children] == [y]
        assert [c.step for c in roots[0].children[0].children] == [z]

    def test_unlinked_steps_are_all_roots(self, make_step):
        steps = [make_step(f"S{i}") for i in range(4)]
        roots = build_graph(steps)

        assert [r.step for r in roots] == steps
        assert all(not r.children for r in roots)

    def test_empty(self):
        assert build_graph([]) == []

    def test_unsatisfied_requirement_is_a_root(self, make_step):
        orphan = make_step("orphan", requires=[rpm_repo_link()])
        assert [r.step for r in build_graph([orphan])] == [orphan]

    def test_diamond_shares_consumer_node(self, make_step):
        a = make_step("A", creates=[internal_image_link("a")])
        b = make_step("B", requires=[internal_image_link("a")], creates=[internal_image_link("b")])
        c = make_step("C", requires=[internal_image_link("a")], creates=[internal_image_link("c")])
        d = make_step("D", requires=[internal_image_link("b"), internal_image_link("c")])

        roots = build_graph([a, b, c, d])
        nodes = list(iter_nodes(roots))

        assert _labels(nodes) == ["A", "B", "C", "D"]
        d_nodes = [n for n in nodes if n.step is d]
        assert len(d_nodes) == 1
        assert parent_counts(roots)[d_nodes[0]] == 2

    def test_repeated_matching_links_add_child_once(self, make_step):
        producer = make_step("P", creates=[rpm_repo_link(), rpm_repo_link()])
        consumer = make_step("C", requires=[rpm_repo_link(), rpm_repo_link()])

        roots = build_graph([producer, consumer])

        assert len(roots[0].children) == 1

    def test_self_link_is_not_an_edge(self, make_step):
        step = make_step("S", requires=[rpm_repo_link()], creates=[rpm_repo_link()])
        roots = build_graph([step])
        assert [r.step for r in roots] == [step]
        assert roots[0].children == []

    def test_cycle_raises(self, make_step):
        a = make_step("A", requires=[internal_image_link("b")], creates=[internal_image_link("a")])
        b = make_step("B", requires=[internal_image_link("a")], creates=[internal_image_link("b")])

        with pytest.raises(GraphCycleError) as exc_info:
            build_graph([a, b])
        assert sorted(exc_info.value.steps) == ["A", "B"]


class TestBuildPartialGraph:
    """Tests for build_partial_graph()."""

    def test_target_pulls_in_prerequisites(self, xyz):
        x, y, z = xyz
        roots = build_partial_graph([x, y, z], ["y"])

        assert _labels(iter_nodes(roots)) == ["X", "Y"]

    def test_target_pulls_in_transitive_prerequisites(self, xyz):
        x, y, z = xyz
        roots = build_partial_graph([z, y, x], ["z"])

        assert _labels(iter_nodes(roots)) == ["X", "Y", "Z"]
        assert [r.step for r in roots] == [x]

    def test_root_target_selects_only_itself(self, xyz):
        x, y, z = xyz
        roots = build_partial_graph([x, y, z], ["x"])
        assert _labels(iter_nodes(roots)) == ["X"]

    def test_empty_names_builds_full_graph(self, xyz):
        x, y, z = xyz
        full = build_graph([x, y, z])
        partial = build_partial_graph([x, y, z], [])

        assert [r.step for r in partial] == [r.step for r in full]
        assert _labels(iter_nodes(partial)) == _labels(iter_nodes(full))

    def test_unnamed_producers_are_included(self, make_step):
        producer = make_step("P", creates=[rpm_repo_link()])
        target = make_step("T", requires=[rpm_repo_link()], name="t")

        roots = build_partial_graph([producer, target], ["t"])
        assert _labels(iter_nodes(roots)) == ["P", "T"]

    def test_unrelated_steps_excluded(self, xyz, make_step):
        x, y, z = xyz
        other = make_step("O", creates=[rpm_repo_link()], name="o")
        roots = build_partial_graph([x, y, z, other], ["y"])
        assert "O" not in _labels(iter_nodes(roots))

    def test_unknown_name_raises(self, xyz):
        with pytest.raises(UnresolvedTargetError) as exc_info:
            build_partial_graph(list(xyz), ["x", "nope"])
        assert exc_info.value.names == ["nope"]
        assert "nope" in str(exc_info.value)

    def test_every_unknown_name_is_reported(self, xyz):
        with pytest.raises(UnresolvedTargetError) as exc_info:
            build_partial_graph(list(xyz), ["x", "q", "p"])
        assert exc_info.value.names == ["q", "p"]
        assert str(exc_info.value).endswith(": q, p")

    def test_fan_out_selects_only_the_targeted_consumer(self, make_step):
        x = make_step("X", creates=[internal_image_link("l1")], name="x")
        y = make_step("Y", requires=[internal_image_link("l1")], name="y")
        z = make_step("Z", requires=[internal_image_link("l1")], name="z")

        full = build_graph([x, y, z])
        assert [root.step for root in full] == [x]
        assert [child.step for child in full[0].children] == [y, z]

        roots = build_partial_graph([x, y, z], ["z"])
        assert [root.step for root in roots] == [x]
        assert [child.step for child in roots[0].children] == [z]
        assert _labels(iter_nodes(roots)) == ["X", "Z"]

    def test_duplicate_name_reported_as_unresolved(self, xyz):
        with pytest.raises(UnresolvedTargetError) as exc_info:
            build_partial_graph(list(xyz), ["x", "x"])
        assert exc_info.value.names == ["x"]
        assert "were duplicates" in str(exc_info.value)

    def test_name_shared_by_two_steps_is_ambiguous(self, make_step):
        a = make_step("A", name="dup")
        b = make_step("B", name="dup")

        with pytest.raises(AmbiguousTargetError) as exc_info:
            build_partial_graph([a, b], ["dup"])
        assert exc_info.value.names == ["dup"]

    def test_target_errors_share_base_class(self, xyz):
        with pytest.raises(TargetError):
            build_partial_graph(list(xyz), ["missing"])


class TestIterNodes:

    def test_each_node_once(self, make_step):
        a = make_step("A", creates=[rpm_repo_link()])
        b = make_step("B", creates=[rpm_repo_link()])
        c = make_step("C", requires=[rpm_repo_link()])

        roots = build_graph([a, b, c])

        assert len(roots) == 2
        assert _labels(iter_nodes(roots)) == ["A", "B", "C"]
