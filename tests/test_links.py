"""Tests for step links.

Tests cover:
- Matching per link kind
- Symmetry across kinds
- has_any_links
"""

from ciorchestra.links import (
    external_image_link,
    has_any_links,
    images_ready_link,
    internal_image_link,
    release_images_link,
    rpm_repo_link,
)
from ciorchestra.schemas import ImageStreamTagReference


def _ref(namespace="openshift", name="release", tag="golang-1.10"):
    return ImageStreamTagReference(namespace=namespace, name=name, tag=tag)


class TestExternalImageLink:
    """External image links compare namespace, name and tag."""

    def test_equal_references_match(self):
        assert external_image_link(_ref()).matches(external_image_link(_ref()))

    def test_any_field_difference_does_not_match(self):
        link = external_image_link(_ref())
        assert not link.matches(external_image_link(_ref(namespace="other")))
        assert not link.matches(external_image_link(_ref(name="other")))
        assert not link.matches(external_image_link(_ref(tag="other")))

    def test_does_not_match_internal_link(self):
        assert not external_image_link(_ref()).matches(internal_image_link("release"))


class TestInternalImageLink:

    def test_same_tag_matches(self):
        assert internal_image_link("root").matches(internal_image_link("root"))

    def test_different_tag_does_not_match(self):
        assert not internal_image_link("root").matches(internal_image_link("src"))


class TestMarkerLinks:
    """Marker links match every other instance of the same marker."""

    def test_fresh_instances_match(self):
        assert images_ready_link().matches(images_ready_link())
        assert rpm_repo_link().matches(rpm_repo_link())
        assert release_images_link().matches(release_images_link())

    def test_markers_do_not_match_each_other(self):
        assert not images_ready_link().matches(rpm_repo_link())
        assert not rpm_repo_link().matches(release_images_link())
        assert not release_images_link().matches(images_ready_link())


class TestSymmetry:

    def test_matches_is_symmetric_for_every_pair(self):
        links = [
            external_image_link(_ref()),
            external_image_link(_ref(tag="v2")),
            internal_image_link("root"),
            internal_image_link("src"),
            images_ready_link(),
            rpm_repo_link(),
            release_images_link(),
        ]
        for a in links:
            for b in links:
                assert a.matches(b) == b.matches(a), (a, b)


class TestHasAnyLinks:

    def test_true_when_one_candidate_matches(self):
        required = [internal_image_link("root"), rpm_repo_link()]
        assert has_any_links(required, [internal_image_link("src"), rpm_repo_link()])

    def test_false_when_nothing_matches(self):
        assert not has_any_links([internal_image_link("root")], [internal_image_link("src")])

    def test_empty_inputs(self):
        assert not has_any_links([], [rpm_repo_link()])
        assert not has_any_links([rpm_repo_link()], [])

    def test_accepts_generators(self):
        required = (link for link in [internal_image_link("root")])
        assert has_any_links(required, iter([internal_image_link("root")]))
