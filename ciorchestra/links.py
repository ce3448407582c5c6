"""
Step links - tokens for resources that steps require and create.

A link only ever matches a link of exactly its own type, which keeps
`matches` symmetric: a.matches(b) == b.matches(a).

Kinds:
- external image: an image stream tag outside the job, compared by
  (namespace, name, tag)
- internal image: a tag on the job's pipeline image stream
- images ready, RPM repo, release images: singleton markers
"""

from abc import ABC, abstractmethod
from typing import Iterable

from ciorchestra.schemas import ImageStreamTagReference, PipelineImageStreamTagReference


class StepLink(ABC):
    """A resource a step requires or creates."""

    @abstractmethod
    def matches(self, other: "StepLink") -> bool:
        """Whether `other` denotes the same resource as this link."""
        pass


class _ExternalImageLink(StepLink):

    def __init__(self, image: ImageStreamTagReference):
        self.image = image

    def matches(self, other: StepLink) -> bool:
        if type(other) is not type(self):
            return False
        return (
            self.image.namespace == other.image.namespace
            and self.image.name == other.image.name
            and self.image.tag == other.image.tag
        )

    def __repr__(self) -> str:
        return f"ExternalImageLink({self.image})"


class _InternalImageLink(StepLink):

    def __init__(self, image: PipelineImageStreamTagReference):
        self.image = image

    def matches(self, other: StepLink) -> bool:
        return type(other) is type(self) and self.image == other.image

    def __repr__(self) -> str:
        return f"InternalImageLink({self.image})"


class _MarkerLink(StepLink):
    """Singleton-style link: every instance of a marker kind matches the others."""

    def matches(self, other: StepLink) -> bool:
        return type(other) is type(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__.lstrip('_')}()"


class _ImagesReadyLink(_MarkerLink):
    pass


class _RPMRepoLink(_MarkerLink):
    pass


class _ReleaseImagesLink(_MarkerLink):
    pass


def external_image_link(ref: ImageStreamTagReference) -> StepLink:
    return _ExternalImageLink(ref)


def internal_image_link(ref: PipelineImageStreamTagReference) -> StepLink:
    return _InternalImageLink(ref)


def images_ready_link() -> StepLink:
    return _ImagesReadyLink()


def rpm_repo_link() -> StepLink:
    return _RPMRepoLink()


def release_images_link() -> StepLink:
    return _ReleaseImagesLink()


def has_any_links(required: Iterable[StepLink], candidates: Iterable[StepLink]) -> bool:
    """Whether any candidate link matches any required link."""
    required = list(required)
    for candidate in candidates:
        for link in required:
            if link.matches(candidate):
                return True
    return False
