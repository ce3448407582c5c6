"""ImagesReadyStep - gate that completes once every pipeline image exists."""

import logging

from ciorchestra.links import StepLink, images_ready_link
from ciorchestra.step import InputDefinition, Step

logger = logging.getLogger(__name__)

IMAGES_TARGET = "[images]"


class ImagesReadyStep(Step):
    """
    Targetable as `[images]`: selecting it pulls in every step that
    produces one of the required image links.
    """

    def __init__(self, links: list[StepLink]):
        self._links = list(links)

    @property
    def name(self) -> str:
        return IMAGES_TARGET

    def inputs(self, dry: bool) -> InputDefinition:
        return []

    def run(self, dry: bool) -> None:
        logger.info(f"All {len(self._links)} image(s) ready")

    def done(self) -> bool:
        return False

    def requires(self) -> list[StepLink]:
        return list(self._links)

    def creates(self) -> list[StepLink]:
        return [images_ready_link()]
